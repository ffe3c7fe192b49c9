"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories,
the listing cache and the user directory. Services validate payloads,
run the uniqueness pre-checks, persist via repositories and invalidate
cached listings after every successful mutation.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError as PydanticValidationError
from sqlmodel import Session

from . import models, repositories
from .cache import ListingCache, path_tag
from .directory import UserDirectory
from .errors import DuplicateNameError, NotFoundError, ValidationError
from .pagination import PageRequest
from .schemas import (
    ActiveCourseOut,
    CourseCountOut,
    CourseIn,
    CourseOut,
    CourseUpdateIn,
    PageResult,
    TopicIn,
    TopicOut,
    UserLevelIn,
    UserOut,
    UserPublicMetadata,
)

logger = logging.getLogger("dashboard.services")

COURSES_PATH = "/dashboard/courses"
USERS_PATH = "/dashboard/users"
ALL_COURSES = "all-courses"
ACTIVE_COURSES = "active-courses"
COURSES_COUNT = "courses-count"

M = TypeVar("M", bound=BaseModel)


def validate_payload(schema: Type[M], payload: Union[M, Mapping[str, Any]]) -> M:
    """Return `payload` as `schema`, raising the dashboard `ValidationError`."""
    if isinstance(payload, schema):
        return payload
    try:
        return schema.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError.from_pydantic(exc) from exc


def course_path(course_id: int) -> str:
    return f"{COURSES_PATH}/{course_id}"


def topics_tag(course_id: int) -> str:
    return f"course-topics-{course_id}"


class CourseService:
    """Course listing, lookups and mutations."""
    def __init__(self, session: Session, cache: ListingCache):
        self.session = session
        self.cache = cache
        self.repo = repositories.CourseRepository(session)

    def list_courses(self, request: PageRequest) -> PageResult[CourseOut]:
        """Return one page of courses plus the total of the filtered set."""
        def load():
            items, total = self.repo.list_page(request)
            return PageResult[CourseOut](
                items=[CourseOut.model_validate(c) for c in items],
                total_count=total,
            )
        return self.cache.get_or_load(
            request.cache_key("courses"), load, tags=(ALL_COURSES, path_tag(COURSES_PATH))
        )

    def count_courses(self, filters: Optional[Dict[str, str]] = None) -> int:
        key = PageRequest(filters=dict(filters or {})).cache_key("courses-count")
        return self.cache.get_or_load(key, lambda: self.repo.count(filters), tags=(COURSES_COUNT,))

    def get_courses(self) -> List[CourseOut]:
        """All courses ordered by name."""
        return self.cache.get_or_load(
            ALL_COURSES,
            lambda: [CourseOut.model_validate(c) for c in self.repo.list_all()],
            tags=(ALL_COURSES,),
        )

    def get_active_courses(self) -> List[ActiveCourseOut]:
        def load():
            return [
                ActiveCourseOut(id=c.id, name=c.name, description=c.description, active=c.is_active)
                for c in self.repo.list_active()
            ]
        return self.cache.get_or_load(ACTIVE_COURSES, load, tags=(ACTIVE_COURSES,))

    def get_course_count(self) -> CourseCountOut:
        """Course counts grouped by the active flag."""
        def load():
            grouped = self.repo.count_by_active()
            active, inactive = grouped.get(True, 0), grouped.get(False, 0)
            return CourseCountOut(active=active, inactive=inactive, total=active + inactive)
        return self.cache.get_or_load(COURSES_COUNT, load, tags=(COURSES_COUNT,))

    def get_course(self, course_id: int) -> CourseOut:
        def load():
            return CourseOut.model_validate(self._require(course_id))
        return self.cache.get_or_load(
            f"course-{course_id}", load, tags=(path_tag(course_path(course_id)),)
        )

    def add_course(self, payload: Union[CourseIn, Mapping[str, Any]]) -> CourseOut:
        """Create a course after checking its name is free.

        The pre-check gives a friendly error; the unique index on
        `course.name` is what actually guarantees uniqueness.
        """
        data = validate_payload(CourseIn, payload)
        if self.repo.find_by_name(data.name):
            raise DuplicateNameError("Course name already taken.")
        course = self.repo.save(models.Course(
            name=data.name,
            description=data.description,
            level=data.level,
            is_published=data.is_published,
        ))
        logger.info("course created id=%s", course.id)
        self._invalidate()
        return CourseOut.model_validate(course)

    def update_course(self, course_id: int, payload: Union[CourseUpdateIn, Mapping[str, Any]]) -> CourseOut:
        """Update a course in place; its own current name is not a clash."""
        data = validate_payload(CourseUpdateIn, payload)
        course = self._require(course_id)
        if self.repo.find_by_name(data.name, exclude_id=course_id):
            raise DuplicateNameError("Course name already taken.")
        course.name = data.name
        course.description = data.description
        course.level = data.level
        course.is_published = data.is_published
        if data.is_active is not None:
            course.is_active = data.is_active
        course = self.repo.save(course)
        logger.info("course updated id=%s", course_id)
        self._invalidate(course_id)
        return CourseOut.model_validate(course)

    def publish_course(self, course_id: int) -> CourseOut:
        course = self._require(course_id)
        course.is_published = True
        course = self.repo.save(course)
        logger.info("course published id=%s", course_id)
        self._invalidate(course_id)
        return CourseOut.model_validate(course)

    def delete_course(self, course_id: int) -> int:
        """Delete a course and all of its topics; return the topic count removed."""
        course = self._require(course_id)
        removed = self.repo.delete(course)
        logger.info("course deleted id=%s topics_removed=%d", course_id, removed)
        self._invalidate(course_id)
        self.cache.invalidate(topics_tag(course_id))
        return removed

    def _require(self, course_id: int) -> models.Course:
        course = self.repo.get(course_id)
        if not course:
            raise NotFoundError("Course not found")
        return course

    def _invalidate(self, course_id: Optional[int] = None) -> None:
        self.cache.invalidate(ALL_COURSES, ACTIVE_COURSES, COURSES_COUNT)
        self.cache.invalidate_path(COURSES_PATH)
        if course_id is not None:
            self.cache.invalidate_path(course_path(course_id))


def course_form_payload(form: Mapping[str, Any]) -> Dict[str, Any]:
    """Read a submitted course form.

    `isPublished` is true only for the string "true" (any case); a
    missing checkbox means false. `isActive` is left out unless sent.
    """
    payload = {
        "name": form.get("name") or "",
        "description": form.get("description") or None,
        "level": form.get("level"),
        "isPublished": str(form.get("isPublished") or "").lower() == "true",
    }
    if form.get("isActive") is not None:
        payload["isActive"] = str(form.get("isActive")).lower() == "true"
    return payload


def youtube_id_from_url(url: str) -> str:
    """Video id is the last path segment of the url ("" for no url)."""
    return url.split("/")[-1] if url else ""


class TopicService:
    """Topics owned by a course."""
    def __init__(self, session: Session, cache: ListingCache):
        self.session = session
        self.cache = cache
        self.repo = repositories.TopicRepository(session)
        self.course_repo = repositories.CourseRepository(session)

    def check_topic(self, name: str) -> None:
        """Raise `DuplicateNameError` when a topic called `name` exists."""
        if self.repo.find_by_name(name):
            raise DuplicateNameError("Topic name already taken.")

    def add_topic(self, course_id: int, payload: Union[TopicIn, Mapping[str, Any]]) -> TopicOut:
        data = validate_payload(TopicIn, payload)
        if not self.course_repo.get(course_id):
            raise NotFoundError("Course not found")
        self.check_topic(data.name)
        topic = self.repo.create(models.Topic(
            course_id=course_id,
            name=data.name,
            youtube_id=data.youtube_id or youtube_id_from_url(data.youtube_url),
            youtube_url=data.youtube_url,
            description=data.description,
            materials=[m.model_dump(exclude_none=True) for m in data.materials],
        ))
        logger.info("topic created id=%s course_id=%s", topic.id, course_id)
        self.cache.invalidate(topics_tag(course_id))
        self.cache.invalidate_path(course_path(course_id))
        return TopicOut.model_validate(topic)

    def list_topics(self, course_id: int) -> List[TopicOut]:
        if not self.course_repo.get(course_id):
            raise NotFoundError("Course not found")
        return self.cache.get_or_load(
            topics_tag(course_id),
            lambda: [TopicOut.model_validate(t) for t in self.repo.list_for_course(course_id)],
            tags=(topics_tag(course_id), path_tag(course_path(course_id))),
        )


def _sign_in_time(value: Any) -> Optional[datetime]:
    """Provider timestamps are epoch milliseconds."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return None


def primary_email(raw: Mapping[str, Any]) -> str:
    primary_id = raw.get("primary_email_address_id")
    for entry in raw.get("email_addresses") or []:
        if entry.get("id") == primary_id:
            return entry.get("email_address") or ""
    return ""


def project_user(raw: Mapping[str, Any]) -> UserOut:
    """Reduce a raw provider user to its display projection.

    The email list and external accounts never leave this function;
    missing name parts and emails become empty strings.
    """
    first = raw.get("first_name") or ""
    last = raw.get("last_name") or ""
    public_metadata = raw.get("public_metadata")
    if not isinstance(public_metadata, Mapping):
        public_metadata = {}
    metadata = UserPublicMetadata.model_validate(public_metadata)
    return UserOut(
        id=str(raw["id"]),
        first_name=first,
        last_name=last,
        display_name=f"{first} {last}".strip(),
        email=primary_email(raw),
        image_url=raw.get("image_url") or "",
        last_sign_in_at=_sign_in_time(raw.get("last_sign_in_at")),
        level=metadata.level,
    )


class UserService:
    """Users listing and admin actions against the identity provider."""
    def __init__(self, directory: UserDirectory):
        self.directory = directory

    def list_users(self, request: PageRequest) -> PageResult[UserOut]:
        total = self.directory.get_count()
        raw_users = self.directory.get_user_list(limit=request.limit, offset=request.offset)
        return PageResult[UserOut](items=[project_user(u) for u in raw_users], total_count=total)

    def update_user_level(self, user_id: str, level: Any) -> None:
        data = validate_payload(UserLevelIn, {"level": level})
        self.directory.update_public_metadata(user_id, {"level": data.level})
        logger.info("user level updated id=%s level=%s", user_id, data.level)

    def delete_user(self, user_id: str) -> None:
        self.directory.delete_user(user_id)
        logger.info("user deleted id=%s", user_id)
