"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (courses,
topics). Repositories return SQLModel objects and perform
commits/refreshes where appropriate. Driver failures are rolled back
and re-raised from the dashboard error taxonomy.
"""

from contextlib import contextmanager
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from . import models
from .errors import DuplicateNameError, StoreError, ValidationError
from .pagination import PageRequest

COURSE_SORT_COLUMNS = {
    'name': models.Course.name,
    'level': models.Course.level,
    'isPublished': models.Course.is_published,
    'is_published': models.Course.is_published,
    'isActive': models.Course.is_active,
    'is_active': models.Course.is_active,
    'createdAt': models.Course.created_at,
    'created_at': models.Course.created_at,
}
COURSE_FILTER_KEYS = ('name', 'status', 'active')
COURSE_STATUSES = {'published': True, 'draft': False}


@contextmanager
def _store_guard(session: Session, action: str, duplicate: Optional[str] = None):
    """Roll back and translate SQLAlchemy errors raised inside the block.

    With `duplicate` set, an integrity error is reported as a name clash.
    """
    try:
        yield
    except IntegrityError as exc:
        session.rollback()
        if duplicate:
            raise DuplicateNameError(duplicate) from exc
        raise StoreError(f'{action} failed') from exc
    except SQLAlchemyError as exc:
        session.rollback()
        raise StoreError(f'{action} failed') from exc


def course_ordering(sort: Optional[str]) -> list:
    """Translate `column.direction` into ORDER BY clauses.

    Unknown columns fall back to `name` ascending; `id` is always added
    last so pages never overlap.
    """
    column, _, direction = (sort or '').partition('.')
    col = COURSE_SORT_COLUMNS.get(column)
    if col is None:
        col, direction = models.Course.name, 'asc'
    order = col.desc() if direction.lower() == 'desc' else col.asc()
    return [order, models.Course.id.asc()]


def course_conditions(filters: Dict[str, str]) -> list:
    """Build WHERE clauses for the recognised course filters."""
    conds = []
    name = filters.get('name')
    if name:
        conds.append(models.Course.name.icontains(name, autoescape=True))
    status = filters.get('status')
    if status:
        wanted = {COURSE_STATUSES[s] for s in status.lower().split('.') if s in COURSE_STATUSES}
        if not wanted:
            raise ValidationError(f"status: expected one of {', '.join(sorted(COURSE_STATUSES))}")
        if len(wanted) == 1:
            conds.append(models.Course.is_published == wanted.pop())
    active = filters.get('active')
    if active:
        if active.lower() not in ('true', 'false'):
            raise ValidationError('active: expected true or false')
        conds.append(models.Course.is_active == (active.lower() == 'true'))
    return conds


class CourseRepository:
    """CRUD and listing queries for `Course` objects."""
    def __init__(self, session: Session):
        self.session = session

    def list_page(self, request: PageRequest) -> Tuple[List[models.Course], int]:
        """Return one window of courses and the size of the full filtered set.

        The total comes from its own COUNT query, never from the window.
        """
        conds = course_conditions(request.filters)
        with _store_guard(self.session, 'course listing'):
            total = self.count(request.filters)
            stmt = (
                select(models.Course)
                .where(*conds)
                .order_by(*course_ordering(request.sort))
                .offset(request.offset)
                .limit(request.limit)
            )
            items = self.session.exec(stmt).all()
        return list(items), total

    def count(self, filters: Optional[Dict[str, str]] = None) -> int:
        """Number of courses matching `filters`."""
        stmt = select(func.count()).select_from(models.Course).where(*course_conditions(filters or {}))
        with _store_guard(self.session, 'course count'):
            return int(self.session.exec(stmt).one())

    def list_all(self) -> List[models.Course]:
        stmt = select(models.Course).order_by(models.Course.name.asc(), models.Course.id.asc())
        with _store_guard(self.session, 'course listing'):
            return list(self.session.exec(stmt).all())

    def list_active(self) -> List[models.Course]:
        stmt = (
            select(models.Course)
            .where(models.Course.is_active == True)  # noqa: E712
            .order_by(models.Course.name.asc(), models.Course.id.asc())
        )
        with _store_guard(self.session, 'active course listing'):
            return list(self.session.exec(stmt).all())

    def count_by_active(self) -> Dict[bool, int]:
        """Return `{is_active: count}` grouped by the active flag."""
        stmt = select(models.Course.is_active, func.count(models.Course.id)).group_by(models.Course.is_active)
        with _store_guard(self.session, 'course count'):
            return {bool(active): int(n) for active, n in self.session.exec(stmt).all()}

    def get(self, course_id: int) -> Optional[models.Course]:
        """Get a `Course` by primary key."""
        with _store_guard(self.session, 'course lookup'):
            return self.session.get(models.Course, course_id)

    def find_by_name(self, name: str, exclude_id: Optional[int] = None) -> Optional[models.Course]:
        """Return a course with exactly `name`, ignoring `exclude_id`."""
        stmt = select(models.Course).where(models.Course.name == name)
        if exclude_id is not None:
            stmt = stmt.where(models.Course.id != exclude_id)
        with _store_guard(self.session, 'course lookup'):
            return self.session.exec(stmt).first()

    def save(self, course: models.Course) -> models.Course:
        """Insert or update `course` and return the refreshed instance."""
        with _store_guard(self.session, 'course save', duplicate='Course name already taken.'):
            self.session.add(course)
            self.session.commit()
            self.session.refresh(course)
        return course

    def delete(self, course: models.Course) -> int:
        """Delete `course` and its topics in one transaction.

        Returns the number of topics removed.
        """
        with _store_guard(self.session, 'course delete'):
            topics = self.session.exec(select(models.Topic).where(models.Topic.course_id == course.id)).all()
            for topic in topics:
                self.session.delete(topic)
            self.session.flush()
            self.session.delete(course)
            self.session.commit()
        return len(topics)


class TopicRepository:
    """Queries and inserts for `Topic` records."""
    def __init__(self, session: Session):
        self.session = session

    def list_for_course(self, course_id: int) -> List[models.Topic]:
        """List all topics for `course_id` ordered by name."""
        stmt = (
            select(models.Topic)
            .where(models.Topic.course_id == course_id)
            .order_by(models.Topic.name.asc(), models.Topic.id.asc())
        )
        with _store_guard(self.session, 'topic listing'):
            return list(self.session.exec(stmt).all())

    def count_for_course(self, course_id: int) -> int:
        stmt = select(func.count()).select_from(models.Topic).where(models.Topic.course_id == course_id)
        with _store_guard(self.session, 'topic count'):
            return int(self.session.exec(stmt).one())

    def find_by_name(self, name: str) -> Optional[models.Topic]:
        stmt = select(models.Topic).where(models.Topic.name == name)
        with _store_guard(self.session, 'topic lookup'):
            return self.session.exec(stmt).first()

    def create(self, topic: models.Topic) -> models.Topic:
        """Persist a new topic and return the managed instance."""
        with _store_guard(self.session, 'topic save'):
            self.session.add(topic)
            self.session.commit()
            self.session.refresh(topic)
        return topic
