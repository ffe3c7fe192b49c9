"""Pydantic request/response schemas used by the API and pages.

Schemas keep API input/output shapes stable and provide validation for
controller handlers and tests. JSON payloads use camelCase field names
(`isPublished`, `totalCount`); Python code uses snake_case attributes.
"""

from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class ApiModel(BaseModel):
    """Base for camelCase JSON shapes that also accept snake_case input."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ListingParams(BaseModel):
    """Raw listing query parameters.

    Unknown keys are ignored. Repeated keys arrive as lists and collapse
    to their first value; numbers are accepted as strings. Anything else
    (e.g. a mapping) is a hard schema mismatch.
    """
    model_config = ConfigDict(extra="ignore")

    page: Optional[str] = None
    per_page: Optional[str] = None
    sort: Optional[str] = None

    @field_validator("*", mode="before")
    @classmethod
    def _first_string(cls, v):
        if isinstance(v, (list, tuple)):
            v = v[0] if v else None
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            v = str(v)
        return v


class CourseIn(ApiModel):
    """Payload for creating a course."""
    name: str = Field(min_length=3, max_length=50)
    level: int
    description: Optional[str] = None
    is_published: bool = False


class CourseUpdateIn(CourseIn):
    """Payload for updating a course; `is_active` is left untouched when omitted."""
    is_active: Optional[bool] = None


class CourseOut(ApiModel):
    id: int
    name: str
    description: Optional[str] = None
    level: int
    is_published: bool
    is_active: bool
    created_at: Optional[datetime] = None


class ActiveCourseOut(ApiModel):
    id: int
    name: str
    description: Optional[str] = None
    active: bool


class CourseCountOut(ApiModel):
    active: int = 0
    inactive: int = 0
    total: int = 0


class Material(ApiModel):
    name: Optional[str] = None
    url: str = Field(min_length=1)


class TopicIn(ApiModel):
    """Payload for adding a topic to a course."""
    name: str = Field(min_length=3, max_length=50)
    youtube_id: str = ""
    youtube_url: str = ""
    description: str = ""
    materials: List[Material] = Field(default_factory=list)


class TopicCheckIn(ApiModel):
    name: str = Field(min_length=1)


class TopicOut(ApiModel):
    id: int
    course_id: int
    name: str
    youtube_id: str = ""
    youtube_url: str = ""
    description: str = ""
    materials: List[Material] = Field(default_factory=list)


class UserPublicMetadata(BaseModel):
    """The part of the provider's public metadata the dashboard reads."""
    model_config = ConfigDict(extra="ignore")

    level: Optional[int] = None

    @field_validator("level", mode="before")
    @classmethod
    def _lenient_level(cls, v):
        try:
            return int(v) if v is not None and v != "" else None
        except (TypeError, ValueError):
            return None


class UserOut(ApiModel):
    """Display projection of an identity-provider user.

    Contains no email list and no external accounts; `email` is the
    derived primary address.
    """
    id: str
    first_name: str = ""
    last_name: str = ""
    display_name: str = ""
    email: str = ""
    image_url: str = ""
    last_sign_in_at: Optional[datetime] = None
    level: Optional[int] = None


class UserLevelIn(ApiModel):
    level: int = Field(ge=1)


class PageResult(ApiModel, Generic[T]):
    """One window of a listing plus the size of the full filtered set."""
    items: List[T]
    total_count: int = Field(ge=0)
