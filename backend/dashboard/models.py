"""SQLModel data models.

This module defines the application's database tables using SQLModel.
A `Course` owns its `Topic` rows; topics are removed together with
their course by `CourseRepository.delete`.
"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field, Relationship


class Course(SQLModel, table=True):
    """A training course.

    Fields:
    - `name`: unique display name (3-50 chars, enforced by a unique index)
    - `level`: numeric difficulty level
    - `is_published` / `is_active`: visibility flags
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, nullable=False, unique=True, max_length=50)
    description: Optional[str] = None
    level: int = 1
    is_published: bool = False
    is_active: bool = True
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    topics: List['Topic'] = Relationship(back_populates='course')


class Topic(SQLModel, table=True):
    """A lesson topic belonging to exactly one `Course`.

    `materials` holds a JSON list of `{name, url}` objects.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    course_id: int = Field(foreign_key='course.id', index=True)
    name: str = Field(index=True)
    youtube_id: str = ""
    youtube_url: str = ""
    description: str = ""
    materials: List[dict] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    course: Optional[Course] = Relationship(back_populates='topics')
