"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Each class maps to a table and uses relationships where appropriate.
Primary keys are UUIDs, so a student's id and its owning user's id are
always different values.
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field, Relationship


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, enum.Enum):
    """Closed set of user roles."""
    ADMIN = "ADMIN"
    STUDENT = "STUDENT"


class User(SQLModel, table=True):
    """A login account.

    Fields:
    - `email`: unique login name
    - `password_hash`: hashed password string (never store plaintext)
    - `role`: ADMIN or STUDENT; only STUDENT users own a `Student` row
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    email: str = Field(index=True, unique=True, nullable=False, max_length=255)
    password_hash: str
    role: Role = Field(default=Role.STUDENT)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})
    student: Optional["Student"] = Relationship(
        back_populates="user",
        sa_relationship_kwargs={"uselist": False, "cascade": "all, delete-orphan"},
    )


class Student(SQLModel, table=True):
    """Student profile, 1:1 with a STUDENT `User`."""
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="user.id", unique=True, nullable=False, ondelete="CASCADE")
    full_name: str = Field(max_length=100)
    class_name: Optional[str] = Field(default=None, max_length=50)
    academic_year: Optional[str] = Field(default=None, max_length=20)
    phone_number: Optional[str] = Field(default=None, max_length=20)
    profile_image_url: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})
    user: Optional[User] = Relationship(back_populates="student")
    favorites: List["Favorite"] = Relationship(
        back_populates="student", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )
    ratings: List["Rating"] = Relationship(
        back_populates="student", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )


class School(SQLModel, table=True):
    """School profile. Only the first row is ever read."""
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(max_length=200)
    logo_url: Optional[str] = None
    phone_number: Optional[str] = Field(default=None, max_length=20)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})


class Lesson(SQLModel, table=True):
    """A lesson with a cached average `rating`.

    `rating` mirrors avg(Rating.value) for the lesson and is rewritten
    every time one of its ratings changes.
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    title: str = Field(max_length=200)
    description: str
    image_url: Optional[str] = None
    rating: float = Field(default=0.0)
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})
    favorites: List["Favorite"] = Relationship(
        back_populates="lesson", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )
    ratings: List["Rating"] = Relationship(
        back_populates="lesson", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )


class Favorite(SQLModel, table=True):
    """A student's saved lesson."""
    __table_args__ = (UniqueConstraint("student_id", "lesson_id", name="uq_favorite_student_lesson"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    student_id: uuid.UUID = Field(foreign_key="student.id", index=True, ondelete="CASCADE")
    lesson_id: uuid.UUID = Field(foreign_key="lesson.id", index=True, ondelete="CASCADE")
    created_at: datetime = Field(default_factory=utcnow)
    student: Optional[Student] = Relationship(back_populates="favorites")
    lesson: Optional[Lesson] = Relationship(back_populates="favorites")


class Rating(SQLModel, table=True):
    """One live 1..5 rating per student per lesson."""
    __table_args__ = (UniqueConstraint("student_id", "lesson_id", name="uq_rating_student_lesson"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    student_id: uuid.UUID = Field(foreign_key="student.id", index=True, ondelete="CASCADE")
    lesson_id: uuid.UUID = Field(foreign_key="lesson.id", index=True, ondelete="CASCADE")
    value: int
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})
    student: Optional[Student] = Relationship(back_populates="ratings")
    lesson: Optional[Lesson] = Relationship(back_populates="ratings")
