"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and provide validation for
the routers. The wire format is camelCase (`fullName`, `isFavorited`);
attributes stay snake_case and aliases bridge the two. Request models
also accept the snake_case names.
"""

import re
import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, HttpUrl, StrictInt, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel

from .models import Role

PHONE_RE = re.compile(r"^[+]?[\d\s-]+$")
_URL = TypeAdapter(HttpUrl)


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def _check_password(v: str) -> str:
    if len(v) < 8:
        raise ValueError("Password must be at least 8 characters")
    if len(v) > 100:
        raise ValueError("Password too long")
    if not (re.search(r"[a-z]", v) and re.search(r"[A-Z]", v) and re.search(r"\d", v)):
        raise ValueError("Password must contain at least one uppercase letter, one lowercase letter, and one number")
    return v


def _check_full_name(v: str) -> str:
    v = v.strip()
    if len(v) < 2:
        raise ValueError("Full name must be at least 2 characters")
    if len(v) > 100:
        raise ValueError("Full name too long")
    return v


def _check_phone(v: Optional[str], allow_blank: bool) -> Optional[str]:
    if v is None or (allow_blank and v == ""):
        return v
    if len(v) > 20:
        raise ValueError("Phone number too long")
    if not PHONE_RE.match(v):
        raise ValueError("Invalid phone number format")
    return v


def _check_url(v: Optional[str], allow_blank: bool) -> Optional[str]:
    if v is None or (allow_blank and v == ""):
        return v
    try:
        _URL.validate_python(v)
    except ValueError:
        raise ValueError("Invalid URL format")
    return v


# --- auth ---

class RegisterIn(ApiModel):
    """Payload for student self-registration."""
    email: EmailStr
    password: str
    full_name: str

    @field_validator("password")
    @classmethod
    def valid_password(cls, v: str) -> str:
        return _check_password(v)

    @field_validator("full_name")
    @classmethod
    def valid_full_name(cls, v: str) -> str:
        return _check_full_name(v)


class LoginIn(ApiModel):
    email: EmailStr
    password: str = Field(min_length=1)


class StudentSummary(ApiModel):
    id: uuid.UUID
    full_name: str
    profile_image_url: Optional[str] = None


class UserOut(ApiModel):
    id: uuid.UUID
    email: str
    role: Role
    student: Optional[StudentSummary] = None


class AuthOut(ApiModel):
    """Authentication response containing an access token."""
    token: str
    user: UserOut


# --- students ---

class StudentCreate(ApiModel):
    """Admin-side student creation: account plus profile."""
    email: EmailStr
    password: str
    full_name: str
    class_name: Optional[str] = Field(default=None, max_length=50)
    academic_year: Optional[str] = Field(default=None, max_length=20)
    phone_number: Optional[str] = None
    profile_image_url: Optional[str] = None

    @field_validator("password")
    @classmethod
    def valid_password(cls, v: str) -> str:
        return _check_password(v)

    @field_validator("full_name")
    @classmethod
    def valid_full_name(cls, v: str) -> str:
        return _check_full_name(v)

    @field_validator("phone_number")
    @classmethod
    def valid_phone(cls, v):
        return _check_phone(v, allow_blank=False)

    @field_validator("profile_image_url")
    @classmethod
    def valid_url(cls, v):
        return _check_url(v, allow_blank=False)


class StudentUpdate(ApiModel):
    """Partial profile update. An empty string clears phone/image."""
    full_name: Optional[str] = None
    class_name: Optional[str] = Field(default=None, max_length=50)
    academic_year: Optional[str] = Field(default=None, max_length=20)
    phone_number: Optional[str] = None
    profile_image_url: Optional[str] = None

    @field_validator("full_name")
    @classmethod
    def valid_full_name(cls, v):
        return None if v is None else _check_full_name(v)

    @field_validator("phone_number")
    @classmethod
    def valid_phone(cls, v):
        return _check_phone(v, allow_blank=True)

    @field_validator("profile_image_url")
    @classmethod
    def valid_url(cls, v):
        return _check_url(v, allow_blank=True)


class StudentUserOut(ApiModel):
    email: str


class StudentOut(ApiModel):
    id: uuid.UUID
    user_id: uuid.UUID
    full_name: str
    class_name: Optional[str] = None
    academic_year: Optional[str] = None
    phone_number: Optional[str] = None
    profile_image_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    user: StudentUserOut


# --- lessons ---

class LessonCreate(ApiModel):
    title: str = Field(min_length=2, max_length=200)
    description: str = Field(min_length=10, max_length=5000)
    image_url: Optional[str] = None


class LessonUpdate(ApiModel):
    """Partial lesson update. An empty `imageUrl` clears the image."""
    title: Optional[str] = Field(default=None, min_length=2, max_length=200)
    description: Optional[str] = Field(default=None, min_length=10, max_length=5000)
    image_url: Optional[str] = None


class LessonOut(ApiModel):
    id: uuid.UUID
    title: str
    description: str
    image_url: Optional[str] = None
    rating: float
    created_at: datetime
    updated_at: datetime
    is_favorited: Optional[bool] = None
    favorite_count: int = 0


class LessonDetailOut(LessonOut):
    user_rating: Optional[int] = None
    total_ratings: int = 0


class RateIn(ApiModel):
    value: StrictInt = Field(ge=1, le=5)


class RatingResultOut(ApiModel):
    rating_id: uuid.UUID
    lesson_id: uuid.UUID
    user_rating: int
    average_rating: float
    total_ratings: int


class MyRatingOut(ApiModel):
    rating: Optional[int] = None


# --- favorites ---

class FavoriteOut(ApiModel):
    id: uuid.UUID
    student_id: uuid.UUID
    lesson_id: uuid.UUID
    created_at: datetime
    lesson: LessonOut


# --- school ---

class SchoolUpdate(ApiModel):
    """Partial school update. Empty strings clear logo/phone."""
    name: Optional[str] = Field(default=None, min_length=2, max_length=200)
    logo_url: Optional[str] = None
    phone_number: Optional[str] = None

    @field_validator("logo_url")
    @classmethod
    def valid_logo(cls, v):
        return _check_url(v, allow_blank=True)

    @field_validator("phone_number")
    @classmethod
    def valid_phone(cls, v):
        return _check_phone(v, allow_blank=True)


class SchoolOut(ApiModel):
    id: uuid.UUID
    name: str
    logo_url: Optional[str] = None
    phone_number: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# --- dashboard ---

class DashboardStats(ApiModel):
    total_students: int
    total_lessons: int
    total_favorites: int


class GrowthPoint(ApiModel):
    date: str
    count: int


class RatingBucket(ApiModel):
    rating: int
    count: int


class TopLesson(ApiModel):
    id: uuid.UUID
    title: str
    rating: float
    favorite_count: int


class RecentStudent(ApiModel):
    id: uuid.UUID
    full_name: str
    email: str
    created_at: datetime


class DashboardAnalytics(ApiModel):
    student_growth: List[GrowthPoint]
    rating_distribution: List[RatingBucket]
    top_lessons: List[TopLesson]
    recent_students: List[RecentStudent]
    average_rating: float
    total_ratings: int


# --- upload ---

class UploadOut(ApiModel):
    url: str
    public_id: str
    width: Optional[int] = None
    height: Optional[int] = None
