"""Business logic services used by HTTP routers.

This module holds small service classes that coordinate repositories.
Services are intentionally thin: they validate, apply the business
rules (ownership, uniqueness, rating aggregation) and raise typed
`ApiError`s that the top-level handler turns into responses.

Ownership is enforced here and only here: every operation on a
student-owned resource resolves the owning user through the foreign key
and calls `auth.ensure_owner_or_admin`.
"""

import logging
import uuid
from datetime import date, datetime, time, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

import jwt
from passlib.context import CryptContext
from sqlmodel import Session

from . import models, repositories, schemas
from .auth import Principal, ensure_owner_or_admin
from .config import Settings
from .errors import ConflictError, InvalidArgumentError, NotFoundError, UnauthorizedError
from .utils.pagination import Page, PageParams

logger = logging.getLogger("qeema.services")

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

GROWTH_WINDOW_DAYS = 7
TOP_LESSONS_LIMIT = 5
RECENT_STUDENTS_LIMIT = 5


def hash_password(password: str) -> str:
    return PWD_CTX.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return PWD_CTX.verify(password, password_hash)


def round_half_up(value: float, places: int = 1) -> float:
    """Round like a person would: 3.25 -> 3.3, 2.5 -> 3."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def _blank_to_none(data: dict, *fields: str) -> dict:
    for f in fields:
        if data.get(f) == "":
            data[f] = None
    return data


def _drop_nulls(data: dict, *fields: str) -> dict:
    for f in fields:
        if f in data and data[f] is None:
            del data[f]
    return data


def _student_out(student: models.Student) -> schemas.StudentOut:
    return schemas.StudentOut(
        id=student.id,
        user_id=student.user_id,
        full_name=student.full_name,
        class_name=student.class_name,
        academic_year=student.academic_year,
        phone_number=student.phone_number,
        profile_image_url=student.profile_image_url,
        created_at=student.created_at,
        updated_at=student.updated_at,
        user=schemas.StudentUserOut(email=student.user.email),
    )


def _user_out(user: models.User) -> schemas.UserOut:
    student = None
    if user.student is not None:
        student = schemas.StudentSummary(
            id=user.student.id,
            full_name=user.student.full_name,
            profile_image_url=user.student.profile_image_url,
        )
    return schemas.UserOut(id=user.id, email=user.email, role=user.role, student=student)


def _lesson_out(lesson: models.Lesson, favorite_count: int = 0, is_favorited: Optional[bool] = None) -> schemas.LessonOut:
    return schemas.LessonOut(
        id=lesson.id,
        title=lesson.title,
        description=lesson.description,
        image_url=lesson.image_url,
        rating=lesson.rating,
        created_at=lesson.created_at,
        updated_at=lesson.updated_at,
        is_favorited=is_favorited,
        favorite_count=favorite_count,
    )


def _student_for(session: Session, principal: Principal) -> models.Student:
    """The principal's own student profile, or 404."""
    student = repositories.StudentRepository(session).get_by_user_id(principal.user_id)
    if student is None:
        raise NotFoundError("Student profile")
    return student


def _student_id_or_none(session: Session, principal: Optional[Principal]) -> Optional[uuid.UUID]:
    if principal is None or principal.role is not models.Role.STUDENT:
        return None
    student = repositories.StudentRepository(session).get_by_user_id(principal.user_id)
    return student.id if student else None


class AuthService:
    """Authentication related operations (register, login, current user)."""
    def __init__(self, session: Session, settings: Settings):
        self.session = session
        self.settings = settings
        self.user_repo = repositories.UserRepository(session)

    def issue_token(self, user: models.User) -> str:
        """Sign a JWT carrying the user's id, email and role."""
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user.id),
            "email": user.email,
            "role": user.role.value,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(hours=self.settings.JWT_EXPIRE_HOURS)).timestamp()),
        }
        return jwt.encode(payload, self.settings.JWT_SECRET, algorithm=self.settings.JWT_ALGORITHM)

    def register(self, data: schemas.RegisterIn) -> schemas.AuthOut:
        """Create a STUDENT user with its profile and return a token.

        Raises `ConflictError` if the email is already registered.
        """
        if self.user_repo.email_exists(data.email):
            raise ConflictError("Email already registered")
        user = models.User(email=data.email, password_hash=hash_password(data.password), role=models.Role.STUDENT)
        student = models.Student(user_id=user.id, full_name=data.full_name)
        user = self.user_repo.create_with_student(user, student)
        logger.info("student registered user_id=%s", user.id)
        return schemas.AuthOut(token=self.issue_token(user), user=_user_out(user))

    def login(self, data: schemas.LoginIn) -> schemas.AuthOut:
        """Verify credentials and return a signed token for either role."""
        user = self.user_repo.get_by_email(data.email)
        # same message for unknown email and wrong password
        if not user or not verify_password(data.password, user.password_hash):
            raise UnauthorizedError("Invalid email or password")
        return schemas.AuthOut(token=self.issue_token(user), user=_user_out(user))

    def current_user(self, principal: Principal) -> schemas.UserOut:
        user = self.user_repo.get(principal.user_id)
        if not user:
            raise NotFoundError("User")
        return _user_out(user)


class StudentService:
    """Student profile management for admins and the students themselves."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)
        self.student_repo = repositories.StudentRepository(session)

    def list_students(self, params: PageParams, search: Optional[str] = None) -> Page:
        students, total = self.student_repo.list(search=search, offset=params.offset, limit=params.limit)
        return Page(items=[_student_out(s) for s in students], page=params.page, limit=params.limit, total=total)

    def get_student(self, principal: Principal, student_id: uuid.UUID) -> schemas.StudentOut:
        student = self.student_repo.get(student_id)
        if student is None:
            raise NotFoundError("Student")
        ensure_owner_or_admin(principal, student.user_id, "You can only access your own profile")
        return _student_out(student)

    def get_own_profile(self, principal: Principal) -> schemas.StudentOut:
        return _student_out(_student_for(self.session, principal))

    def create_student(self, data: schemas.StudentCreate) -> schemas.StudentOut:
        """Create the user account and the student profile together."""
        if self.user_repo.email_exists(data.email):
            raise ConflictError("Email already registered")
        user = models.User(email=data.email, password_hash=hash_password(data.password), role=models.Role.STUDENT)
        student = models.Student(
            user_id=user.id,
            full_name=data.full_name,
            class_name=data.class_name,
            academic_year=data.academic_year,
            phone_number=data.phone_number,
            profile_image_url=data.profile_image_url,
        )
        self.user_repo.create_with_student(user, student)
        self.session.refresh(student)
        logger.info("student created by admin student_id=%s", student.id)
        return _student_out(student)

    def update_student(self, principal: Principal, student_id: uuid.UUID, data: schemas.StudentUpdate) -> schemas.StudentOut:
        student = self.student_repo.get(student_id)
        if student is None:
            raise NotFoundError("Student")
        ensure_owner_or_admin(principal, student.user_id, "You can only update your own profile")
        changes = data.model_dump(exclude_unset=True)
        _blank_to_none(changes, "phone_number", "profile_image_url", "class_name", "academic_year")
        _drop_nulls(changes, "full_name")
        return _student_out(self.student_repo.update(student, changes))

    def delete_student(self, student_id: uuid.UUID) -> None:
        """Delete the student's user account; the profile cascades.

        Lessons the student had rated get their cached rating recomputed
        from the ratings that remain.
        """
        student = self.student_repo.get(student_id)
        if student is None:
            raise NotFoundError("Student")
        rated_lessons = {r.lesson_id for r in student.ratings}
        user = self.user_repo.get(student.user_id)
        self.user_repo.delete(user)
        # the cascade removed this student's ratings; refresh the cached averages
        ratings = RatingService(self.session)
        for lesson_id in rated_lessons:
            ratings.recompute_lesson_rating(lesson_id)
        logger.info("student deleted student_id=%s", student_id)


class LessonService:
    """Lesson catalogue with per-student favorite and rating context."""
    def __init__(self, session: Session):
        self.session = session
        self.lesson_repo = repositories.LessonRepository(session)
        self.rating_repo = repositories.RatingRepository(session)

    def list_lessons(self, principal: Optional[Principal], params: PageParams, search: Optional[str] = None) -> Page:
        """Paginated lessons; `isFavorited` is filled in for students."""
        lessons, total = self.lesson_repo.list(search=search, offset=params.offset, limit=params.limit)
        ids = [l.id for l in lessons]
        counts = self.lesson_repo.favorite_counts(ids)
        student_id = _student_id_or_none(self.session, principal)
        favorited = self.lesson_repo.favorited_by(student_id, ids) if student_id else set()
        items = [
            _lesson_out(l, counts.get(l.id, 0), (l.id in favorited) if student_id else None)
            for l in lessons
        ]
        return Page(items=items, page=params.page, limit=params.limit, total=total)

    def get_lesson(self, principal: Optional[Principal], lesson_id: uuid.UUID) -> schemas.LessonDetailOut:
        lesson = self.lesson_repo.get(lesson_id)
        if lesson is None:
            raise NotFoundError("Lesson")
        student_id = _student_id_or_none(self.session, principal)
        is_favorited = None
        user_rating = None
        if student_id:
            is_favorited = bool(self.lesson_repo.favorited_by(student_id, [lesson.id]))
            own = self.rating_repo.get(student_id, lesson.id)
            user_rating = own.value if own else None
        base = _lesson_out(lesson, self.lesson_repo.favorite_counts([lesson.id]).get(lesson.id, 0), is_favorited)
        return schemas.LessonDetailOut(
            **base.model_dump(),
            user_rating=user_rating,
            total_ratings=self.rating_repo.count(lesson.id),
        )

    def create_lesson(self, data: schemas.LessonCreate) -> schemas.LessonOut:
        """Create a lesson; its rating starts at 0 until students rate it."""
        lesson = self.lesson_repo.create(
            models.Lesson(title=data.title, description=data.description, image_url=data.image_url or None)
        )
        logger.info("lesson created lesson_id=%s", lesson.id)
        return _lesson_out(lesson)

    def update_lesson(self, lesson_id: uuid.UUID, data: schemas.LessonUpdate) -> schemas.LessonOut:
        lesson = self.lesson_repo.get(lesson_id)
        if lesson is None:
            raise NotFoundError("Lesson")
        changes = data.model_dump(exclude_unset=True)
        _blank_to_none(changes, "image_url")
        _drop_nulls(changes, "title", "description")
        lesson = self.lesson_repo.update(lesson, changes)
        return _lesson_out(lesson, self.lesson_repo.favorite_counts([lesson.id]).get(lesson.id, 0))

    def delete_lesson(self, lesson_id: uuid.UUID) -> None:
        lesson = self.lesson_repo.get(lesson_id)
        if lesson is None:
            raise NotFoundError("Lesson")
        self.lesson_repo.delete(lesson)
        logger.info("lesson deleted lesson_id=%s", lesson_id)


class RatingService:
    """Keeps `Lesson.rating` equal to the average of its ratings.

    The cached value is recomputed after every rating write, from a fresh
    query issued once the upsert has committed. It is stale only between
    those two commits of the same request.
    """
    def __init__(self, session: Session):
        self.session = session
        self.lesson_repo = repositories.LessonRepository(session)
        self.rating_repo = repositories.RatingRepository(session)

    @staticmethod
    def validate_value(value) -> int:
        if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 5:
            raise InvalidArgumentError("Rating must be an integer between 1 and 5")
        return value

    def rate_lesson(self, principal: Principal, lesson_id: uuid.UUID, value) -> schemas.RatingResultOut:
        """Create or overwrite the principal's rating and refresh the average."""
        value = self.validate_value(value)
        student = _student_for(self.session, principal)
        if self.lesson_repo.get(lesson_id) is None:
            raise NotFoundError("Lesson")
        rating = self.rating_repo.upsert(student.id, lesson_id, value)
        average = self.recompute_lesson_rating(lesson_id)
        return schemas.RatingResultOut(
            rating_id=rating.id,
            lesson_id=lesson_id,
            user_rating=value,
            average_rating=round_half_up(average, 1),
            total_ratings=self.rating_repo.count(lesson_id),
        )

    def recompute_lesson_rating(self, lesson_id: uuid.UUID) -> float:
        average = self.rating_repo.average(lesson_id)
        self.lesson_repo.set_rating(lesson_id, average)
        logger.info("lesson rating recomputed lesson_id=%s average=%.3f", lesson_id, average)
        return average

    def get_average_rating(self, lesson_id: uuid.UUID) -> float:
        return self.rating_repo.average(lesson_id)

    def get_rating_count(self, lesson_id: uuid.UUID) -> int:
        return self.rating_repo.count(lesson_id)

    def get_user_rating(self, principal: Principal, lesson_id: uuid.UUID) -> Optional[int]:
        student_id = _student_id_or_none(self.session, principal)
        if student_id is None:
            return None
        rating = self.rating_repo.get(student_id, lesson_id)
        return rating.value if rating else None


class FavoriteService:
    """A student's saved lessons."""
    def __init__(self, session: Session):
        self.session = session
        self.lesson_repo = repositories.LessonRepository(session)
        self.favorite_repo = repositories.FavoriteRepository(session)

    def list_favorites(self, principal: Principal) -> List[schemas.FavoriteOut]:
        student = _student_for(self.session, principal)
        favorites = self.favorite_repo.list_for_student(student.id)
        counts = self.lesson_repo.favorite_counts(f.lesson_id for f in favorites)
        return [self._favorite_out(f, counts.get(f.lesson_id, 0)) for f in favorites]

    def add_favorite(self, principal: Principal, lesson_id: uuid.UUID) -> schemas.FavoriteOut:
        """Save a lesson; a second save of the same lesson is a conflict."""
        student = _student_for(self.session, principal)
        if self.lesson_repo.get(lesson_id) is None:
            raise NotFoundError("Lesson")
        if self.favorite_repo.get(student.id, lesson_id) is not None:
            raise ConflictError("Lesson already in favorites")
        favorite = self.favorite_repo.create(student.id, lesson_id)
        count = self.lesson_repo.favorite_counts([lesson_id]).get(lesson_id, 0)
        return self._favorite_out(favorite, count)

    def remove_favorite(self, principal: Principal, lesson_id: uuid.UUID) -> None:
        student = _student_for(self.session, principal)
        favorite = self.favorite_repo.get(student.id, lesson_id)
        if favorite is None:
            raise NotFoundError("Favorite")
        self.favorite_repo.delete(favorite)

    def is_favorited(self, principal: Principal, lesson_id: uuid.UUID) -> bool:
        student_id = _student_id_or_none(self.session, principal)
        if student_id is None:
            return False
        return self.favorite_repo.get(student_id, lesson_id) is not None

    @staticmethod
    def _favorite_out(favorite: models.Favorite, favorite_count: int) -> schemas.FavoriteOut:
        return schemas.FavoriteOut(
            id=favorite.id,
            student_id=favorite.student_id,
            lesson_id=favorite.lesson_id,
            created_at=favorite.created_at,
            lesson=_lesson_out(favorite.lesson, favorite_count, True),
        )


class SchoolService:
    """The singleton school profile."""
    def __init__(self, session: Session):
        self.school_repo = repositories.SchoolRepository(session)

    def get_school(self) -> models.School:
        school = self.school_repo.get()
        if school is None:
            raise NotFoundError("School profile")
        return school

    def update_school(self, data: schemas.SchoolUpdate) -> models.School:
        """Apply the provided fields, creating the profile if it is missing."""
        changes = data.model_dump(exclude_unset=True)
        _blank_to_none(changes, "logo_url", "phone_number")
        _drop_nulls(changes, "name")
        return self.school_repo.update(changes)


class DashboardService:
    """Read-only statistics for the admin dashboard."""
    def __init__(self, session: Session):
        self.session = session
        self.student_repo = repositories.StudentRepository(session)
        self.lesson_repo = repositories.LessonRepository(session)
        self.rating_repo = repositories.RatingRepository(session)

    def get_stats(self) -> schemas.DashboardStats:
        """Entity totals, taken together in one round trip so they share a snapshot."""
        students, lessons, favorites = repositories.entity_totals(self.session)
        return schemas.DashboardStats(total_students=students, total_lessons=lessons, total_favorites=favorites)

    def student_growth(self, today: Optional[date] = None) -> List[schemas.GrowthPoint]:
        """Registrations per day for the last 7 days, oldest first.

        Every day in the window is present, with 0 when nobody registered.
        """
        today = today or datetime.now(timezone.utc).date()
        days = [today - timedelta(days=offset) for offset in range(GROWTH_WINDOW_DAYS - 1, -1, -1)]
        counts = {d: 0 for d in days}
        since = datetime.combine(days[0], time.min, tzinfo=timezone.utc)
        for created_at in self.student_repo.created_since(since):
            day = created_at.date()
            if day in counts:
                counts[day] += 1
        return [schemas.GrowthPoint(date=d.isoformat(), count=counts[d]) for d in days]

    def rating_distribution(self) -> List[schemas.RatingBucket]:
        """Lessons bucketed by their rounded cached average rating.

        This counts lessons, not individual ratings. Unrated lessons
        (cached rating 0) fall outside bins 1..5 and are not counted.
        """
        buckets = {n: 0 for n in range(1, 6)}
        for rating in self.lesson_repo.cached_ratings():
            bucket = int(round_half_up(rating, 0))
            if bucket in buckets:
                buckets[bucket] += 1
        return [schemas.RatingBucket(rating=n, count=buckets[n]) for n in range(1, 6)]

    def get_analytics(self, today: Optional[date] = None) -> schemas.DashboardAnalytics:
        top = [
            schemas.TopLesson(id=lesson.id, title=lesson.title, rating=lesson.rating, favorite_count=n)
            for lesson, n in self.lesson_repo.top_by_favorites(TOP_LESSONS_LIMIT)
        ]
        recent = [
            schemas.RecentStudent(id=s.id, full_name=s.full_name, email=s.user.email, created_at=s.created_at)
            for s in self.student_repo.recent(RECENT_STUDENTS_LIMIT)
        ]
        return schemas.DashboardAnalytics(
            student_growth=self.student_growth(today),
            rating_distribution=self.rating_distribution(),
            top_lessons=top,
            recent_students=recent,
            average_rating=round_half_up(self.rating_repo.overall_average(), 1),
            total_ratings=self.rating_repo.total_count(),
        )
