"""Repository classes encapsulating database operations.

Each repository is small and focused on a single entity (users,
students, lessons, favorites, ratings, school). Repositories return
SQLModel objects and perform commits/refreshes where appropriate.
Paginated listings order by `created_at DESC, id DESC` so a page
boundary never depends on insertion order within the same timestamp.
"""

import uuid
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from . import models


def _contains(column, term: str):
    """Case-insensitive substring match with LIKE wildcards escaped."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return column.ilike(f"%{escaped}%", escape="\\")


def _apply(session: Session, obj, data: dict):
    for field, value in data.items():
        setattr(obj, field, value)
    session.add(obj)
    session.commit()
    session.refresh(obj)
    return obj


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def create_with_student(self, user: models.User, student: models.Student) -> models.User:
        """Persist a user and its student profile in one transaction."""
        student.user_id = user.id
        self.session.add(user)
        self.session.add(student)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get(self, user_id: uuid.UUID) -> Optional[models.User]:
        """Get a `User` by primary key."""
        return self.session.get(models.User, user_id)

    def get_by_email(self, email: str) -> Optional[models.User]:
        """Return a `User` by email or `None` if not found."""
        stmt = select(models.User).where(func.lower(models.User.email) == email.lower())
        return self.session.exec(stmt).first()

    def email_exists(self, email: str) -> bool:
        stmt = select(models.User.id).where(func.lower(models.User.email) == email.lower())
        return self.session.exec(stmt).first() is not None

    def delete(self, user: models.User) -> None:
        """Delete a user; the student profile and its rows go with it."""
        self.session.delete(user)
        self.session.commit()


class StudentRepository:
    """Queries and updates for `Student` profiles."""
    def __init__(self, session: Session):
        self.session = session

    def get(self, student_id: uuid.UUID) -> Optional[models.Student]:
        return self.session.get(models.Student, student_id)

    def get_by_user_id(self, user_id: uuid.UUID) -> Optional[models.Student]:
        stmt = select(models.Student).where(models.Student.user_id == user_id)
        return self.session.exec(stmt).first()

    def list(self, search: Optional[str] = None, offset: int = 0, limit: int = 10) -> Tuple[List[models.Student], int]:
        """Return one page of students and the total matching `search`.

        `search` matches full name or account email, case-insensitively.
        """
        stmt = select(models.Student).join(models.User, models.User.id == models.Student.user_id)
        count_stmt = (
            select(func.count())
            .select_from(models.Student)
            .join(models.User, models.User.id == models.Student.user_id)
        )
        if search:
            cond = _contains(models.Student.full_name, search) | _contains(models.User.email, search)
            stmt = stmt.where(cond)
            count_stmt = count_stmt.where(cond)
        stmt = (
            stmt.order_by(models.Student.created_at.desc(), models.Student.id.desc())
            .offset(offset)
            .limit(limit)
        )
        total = self.session.exec(count_stmt).one()
        return list(self.session.exec(stmt).all()), total

    def update(self, student: models.Student, data: dict) -> models.Student:
        return _apply(self.session, student, data)

    def recent(self, limit: int = 5) -> List[models.Student]:
        stmt = (
            select(models.Student)
            .order_by(models.Student.created_at.desc(), models.Student.id.desc())
            .limit(limit)
        )
        return list(self.session.exec(stmt).all())

    def created_since(self, since: datetime) -> List[datetime]:
        """Creation timestamps of students registered at or after `since`."""
        stmt = select(models.Student.created_at).where(models.Student.created_at >= since)
        return list(self.session.exec(stmt).all())


class LessonRepository:
    """CRUD operations and aggregates for `Lesson` rows."""
    def __init__(self, session: Session):
        self.session = session

    def get(self, lesson_id: uuid.UUID) -> Optional[models.Lesson]:
        return self.session.get(models.Lesson, lesson_id)

    def list(self, search: Optional[str] = None, offset: int = 0, limit: int = 10) -> Tuple[List[models.Lesson], int]:
        """Return one page of lessons and the total matching `search`.

        `search` matches title or description, case-insensitively.
        """
        stmt = select(models.Lesson)
        count_stmt = select(func.count()).select_from(models.Lesson)
        if search:
            cond = _contains(models.Lesson.title, search) | _contains(models.Lesson.description, search)
            stmt = stmt.where(cond)
            count_stmt = count_stmt.where(cond)
        stmt = (
            stmt.order_by(models.Lesson.created_at.desc(), models.Lesson.id.desc())
            .offset(offset)
            .limit(limit)
        )
        total = self.session.exec(count_stmt).one()
        return list(self.session.exec(stmt).all()), total

    def create(self, lesson: models.Lesson) -> models.Lesson:
        self.session.add(lesson)
        self.session.commit()
        self.session.refresh(lesson)
        return lesson

    def update(self, lesson: models.Lesson, data: dict) -> models.Lesson:
        return _apply(self.session, lesson, data)

    def delete(self, lesson: models.Lesson) -> None:
        """Delete a lesson together with its favorites and ratings."""
        self.session.delete(lesson)
        self.session.commit()

    def count(self) -> int:
        return self.session.exec(select(func.count()).select_from(models.Lesson)).one()

    def favorite_counts(self, lesson_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, int]:
        ids = list(lesson_ids)
        if not ids:
            return {}
        stmt = (
            select(models.Favorite.lesson_id, func.count(models.Favorite.id))
            .where(models.Favorite.lesson_id.in_(ids))
            .group_by(models.Favorite.lesson_id)
        )
        return {lesson_id: n for lesson_id, n in self.session.exec(stmt).all()}

    def favorited_by(self, student_id: uuid.UUID, lesson_ids: Iterable[uuid.UUID]) -> Set[uuid.UUID]:
        """Subset of `lesson_ids` the student has favorited."""
        ids = list(lesson_ids)
        if not ids:
            return set()
        stmt = select(models.Favorite.lesson_id).where(
            models.Favorite.student_id == student_id,
            models.Favorite.lesson_id.in_(ids),
        )
        return set(self.session.exec(stmt).all())

    def set_rating(self, lesson_id: uuid.UUID, rating: float) -> None:
        lesson = self.get(lesson_id)
        if lesson is None:
            return
        lesson.rating = rating
        self.session.add(lesson)
        self.session.commit()

    def cached_ratings(self) -> List[float]:
        return list(self.session.exec(select(models.Lesson.rating)).all())

    def top_by_favorites(self, limit: int = 5) -> List[Tuple[models.Lesson, int]]:
        """Lessons with the most favorites.

        Ties are broken by creation order (oldest first), then id.
        """
        fav_count = func.count(models.Favorite.id).label("favorite_count")
        stmt = (
            select(models.Lesson, fav_count)
            .outerjoin(models.Favorite, models.Favorite.lesson_id == models.Lesson.id)
            .group_by(models.Lesson.id)
            .order_by(fav_count.desc(), models.Lesson.created_at.asc(), models.Lesson.id.asc())
            .limit(limit)
        )
        return [(lesson, n) for lesson, n in self.session.exec(stmt).all()]


class FavoriteRepository:
    """Operations on the student/lesson `Favorite` junction."""
    def __init__(self, session: Session):
        self.session = session

    def get(self, student_id: uuid.UUID, lesson_id: uuid.UUID) -> Optional[models.Favorite]:
        stmt = select(models.Favorite).where(
            models.Favorite.student_id == student_id,
            models.Favorite.lesson_id == lesson_id,
        )
        return self.session.exec(stmt).first()

    def list_for_student(self, student_id: uuid.UUID) -> List[models.Favorite]:
        stmt = (
            select(models.Favorite)
            .where(models.Favorite.student_id == student_id)
            .order_by(models.Favorite.created_at.desc(), models.Favorite.id.desc())
        )
        return list(self.session.exec(stmt).all())

    def create(self, student_id: uuid.UUID, lesson_id: uuid.UUID) -> models.Favorite:
        fav = models.Favorite(student_id=student_id, lesson_id=lesson_id)
        self.session.add(fav)
        self.session.commit()
        self.session.refresh(fav)
        return fav

    def delete(self, favorite: models.Favorite) -> None:
        self.session.delete(favorite)
        self.session.commit()

    def count_for_student(self, student_id: uuid.UUID) -> int:
        stmt = select(func.count()).select_from(models.Favorite).where(models.Favorite.student_id == student_id)
        return self.session.exec(stmt).one()


class RatingRepository:
    """Upserts and aggregates for `Rating` rows."""
    def __init__(self, session: Session):
        self.session = session

    def get(self, student_id: uuid.UUID, lesson_id: uuid.UUID) -> Optional[models.Rating]:
        stmt = select(models.Rating).where(
            models.Rating.student_id == student_id,
            models.Rating.lesson_id == lesson_id,
        )
        return self.session.exec(stmt).first()

    def upsert(self, student_id: uuid.UUID, lesson_id: uuid.UUID, value: int) -> models.Rating:
        """Create or overwrite the student's rating for a lesson.

        If a concurrent request inserts the same pair first, the unique
        index rejects our insert and we fall back to updating its row.
        """
        existing = self.get(student_id, lesson_id)
        if existing is None:
            rating = models.Rating(student_id=student_id, lesson_id=lesson_id, value=value)
            self.session.add(rating)
            try:
                self.session.commit()
            except IntegrityError:
                self.session.rollback()
                existing = self.get(student_id, lesson_id)
                if existing is None:
                    raise
            else:
                self.session.refresh(rating)
                return rating
        existing.value = value
        self.session.add(existing)
        self.session.commit()
        self.session.refresh(existing)
        return existing

    def average(self, lesson_id: uuid.UUID) -> float:
        stmt = select(func.avg(models.Rating.value)).where(models.Rating.lesson_id == lesson_id)
        avg = self.session.exec(stmt).one()
        return float(avg) if avg is not None else 0.0

    def count(self, lesson_id: uuid.UUID) -> int:
        stmt = select(func.count()).select_from(models.Rating).where(models.Rating.lesson_id == lesson_id)
        return self.session.exec(stmt).one()

    def overall_average(self) -> float:
        avg = self.session.exec(select(func.avg(models.Rating.value))).one()
        return float(avg) if avg is not None else 0.0

    def total_count(self) -> int:
        return self.session.exec(select(func.count()).select_from(models.Rating)).one()


class SchoolRepository:
    """Access to the singleton `School` profile."""
    def __init__(self, session: Session):
        self.session = session

    def get(self) -> Optional[models.School]:
        """Return the first school row, the only one ever used."""
        stmt = select(models.School).order_by(models.School.created_at.asc(), models.School.id.asc())
        return self.session.exec(stmt).first()

    def update(self, data: dict, default_name: str = "My School") -> models.School:
        """Update the school profile, creating it when absent."""
        school = self.get()
        if school is None:
            school = models.School(name=data.get("name") or default_name)
        return _apply(self.session, school, data)


def entity_totals(session: Session) -> Tuple[int, int, int]:
    """Student, lesson and favorite totals read in a single statement."""
    stmt = select(
        select(func.count()).select_from(models.Student).scalar_subquery(),
        select(func.count()).select_from(models.Lesson).scalar_subquery(),
        select(func.count()).select_from(models.Favorite).scalar_subquery(),
    )
    students, lessons, favorites = session.exec(stmt).one()
    return students, lessons, favorites
