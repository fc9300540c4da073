import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlmodel import Session

from .. import responses
from ..auth import Principal, admin_only, get_current_principal, student_only
from ..database import get_session
from ..schemas import LessonCreate, LessonUpdate, MyRatingOut, RateIn
from ..services import LessonService, RatingService
from ..utils.pagination import PageParams
from . import pagination

router = APIRouter(prefix="/lessons", tags=["lessons"])


@router.get("")
def list_lessons(
    params: PageParams = Depends(pagination),
    search: Optional[str] = Query(default=None, max_length=100),
    principal: Principal = Depends(get_current_principal),
    session: Session = Depends(get_session),
):
    """Paginated lessons with favorite counts.

    Students also get `isFavorited` for each lesson on the page.
    """
    return responses.paginated(LessonService(session).list_lessons(principal, params, search))


@router.get("/{lesson_id}")
def get_lesson(
    lesson_id: uuid.UUID,
    principal: Principal = Depends(get_current_principal),
    session: Session = Depends(get_session),
):
    return responses.success(LessonService(session).get_lesson(principal, lesson_id))


@router.post("", status_code=201)
def create_lesson(
    data: LessonCreate,
    _: Principal = Depends(admin_only),
    session: Session = Depends(get_session),
):
    return responses.created(LessonService(session).create_lesson(data), "Lesson created successfully")


@router.put("/{lesson_id}")
def update_lesson(
    lesson_id: uuid.UUID,
    data: LessonUpdate,
    _: Principal = Depends(admin_only),
    session: Session = Depends(get_session),
):
    return responses.success(LessonService(session).update_lesson(lesson_id, data), "Lesson updated successfully")


@router.delete("/{lesson_id}", status_code=204, response_class=Response)
def delete_lesson(
    lesson_id: uuid.UUID,
    _: Principal = Depends(admin_only),
    session: Session = Depends(get_session),
):
    LessonService(session).delete_lesson(lesson_id)
    return responses.no_content()


@router.post("/{lesson_id}/rate")
def rate_lesson(
    lesson_id: uuid.UUID,
    data: RateIn,
    principal: Principal = Depends(student_only),
    session: Session = Depends(get_session),
):
    """Create or replace the caller's 1..5 rating."""
    out = RatingService(session).rate_lesson(principal, lesson_id, data.value)
    return responses.success(out, "Rating submitted successfully")


@router.get("/{lesson_id}/my-rating")
def my_rating(
    lesson_id: uuid.UUID,
    principal: Principal = Depends(student_only),
    session: Session = Depends(get_session),
):
    value = RatingService(session).get_user_rating(principal, lesson_id)
    return responses.success(MyRatingOut(rating=value))
