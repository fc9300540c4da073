import uuid

from fastapi import APIRouter, Depends, Response
from sqlmodel import Session

from .. import responses
from ..auth import Principal, student_only
from ..database import get_session
from ..services import FavoriteService

router = APIRouter(prefix="/favorites", tags=["favorites"])


@router.get("")
def list_favorites(principal: Principal = Depends(student_only), session: Session = Depends(get_session)):
    return responses.success(FavoriteService(session).list_favorites(principal))


@router.post("/{lesson_id}", status_code=201)
def add_favorite(
    lesson_id: uuid.UUID,
    principal: Principal = Depends(student_only),
    session: Session = Depends(get_session),
):
    out = FavoriteService(session).add_favorite(principal, lesson_id)
    return responses.created(out, "Lesson added to favorites")


@router.delete("/{lesson_id}", status_code=204, response_class=Response)
def remove_favorite(
    lesson_id: uuid.UUID,
    principal: Principal = Depends(student_only),
    session: Session = Depends(get_session),
):
    FavoriteService(session).remove_favorite(principal, lesson_id)
    return responses.no_content()
