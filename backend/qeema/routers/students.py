import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlmodel import Session

from .. import responses
from ..auth import Principal, admin_only, get_current_principal, student_only
from ..database import get_session
from ..schemas import StudentCreate, StudentUpdate
from ..services import StudentService
from ..utils.pagination import PageParams
from . import pagination

router = APIRouter(prefix="/students", tags=["students"])


@router.get("")
def list_students(
    params: PageParams = Depends(pagination),
    search: Optional[str] = Query(default=None, max_length=100),
    _: Principal = Depends(admin_only),
    session: Session = Depends(get_session),
):
    """Paginated student directory, searchable by name or email."""
    return responses.paginated(StudentService(session).list_students(params, search))


# declared before /{student_id} so "profile" is not parsed as an id
@router.get("/profile")
def my_profile(principal: Principal = Depends(student_only), session: Session = Depends(get_session)):
    return responses.success(StudentService(session).get_own_profile(principal))


@router.get("/{student_id}")
def get_student(
    student_id: uuid.UUID,
    principal: Principal = Depends(get_current_principal),
    session: Session = Depends(get_session),
):
    """Owner or admin; the service resolves the owner through `user_id`."""
    return responses.success(StudentService(session).get_student(principal, student_id))


@router.post("", status_code=201)
def create_student(
    data: StudentCreate,
    _: Principal = Depends(admin_only),
    session: Session = Depends(get_session),
):
    return responses.created(StudentService(session).create_student(data), "Student created successfully")


@router.put("/{student_id}")
def update_student(
    student_id: uuid.UUID,
    data: StudentUpdate,
    principal: Principal = Depends(get_current_principal),
    session: Session = Depends(get_session),
):
    out = StudentService(session).update_student(principal, student_id, data)
    return responses.success(out, "Student updated successfully")


@router.delete("/{student_id}", status_code=204, response_class=Response)
def delete_student(
    student_id: uuid.UUID,
    _: Principal = Depends(admin_only),
    session: Session = Depends(get_session),
):
    StudentService(session).delete_student(student_id)
    return responses.no_content()
