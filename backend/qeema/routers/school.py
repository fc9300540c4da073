from fastapi import APIRouter, Depends
from sqlmodel import Session

from .. import responses
from ..auth import Principal, admin_only
from ..database import get_session
from ..schemas import SchoolOut, SchoolUpdate
from ..services import SchoolService

router = APIRouter(prefix="/school", tags=["school"])


@router.get("")
def get_school(_: Principal = Depends(admin_only), session: Session = Depends(get_session)):
    school = SchoolService(session).get_school()
    return responses.success(SchoolOut.model_validate(school))


@router.put("")
def update_school(
    data: SchoolUpdate,
    _: Principal = Depends(admin_only),
    session: Session = Depends(get_session),
):
    """Update the school profile; the first update creates it."""
    school = SchoolService(session).update_school(data)
    return responses.success(SchoolOut.model_validate(school), "School profile updated successfully")
