from fastapi import APIRouter, Depends
from sqlmodel import Session

from .. import responses
from ..auth import admin_only
from ..database import get_session
from ..services import DashboardService

router = APIRouter(prefix="/dashboard", tags=["dashboard"], dependencies=[Depends(admin_only)])


@router.get("/stats")
def stats(session: Session = Depends(get_session)):
    return responses.success(DashboardService(session).get_stats())


@router.get("/analytics")
def analytics(session: Session = Depends(get_session)):
    """Growth, rating distribution, top lessons and recent students."""
    return responses.success(DashboardService(session).get_analytics())
