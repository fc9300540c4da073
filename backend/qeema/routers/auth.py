from fastapi import APIRouter, Depends
from sqlmodel import Session

from .. import responses
from ..auth import Principal, get_current_principal, get_settings
from ..config import Settings
from ..database import get_session
from ..schemas import LoginIn, RegisterIn
from ..services import AuthService
from . import rate_limited

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", status_code=201, dependencies=[Depends(rate_limited)])
def register(
    data: RegisterIn,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    """Register a new student account and log it in."""
    out = AuthService(session, settings).register(data)
    return responses.created(out, "Registration successful")


@router.post("/login", dependencies=[Depends(rate_limited)])
def login(
    data: LoginIn,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    """Authenticate either role and return a bearer token."""
    return responses.success(AuthService(session, settings).login(data), "Login successful")


@router.get("/me")
def me(
    principal: Principal = Depends(get_current_principal),
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    return responses.success(AuthService(session, settings).current_user(principal))
