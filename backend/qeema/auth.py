"""Authentication helpers and FastAPI security dependencies.

This module decodes bearer JWTs into a `Principal` and provides the
dependencies routes use to require authentication and roles.

Authentication is stateless: the principal is rebuilt from the signed
token alone, without a database lookup. Ownership checks live in
`ensure_owner_or_admin`, which the service layer calls after resolving
the resource's owning user through its foreign key.
"""

import uuid
from dataclasses import dataclass
from typing import Optional, assert_never

import jwt
from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import Settings
from .errors import ForbiddenError, TokenExpiredError, UnauthorizedError
from .models import Role

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    """The authenticated identity attached to a request."""
    user_id: uuid.UUID
    email: str
    role: Role


def decode_token(token: str, settings: Settings) -> Principal:
    """Verify a JWT and return the principal it carries.

    Raises `TokenExpiredError` for an expired token and
    `UnauthorizedError` for anything else that fails verification.
    Both map to HTTP 401.
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError("Token expired")
    except jwt.InvalidTokenError:
        raise UnauthorizedError("Invalid token")
    try:
        return Principal(
            user_id=uuid.UUID(payload["sub"]),
            email=payload["email"],
            role=Role(payload["role"]),
        )
    except (KeyError, TypeError, ValueError):
        raise UnauthorizedError("Invalid token")


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_current_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
) -> Principal:
    """FastAPI dependency that returns the authenticated principal.

    Raises 401 when the `Authorization: Bearer` header is missing or the
    token does not verify.
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("No token provided")
    principal = decode_token(credentials.credentials, get_settings(request))
    request.state.principal = principal
    return principal


def optional_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
) -> Optional[Principal]:
    """Like `get_current_principal`, but anonymous or bad tokens yield None."""
    if credentials is None or not credentials.credentials:
        return None
    try:
        return decode_token(credentials.credentials, get_settings(request))
    except UnauthorizedError:
        return None


def check_role(principal: Optional[Principal], allowed: tuple) -> Principal:
    """Raise unless `principal` holds one of the `allowed` roles."""
    if principal is None:
        raise UnauthorizedError("Authentication required")
    if principal.role not in allowed:
        names = ", ".join(r.value for r in allowed)
        raise ForbiddenError(f"Access denied. Required role(s): {names}")
    return principal


def require_role(*allowed: Role):
    """Build a dependency that authenticates and then checks the role."""
    def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        return check_role(principal, allowed)
    return dependency


admin_only = require_role(Role.ADMIN)
student_only = require_role(Role.STUDENT)


def is_owner_or_admin(principal: Principal, owner_user_id: uuid.UUID) -> bool:
    match principal.role:
        case Role.ADMIN:
            return True
        case Role.STUDENT:
            return principal.user_id == owner_user_id
        case _:
            assert_never(principal.role)


def ensure_owner_or_admin(principal: Principal, owner_user_id: uuid.UUID, message: str = "Access denied") -> None:
    """Allow admins, or the student whose user id owns the resource.

    `owner_user_id` must be the owning `User.id` (for a student profile,
    `Student.user_id`), never a raw path id.
    """
    if not is_owner_or_admin(principal, owner_user_id):
        raise ForbiddenError(message)
