"""HTTP routers, one module per resource, mounted under `/api`.

Shared request dependencies (pagination, auth rate limiting) live here so
every router parses them the same way.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request

from ..auth import get_settings
from ..config import Settings
from ..utils.pagination import PageParams, parse_pagination


def pagination(
    page: Optional[str] = None,
    limit: Optional[str] = None,
    settings: Settings = Depends(get_settings),
) -> PageParams:
    """Page window from raw query strings; bad values fall back, never 422."""
    return parse_pagination(
        page,
        limit,
        default_limit=settings.PAGINATION_DEFAULT_LIMIT,
        max_limit=settings.PAGINATION_MAX_LIMIT,
    )


def rate_limited(request: Request) -> None:
    """Count the request against the per-client auth limiter."""
    client = request.client.host if request.client else "unknown"
    request.app.state.rate_limiter.enforce(f"{client}:{request.url.path}")


def build_api_router() -> APIRouter:
    from . import auth, dashboard, favorites, lessons, school, students, upload

    api = APIRouter(prefix="/api")
    for module in (auth, students, lessons, favorites, school, dashboard, upload):
        api.include_router(module.router)
    return api
