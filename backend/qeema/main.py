"""FastAPI application factory and cross-cutting HTTP concerns.

`create_app` wires settings, the database engine, CORS, request logging,
error handlers and the `/api` routers. Controllers live in
`qeema.routers` and are intentionally thin: they accept requests,
delegate to services, and return envelope responses.

Endpoints implemented (all under /api):
- /auth: register, login, me
- /students: CRUD plus the caller's own profile
- /lessons: CRUD, rate, my-rating
- /favorites: list, add, remove
- /school: read and update the school profile
- /dashboard: stats, analytics
- /upload: image upload proxy
"""

import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import responses
from .config import Settings
from .database import build_engine, create_db_and_tables
from .errors import ApiError
from .routers import build_api_router
from .seed import run_seed
from .utils.rate_limit import InMemoryRateLimiter

logger = logging.getLogger("qeema.api")

_HTTP_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "ROUTE_NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    413: "PAYLOAD_TOO_LARGE",
    415: "UNSUPPORTED_MEDIA_TYPE",
}


def _client(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _log_payload(request: Request, req_id: str, started: float, **extra) -> str:
    payload = {
        "request_id": req_id,
        "path": request.url.path,
        "method": request.method,
        **extra,
        "duration_ms": round((time.perf_counter() - started) * 1000.0, 2),
        "client": _client(request),
    }
    return json.dumps(payload, ensure_ascii=True)


def _validation_details(exc: RequestValidationError) -> dict:
    details = {}
    for err in exc.errors():
        key = ".".join(str(part) for part in err.get("loc", ()))
        details.setdefault(key, err.get("msg", "Invalid value"))
    return details


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        return responses.error(exc.status_code, exc.code, exc.message, exc.details, exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return responses.error(422, "VALIDATION_ERROR", "Validation failed", _validation_details(exc))

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        logger.warning("integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
        return responses.error(409, "CONFLICT", "Resource already exists")

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            message = f"Route {request.method} {request.url.path} not found"
        else:
            message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        code = _HTTP_CODES.get(exc.status_code, "HTTP_ERROR")
        return responses.error(exc.status_code, code, message, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        message = str(exc) if settings.is_development and str(exc) else "Internal server error"
        return responses.error(500, "INTERNAL_ERROR", message)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the FastAPI application for `settings` (environment by default)."""
    settings = settings or Settings()
    logging.basicConfig(level=settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = build_engine(settings.DATABASE_URL)
        app.state.engine = engine
        create_db_and_tables(engine)
        if settings.SEED_ON_STARTUP:
            logger.info("seed on startup: %s", run_seed(engine, settings))
        try:
            yield
        finally:
            engine.dispose()

    app = FastAPI(title="Qeema Educational Platform API", lifespan=lifespan)
    app.state.settings = settings
    app.state.rate_limiter = InMemoryRateLimiter(settings.AUTH_RATE_LIMIT_PER_MIN)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
        request.state.request_id = req_id
        started = time.perf_counter()
        response: Response
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("request_failed %s", _log_payload(request, req_id, started))
            raise
        response.headers["X-Request-ID"] = req_id
        logger.info("request_done %s", _log_payload(request, req_id, started, status_code=response.status_code))
        return response

    register_exception_handlers(app, settings)
    app.include_router(build_api_router())

    @app.get("/api/health")
    def health():
        return responses.success({"status": "ok", "env": settings.ENV})

    @app.get("/")
    def root():
        return responses.success({"name": app.title, "docs": "/docs"}, "Qeema API is running")

    return app


app = create_app()
