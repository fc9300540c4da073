"""Database engine and helpers.

The engine (and its connection pool) is built explicitly from `Settings`
by the application lifespan and kept on `app.state`; nothing here holds a
module-level engine. Request handlers receive a `Session` bound to that
engine through the `get_session` dependency.
"""

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine for `database_url`.

    SQLite URLs get `check_same_thread=False` so the pool can hand
    connections to FastAPI's worker threads, and every SQLite connection
    turns on foreign key enforcement so `ON DELETE CASCADE` applies. An
    in-memory SQLite URL uses a single shared connection, otherwise each
    pooled connection would see its own empty database.
    """
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, echo=echo, pool_pre_ping=True)

    kwargs = {"connect_args": {"check_same_thread": False}}
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    engine = create_engine(database_url, echo=echo, **kwargs)
    event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_and_tables(engine: Engine):
    """Create database tables using SQLModel metadata.

    Intended for local development and tests; production deployments
    should rely on a proper migration tool (alembic) instead.
    """
    # registers every table on SQLModel.metadata
    from . import models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session(request: Request):
    """Yield a database `Session` for FastAPI dependency injection.

    The session is bound to the engine created at startup and is closed
    when the request scope finishes.
    """
    with Session(request.app.state.engine) as session:
        yield session
