# app/database.py
from contextlib import contextmanager
from functools import lru_cache
from typing import Iterator

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine, Session

from app.core.config import get_settings

# ---------------------------------------------------------
# Supabase Postgres connection (via pooler)
#
# - sslmode=require   : enforce SSL when running in the cloud
# - pool_size=1       : keep only 1 connection to the Supabase pooler
# - max_overflow=0    : do not open extra connections beyond the pool
# - pool_pre_ping=True: validate connections before using them
#
# Supabase Session mode limits the number of clients; SQLAlchemy's
# default pool (5+) easily hits "MaxClientsInSessionMode".
#
# Non-Postgres URLs (sqlite for local runs and tests) get a plain engine.
# ---------------------------------------------------------


def _with_sslmode(db_url: str) -> str:
    """Append sslmode=require if it is not already present."""
    if "sslmode=" in db_url:
        return db_url
    return db_url + ("&" if "?" in db_url else "?") + "sslmode=require"


@lru_cache
def get_engine() -> Engine:
    """
    Build the engine on first use.

    Lazy so that importing models/repositories never needs a database.
    """
    db_url = get_settings().DATABASE_URL

    if db_url.startswith("postgres"):
        return create_engine(
            _with_sslmode(db_url),
            echo=False,        # set to True if you want to debug SQL queries
            pool_pre_ping=True,
            pool_size=1,
            max_overflow=0,
        )

    connect_args = {"check_same_thread": False} if db_url.startswith("sqlite") else {}
    return create_engine(db_url, echo=False, connect_args=connect_args)


def create_db_and_tables() -> None:
    """
    Create all tables defined in SQLModel metadata if they do not exist.

    This is called once on application startup.
    """
    SQLModel.metadata.create_all(get_engine())


def get_session():
    """
    FastAPI dependency that yields a SQLModel Session.

    Usage:

        from fastapi import Depends

        @router.get("/example")
        def example_endpoint(session: Session = Depends(get_session)):
            ...
    """
    with Session(get_engine()) as session:
        yield session


@contextmanager
def session_scope() -> Iterator[Session]:
    """Same as `get_session`, for code running outside a request (worker threads, scripts)."""
    with Session(get_engine()) as session:
        yield session
