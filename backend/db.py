# backend/db.py
from __future__ import annotations

import os
from typing import Iterator

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

# Load backend/.env (DATABASE_URL, CORS_ORIGINS, JWT_SECRET, ...)
load_dotenv()

# Accept common env var names for Postgres URLs
DATABASE_URL = (
    os.getenv("DATABASE_URL")
    or os.getenv("PG_URL")
    or os.getenv("POSTGRES_URL")
    or os.getenv("POSTGRES_URI")
    or os.getenv("DB_URL")
)

if not DATABASE_URL:
    raise RuntimeError(
        "DATABASE_URL (or PG_URL/POSTGRES_URL/POSTGRES_URI/DB_URL) is not set."
        " Put it in backend/.env or export it in your shell."
    )


def _engine_options(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {"pool_pre_ping": True}
    # sqlite is only used locally and by the tests; share one connection
    # across the request threadpool so in-memory databases survive
    opts: dict = {"connect_args": {"check_same_thread": False}}
    if ":memory:" in url or url.rstrip("/") == "sqlite:":
        opts["poolclass"] = StaticPool
    return opts


engine: Engine = create_engine(DATABASE_URL, future=True, **_engine_options(DATABASE_URL))

# Declarative base (needed by models.py)
Base = declarative_base()

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


def get_engine() -> Engine:
    return engine


def init_db() -> None:
    import models  # noqa: F401  registers tables on Base.metadata

    Base.metadata.create_all(bind=engine)


def get_db() -> Iterator[Session]:
    """FastAPI dependency: one session per request, always closed."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
