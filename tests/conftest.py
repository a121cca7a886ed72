"""
Shared fixtures. The environment is pinned before any backend module is
imported so the suite always runs against an in-memory SQLite database.
"""

import os

os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-suite-secret-key-0123456789abcdef"
os.environ["BCRYPT_ROUNDS"] = "4"

import pytest
from fastapi.testclient import TestClient

import crud
import models  # noqa: F401
import upload
from auth import create_access_token, hash_password
from db import Base, SessionLocal, engine


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    path = tmp_path / "uploads"
    monkeypatch.setattr(upload, "UPLOAD_DIR", path)
    return path


@pytest.fixture
def client(db_session, upload_dir):
    from app import app

    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_agents(db_session):
    def _make(n, prefix="Agent"):
        agents = []
        for i in range(1, n + 1):
            agents.append(
                crud.create_agent(
                    db_session,
                    name=f"{prefix} {i}",
                    email=f"{prefix.lower()}{i}@example.com",
                    mobile=f"+1555000{i:04d}",
                    password_hash="not-a-real-hash",
                )
            )
        db_session.commit()
        return agents

    return _make


@pytest.fixture
def admin(db_session):
    user = crud.create_user(db_session, "Admin", "admin@example.com", hash_password("secret123"), "admin")
    db_session.commit()
    return user


@pytest.fixture
def admin_headers(admin):
    return {"Authorization": f"Bearer {create_access_token(admin.id)}"}


@pytest.fixture
def user_headers(db_session):
    user = crud.create_user(db_session, "Plain User", "user@example.com", hash_password("secret123"), "user")
    db_session.commit()
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}
