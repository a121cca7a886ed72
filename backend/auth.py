# backend/auth.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

import crud
from db import get_db

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
JWT_EXPIRES_HOURS = int(os.getenv("JWT_EXPIRES_HOURS", "24"))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))


def _get_jwt_secret() -> str:
    secret = os.getenv("JWT_SECRET")
    if not secret:
        logger.warning("JWT_SECRET not set - using insecure development default")
        return "development-only-insecure-secret-key-32ch"
    return secret


JWT_SECRET = _get_jwt_secret()


@dataclass(frozen=True)
class RequestContext:
    """Authenticated identity for one request, handed to routes explicitly."""
    user_id: int
    email: str
    name: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


# -----------------------------------------------------------------------------
# Passwords

def hash_password(password: str) -> str:
    if not password:
        raise ValueError("Password cannot be empty")
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# -----------------------------------------------------------------------------
# Tokens

def create_access_token(user_id: int, expires_hours: Optional[int] = None) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "userId": user_id,
        "iat": now,
        "exp": now + timedelta(hours=expires_hours if expires_hours is not None else JWT_EXPIRES_HOURS),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])


# -----------------------------------------------------------------------------
# FastAPI dependencies

def _unauthorized(message: str) -> HTTPException:
    return HTTPException(status_code=401, detail=message)


def authenticate(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> RequestContext:
    if not authorization:
        raise _unauthorized("No token provided, authorization denied")

    token = authorization[7:] if authorization.startswith("Bearer ") else authorization
    try:
        claims = decode_access_token(token.strip())
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except jwt.InvalidTokenError as exc:
        logger.info("Rejected token: %s", exc)
        raise _unauthorized("Token is not valid")

    try:
        user_id = int(claims["userId"])
    except (KeyError, TypeError, ValueError):
        raise _unauthorized("Token is not valid")

    user = crud.get_user(db, user_id)
    if user is None:
        raise _unauthorized("Token is not valid - user not found")
    return RequestContext(user_id=user.id, email=user.email, name=user.name, role=user.role)


def require_admin(ctx: RequestContext = Depends(authenticate)) -> RequestContext:
    if not ctx.is_admin:
        raise HTTPException(status_code=403, detail="Access denied. Admin privileges required.")
    return ctx
