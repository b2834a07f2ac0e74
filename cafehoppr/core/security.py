from __future__ import annotations

import secrets
from datetime import datetime, timedelta

from jose import jwt
from passlib.context import CryptContext

from cafehoppr.core.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ALGORITHM = "HS256"

KIND_ADMIN = "admin"
KIND_CONTRIBUTOR = "contributor"


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(subject: str, *, kind: str = KIND_ADMIN, expires_minutes: int | None = None) -> str:
    expire = datetime.utcnow() + timedelta(minutes=expires_minutes or settings.access_token_exp_minutes)
    to_encode = {"sub": subject, "kind": kind, "exp": expire}
    return jwt.encode(to_encode, settings.app_secret_key, algorithm=ALGORITHM)


def create_contributor_token() -> str:
    return create_access_token(
        "contributor",
        kind=KIND_CONTRIBUTOR,
        expires_minutes=settings.contributor_token_exp_minutes,
    )


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, settings.app_secret_key, algorithms=[ALGORITHM])


def generate_upsert_token() -> str:
    return secrets.token_urlsafe(32)


def codes_match(expected: str, given: str) -> bool:
    return secrets.compare_digest(expected.encode("utf-8"), given.encode("utf-8"))
