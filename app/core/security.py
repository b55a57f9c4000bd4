"""
Password hashing and JWT handling.

Two token kinds are issued, both signed with ``settings.api_secret_key``:

  access   short-lived, sent as a Bearer header or the ``access_token`` cookie
  refresh  long-lived, cookie only; carries a ``jti`` so it can be revoked
"""
import uuid
from datetime import datetime, timedelta, timezone
from typing import Literal

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.config import settings

TokenType = Literal["access", "refresh"]

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def _encode(user_id: int, token_type: TokenType, lifetime: timedelta, **claims) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "type": token_type,
        "iat": now,
        "exp": now + lifetime,
        **claims,
    }
    return jwt.encode(payload, settings.api_secret_key, algorithm=settings.algorithm)


def create_access_token(user_id: int) -> str:
    return _encode(user_id, "access", timedelta(minutes=settings.access_token_expire_minutes))


def create_refresh_token(user_id: int) -> str:
    return _encode(
        user_id,
        "refresh",
        timedelta(days=settings.refresh_token_expire_days),
        jti=uuid.uuid4().hex,
    )


def decode_token(token: str, expected_type: TokenType) -> dict | None:
    """Claims of a valid, unexpired token of the expected kind, else None."""
    try:
        claims = jwt.decode(token, settings.api_secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    if claims.get("type") != expected_type:
        return None
    return claims


def token_subject(claims: dict) -> int | None:
    try:
        return int(claims.get("sub", ""))
    except (TypeError, ValueError):
        return None


def seconds_until_expiry(claims: dict) -> int:
    exp = claims.get("exp", 0)
    return max(0, int(exp - datetime.now(timezone.utc).timestamp()))
