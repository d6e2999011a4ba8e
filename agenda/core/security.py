from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

from jose import JWTError, jwt
from passlib.context import CryptContext

from agenda.core.config import settings

ACCESS = "access"
REFRESH = "refresh"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=12)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def _encode(subject: str | int, kind: str, lifetime: timedelta, **extra: Any) -> str:
    claims = {
        "sub": str(subject),
        "exp": datetime.now(UTC) + lifetime,
        "type": kind,
        **extra,
    }
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def _decode(token: str, kind: str) -> dict[str, Any] | None:
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    if payload.get("type") != kind or not payload.get("sub"):
        return None
    return payload


def create_access_token(subject: str | int) -> str:
    return _encode(subject, ACCESS, timedelta(minutes=settings.access_token_expire_minutes))


def create_refresh_token(subject: str | int) -> str:
    return _encode(
        subject,
        REFRESH,
        timedelta(days=settings.refresh_token_expire_days),
        jti=str(uuid4()),
    )


def decode_access_token(token: str) -> str | None:
    payload = _decode(token, ACCESS)
    return str(payload["sub"]) if payload else None


def decode_refresh_token(token: str) -> tuple[str | None, str | None]:
    """Returns (user_id_str, jti) or (None, None)."""
    payload = _decode(token, REFRESH)
    if not payload:
        return None, None
    return str(payload["sub"]), payload.get("jti")
