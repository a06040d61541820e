from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from passlib.context import CryptContext

from rhmeter.core.config import Settings

READ_SCOPE = "readings:read"
WRITE_SCOPE = "readings:write"
ALL_SCOPES = {
    READ_SCOPE: "Read readings, statistics and exports",
    WRITE_SCOPE: "Trigger telemetry refreshes",
}

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class InvalidToken(Exception):
    pass


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def grant_scopes(requested: list[str], allowed: list[str]) -> list[str]:
    """Scopes to put in a new token; an empty request means everything allowed."""
    if not requested:
        return list(allowed)
    return [s for s in allowed if s in requested]


def create_access_token(
    *,
    subject: str,
    scopes: list[str],
    settings: Settings,
    expires_delta: timedelta | None = None,
) -> str:
    now = datetime.now(tz=timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    payload: dict[str, Any] = {
        "sub": subject,
        "scopes": scopes,
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str, settings: Settings) -> tuple[str, list[str]]:
    """Return ``(subject, scopes)`` from a token issued by :func:`create_access_token`."""
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
            options={"require": ["exp", "sub"]},
        )
    except jwt.PyJWTError as e:
        raise InvalidToken(str(e)) from e

    sub = payload.get("sub")
    scopes = payload.get("scopes", [])
    if not isinstance(sub, str) or not isinstance(scopes, list):
        raise InvalidToken("malformed claims")
    return sub, [str(s) for s in scopes if s in ALL_SCOPES]
