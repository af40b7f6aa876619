from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Union
from uuid import uuid4

from jose import JWTError, jwt

from app.core.config import settings

ALGORITHM = settings.JWT_ALGORITHM
_RESERVED_EXTRA_CLAIMS = {"sub", "exp", "type", "jti", "iat"}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _ensure_header_algorithm(token: str) -> None:
    try:
        header = jwt.get_unverified_header(token)
    except JWTError as exc:
        raise JWTError("Invalid token header") from exc
    if header.get("alg") != ALGORITHM:
        raise JWTError("Token signed with unexpected algorithm")


def create_access_token(
    subject: Union[str, int],
    expires_minutes: int | None = None,
    extra: dict[str, Any] | None = None,
) -> str:
    """Issue a signed access token; used by tooling and tests, the API only verifies."""
    exp_min = expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
    now = _now()
    payload: dict[str, Any] = {
        "sub": str(subject),
        "type": "access",
        "exp": now + timedelta(minutes=exp_min),
        "iat": int(now.timestamp()),
        "jti": uuid4().hex,
    }
    for key, value in (extra or {}).items():
        if key not in _RESERVED_EXTRA_CLAIMS:
            payload[key] = value
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    _ensure_header_algorithm(token)
    data = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    if data.get("type") != "access":
        raise JWTError("Invalid token type")
    if not data.get("sub"):
        raise JWTError("Token without subject")
    return data
