from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from tvc_engine.core.config import settings


def create_access_token(data: dict[str, Any], expires_minutes: int | None = None) -> str:
    to_encode = dict(data)
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes if expires_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    )
    to_encode["exp"] = expire
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_token(token: str) -> dict[str, Any]:
    """Decode a bearer token. Raises ValueError when it is invalid or expired."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as exc:
        raise ValueError("Invalid token") from exc
    if not payload.get("sub"):
        raise ValueError("Token has no subject")
    return payload
