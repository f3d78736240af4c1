import logging
import uuid
from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from tvc_engine.core.security import verify_token

logger = logging.getLogger(__name__)
bearer_scheme = HTTPBearer(auto_error=False)

ROLES = ("student", "teacher", "admin")


@dataclass(slots=True, frozen=True)
class CurrentUser:
    """Caller identity taken from the bearer token; accounts live elsewhere."""

    id: uuid.UUID
    role: str


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> CurrentUser:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        payload = verify_token(credentials.credentials)
        user_id = uuid.UUID(str(payload["sub"]))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc
    role = payload.get("role") or "student"
    if role not in ROLES:
        logger.warning("Unknown role in token", extra={"user_id": str(user_id), "role": role})
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return CurrentUser(id=user_id, role=role)
