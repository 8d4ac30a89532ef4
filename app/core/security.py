from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from jose import JWTError, jwt

from app.config import settings


@dataclass(frozen=True)
class Principal:
    """Authenticated caller, taken from the access token claims."""

    user_id: str
    tenant_id: UUID
    role: str
    is_superuser: bool = False


def create_access_token(
    subject: str,
    tenant_id: UUID,
    role: str = "owner",
    is_superuser: bool = False,
    expires_delta: Optional[timedelta] = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode = {
        "exp": expire,
        "sub": str(subject),
        "tenant_id": str(tenant_id),
        "role": role,
        "is_superuser": is_superuser,
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Principal:
    """Raises ValueError on a malformed, expired or incomplete token."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        raise ValueError(f"Invalid token: {e}") from e

    sub = payload.get("sub")
    tenant_id = payload.get("tenant_id")
    if not sub or not tenant_id:
        raise ValueError("Token is missing subject or tenant")
    try:
        tenant_uuid = UUID(str(tenant_id))
    except ValueError as e:
        raise ValueError("Token carries an invalid tenant id") from e

    return Principal(
        user_id=str(sub),
        tenant_id=tenant_uuid,
        role=str(payload.get("role", "viewer")),
        is_superuser=bool(payload.get("is_superuser", False)),
    )
