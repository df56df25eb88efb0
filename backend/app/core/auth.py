"""JWT session handling and the explicit session context passed to the orchestrator."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app.core.config import settings
from app.core.errors import AuthError

security_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class SessionContext:
    """Session bound to an orchestrator instance."""

    access_token: Optional[str]
    user_id: Optional[str]

    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token) and bool(self.user_id)


def create_access_token(subject: str, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode = {"sub": subject, "exp": expire, "type": "access"}
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT token."""
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as exc:
        raise AuthError("Invalid or expired token") from exc


def session_from_token(token: str) -> SessionContext:
    """Build a SessionContext from a bearer token."""
    payload = decode_token(token)
    if payload.get("type") != "access":
        raise AuthError("Invalid token type")

    user_id: Optional[str] = payload.get("sub")
    if user_id is None:
        raise AuthError("Invalid token payload")
    return SessionContext(access_token=token, user_id=user_id)


async def get_session_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security_scheme),
) -> SessionContext:
    """FastAPI dependency: resolve the session context from the Bearer header."""
    if credentials is None:
        raise AuthError("Not authenticated")
    return session_from_token(credentials.credentials)
