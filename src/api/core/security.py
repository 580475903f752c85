from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.config import settings
from src.api.core.database import get_db
from src.api.core.errors import AuthenticationError, PermissionDeniedError
from src.api.models.user import UserSession

# Password hashing context
# Configure bcrypt to truncate passwords at 72 bytes automatically
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__truncate_error=False,  # Don't raise error on long passwords
    bcrypt__ident="2b"  # Use 2b variant to avoid wrap-around bugs
)

# HTTP Bearer token scheme; missing credentials are reported as 401 below
security = HTTPBearer(auto_error=False)


def _truncate(password: str) -> str:
    password_bytes = password.encode('utf-8')[:72]
    return password_bytes.decode('utf-8', errors='ignore')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against a hash

    Applies same 72-byte truncation as get_password_hash for consistency
    """
    return pwd_context.verify(_truncate(plain_password), hashed_password)


def get_password_hash(password: str) -> str:
    """
    Hash a password using bcrypt

    Note: bcrypt has a 72-byte limit. We truncate to 72 bytes to avoid errors.
    """
    return pwd_context.hash(_truncate(password))


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create JWT access token

    Args:
        data: Data to encode in token (``{"sub": user_id, "sid": session_id}``)
        expires_delta: Token expiration time (default: ACCESS_TOKEN_EXPIRE_MINUTES)

    Returns:
        Encoded JWT token
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
        )

    to_encode.update({"exp": expire, "type": "access"})

    return jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM
    )


def decode_token(token: str) -> dict:
    """
    Decode and validate JWT token

    Raises:
        AuthenticationError: If token is invalid or expired
    """
    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )
    except JWTError:
        raise AuthenticationError("Could not validate credentials")


@dataclass(frozen=True)
class SessionContext:
    """Identity of the caller, resolved once per request from a live session"""
    user_id: UUID
    session_id: UUID
    is_admin: bool
    name: str
    email: str


async def _resolve_session(token: str, db: AsyncSession) -> SessionContext:
    payload = decode_token(token)

    if payload.get("type") != "access":
        raise AuthenticationError("Invalid token type")

    try:
        user_id = UUID(payload["sub"])
        session_id = UUID(payload["sid"])
    except (KeyError, TypeError, ValueError):
        raise AuthenticationError("Could not validate credentials")

    result = await db.execute(
        select(UserSession).where(
            UserSession.id == session_id,
            UserSession.user_id == user_id,
        )
    )
    session_row = result.scalar_one_or_none()
    if session_row is None:
        raise AuthenticationError("Session has ended, please log in again")

    user = session_row.user
    return SessionContext(
        user_id=user.id,
        session_id=session_row.id,
        is_admin=bool(user.is_admin),
        name=user.name,
        email=user.email,
    )


async def get_session_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> SessionContext:
    """
    Dependency resolving the bearer token into a SessionContext

    Usage:
        @router.post("/")
        async def handler(session: SessionContext = Depends(get_session_context)):
            ...
    """
    if credentials is None:
        raise AuthenticationError("Not authenticated")
    return await _resolve_session(credentials.credentials, db)


async def get_optional_session_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Optional[SessionContext]:
    """Like get_session_context, but anonymous callers get None"""
    if credentials is None:
        return None
    return await _resolve_session(credentials.credentials, db)


async def require_admin(
    session: SessionContext = Depends(get_session_context),
) -> SessionContext:
    """Dependency that only lets administrators through"""
    if not session.is_admin:
        raise PermissionDeniedError("Admin privileges required")
    return session
