from fastapi import APIRouter, Depends, status
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from uuid import UUID
import logging

from src.api.core.database import get_db
from src.api.core.errors import AuthenticationError, ConflictError, NotFoundError, PermissionDeniedError
from src.api.core.security import (
    SessionContext,
    create_access_token,
    get_optional_session_context,
    get_password_hash,
    get_session_context,
    require_admin,
    verify_password,
)
from src.api.models.user import User, UserSession
from src.api.schemas.common import ApiResponse
from src.api.schemas.user import UserCreate, UserLogin, UserResponse, TokenResponse

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/register", response_model=ApiResponse[UserResponse], status_code=status.HTTP_201_CREATED)
async def register_user(
    user_data: UserCreate,
    caller: Optional[SessionContext] = Depends(get_optional_session_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Register a farmer account

    Email is stored lower-cased and must be unique. Administrator accounts
    can only be created by an authenticated administrator; the first one is
    seeded with init_database.py.
    """
    if user_data.is_admin and (caller is None or not caller.is_admin):
        raise PermissionDeniedError("Only administrators can create administrator accounts")

    existing = await db.execute(select(User.id).where(User.email == user_data.email))
    if existing.first() is not None:
        raise ConflictError("Email already registered")

    user = User(
        name=user_data.name,
        email=user_data.email,
        password_hash=get_password_hash(user_data.password),
        is_admin=user_data.is_admin,
    )
    db.add(user)
    await db.commit()

    logger.info(f"User {user.email} registered (admin={user.is_admin})")
    return ApiResponse(
        message="User registered successfully",
        data=UserResponse.model_validate(user),
    )


@router.post("/login", response_model=ApiResponse[TokenResponse])
async def login(credentials: UserLogin, db: AsyncSession = Depends(get_db)):
    """
    Authenticate with email and password

    Opens a server-side session and returns a bearer token bound to it.
    """
    result = await db.execute(select(User).where(User.email == credentials.email))
    user = result.scalar_one_or_none()

    if user is None or not verify_password(credentials.password, user.password_hash):
        raise AuthenticationError("Invalid email or password")

    session_row = UserSession(user_id=user.id)
    db.add(session_row)
    await db.commit()

    token = create_access_token(data={"sub": str(user.id), "sid": str(session_row.id)})
    logger.info(f"User {user.email} logged in")
    return ApiResponse(
        message="Login successful",
        data=TokenResponse(access_token=token, user=UserResponse.model_validate(user)),
    )


@router.post("/logout", response_model=ApiResponse[None])
async def logout(
    session: SessionContext = Depends(get_session_context),
    db: AsyncSession = Depends(get_db)
):
    """
    End the caller's session; its token is refused afterwards
    """
    await db.execute(delete(UserSession).where(UserSession.id == session.session_id))
    await db.commit()
    logger.info(f"User {session.email} logged out")
    return ApiResponse(message="Logged out successfully")


@router.get("/me", response_model=ApiResponse[UserResponse])
async def get_me(
    session: SessionContext = Depends(get_session_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Profile of the authenticated user
    """
    user = await db.get(User, session.user_id)
    return ApiResponse(data=UserResponse.model_validate(user))


@router.get("", response_model=ApiResponse[list[UserResponse]])
async def list_users(
    admin: SessionContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    List all users (administrators only)
    """
    result = await db.execute(select(User).order_by(User.created_at))
    users = result.scalars().all()
    return ApiResponse(
        data=[UserResponse.model_validate(u) for u in users],
        count=len(users),
    )


@router.get("/{user_id}", response_model=ApiResponse[UserResponse])
async def get_user(user_id: UUID, db: AsyncSession = Depends(get_db)):
    """
    Get a user's public profile
    """
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return ApiResponse(data=UserResponse.model_validate(user))
