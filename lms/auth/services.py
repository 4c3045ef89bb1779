from datetime import datetime, timezone
from typing import Optional

from fastapi import status
from loguru import logger
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from lms.auth.models import RefreshToken, User
from lms.auth.schemas import (
    AccessTokenResponse,
    CurrentUser,
    LoginRequest,
    LoginResponse,
    ProfileUpdate,
    RefreshRequest,
)
from lms.auth.security import (
    access_token_for,
    create_refresh_token,
    verify_password,
)
from lms.core.enums import UserStatus
from lms.core.exceptions import NotFoundError, ServiceError, ValidationError
from lms.api.v1.users.schemas import UserResponse
from lms.api.v1.users.service import NULLABLE_PROFILE_FIELDS, load_user, to_user_response


def _as_aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


async def login_user(db: AsyncSession, payload: LoginRequest) -> LoginResponse:
    # 1. Find user by email (case-insensitive) or username
    identifier = payload.identifier.strip()
    user_stmt = select(User).where(
        or_(func.lower(User.email) == identifier.lower(), User.username == identifier)
    )
    user_result = await db.execute(user_stmt)
    user: Optional[User] = user_result.scalars().first()
    if not user:
        raise ServiceError("Invalid credentials", status.HTTP_401_UNAUTHORIZED)

    # 2. Verify password hash
    if not verify_password(payload.password, user.password_hash):
        raise ServiceError("Invalid credentials", status.HTTP_401_UNAUTHORIZED)

    # 3. Only active accounts may sign in
    if user.status != UserStatus.ACTIVE.value:
        raise ServiceError(f"Account is {user.status}. Please contact an administrator.", status.HTTP_403_FORBIDDEN)

    issued_at = datetime.now(timezone.utc)
    access_token = access_token_for(user)
    refresh_token_str, refresh_expires_at = create_refresh_token()

    db.add(
        RefreshToken(
            user_id=user.id,
            token=refresh_token_str,
            expires_at=refresh_expires_at,
        )
    )
    user.last_login = issued_at
    try:
        await db.commit()
    except Exception as e:
        await db.rollback()
        raise ServiceError(
            "Failed to persist authentication state",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        ) from e

    logger.info("auth.login id={} role={}", user.id, user.role)
    return LoginResponse(
        access_token=access_token,
        refresh_token=refresh_token_str,
        user=to_user_response(await load_user(db, user.id)),
        issued_at=issued_at,
    )


async def refresh_access_token(db: AsyncSession, payload: RefreshRequest) -> AccessTokenResponse:
    result = await db.execute(select(RefreshToken).where(RefreshToken.token == payload.refresh_token))
    stored = result.scalar_one_or_none()
    if not stored or _as_aware(stored.expires_at) <= datetime.now(timezone.utc):
        raise ServiceError("Invalid or expired refresh token", status.HTTP_401_UNAUTHORIZED)

    user = await load_user(db, stored.user_id)
    if not user or user.status != UserStatus.ACTIVE.value:
        raise ServiceError("Invalid or expired refresh token", status.HTTP_401_UNAUTHORIZED)
    return AccessTokenResponse(access_token=access_token_for(user))


async def logout_user(db: AsyncSession, current_user: CurrentUser) -> None:
    await db.execute(delete(RefreshToken).where(RefreshToken.user_id == current_user.id))
    await db.commit()
    logger.info("auth.logout id={}", current_user.id)


async def get_me(db: AsyncSession, current_user: CurrentUser) -> UserResponse:
    user = await load_user(db, current_user.id)
    if not user:
        raise NotFoundError("User not found")
    return to_user_response(user)


async def update_me(db: AsyncSession, current_user: CurrentUser, payload: ProfileUpdate) -> UserResponse:
    fields = payload.model_dump(exclude_unset=True)
    fields = {
        k: (v.value if hasattr(v, "value") else v)
        for k, v in fields.items()
        if v is not None or k in NULLABLE_PROFILE_FIELDS
    }
    if not fields:
        raise ValidationError("No details provided for update")

    user = await load_user(db, current_user.id)
    if not user:
        raise NotFoundError("User not found")
    for key, value in fields.items():
        setattr(user, key, value)
    await db.commit()
    return to_user_response(await load_user(db, user.id))
