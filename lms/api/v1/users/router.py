from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from lms.auth.rbac import require_admin
from lms.auth.schemas import CurrentUser
from lms.core.config import settings
from lms.core.exceptions import ServiceError
from lms.core.schemas import ApiListResponse, ApiResponse
from lms.db.session import get_db

from .schemas import (
    UserCreate,
    UserPasswordUpdate,
    UserResponse,
    UserRestore,
    UserStatusResponse,
    UserUpdate,
)
from . import service

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.post(
    "",
    response_model=ApiResponse[UserResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_user(
    payload: UserCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
) -> ApiResponse[UserResponse]:
    try:
        return ApiResponse(data=await service.create_user(db, payload))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=ApiListResponse[UserResponse],
)
async def list_users(
    role: Optional[str] = Query(None, description="Admin | Teacher | Student"),
    status_value: Optional[str] = Query(
        None, alias="status", description="Filter by status; archived users are hidden unless status=archived or all"
    ),
    sort: Optional[str] = Query(None, description="Comma-separated fields, '-' prefix for descending (default -createdAt)"),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
) -> ApiListResponse[UserResponse]:
    try:
        return await service.list_users(
            db,
            role=role,
            status_value=status_value,
            sort=sort,
            page=page,
            limit=limit or settings.default_page_size,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{user_id}",
    response_model=ApiResponse[UserResponse],
)
async def get_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
) -> ApiResponse[UserResponse]:
    try:
        return ApiResponse(data=await service.get_user(db, user_id))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{user_id}",
    response_model=ApiResponse[UserResponse],
)
async def update_user(
    user_id: str,
    payload: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
) -> ApiResponse[UserResponse]:
    try:
        user = await service.update_user(db, current_user, user_id, payload)
        return ApiResponse(message="User updated successfully", data=user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{user_id}/password",
    response_model=ApiResponse[None],
)
async def update_user_password(
    user_id: str,
    payload: UserPasswordUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
) -> ApiResponse[None]:
    try:
        await service.update_user_password(db, user_id, payload)
        return ApiResponse(message="User password updated successfully")
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{user_id}",
    response_model=ApiResponse[UserStatusResponse],
)
async def archive_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
) -> ApiResponse[UserStatusResponse]:
    """Soft delete: the account is archived, not removed."""
    try:
        data, message = await service.archive_user(db, current_user, user_id)
        return ApiResponse(message=message, data=data)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{user_id}/restore",
    response_model=ApiResponse[UserResponse],
)
async def restore_user(
    user_id: str,
    payload: Optional[UserRestore] = Body(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
) -> ApiResponse[UserResponse]:
    """Restore an archived user. Body {status} is optional and defaults to pending."""
    try:
        data, message = await service.restore_user(db, user_id, payload or UserRestore())
        return ApiResponse(message=message, data=data)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{user_id}/permanent",
    response_model=ApiResponse[None],
)
async def purge_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
) -> ApiResponse[None]:
    """Permanently delete an archived user and every reference to it."""
    try:
        message = await service.purge_user(db, current_user, user_id)
        return ApiResponse(message=message)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
