from fastapi import APIRouter, Depends, HTTPException
from fastapi import status as http_status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from lms.auth.dependencies import get_current_user
from lms.auth.rbac import require_admin
from lms.auth.schemas import (
    AccessTokenResponse,
    CurrentUser,
    LoginRequest,
    LoginResponse,
    ProfileUpdate,
    RefreshRequest,
)
from lms.auth import services
from lms.core.exceptions import ServiceError
from lms.core.schemas import ApiResponse
from lms.db.session import get_db
from lms.api.v1.users import service as users_service
from lms.api.v1.users.schemas import UserCreate, UserResponse

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


@router.post(
    "/login",
    response_model=LoginResponse,
    status_code=http_status.HTTP_200_OK,
)
async def login(
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    try:
        return await services.login_user(db, payload)
    except ServiceError as e:
        if e.status_code == http_status.HTTP_500_INTERNAL_SERVER_ERROR:
            raise HTTPException(status_code=e.status_code, detail="Internal server error")
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/login-oauth")
async def login_oauth(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
):
    payload = LoginRequest(
        identifier=form_data.username.strip(),
        password=form_data.password,
    )
    try:
        result = await services.login_user(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {
        "access_token": result.access_token,
        "token_type": "bearer",
    }


@router.post("/refresh", response_model=AccessTokenResponse)
async def refresh(
    payload: RefreshRequest,
    db: AsyncSession = Depends(get_db),
) -> AccessTokenResponse:
    try:
        return await services.refresh_access_token(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/logout", response_model=ApiResponse[None])
async def logout(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ApiResponse[None]:
    await services.logout_user(db, current_user)
    return ApiResponse(message="Logged out successfully")


@router.post(
    "/register",
    response_model=ApiResponse[UserResponse],
    status_code=http_status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def register(
    payload: UserCreate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[UserResponse]:
    """Accounts are created by administrators; same contract as POST /api/v1/users."""
    try:
        return ApiResponse(data=await users_service.create_user(db, payload))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/me", response_model=ApiResponse[UserResponse])
async def me(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ApiResponse[UserResponse]:
    try:
        return ApiResponse(data=await services.get_me(db, current_user))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/me", response_model=ApiResponse[UserResponse])
async def update_me(
    payload: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ApiResponse[UserResponse]:
    try:
        user = await services.update_me(db, current_user, payload)
        return ApiResponse(message="Profile updated successfully", data=user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
