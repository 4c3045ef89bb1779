from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from lms.auth.dependencies import get_current_user
from lms.auth.rbac import require_roles
from lms.auth.schemas import CurrentUser
from lms.core.enums import UserRole
from lms.core.exceptions import ServiceError
from lms.core.schemas import ApiListResponse, ApiResponse
from lms.db.session import get_db

from .schemas import ActivityCreate, ActivityResponse, GradeRecord, GradeResponse
from . import service

router = APIRouter(prefix="/api/v1/courses/{course_id}", tags=["coursework"])

require_course_staff = require_roles(UserRole.ADMIN, UserRole.TEACHER)


@router.post(
    "/activities",
    response_model=ApiResponse[ActivityResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_activity(
    course_id: str,
    payload: ActivityCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_course_staff),
) -> ApiResponse[ActivityResponse]:
    try:
        return ApiResponse(data=await service.create_activity(db, current_user, course_id, payload))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/activities",
    response_model=ApiListResponse[ActivityResponse],
    dependencies=[Depends(get_current_user)],
)
async def list_activities(
    course_id: str,
    db: AsyncSession = Depends(get_db),
) -> ApiListResponse[ActivityResponse]:
    try:
        activities: List[ActivityResponse] = await service.list_activities(db, course_id)
        return ApiListResponse(count=len(activities), data=activities)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/activities/{activity_id}",
    response_model=ApiResponse[dict],
)
async def delete_activity(
    course_id: str,
    activity_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_course_staff),
) -> ApiResponse[dict]:
    try:
        await service.delete_activity(db, current_user, course_id, activity_id)
        return ApiResponse(message="Activity and its grades deleted successfully", data={})
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/grades",
    response_model=ApiResponse[GradeResponse],
    status_code=status.HTTP_201_CREATED,
)
async def record_grade(
    course_id: str,
    payload: GradeRecord,
    response: Response,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_course_staff),
) -> ApiResponse[GradeResponse]:
    """201 when the grade is new, 200 when an existing grade is overwritten."""
    try:
        grade, created = await service.record_grade(db, current_user, course_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if not created:
        response.status_code = status.HTTP_200_OK
    return ApiResponse(message="Grade recorded" if created else "Grade updated", data=grade)


@router.get(
    "/grades",
    response_model=ApiListResponse[GradeResponse],
)
async def list_grades(
    course_id: str,
    student_id: Optional[str] = Query(None, alias="studentId"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ApiListResponse[GradeResponse]:
    try:
        grades = await service.list_grades(db, current_user, course_id, student_id)
        return ApiListResponse(count=len(grades), data=grades)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
