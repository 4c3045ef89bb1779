from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from lms.auth.dependencies import get_current_user
from lms.auth.rbac import require_admin, require_roles
from lms.auth.schemas import CurrentUser
from lms.core.enums import UserRole
from lms.core.exceptions import ServiceError
from lms.core.schemas import ApiListResponse, ApiResponse
from lms.db.session import get_db

from .schemas import (
    AssignTeacherRequest,
    CourseCreate,
    CourseResponse,
    CourseUpdate,
    EnrollStudentRequest,
)
from . import service

router = APIRouter(prefix="/api/v1/courses", tags=["courses"])

require_course_staff = require_roles(UserRole.ADMIN, UserRole.TEACHER)


@router.post(
    "",
    response_model=ApiResponse[CourseResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_course(
    payload: CourseCreate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[CourseResponse]:
    try:
        return ApiResponse(data=await service.create_course(db, payload))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=ApiListResponse[CourseResponse],
    dependencies=[Depends(get_current_user)],
)
async def list_courses(
    teacher_id: Optional[str] = Query(None, alias="teacherId"),
    db: AsyncSession = Depends(get_db),
) -> ApiListResponse[CourseResponse]:
    try:
        courses = await service.list_courses(db, teacher_id)
        return ApiListResponse(count=len(courses), data=courses)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{course_id}",
    response_model=ApiResponse[CourseResponse],
    dependencies=[Depends(get_current_user)],
)
async def get_course(
    course_id: str,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[CourseResponse]:
    try:
        return ApiResponse(data=await service.get_course(db, course_id))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{course_id}",
    response_model=ApiResponse[CourseResponse],
    dependencies=[Depends(require_admin)],
)
async def update_course(
    course_id: str,
    payload: CourseUpdate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[CourseResponse]:
    try:
        return ApiResponse(data=await service.update_course(db, course_id, payload))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{course_id}",
    response_model=ApiResponse[dict],
    dependencies=[Depends(require_admin)],
)
async def delete_course(
    course_id: str,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[dict]:
    """Deletes the course with its enrollments, activities and grades."""
    try:
        await service.delete_course(db, course_id)
        return ApiResponse(message="Course and related data deleted successfully", data={})
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{course_id}/assign-teacher",
    response_model=ApiResponse[CourseResponse],
    dependencies=[Depends(require_admin)],
)
async def assign_teacher(
    course_id: str,
    payload: AssignTeacherRequest,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[CourseResponse]:
    try:
        course, message = await service.assign_teacher(db, course_id, payload)
        return ApiResponse(message=message, data=course)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{course_id}/students",
    response_model=ApiResponse[CourseResponse],
)
async def enroll_student(
    course_id: str,
    payload: EnrollStudentRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_course_staff),
) -> ApiResponse[CourseResponse]:
    try:
        course, message = await service.enroll_student(db, current_user, course_id, payload)
        return ApiResponse(message=message, data=course)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{course_id}/students/{student_id}",
    response_model=ApiResponse[CourseResponse],
)
async def remove_student(
    course_id: str,
    student_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_course_staff),
) -> ApiResponse[CourseResponse]:
    try:
        course, message = await service.remove_student(db, current_user, course_id, student_id)
        return ApiResponse(message=message, data=course)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
