from typing import List, Optional, Tuple

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lms.auth.schemas import CurrentUser
from lms.core.enums import UserRole
from lms.core.exceptions import ConflictError, NotFoundError, ValidationError
from lms.core.ids import parse_id, parse_optional_id
from lms.core.models import Activity, Grade
from lms.api.v1.courses.service import ensure_can_manage, get_course_or_404, is_enrolled

from .schemas import ActivityCreate, ActivityResponse, GradeRecord, GradeResponse


# ----- Activities -----
async def create_activity(
    db: AsyncSession, actor: CurrentUser, raw_course_id: str, payload: ActivityCreate
) -> ActivityResponse:
    course = await get_course_or_404(db, raw_course_id)
    ensure_can_manage(course, actor, "You are not authorized to manage activities in this course.")
    title = payload.title.strip() if payload.title else ""
    if not title:
        raise ValidationError("Activity title is required")

    activity = Activity(
        course_id=course.id,
        title=title,
        description=payload.description,
        due_date=payload.due_date,
        max_points=payload.max_points,
    )
    db.add(activity)
    await db.commit()
    await db.refresh(activity)
    logger.info("activity.created id={} course={} by={}", activity.id, course.id, actor.id)
    return ActivityResponse.model_validate(activity)


async def list_activities(db: AsyncSession, raw_course_id: str) -> List[ActivityResponse]:
    course = await get_course_or_404(db, raw_course_id)
    result = await db.execute(
        select(Activity)
        .where(Activity.course_id == course.id)
        .order_by(Activity.due_date.asc().nulls_last(), Activity.title)
    )
    return [ActivityResponse.model_validate(a) for a in result.scalars().all()]


async def delete_activity(db: AsyncSession, actor: CurrentUser, raw_course_id: str, raw_activity_id: str) -> None:
    course = await get_course_or_404(db, raw_course_id)
    ensure_can_manage(course, actor, "You are not authorized to manage activities in this course.")
    activity_id = parse_id(raw_activity_id, "activity ID")

    result = await db.execute(
        select(Activity.id).where(Activity.id == activity_id, Activity.course_id == course.id)
    )
    if result.first() is None:
        raise NotFoundError(f"Activity not found with ID {raw_activity_id}")

    await db.execute(delete(Grade).where(Grade.activity_id == activity_id))
    await db.execute(delete(Activity).where(Activity.id == activity_id))
    await db.commit()
    logger.info("activity.deleted id={} course={} by={}", activity_id, course.id, actor.id)


# ----- Grades -----
async def record_grade(
    db: AsyncSession, actor: CurrentUser, raw_course_id: str, payload: GradeRecord
) -> Tuple[GradeResponse, bool]:
    """Upsert on (activity, student). Returns the grade and whether it was newly created."""
    course = await get_course_or_404(db, raw_course_id)
    ensure_can_manage(course, actor, "You are not authorized to grade students in this course.")
    if not payload.activity_id or not payload.student_id:
        raise ValidationError("Activity ID and student ID are required")
    activity_id = parse_id(payload.activity_id, "activity ID")
    student_id = parse_id(payload.student_id, "student ID")

    result = await db.execute(
        select(Activity).where(Activity.id == activity_id, Activity.course_id == course.id)
    )
    activity = result.scalar_one_or_none()
    if not activity:
        raise NotFoundError(f"Activity not found with ID {payload.activity_id}")
    if not await is_enrolled(db, course.id, student_id):
        raise ValidationError("Student is not enrolled in this course")
    if payload.score < 0 or payload.score > activity.max_points:
        raise ValidationError(f"Score must be between 0 and {activity.max_points}")

    result = await db.execute(
        select(Grade).where(Grade.activity_id == activity_id, Grade.student_id == student_id)
    )
    grade = result.scalar_one_or_none()
    created = grade is None
    if created:
        grade = Grade(course_id=course.id, activity_id=activity_id, student_id=student_id)
        db.add(grade)
    grade.score = payload.score
    grade.comments = payload.comments
    grade.graded_by = actor.id
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Grade was recorded concurrently; please retry")
    await db.refresh(grade)

    logger.info(
        "grade.{} id={} activity={} student={} score={} by={}",
        "created" if created else "updated",
        grade.id,
        activity_id,
        student_id,
        grade.score,
        actor.id,
    )
    return GradeResponse.model_validate(grade), created


async def list_grades(
    db: AsyncSession, actor: CurrentUser, raw_course_id: str, raw_student_id: Optional[str] = None
) -> List[GradeResponse]:
    course = await get_course_or_404(db, raw_course_id)
    student_id = parse_optional_id(raw_student_id, "student ID")
    if actor.role == UserRole.STUDENT.value:
        # Students only ever see their own grades
        student_id = actor.id
    else:
        ensure_can_manage(course, actor, "You are not authorized to view grades for this course.")

    stmt = select(Grade).where(Grade.course_id == course.id)
    if student_id is not None:
        stmt = stmt.where(Grade.student_id == student_id)
    result = await db.execute(stmt.order_by(Grade.created_at))
    return [GradeResponse.model_validate(g) for g in result.scalars().all()]
