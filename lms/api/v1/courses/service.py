"""
Course management and the course/teacher/student relations.

- courses.teacher_id is the only record of "who teaches this course"; a teacher's
  assigned courses are read back through it.
- course_enrollments is the only record of "who is enrolled"; both Course.students
  and a student's enrolled courses are read back through it.
- Every relation change is committed in one transaction, so both sides always agree.
"""

from typing import List, Optional, Tuple
from uuid import UUID

from loguru import logger
from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from lms.auth.models import User
from lms.auth.schemas import CurrentUser
from lms.core.enums import UserRole, UserStatus
from lms.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from lms.core.ids import parse_id, parse_optional_id
from lms.core.models import Activity, Course, Grade, course_enrollments
from lms.api.v1.users.schemas import UserSummary

from .schemas import (
    ActivitySummary,
    AssignTeacherRequest,
    CourseCreate,
    CourseResponse,
    CourseUpdate,
    EnrollStudentRequest,
)

COURSE_LOAD_OPTIONS = (
    selectinload(Course.teacher),
    selectinload(Course.students),
    selectinload(Course.activities),
)


def to_course_response(course: Course) -> CourseResponse:
    return CourseResponse(
        id=course.id,
        course_code=course.course_code,
        course_name=course.course_name,
        description=course.description,
        teacher=UserSummary.model_validate(course.teacher) if course.teacher else None,
        students=[UserSummary.model_validate(s) for s in course.students],
        activities=[ActivitySummary.model_validate(a) for a in course.activities],
        created_at=course.created_at,
        updated_at=course.updated_at,
    )


async def load_course(db: AsyncSession, course_id: UUID) -> Optional[Course]:
    """Fresh read of a course with teacher, students and activities."""
    result = await db.execute(
        select(Course)
        .where(Course.id == course_id)
        .options(*COURSE_LOAD_OPTIONS)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_course_or_404(db: AsyncSession, raw_id) -> Course:
    course_id = parse_id(raw_id, "course ID")
    course = await load_course(db, course_id)
    if not course:
        raise NotFoundError(f"Course not found with ID {raw_id}")
    return course


def ensure_can_manage(course: Course, actor: CurrentUser, message: str) -> None:
    """Admins manage every course; a teacher only the course assigned to them."""
    if actor.role == UserRole.TEACHER.value and course.teacher_id != actor.id:
        raise ForbiddenError(message)


async def get_active_user(db: AsyncSession, user_id: UUID, role: UserRole) -> Optional[User]:
    result = await db.execute(
        select(User).where(
            User.id == user_id,
            User.role == role.value,
            User.status == UserStatus.ACTIVE.value,
        )
    )
    return result.scalar_one_or_none()


async def _resolve_teacher(db: AsyncSession, raw_teacher_id: str) -> User:
    teacher_id = parse_id(raw_teacher_id, "teacher ID")
    teacher = await get_active_user(db, teacher_id, UserRole.TEACHER)
    if not teacher:
        raise NotFoundError(f"Active teacher not found with ID {raw_teacher_id}")
    return teacher


def _clean(value: Optional[str]) -> str:
    return value.strip() if value else ""


# ----- CRUD -----
async def create_course(db: AsyncSession, payload: CourseCreate) -> CourseResponse:
    code = _clean(payload.course_code)
    name = _clean(payload.course_name)
    if not code or not name:
        raise ValidationError("Course code and name are required")

    teacher = await _resolve_teacher(db, payload.teacher_id) if payload.teacher_id else None

    course = Course(
        course_code=code,
        course_name=name,
        description=payload.description,
        teacher_id=teacher.id if teacher else None,
    )
    db.add(course)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f"Course code {code} already exists")

    logger.info("course.created id={} code={} teacher={}", course.id, course.course_code, course.teacher_id)
    return to_course_response(await load_course(db, course.id))


async def list_courses(db: AsyncSession, raw_teacher_id: Optional[str] = None) -> List[CourseResponse]:
    teacher_id = parse_optional_id(raw_teacher_id, "teacher ID")
    stmt = select(Course).options(*COURSE_LOAD_OPTIONS).order_by(Course.course_name)
    if teacher_id is not None:
        stmt = stmt.where(Course.teacher_id == teacher_id)
    result = await db.execute(stmt.execution_options(populate_existing=True))
    return [to_course_response(c) for c in result.scalars().all()]


async def get_course(db: AsyncSession, raw_id: str) -> CourseResponse:
    return to_course_response(await get_course_or_404(db, raw_id))


async def update_course(db: AsyncSession, raw_id: str, payload: CourseUpdate) -> CourseResponse:
    course = await get_course_or_404(db, raw_id)
    fields = payload.model_fields_set
    old_teacher_id = course.teacher_id
    new_teacher_id = old_teacher_id

    if "teacher_id" in fields:
        if payload.teacher_id is None:
            new_teacher_id = None
        else:
            new_teacher_id = (await _resolve_teacher(db, payload.teacher_id)).id

    changes = {"teacher_id": new_teacher_id}
    if "course_code" in fields:
        changes["course_code"] = _clean(payload.course_code)
        if not changes["course_code"]:
            raise ValidationError("Course code cannot be empty")
    if "course_name" in fields:
        changes["course_name"] = _clean(payload.course_name)
        if not changes["course_name"]:
            raise ValidationError("Course name cannot be empty")
    if "description" in fields:
        changes["description"] = payload.description

    for key, value in changes.items():
        setattr(course, key, value)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f"Course code {changes.get('course_code')} already exists")

    if old_teacher_id != new_teacher_id:
        logger.info("course.teacher_changed id={} from={} to={}", course.id, old_teacher_id, new_teacher_id)
    return to_course_response(await load_course(db, course.id))


async def assign_teacher(
    db: AsyncSession, raw_id: str, payload: AssignTeacherRequest
) -> Tuple[CourseResponse, str]:
    course_id = parse_id(raw_id, "course ID")
    if not payload.teacher_id:
        raise ValidationError("Teacher ID is required")
    teacher_id = parse_id(payload.teacher_id, "teacher ID")

    course = await load_course(db, course_id)
    if not course:
        raise NotFoundError(f"Course not found with ID {raw_id}")
    teacher = await get_active_user(db, teacher_id, UserRole.TEACHER)
    if not teacher:
        raise NotFoundError(f"Active teacher not found with ID {payload.teacher_id}")

    if course.teacher_id == teacher.id:
        logger.debug("course.assign_teacher noop id={} teacher={}", course.id, teacher.id)
        return to_course_response(course), "Teacher already assigned to this course"

    old_teacher_id = course.teacher_id
    course.teacher_id = teacher.id
    await db.commit()
    logger.info("course.teacher_changed id={} from={} to={}", course.id, old_teacher_id, teacher.id)

    course = await load_course(db, course.id)
    return (
        to_course_response(course),
        f"Teacher {teacher.first_name} {teacher.last_name} assigned to course {course.course_name}",
    )


async def delete_course(db: AsyncSession, raw_id: str) -> None:
    """
    Cascade delete. Order: enrollments, activities, grades, then the course row (which also
    carries the teacher link). All statements share one transaction.
    """
    course = await get_course_or_404(db, raw_id)
    course_id = course.id
    teacher_id = course.teacher_id

    enrollments = await db.execute(delete(course_enrollments).where(course_enrollments.c.course_id == course_id))
    activities = await db.execute(delete(Activity).where(Activity.course_id == course_id))
    grades = await db.execute(delete(Grade).where(Grade.course_id == course_id))
    await db.execute(delete(Course).where(Course.id == course_id))
    await db.commit()

    logger.info(
        "course.deleted id={} teacher={} enrollments={} activities={} grades={}",
        course_id,
        teacher_id,
        enrollments.rowcount,
        activities.rowcount,
        grades.rowcount,
    )


# ----- Enrollment -----
async def is_enrolled(db: AsyncSession, course_id: UUID, student_id: UUID) -> bool:
    result = await db.execute(
        select(func.count()).select_from(course_enrollments).where(
            course_enrollments.c.course_id == course_id,
            course_enrollments.c.student_id == student_id,
        )
    )
    return (result.scalar() or 0) > 0


async def _add_enrollment(db: AsyncSession, course_id: UUID, student_id: UUID) -> bool:
    """Set-add on the enrollment relation. Returns False when the pair already existed."""
    if await is_enrolled(db, course_id, student_id):
        return False
    try:
        await db.execute(insert(course_enrollments).values(course_id=course_id, student_id=student_id))
        await db.commit()
    except IntegrityError:
        # Concurrent enroll of the same pair won the race; same final state
        await db.rollback()
        return False
    return True


async def enroll_student(
    db: AsyncSession, actor: CurrentUser, raw_course_id: str, payload: EnrollStudentRequest
) -> Tuple[CourseResponse, str]:
    course_id = parse_id(raw_course_id, "course ID")
    if not payload.student_id:
        raise ValidationError("Invalid or missing student ID")
    student_id = parse_id(payload.student_id, "student ID")

    course = await load_course(db, course_id)
    if not course:
        raise NotFoundError(f"Course not found with ID {raw_course_id}")
    ensure_can_manage(course, actor, "You are not authorized to enroll students in this course.")

    student = await get_active_user(db, student_id, UserRole.STUDENT)
    if not student:
        raise NotFoundError(f"Active student not found with ID {payload.student_id}")

    if await _add_enrollment(db, course.id, student.id):
        logger.info("course.student_enrolled course={} student={} by={}", course.id, student.id, actor.id)
    else:
        logger.debug("course.student_enrolled noop course={} student={}", course.id, student.id)

    course = await load_course(db, course.id)
    return (
        to_course_response(course),
        f"Student {student.first_name} {student.last_name} enrolled in course {course.course_name}",
    )


async def remove_student(
    db: AsyncSession, actor: CurrentUser, raw_course_id: str, raw_student_id: str
) -> Tuple[CourseResponse, str]:
    course_id = parse_id(raw_course_id, "course ID")
    student_id = parse_id(raw_student_id, "student ID")

    course = await load_course(db, course_id)
    if not course:
        raise NotFoundError(f"Course not found with ID {raw_course_id}")
    ensure_can_manage(course, actor, "You are not authorized to remove students from this course.")

    # Existence only; archived or non-student ids can still be pulled from the roster
    result = await db.execute(select(User.id).where(User.id == student_id))
    if result.first() is None:
        raise NotFoundError(f"Student not found with ID {raw_student_id}")

    removed = await db.execute(
        delete(course_enrollments).where(
            course_enrollments.c.course_id == course.id,
            course_enrollments.c.student_id == student_id,
        )
    )
    await db.commit()
    if removed.rowcount:
        logger.info("course.student_removed course={} student={} by={}", course.id, student_id, actor.id)

    course = await load_course(db, course.id)
    return to_course_response(course), f"Student removed from course {course.course_name}"
