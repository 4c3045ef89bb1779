from typing import Optional, Tuple
from uuid import UUID

from loguru import logger
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from lms.auth.models import RefreshToken, User
from lms.auth.schemas import CurrentUser
from lms.auth.security import hash_password
from lms.core.enums import UserRole, UserStatus
from lms.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from lms.core.ids import generate_public_user_id, parse_id
from lms.core.models import Course, Grade, course_enrollments
from lms.core.schemas import ApiListResponse, PageLink, Pagination

from .schemas import (
    UserCreate,
    UserPasswordUpdate,
    UserResponse,
    UserRestore,
    UserStatusResponse,
    UserUpdate,
)

# Columns that may be cleared with an explicit null on update
NULLABLE_PROFILE_FIELDS = {"middle_name", "gender", "bio", "profile_picture"}

SORTABLE_FIELDS = {
    "createdAt": User.created_at,
    "updatedAt": User.updated_at,
    "firstName": User.first_name,
    "lastName": User.last_name,
    "username": User.username,
    "email": User.email,
    "userId": User.user_id,
    "role": User.role,
    "status": User.status,
    "lastLogin": User.last_login,
}

USER_LOAD_OPTIONS = (
    selectinload(User.assigned_courses),
    selectinload(User.enrolled_courses),
)


def to_user_response(user: User) -> UserResponse:
    """Role payload is only emitted for the matching role (teacher: assigned, student: enrolled)."""
    assigned = None
    enrolled = None
    if user.role == UserRole.TEACHER.value:
        assigned = [c.id for c in user.assigned_courses]
    elif user.role == UserRole.STUDENT.value:
        enrolled = [c.id for c in user.enrolled_courses]
    return UserResponse(
        id=user.id,
        user_id=user.user_id,
        username=user.username,
        email=user.email,
        first_name=user.first_name,
        middle_name=user.middle_name,
        last_name=user.last_name,
        phone_number=user.phone_number,
        address=user.address,
        sex=user.sex,
        gender=user.gender,
        bio=user.bio,
        profile_picture=user.profile_picture,
        role=user.role,
        status=user.status,
        last_login=user.last_login,
        created_at=user.created_at,
        updated_at=user.updated_at,
        assigned_courses=assigned,
        enrolled_courses=enrolled,
    )


async def load_user(db: AsyncSession, user_id: UUID) -> Optional[User]:
    """Fresh read of a user with its course relations (bypasses stale identity-map state)."""
    result = await db.execute(
        select(User)
        .where(User.id == user_id)
        .options(*USER_LOAD_OPTIONS)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _get_user_or_404(db: AsyncSession, raw_id) -> User:
    user_id = parse_id(raw_id)
    user = await load_user(db, user_id)
    if not user:
        raise NotFoundError(f"User not found with ID {raw_id}")
    return user


async def _check_duplicate_username(db: AsyncSession, username: str, exclude_user_id: Optional[UUID] = None) -> bool:
    stmt = select(User.id).where(User.username == username)
    if exclude_user_id is not None:
        stmt = stmt.where(User.id != exclude_user_id)
    result = await db.execute(stmt)
    return result.first() is not None


async def _check_duplicate_email(db: AsyncSession, email: str, exclude_user_id: Optional[UUID] = None) -> bool:
    stmt = select(User.id).where(func.lower(User.email) == email.lower())
    if exclude_user_id is not None:
        stmt = stmt.where(User.id != exclude_user_id)
    result = await db.execute(stmt)
    return result.first() is not None


async def count_active_admins(db: AsyncSession) -> int:
    result = await db.execute(
        select(func.count(User.id)).where(
            User.role == UserRole.ADMIN.value,
            User.status == UserStatus.ACTIVE.value,
        )
    )
    return result.scalar() or 0


# ----- Create / read -----
async def create_user(db: AsyncSession, payload: UserCreate) -> UserResponse:
    username = payload.username.strip()
    email = payload.email.lower()
    if await _check_duplicate_username(db, username):
        raise ConflictError("Username is already in use")
    if await _check_duplicate_email(db, email):
        raise ConflictError("Email is already in use")

    user = User(
        user_id=await generate_public_user_id(db),
        username=username,
        email=email,
        password_hash=hash_password(payload.password),
        first_name=payload.first_name.strip(),
        middle_name=payload.middle_name,
        last_name=payload.last_name.strip(),
        phone_number=payload.phone_number.strip(),
        address=payload.address.strip(),
        sex=payload.sex.value,
        gender=payload.gender,
        bio=payload.bio,
        profile_picture=payload.profile_picture,
        role=payload.role.value,
        status=(payload.status or UserStatus.PENDING).value,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Username or email is already in use")

    logger.info("user.created id={} user_id={} role={} status={}", user.id, user.user_id, user.role, user.status)
    return to_user_response(await load_user(db, user.id))


def _parse_sort(sort: Optional[str]) -> list:
    if not sort:
        return [User.created_at.desc()]
    clauses = []
    for raw in sort.split(","):
        key = raw.strip()
        if not key:
            continue
        descending = key.startswith("-")
        name = key.lstrip("-+")
        column = SORTABLE_FIELDS.get(name)
        if column is None:
            raise ValidationError(
                f"Invalid sort field '{name}'. Allowed values are: {', '.join(SORTABLE_FIELDS)}"
            )
        clauses.append(column.desc() if descending else column.asc())
    return clauses or [User.created_at.desc()]


def _status_filter(status_value: Optional[str]):
    """Default hides archived users; 'all' disables the filter."""
    if status_value is None:
        return User.status != UserStatus.ARCHIVED.value
    if status_value == "all":
        return None
    try:
        return User.status == UserStatus(status_value).value
    except ValueError:
        allowed = ", ".join(s.value for s in UserStatus)
        raise ValidationError(f"Invalid value for status. Allowed values are: {allowed}, all")


def _role_filter(role: Optional[str]):
    if role is None:
        return None
    try:
        return User.role == UserRole(role).value
    except ValueError:
        allowed = ", ".join(r.value for r in UserRole)
        raise ValidationError(f"Invalid value for role. Allowed values are: {allowed}")


def _pagination(page: int, limit: int, total: int) -> Pagination:
    start = (page - 1) * limit
    pagination = Pagination()
    if start > 0:
        pagination.prev = PageLink(page=page - 1, limit=limit)
    if page * limit < total:
        pagination.next = PageLink(page=page + 1, limit=limit)
    return pagination


async def list_users(
    db: AsyncSession,
    role: Optional[str] = None,
    status_value: Optional[str] = None,
    sort: Optional[str] = None,
    page: int = 1,
    limit: int = 25,
) -> ApiListResponse[UserResponse]:
    filters = [f for f in (_role_filter(role), _status_filter(status_value)) if f is not None]
    order_by = _parse_sort(sort)

    total_result = await db.execute(select(func.count(User.id)).where(*filters))
    total = total_result.scalar() or 0

    result = await db.execute(
        select(User)
        .where(*filters)
        .options(*USER_LOAD_OPTIONS)
        .order_by(*order_by)
        .offset((page - 1) * limit)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    users = result.scalars().all()
    return ApiListResponse[UserResponse](
        count=len(users),
        total=total,
        pagination=_pagination(page, limit, total),
        data=[to_user_response(u) for u in users],
    )


async def get_user(db: AsyncSession, raw_id: str) -> UserResponse:
    return to_user_response(await _get_user_or_404(db, raw_id))


# ----- Update -----
def _update_fields(payload: UserUpdate) -> dict:
    fields = payload.model_dump(exclude_unset=True, exclude={"password"})
    cleaned = {}
    for key, value in fields.items():
        if value is None and key not in NULLABLE_PROFILE_FIELDS:
            continue
        cleaned[key] = value.value if hasattr(value, "value") else value
    return cleaned


async def update_user(db: AsyncSession, actor: CurrentUser, raw_id: str, payload: UserUpdate) -> UserResponse:
    user_id = parse_id(raw_id)
    if payload.password is not None:
        raise ValidationError("Password updates should use the password endpoint.")
    fields = _update_fields(payload)
    if not fields:
        raise ValidationError("No details provided for update")

    user = await load_user(db, user_id)
    if not user:
        raise NotFoundError(f"User not found with ID {raw_id}")

    # Role is the discriminator of the account; changing it would orphan course relations
    new_role = fields.pop("role", None)
    if new_role is not None and new_role != user.role:
        raise ValidationError("Changing a user's role is not supported")

    if "username" in fields:
        fields["username"] = fields["username"].strip()
        if await _check_duplicate_username(db, fields["username"], exclude_user_id=user.id):
            raise ConflictError("Username is already in use")
    if "email" in fields:
        fields["email"] = fields["email"].lower()
        if await _check_duplicate_email(db, fields["email"], exclude_user_id=user.id):
            raise ConflictError("Email is already in use")

    if "status" in fields:
        await _ensure_status_change_allowed(db, actor, user, fields["status"])

    old_status = user.status
    for key, value in fields.items():
        setattr(user, key, value)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Username or email is already in use")

    if user.status != old_status:
        logger.info("user.status_changed id={} from={} to={}", user.id, old_status, user.status)
    return to_user_response(await load_user(db, user.id))


async def update_user_password(db: AsyncSession, raw_id: str, payload: UserPasswordUpdate) -> None:
    user_id = parse_id(raw_id, "user ID")
    if not payload.new_password:
        raise ValidationError("Please provide a new password")
    if len(payload.new_password) < 8:
        raise ValidationError("New password must be at least 8 characters long.")

    user = await load_user(db, user_id)
    if not user:
        raise NotFoundError(f"User not found with ID {raw_id}")
    user.password_hash = hash_password(payload.new_password)
    # Existing sessions must log in again with the new password
    await db.execute(delete(RefreshToken).where(RefreshToken.user_id == user.id))
    await db.commit()
    logger.info("user.password_reset id={}", user.id)


# ----- Archive lifecycle -----
async def _ensure_status_change_allowed(db: AsyncSession, actor: CurrentUser, user: User, new_status: str) -> None:
    """
    Guard for every move away from active, whether through update or archive: an admin never
    locks themselves out, and at least one active Admin always remains.
    """
    if new_status == UserStatus.ACTIVE.value:
        return
    archiving = new_status == UserStatus.ARCHIVED.value
    if user.id == actor.id:
        raise ForbiddenError(
            "You cannot archive your own account." if archiving else "You cannot change the status of your own account."
        )
    if user.role == UserRole.ADMIN.value and user.status == UserStatus.ACTIVE.value:
        if await count_active_admins(db) <= 1:
            raise ConflictError(
                "Cannot archive the last active admin account."
                if archiving
                else "Cannot deactivate the last active admin account."
            )


async def archive_user(db: AsyncSession, actor: CurrentUser, raw_id: str) -> Tuple[UserStatusResponse, str]:
    """
    Soft delete: status -> archived. Course references (teacher_id, enrollments) are kept so
    historical rosters still resolve; consumers treat archived users as inactive.
    """
    user = await _get_user_or_404(db, raw_id)
    await _ensure_status_change_allowed(db, actor, user, UserStatus.ARCHIVED.value)

    user.status = UserStatus.ARCHIVED.value
    await db.commit()
    logger.info("user.archived id={} username={} by={}", user.id, user.username, actor.id)
    return UserStatusResponse(id=user.id, status=user.status), f"User {user.username} archived successfully"


async def restore_user(db: AsyncSession, raw_id: str, payload: UserRestore) -> Tuple[UserResponse, str]:
    user = await _get_user_or_404(db, raw_id)
    if user.status != UserStatus.ARCHIVED.value:
        raise ConflictError(f"User is not archived. Current status: {user.status}")
    target = payload.status or UserStatus.PENDING
    if target == UserStatus.ARCHIVED:
        raise ValidationError("Cannot restore a user to archived status")

    user.status = target.value
    await db.commit()
    logger.info("user.restored id={} status={}", user.id, user.status)
    return (
        to_user_response(await load_user(db, user.id)),
        f"User {user.username} restored with status '{user.status}'.",
    )


async def purge_user(db: AsyncSession, actor: CurrentUser, raw_id: str) -> str:
    """
    Permanent delete of an archived user. Every reference goes in the same transaction:
    taught courses lose their teacher, enrollments and grades of the student are removed.
    """
    user = await _get_user_or_404(db, raw_id)
    if user.id == actor.id:
        raise ForbiddenError("You cannot delete your own account.")
    if user.status != UserStatus.ARCHIVED.value:
        raise ConflictError("Only archived users can be permanently deleted")

    uid = user.id
    username = user.username
    await db.execute(update(Course).where(Course.teacher_id == uid).values(teacher_id=None))
    await db.execute(delete(course_enrollments).where(course_enrollments.c.student_id == uid))
    await db.execute(delete(Grade).where(Grade.student_id == uid))
    await db.execute(update(Grade).where(Grade.graded_by == uid).values(graded_by=None))
    await db.execute(delete(RefreshToken).where(RefreshToken.user_id == uid))
    await db.execute(delete(User).where(User.id == uid))
    await db.commit()
    logger.info("user.purged id={} username={} by={}", uid, username, actor.id)
    return f"User {username} permanently deleted"
