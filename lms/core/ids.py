"""
Identifier helpers.

- Internal ids are UUIDs; they travel as strings and are parsed before any store access.
- user_id is the human-readable public id: <YEAR>-<6 digits>, e.g. 2026-048213.
"""

import secrets
import string
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.exceptions import MalformedIdError, ServiceError


def parse_id(value, label: str = "ID") -> UUID:
    """Convert a wire identifier to UUID or raise MalformedIdError (400)."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        raise MalformedIdError(f"Invalid {label} format: {value}")


def parse_optional_id(value, label: str = "ID") -> Optional[UUID]:
    if value is None:
        return None
    return parse_id(value, label)


def generate_public_user_id_candidate(year: Optional[int] = None) -> str:
    year = year or datetime.now().year
    digits = "".join(secrets.choice(string.digits) for _ in range(6))
    return f"{year:04d}-{digits}"


async def generate_public_user_id(db: AsyncSession, max_attempts: int = 20) -> str:
    """Generate a user_id not yet taken (retries with a new suffix on collision)."""
    from lms.auth.models import User

    for _ in range(max_attempts):
        candidate = generate_public_user_id_candidate()
        result = await db.execute(select(User.id).where(User.user_id == candidate))
        if result.scalar_one_or_none() is None:
            return candidate
    raise ServiceError("Could not generate a unique user ID")
