from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from lms.core.schemas import CamelModel


class ActivityCreate(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    max_points: int = Field(100, gt=0)


class ActivityResponse(CamelModel):
    id: UUID
    course_id: UUID
    title: str
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    max_points: int
    created_at: datetime


class GradeRecord(CamelModel):
    """Create or overwrite the grade of one student on one activity."""

    activity_id: Optional[str] = None
    student_id: Optional[str] = None
    score: float
    comments: Optional[str] = None


class GradeResponse(CamelModel):
    id: UUID
    course_id: UUID
    activity_id: UUID
    student_id: UUID
    score: float
    comments: Optional[str] = None
    graded_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime
