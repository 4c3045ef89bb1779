from datetime import datetime
from typing import List, Optional
from uuid import UUID

from lms.core.schemas import CamelModel
from lms.api.v1.users.schemas import UserSummary


class CourseCreate(CamelModel):
    """courseCode and courseName are required (checked in service); teacherId must be an active Teacher."""

    course_code: Optional[str] = None
    course_name: Optional[str] = None
    description: Optional[str] = None
    teacher_id: Optional[str] = None


class CourseUpdate(CamelModel):
    """Partial update. teacherId absent keeps the teacher, null unassigns, an id reassigns."""

    course_code: Optional[str] = None
    course_name: Optional[str] = None
    description: Optional[str] = None
    teacher_id: Optional[str] = None


class AssignTeacherRequest(CamelModel):
    teacher_id: Optional[str] = None


class EnrollStudentRequest(CamelModel):
    student_id: Optional[str] = None


class ActivitySummary(CamelModel):
    id: UUID
    title: str
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    max_points: int


class CourseResponse(CamelModel):
    id: UUID
    course_code: str
    course_name: str
    description: Optional[str] = None
    teacher: Optional[UserSummary] = None
    students: List[UserSummary] = []
    activities: List[ActivitySummary] = []
    created_at: datetime
    updated_at: datetime
