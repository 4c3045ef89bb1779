from lms.core.models.course import Course, course_enrollments
from lms.core.models.activity import Activity
from lms.core.models.grade import Grade

__all__ = [
    "Activity",
    "Course",
    "Grade",
    "course_enrollments",
]
