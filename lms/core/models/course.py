"""Courses and the course–student enrollment relation."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String, Table, Text, Uuid
from sqlalchemy.orm import relationship

from lms.db.session import Base


# Single source of truth for Course.students and User.enrolled_courses
course_enrollments = Table(
    "course_enrollments",
    Base.metadata,
    Column("course_id", Uuid, ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True),
    Column("student_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("enrolled_at", DateTime(timezone=True), default=datetime.utcnow, nullable=False),
)


class Course(Base):
    __tablename__ = "courses"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    course_code = Column(String(50), nullable=False, unique=True)
    course_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    # Single source of truth for the teacher side (User.assigned_courses is its inverse)
    teacher_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    teacher = relationship("User", back_populates="assigned_courses", foreign_keys=[teacher_id])
    students = relationship(
        "User", secondary=course_enrollments, back_populates="enrolled_courses", order_by="User.last_name"
    )
    activities = relationship(
        "Activity", back_populates="course", passive_deletes=True, order_by="Activity.due_date"
    )
