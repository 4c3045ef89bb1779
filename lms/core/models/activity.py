"""Course activities (assignments, quizzes, projects). Always scoped to one course."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from lms.db.session import Base


class Activity(Base):
    __tablename__ = "activities"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    course_id = Column(Uuid, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=True)
    max_points = Column(Integer, nullable=False, default=100)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    course = relationship("Course", back_populates="activities")
