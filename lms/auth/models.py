import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import relationship

from lms.db.session import Base


class User(Base):
    """
    Admin, Teacher or Student account. One table tagged by `role`; the role-specific
    relations (assigned_courses for teachers, enrolled_courses for students) are views
    over the course tables and are only meaningful for the matching role.
    """

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    # Public identifier, e.g. 2026-048213; never used for joins
    user_id = Column(String(11), nullable=False, unique=True)
    username = Column(String(100), nullable=False, unique=True)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(Text, nullable=False)

    first_name = Column(String(100), nullable=False)
    middle_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=False)
    phone_number = Column(String(50), nullable=False)
    address = Column(Text, nullable=False)
    sex = Column(String(10), nullable=False)  # Male | Female | Other
    gender = Column(String(100), nullable=True)
    bio = Column(Text, nullable=True)
    profile_picture = Column(Text, nullable=True)

    # Admin | Teacher | Student; fixed at creation
    role = Column(String(20), nullable=False)
    # active | inactive | suspended | pending | archived
    status = Column(String(20), nullable=False, default="pending")
    last_login = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    assigned_courses = relationship(
        "Course", back_populates="teacher", foreign_keys="Course.teacher_id", order_by="Course.course_name"
    )
    enrolled_courses = relationship(
        "Course", secondary="course_enrollments", back_populates="students", order_by="Course.course_name"
    )
    refresh_tokens = relationship(
        "RefreshToken", back_populates="user", cascade="all, delete-orphan"
    )

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.middle_name, self.last_name]
        return " ".join(p for p in parts if p)


class RefreshToken(Base):
    """Stored refresh tokens for users."""

    __tablename__ = "refresh_tokens"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token = Column(String(512), nullable=False, unique=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    user = relationship("User", back_populates="refresh_tokens")
