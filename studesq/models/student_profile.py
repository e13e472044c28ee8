"""Student profile model definitions."""

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from studesq.database import Base
from studesq.models.user import generate_id, utcnow


class StudentProfile(Base):
    """Portfolio data owned by exactly one STUDENT user."""
    __tablename__ = "student_profiles"

    id = Column(String, primary_key=True, default=generate_id)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    display_name = Column(String, nullable=False)
    bio = Column(Text, nullable=True)
    school = Column(String, nullable=True)
    grade = Column(String, nullable=True)
    dob = Column(Date, nullable=True)
    early_founder = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    user = relationship("User", back_populates="student_profile")
    achievements = relationship("Achievement", back_populates="student", cascade="all, delete-orphan")
    parent_links = relationship("ParentLink", back_populates="student", cascade="all, delete-orphan")
