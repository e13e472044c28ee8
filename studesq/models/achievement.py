"""Achievement model definitions."""

import enum

from sqlalchemy import Column, DateTime, Enum, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from studesq.database import Base
from studesq.models.user import generate_id, utcnow


class AchievementType(str, enum.Enum):
    ACADEMIC = "ACADEMIC"
    EXTRACURRICULAR = "EXTRACURRICULAR"
    CERTIFICATION = "CERTIFICATION"
    COMPETITION = "COMPETITION"
    PROJECT = "PROJECT"
    OTHER = "OTHER"


class Achievement(Base):
    """Represents an achievement recorded on a student profile."""
    __tablename__ = "achievements"

    id = Column(String, primary_key=True, default=generate_id)
    student_id = Column(String, ForeignKey("student_profiles.id", ondelete="CASCADE"), index=True, nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    type = Column(Enum(AchievementType, name="achievement_type"), nullable=False)
    date = Column(DateTime(timezone=True), nullable=False)
    certificate_path = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    student = relationship("StudentProfile", back_populates="achievements")
