"""Parent link model definitions."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship

from studesq.database import Base
from studesq.models.user import generate_id, utcnow


class ParentLink(Base):
    """Grants a PARENT user read access to one student profile once verified."""
    __tablename__ = "parent_links"
    __table_args__ = (UniqueConstraint("parent_user_id", "student_id", name="uq_parent_links_parent_student"),)

    id = Column(String, primary_key=True, default=generate_id)
    parent_user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    student_id = Column(String, ForeignKey("student_profiles.id", ondelete="CASCADE"), index=True, nullable=False)
    verified = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    parent = relationship("User", back_populates="parent_links")
    student = relationship("StudentProfile", back_populates="parent_links")
