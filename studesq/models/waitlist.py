"""Waitlist model definitions."""

from sqlalchemy import Column, DateTime, String

from studesq.database import Base
from studesq.models.user import generate_id, utcnow


class WaitlistSignup(Base):
    __tablename__ = "waitlist_signups"

    id = Column(String, primary_key=True, default=generate_id)
    email = Column(String, unique=True, index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
