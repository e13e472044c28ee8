"""Opportunity model definitions."""

from sqlalchemy import Column, DateTime, String, Text

from studesq.database import Base
from studesq.models.user import generate_id, utcnow


class Opportunity(Base):
    """A curated scholarship, program or competition."""
    __tablename__ = "opportunities"

    id = Column(String, primary_key=True, default=generate_id)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    provider = Column(String, nullable=True)
    url = Column(String, nullable=True)
    date = Column(DateTime(timezone=True), index=True, nullable=True)
    tags = Column(String, nullable=True)  # comma separated
    created_at = Column(DateTime(timezone=True), default=utcnow)
