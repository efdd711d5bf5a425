"""Personal note model definitions."""

from sqlalchemy import Column, DateTime, Integer, String, Text
from tutorhub.database import Base, utcnow


class Note(Base):
    """A private note owned by one student."""
    __tablename__ = "notes"

    id = Column(Integer, primary_key=True)
    email = Column(String, index=True, nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
