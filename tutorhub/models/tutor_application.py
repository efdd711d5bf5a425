"""Tutor application model definitions."""

from sqlalchemy import Column, DateTime, Integer, String, Text
from tutorhub.database import Base, utcnow

PENDING = "pending"
APPROVED = "approved"
CANCELLED = "cancelled"
REMOVED = "removed"

APPLICATION_STATUSES = (PENDING, APPROVED, CANCELLED, REMOVED)
OPEN_STATUSES = (PENDING, APPROVED)


class TutorApplication(Base):
    """A tutor application. Email is the de-facto key; the schema does not enforce it."""
    __tablename__ = "tutor_applications"

    id = Column(Integer, primary_key=True)
    email = Column(String, index=True, nullable=False)
    name = Column(String, nullable=False)
    photo_url = Column(String)
    qualification = Column(String)
    experience = Column(String)
    subjects = Column(String)
    status = Column(String, default=PENDING, nullable=False)
    feedback = Column(Text)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
