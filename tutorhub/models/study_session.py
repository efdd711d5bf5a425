"""Study session model definitions."""

from sqlalchemy import Column, DateTime, Float, Integer, String, Text
from tutorhub.database import Base, utcnow

SESSION_STATUSES = ("pending", "approved", "cancelled")


class StudySession(Base):
    """A tutoring session offered by a tutor and reviewed by an admin."""
    __tablename__ = "study_sessions"

    id = Column(Integer, primary_key=True)
    tutor_email = Column(String, index=True, nullable=False)
    tutor_name = Column(String)
    title = Column(String, nullable=False)
    description = Column(Text)
    registration_start = Column(DateTime)
    registration_end = Column(DateTime)
    class_start = Column(DateTime)
    class_end = Column(DateTime)
    duration = Column(String)
    registration_fee = Column(Float, default=0)
    status = Column(String, default="pending", nullable=False)
    feedback = Column(Text)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
