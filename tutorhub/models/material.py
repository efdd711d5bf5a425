"""Learning material model definitions."""

from sqlalchemy import Column, DateTime, Integer, String
from tutorhub.database import Base, utcnow


class Material(Base):
    """A resource a tutor attaches to one of their sessions."""
    __tablename__ = "materials"

    id = Column(Integer, primary_key=True)
    session_id = Column(Integer, index=True, nullable=False)
    tutor_email = Column(String, index=True, nullable=False)
    title = Column(String, nullable=False)
    image_url = Column(String)
    resource_link = Column(String)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
