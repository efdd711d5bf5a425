"""User model definitions."""

from sqlalchemy import Column, DateTime, Integer, String
from tutorhub.database import Base, utcnow


class User(Base):
    """Represents a synced identity-provider account."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    uid = Column(String)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String)
    photo_url = Column(String)
    role = Column(String, default="student")  # display fallback only
    created_at = Column(DateTime, default=utcnow)
