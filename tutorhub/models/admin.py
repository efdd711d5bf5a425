"""Admin membership model."""

from sqlalchemy import Column, Integer, String
from tutorhub.database import Base


class Admin(Base):
    """Presence of an email here makes that account an admin."""
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True)
    email = Column(String, unique=True, index=True, nullable=False)
