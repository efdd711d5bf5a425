"""Session feedback model definitions."""

from sqlalchemy import Column, DateTime, Integer, String, Text
from tutorhub.database import Base, utcnow


class Feedback(Base):
    __tablename__ = "feedbacks"

    id = Column(Integer, primary_key=True)
    session_id = Column(Integer, index=True, nullable=False)
    student_email = Column(String, index=True, nullable=False)
    student_name = Column(String)
    rating = Column(Integer, nullable=False)
    comment = Column(Text)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
