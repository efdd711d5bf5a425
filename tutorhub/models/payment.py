"""Payment model definitions."""

from sqlalchemy import Column, DateTime, Float, Integer, String
from tutorhub.database import Base, utcnow


class Payment(Base):
    """A completed payment. Grants its payer access to the linked session's materials."""
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True)
    email = Column(String, index=True, nullable=False)
    amount = Column(Float, nullable=False)
    transaction_id = Column(String, unique=True, nullable=False)
    session_id = Column(Integer, index=True)
    created_at = Column(DateTime, default=utcnow)
