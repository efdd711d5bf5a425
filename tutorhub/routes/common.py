"""Helpers shared by the resource routers."""
import logging
import math

from fastapi import HTTPException, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from tutorhub.core import config
from tutorhub.database import utcnow

logger = logging.getLogger(__name__)


def normalize_email(value: str) -> str:
    return value.strip().lower()


def internal_error(exc: Exception, message: str) -> HTTPException:
    """Log ``exc`` with ``message`` and return a generic 500 for the client."""
    logger.error('%s: %s', message, exc, exc_info=exc)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail='Internal server error',
    )


def get_or_404(db: Session, model, record_id: int, detail: str):
    record = db.query(model).filter(model.id == record_id).first()
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
    return record


def ensure_owner(owner_email: str | None, caller_email: str, detail: str, allow: bool = False) -> None:
    if allow:
        return
    if (owner_email or '').lower() != caller_email:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def apply_partial_update(record, changes: BaseModel) -> dict:
    """Copy only the fields the client supplied onto ``record`` and stamp ``updated_at``."""
    updates = changes.model_dump(exclude_unset=True)
    for field_name, value in updates.items():
        setattr(record, field_name, value)
    if hasattr(record, 'updated_at'):
        record.updated_at = utcnow()
    return updates


def clamp_page(page: int, limit: int | None) -> tuple[int, int]:
    page = max(page, 1)
    limit = limit or config.DEFAULT_PAGE_SIZE
    return page, max(1, min(limit, config.MAX_PAGE_SIZE))


def page_envelope(items: list, total: int, page: int, limit: int, key: str) -> dict:
    return {
        key: items,
        'total': total,
        'page': page,
        'limit': limit,
        'total_pages': math.ceil(total / limit) if total else 0,
    }
