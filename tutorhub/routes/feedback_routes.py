from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tutorhub.auth.dependencies import get_verified_identity
from tutorhub.auth.jwt_handler import VerifiedIdentity
from tutorhub.database import get_db
from tutorhub.models.feedback import Feedback
from tutorhub.models.study_session import StudySession
from tutorhub.routes.common import apply_partial_update, ensure_owner, get_or_404, internal_error

router = APIRouter(tags=['feedbacks'])

MAX_COMMENT_LENGTH = 1000


def _clean_comment(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    if not normalized:
        return None
    if len(normalized) > MAX_COMMENT_LENGTH:
        raise ValueError(f'Comment must be {MAX_COMMENT_LENGTH} characters or fewer.')
    return normalized


class CreateFeedbackRequest(BaseModel):
    session_id: int
    rating: int = Field(ge=1, le=5)
    comment: str | None = None
    student_name: str | None = None

    @field_validator('comment')
    @classmethod
    def validate_comment(cls, value: str | None) -> str | None:
        return _clean_comment(value)


class UpdateFeedbackRequest(BaseModel):
    rating: int = Field(default=None, ge=1, le=5)
    comment: str | None = None

    @field_validator('comment')
    @classmethod
    def validate_comment(cls, value: str | None) -> str | None:
        return _clean_comment(value)


class FeedbackResponse(BaseModel):
    id: int
    session_id: int
    student_email: str
    student_name: str | None = None
    rating: int
    comment: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


@router.post('/feedbacks', response_model=FeedbackResponse, status_code=status.HTTP_201_CREATED)
def submit_feedback(
    data: CreateFeedbackRequest,
    identity: VerifiedIdentity = Depends(get_verified_identity),
    db: Session = Depends(get_db),
):
    try:
        get_or_404(db, StudySession, data.session_id, 'Session not found.')
        feedback = Feedback(
            session_id=data.session_id,
            student_email=identity.email,
            student_name=data.student_name or identity.name,
            rating=data.rating,
            comment=data.comment,
        )
        db.add(feedback)
        db.commit()
        db.refresh(feedback)
    except SQLAlchemyError as exc:
        db.rollback()
        raise internal_error(exc, 'Submitting feedback failed') from exc

    return feedback


@router.get('/feedbacks', response_model=list[FeedbackResponse])
def list_feedbacks(
    session_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(Feedback)
        if session_id is not None:
            query = query.filter(Feedback.session_id == session_id)
        return query.order_by(Feedback.created_at.desc()).all()
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'Listing feedback failed') from exc


@router.get('/feedbacks/session/{session_id}', response_model=list[FeedbackResponse])
def list_session_feedbacks(session_id: int, db: Session = Depends(get_db)):
    return list_feedbacks(session_id=session_id, db=db)


@router.patch('/feedbacks/{feedback_id}', response_model=FeedbackResponse)
def update_feedback(
    feedback_id: int,
    data: UpdateFeedbackRequest,
    identity: VerifiedIdentity = Depends(get_verified_identity),
    db: Session = Depends(get_db),
):
    try:
        feedback = get_or_404(db, Feedback, feedback_id, 'Feedback not found.')
        ensure_owner(feedback.student_email, identity.email, 'You can only edit your own feedback.')
        apply_partial_update(feedback, data)
        db.commit()
        db.refresh(feedback)
    except SQLAlchemyError as exc:
        db.rollback()
        raise internal_error(exc, 'Updating feedback failed') from exc

    return feedback
