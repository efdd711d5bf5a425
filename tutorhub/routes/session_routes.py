import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tutorhub.auth import roles
from tutorhub.auth.guards import admin_only, any_of, authorize, require_admin, require_tutor_or_admin, self_access
from tutorhub.auth.jwt_handler import VerifiedIdentity
from tutorhub.database import get_db, utcnow
from tutorhub.models.study_session import SESSION_STATUSES, StudySession
from tutorhub.routes.common import (
    apply_partial_update,
    clamp_page,
    ensure_owner,
    get_or_404,
    internal_error,
    normalize_email,
    page_envelope,
)

router = APIRouter(tags=['sessions'])
logger = logging.getLogger(__name__)

WINDOW_FIELDS = ('registration_start', 'registration_end', 'class_start', 'class_end')


def check_windows(
    registration_start: datetime | None,
    registration_end: datetime | None,
    class_start: datetime | None,
    class_end: datetime | None,
) -> None:
    if registration_start and registration_end and registration_end < registration_start:
        raise ValueError('Registration must end after it starts.')
    if class_start and class_end and class_end < class_start:
        raise ValueError('Class must end after it starts.')


def normalize_title(value: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError('Title is required.')
    return normalized


class CreateSessionRequest(BaseModel):
    title: str
    tutor_name: str | None = None
    description: str | None = None
    registration_start: datetime | None = None
    registration_end: datetime | None = None
    class_start: datetime | None = None
    class_end: datetime | None = None
    duration: str | None = None

    @field_validator('title')
    @classmethod
    def validate_title(cls, value: str) -> str:
        return normalize_title(value)

    @model_validator(mode='after')
    def validate_windows(self):
        check_windows(self.registration_start, self.registration_end, self.class_start, self.class_end)
        return self


class UpdateSessionRequest(BaseModel):
    title: str = Field(default=None, min_length=1)
    tutor_name: str | None = None
    description: str | None = None
    registration_start: datetime | None = None
    registration_end: datetime | None = None
    class_start: datetime | None = None
    class_end: datetime | None = None
    duration: str | None = None

    @field_validator('title')
    @classmethod
    def validate_title(cls, value: str) -> str:
        return normalize_title(value)

    @model_validator(mode='after')
    def validate_windows(self):
        # Only checks windows fully contained in the patch; the merged record is checked in the route.
        check_windows(self.registration_start, self.registration_end, self.class_start, self.class_end)
        return self


class SessionStatusRequest(BaseModel):
    status: str
    registration_fee: float | None = None
    feedback: str | None = None

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in SESSION_STATUSES:
            raise ValueError('Invalid session status.')
        return normalized

    @field_validator('registration_fee')
    @classmethod
    def validate_fee(cls, value: float | None) -> float | None:
        if value is not None and value < 0:
            raise ValueError('Registration fee cannot be negative.')
        return value


class SessionResponse(BaseModel):
    id: int
    tutor_email: str
    tutor_name: str | None = None
    title: str
    description: str | None = None
    registration_start: datetime | None = None
    registration_end: datetime | None = None
    class_start: datetime | None = None
    class_end: datetime | None = None
    duration: str | None = None
    registration_fee: float | None = None
    status: str
    feedback: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class SessionPageResponse(BaseModel):
    sessions: list[SessionResponse]
    total: int
    page: int
    limit: int
    total_pages: int


def paginate_sessions(query, page: int, limit: int) -> dict:
    total = query.count()
    sessions = query.order_by(StudySession.created_at.desc(), StudySession.id.desc()).offset(
        (page - 1) * limit
    ).limit(limit).all()
    return page_envelope(
        [SessionResponse.model_validate(session) for session in sessions],
        total,
        page,
        limit,
        key='sessions',
    )


@router.post('/sessions', response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
def create_session(
    data: CreateSessionRequest,
    identity: VerifiedIdentity = Depends(require_tutor_or_admin),
    db: Session = Depends(get_db),
):
    try:
        session = StudySession(
            tutor_email=identity.email,
            tutor_name=data.tutor_name or identity.name,
            title=data.title,
            description=data.description,
            registration_start=data.registration_start,
            registration_end=data.registration_end,
            class_start=data.class_start,
            class_end=data.class_end,
            duration=data.duration,
            registration_fee=0,
            status='pending',
        )
        db.add(session)
        db.commit()
        db.refresh(session)
    except SQLAlchemyError as exc:
        db.rollback()
        raise internal_error(exc, 'Creating session failed') from exc

    logger.info('Session %s created by %s', session.id, identity.email)
    return session


@router.get('/sessions', response_model=SessionPageResponse)
def list_approved_sessions(
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
):
    page, limit = clamp_page(page, limit)
    try:
        query = db.query(StudySession).filter(StudySession.status == 'approved')
        return paginate_sessions(query, page, limit)
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'Listing sessions failed') from exc


@router.get('/sessions/all', response_model=SessionPageResponse, dependencies=[Depends(require_admin)])
def list_all_sessions(
    status_filter: str | None = Query(default=None, alias='status'),
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
):
    page, limit = clamp_page(page, limit)
    normalized = (status_filter or '').strip().lower()
    if normalized and normalized not in SESSION_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Invalid session status.')

    try:
        query = db.query(StudySession)
        if normalized:
            query = query.filter(StudySession.status == normalized)
        return paginate_sessions(query, page, limit)
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'Listing sessions failed') from exc


@router.get(
    '/sessions/tutor/{email}',
    response_model=list[SessionResponse],
    dependencies=[Depends(authorize(any_of(self_access('email'), admin_only)))],
)
def list_tutor_sessions(email: str, db: Session = Depends(get_db)):
    try:
        return db.query(StudySession).filter(
            StudySession.tutor_email == normalize_email(email),
        ).order_by(StudySession.created_at.desc()).all()
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'Listing tutor sessions failed') from exc


@router.get('/sessions/{session_id}', response_model=SessionResponse)
def get_session(session_id: int, db: Session = Depends(get_db)):
    try:
        return get_or_404(db, StudySession, session_id, 'Session not found.')
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'Fetching session failed') from exc


@router.patch('/sessions/{session_id}', response_model=SessionResponse)
def update_session(
    session_id: int,
    data: UpdateSessionRequest,
    identity: VerifiedIdentity = Depends(require_tutor_or_admin),
    db: Session = Depends(get_db),
):
    try:
        session = get_or_404(db, StudySession, session_id, 'Session not found.')
        ensure_owner(
            session.tutor_email,
            identity.email,
            'Only the tutor who created this session can edit it.',
            allow=roles.is_admin(db, identity.email),
        )
        changes = data.model_dump(include=set(WINDOW_FIELDS), exclude_unset=True)
        try:
            check_windows(*(changes.get(field, getattr(session, field)) for field in WINDOW_FIELDS))
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
        apply_partial_update(session, data)
        db.commit()
        db.refresh(session)
    except SQLAlchemyError as exc:
        db.rollback()
        raise internal_error(exc, 'Updating session failed') from exc

    return session


@router.patch('/sessions/{session_id}/status', response_model=SessionResponse, dependencies=[Depends(require_admin)])
def update_session_status(session_id: int, data: SessionStatusRequest, db: Session = Depends(get_db)):
    try:
        session = get_or_404(db, StudySession, session_id, 'Session not found.')

        session.status = data.status
        if data.status == 'approved':
            session.registration_fee = data.registration_fee or 0
            session.feedback = None
        elif data.status == 'cancelled':
            session.feedback = (data.feedback or '').strip() or None
        session.updated_at = utcnow()

        db.commit()
        db.refresh(session)
    except SQLAlchemyError as exc:
        db.rollback()
        raise internal_error(exc, 'Updating session status failed') from exc

    logger.info('Session %s set to %s', session_id, data.status)
    return session


@router.post('/sessions/{session_id}/resubmit', response_model=SessionResponse)
def resubmit_session(
    session_id: int,
    identity: VerifiedIdentity = Depends(require_tutor_or_admin),
    db: Session = Depends(get_db),
):
    try:
        session = get_or_404(db, StudySession, session_id, 'Session not found.')
        ensure_owner(session.tutor_email, identity.email, 'Only the tutor who created this session can resubmit it.')
        if session.status != 'cancelled':
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='Only cancelled sessions can be resubmitted.',
            )

        session.status = 'pending'
        session.updated_at = utcnow()
        db.commit()
        db.refresh(session)
    except SQLAlchemyError as exc:
        db.rollback()
        raise internal_error(exc, 'Resubmitting session failed') from exc

    return session


@router.delete('/sessions/{session_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_session(
    session_id: int,
    identity: VerifiedIdentity = Depends(require_tutor_or_admin),
    db: Session = Depends(get_db),
):
    try:
        session = get_or_404(db, StudySession, session_id, 'Session not found.')
        ensure_owner(
            session.tutor_email,
            identity.email,
            'Only the tutor who created this session can delete it.',
            allow=roles.is_admin(db, identity.email),
        )
        db.delete(session)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise internal_error(exc, 'Deleting session failed') from exc
