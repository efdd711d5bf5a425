import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tutorhub.auth.dependencies import get_optional_identity, get_verified_identity
from tutorhub.auth.guards import GuardContext, admin_only, any_of, authorize, require_admin, self_access
from tutorhub.auth.jwt_handler import VerifiedIdentity
from tutorhub.database import get_db, utcnow
from tutorhub.models.tutor_application import (
    APPLICATION_STATUSES,
    APPROVED,
    CANCELLED,
    OPEN_STATUSES,
    PENDING,
    TutorApplication,
)
from tutorhub.routes.common import get_or_404, internal_error, normalize_email

router = APIRouter(tags=['tutors'])
logger = logging.getLogger(__name__)


class TutorApplicationRequest(BaseModel):
    name: str
    photo_url: str | None = None
    qualification: str | None = None
    experience: str | None = None
    subjects: str | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        return value.strip()


class TutorStatusRequest(BaseModel):
    status: str
    feedback: str | None = None

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in APPLICATION_STATUSES:
            raise ValueError('Invalid application status.')
        return normalized


class TutorApplicationResponse(BaseModel):
    id: int
    email: str
    name: str
    photo_url: str | None = None
    qualification: str | None = None
    experience: str | None = None
    subjects: str | None = None
    status: str
    feedback: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


@router.post('/tutors', response_model=TutorApplicationResponse, status_code=status.HTTP_201_CREATED)
def apply_as_tutor(
    data: TutorApplicationRequest,
    identity: VerifiedIdentity = Depends(get_verified_identity),
    db: Session = Depends(get_db),
):
    if not data.name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Name and email are required.')

    try:
        applications = db.query(TutorApplication).filter(
            TutorApplication.email == identity.email,
        ).order_by(TutorApplication.id.desc()).all()

        if any(application.status in OPEN_STATUSES for application in applications):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='An application for this email is already pending or approved.',
            )

        if applications:
            # Re-open the latest closed application instead of adding a second record.
            application = applications[0]
            application.status = PENDING
            application.feedback = None
            application.updated_at = utcnow()
        else:
            application = TutorApplication(email=identity.email, status=PENDING)
            db.add(application)

        application.name = data.name
        application.photo_url = data.photo_url
        application.qualification = data.qualification
        application.experience = data.experience
        application.subjects = data.subjects

        db.commit()
        db.refresh(application)
    except SQLAlchemyError as exc:
        db.rollback()
        raise internal_error(exc, 'Tutor application failed') from exc

    logger.info('Tutor application %s submitted by %s', application.id, identity.email)
    return application


@router.get('/tutors/pending', response_model=list[TutorApplicationResponse], dependencies=[Depends(require_admin)])
def list_pending_tutors(db: Session = Depends(get_db)):
    try:
        return db.query(TutorApplication).filter(
            TutorApplication.status == PENDING,
        ).order_by(TutorApplication.created_at.asc()).all()
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'Fetching pending tutors failed') from exc


@router.get('/tutors', response_model=list[TutorApplicationResponse])
def list_tutors_by_status(
    status_filter: str | None = Query(default=None, alias='status'),
    identity: VerifiedIdentity | None = Depends(get_optional_identity),
    db: Session = Depends(get_db),
):
    normalized = (status_filter or '').strip().lower()
    if not normalized:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Status is required.')
    if normalized not in APPLICATION_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Invalid application status.')

    try:
        if normalized != APPROVED:
            # Only the approved tutor directory is public.
            if identity is None:
                raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Not authenticated')
            admin_only(GuardContext(identity=identity, db=db, path_params={}))

        return db.query(TutorApplication).filter(
            TutorApplication.status == normalized,
        ).order_by(TutorApplication.created_at.desc()).all()
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'Fetching tutors failed') from exc


@router.get(
    '/tutors/email/{email}',
    dependencies=[Depends(authorize(any_of(self_access('email'), admin_only)))],
)
def get_tutor_by_email(email: str, db: Session = Depends(get_db)):
    try:
        application = db.query(TutorApplication).filter(
            TutorApplication.email == normalize_email(email),
        ).order_by(TutorApplication.id.desc()).first()
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'Fetching tutor failed') from exc

    if application is None:
        return {}
    return TutorApplicationResponse.model_validate(application)


@router.patch('/tutors/{application_id}', response_model=TutorApplicationResponse, dependencies=[Depends(require_admin)])
def update_tutor_status(application_id: int, data: TutorStatusRequest, db: Session = Depends(get_db)):
    try:
        application = get_or_404(db, TutorApplication, application_id, 'Tutor application not found.')

        application.status = data.status
        feedback = (data.feedback or '').strip()
        application.feedback = (feedback or None) if data.status == CANCELLED else None
        application.updated_at = utcnow()

        db.commit()
        db.refresh(application)
    except SQLAlchemyError as exc:
        db.rollback()
        raise internal_error(exc, 'Updating tutor status failed') from exc

    logger.info('Tutor application %s set to %s', application_id, data.status)
    return application


@router.delete('/tutors/{application_id}', status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_admin)])
def delete_tutor_application(application_id: int, db: Session = Depends(get_db)):
    try:
        application = get_or_404(db, TutorApplication, application_id, 'Tutor application not found.')
        db.delete(application)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise internal_error(exc, 'Deleting tutor application failed') from exc
