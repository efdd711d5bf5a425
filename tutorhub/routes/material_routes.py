import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tutorhub.auth import roles
from tutorhub.auth.dependencies import get_verified_identity
from tutorhub.auth.guards import (
    admin_only,
    any_of,
    authorize,
    require_admin,
    require_tutor_or_admin,
    self_access,
    student_only,
)
from tutorhub.auth.jwt_handler import VerifiedIdentity
from tutorhub.database import get_db
from tutorhub.models.material import Material
from tutorhub.models.payment import Payment
from tutorhub.models.study_session import StudySession
from tutorhub.routes.common import apply_partial_update, ensure_owner, get_or_404, internal_error, normalize_email

router = APIRouter(tags=['materials'])
logger = logging.getLogger(__name__)


class CreateMaterialRequest(BaseModel):
    session_id: int
    title: str
    image_url: str | None = None
    resource_link: str | None = None

    @field_validator('title')
    @classmethod
    def validate_title(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Title is required.')
        return normalized


class UpdateMaterialRequest(BaseModel):
    title: str = Field(default=None, min_length=1)
    image_url: str | None = None
    resource_link: str | None = None


class MaterialResponse(BaseModel):
    id: int
    session_id: int
    tutor_email: str
    title: str
    image_url: str | None = None
    resource_link: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


def has_paid_for_session(db: Session, email: str, session_id: int) -> bool:
    payment = db.query(Payment.id).filter(
        Payment.email == email,
        Payment.session_id == session_id,
    ).first()
    return payment is not None


def can_read_session_materials(db: Session, email: str, session: StudySession) -> bool:
    if roles.is_admin(db, email):
        return True
    if session.tutor_email == email:
        return True
    return has_paid_for_session(db, email, session.id)


@router.post('/materials', response_model=MaterialResponse, status_code=status.HTTP_201_CREATED)
def create_material(
    data: CreateMaterialRequest,
    identity: VerifiedIdentity = Depends(require_tutor_or_admin),
    db: Session = Depends(get_db),
):
    try:
        session = get_or_404(db, StudySession, data.session_id, 'Session not found.')
        ensure_owner(
            session.tutor_email,
            identity.email,
            'Materials can only be added to your own sessions.',
            allow=roles.is_admin(db, identity.email),
        )

        material = Material(
            session_id=session.id,
            tutor_email=identity.email,
            title=data.title,
            image_url=data.image_url,
            resource_link=data.resource_link,
        )
        db.add(material)
        db.commit()
        db.refresh(material)
    except SQLAlchemyError as exc:
        db.rollback()
        raise internal_error(exc, 'Creating material failed') from exc

    return material


@router.get('/materials', response_model=list[MaterialResponse], dependencies=[Depends(require_admin)])
def list_materials(db: Session = Depends(get_db)):
    try:
        return db.query(Material).order_by(Material.created_at.desc()).all()
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'Listing materials failed') from exc


@router.get(
    '/materials/tutor/{email}',
    response_model=list[MaterialResponse],
    dependencies=[Depends(authorize(any_of(self_access('email'), admin_only)))],
)
def list_tutor_materials(email: str, db: Session = Depends(get_db)):
    try:
        return db.query(Material).filter(
            Material.tutor_email == normalize_email(email),
        ).order_by(Material.created_at.desc()).all()
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'Listing tutor materials failed') from exc


@router.get('/materials/session/{session_id}', response_model=list[MaterialResponse])
def list_session_materials(
    session_id: int,
    identity: VerifiedIdentity = Depends(get_verified_identity),
    db: Session = Depends(get_db),
):
    try:
        session = get_or_404(db, StudySession, session_id, 'Session not found.')
        if not can_read_session_materials(db, identity.email, session):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Purchase this session to access its materials.',
            )

        return db.query(Material).filter(
            Material.session_id == session_id,
        ).order_by(Material.created_at.asc()).all()
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'Listing session materials failed') from exc


@router.get(
    '/materials/student/{email}',
    response_model=list[MaterialResponse],
    dependencies=[Depends(authorize(student_only, self_access('email')))],
)
def list_student_materials(email: str, db: Session = Depends(get_db)):
    try:
        paid_session_ids = select(Payment.session_id).where(
            Payment.email == normalize_email(email),
            Payment.session_id.is_not(None),
        )
        return db.query(Material).filter(
            Material.session_id.in_(paid_session_ids),
        ).order_by(Material.session_id.asc(), Material.created_at.asc()).all()
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'Listing student materials failed') from exc


@router.patch('/materials/{material_id}', response_model=MaterialResponse)
def update_material(
    material_id: int,
    data: UpdateMaterialRequest,
    identity: VerifiedIdentity = Depends(require_tutor_or_admin),
    db: Session = Depends(get_db),
):
    try:
        material = get_or_404(db, Material, material_id, 'Material not found.')
        ensure_owner(
            material.tutor_email,
            identity.email,
            'Only the tutor who uploaded this material can edit it.',
            allow=roles.is_admin(db, identity.email),
        )
        apply_partial_update(material, data)
        db.commit()
        db.refresh(material)
    except SQLAlchemyError as exc:
        db.rollback()
        raise internal_error(exc, 'Updating material failed') from exc

    return material


@router.delete('/materials/{material_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_material(
    material_id: int,
    identity: VerifiedIdentity = Depends(require_tutor_or_admin),
    db: Session = Depends(get_db),
):
    try:
        material = get_or_404(db, Material, material_id, 'Material not found.')
        ensure_owner(
            material.tutor_email,
            identity.email,
            'Only the tutor who uploaded this material can delete it.',
            allow=roles.is_admin(db, identity.email),
        )
        db.delete(material)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise internal_error(exc, 'Deleting material failed') from exc
