import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, field_validator
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from tutorhub.auth import roles
from tutorhub.auth.guards import require_admin
from tutorhub.database import get_db
from tutorhub.models.user import User
from tutorhub.routes.common import clamp_page, get_or_404, internal_error, normalize_email, page_envelope

router = APIRouter(tags=['users'])
logger = logging.getLogger(__name__)


class SyncUserRequest(BaseModel):
    email: str
    uid: str | None = None
    name: str | None = None
    photo_url: str | None = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = normalize_email(value)
        if not normalized:
            raise ValueError('Email is required.')
        return normalized


class SyncUserResponse(BaseModel):
    success: bool
    message: str
    user_id: int


class UserResponse(BaseModel):
    id: int
    uid: str | None = None
    email: str
    name: str | None = None
    photo_url: str | None = None
    role: str
    created_at: datetime | None = None


class UserPageResponse(BaseModel):
    users: list[UserResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class RoleChangeRequest(BaseModel):
    role: roles.Role


def sync_user(db: Session, data: SyncUserRequest) -> tuple[User, bool]:
    """Insert the user unless the email already exists. Returns (user, created)."""
    existing = db.query(User).filter(User.email == data.email).first()
    if existing is not None:
        return existing, False

    user = User(
        uid=data.uid,
        email=data.email,
        name=data.name,
        photo_url=data.photo_url,
        role=roles.Role.STUDENT.value,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # A concurrent sync inserted the same email first.
        db.rollback()
        return db.query(User).filter(User.email == data.email).one(), False
    db.refresh(user)
    return user, True


@router.post('/users', response_model=SyncUserResponse)
def create_user(data: SyncUserRequest, db: Session = Depends(get_db)):
    try:
        user, created = sync_user(db, data)
    except SQLAlchemyError as exc:
        db.rollback()
        raise internal_error(exc, 'User sync failed') from exc

    logger.info('User sync for %s: %s', data.email, 'inserted' if created else 'already existed')
    return SyncUserResponse(
        success=created,
        message='New user inserted' if created else 'User already existed',
        user_id=user.id,
    )


@router.get('/users/role/{email}', dependencies=[Depends(require_admin)])
def get_user_role(email: str, db: Session = Depends(get_db)):
    try:
        role = roles.resolve_role(db, normalize_email(email))
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'Role lookup failed') from exc
    return {'role': role.value}


def list_users_with_roles(db: Session, search: str, page: int, limit: int) -> dict:
    query = db.query(User)
    term = search.strip()
    if term:
        pattern = f'%{term.lower()}%'
        query = query.filter(or_(
            func.lower(User.name).like(pattern),
            func.lower(User.email).like(pattern),
        ))

    total = query.count()
    users = query.order_by(User.created_at.desc(), User.id.desc()).offset((page - 1) * limit).limit(limit).all()
    admin_emails, approved_tutor_emails = roles.load_role_sets(db)

    items = [
        UserResponse(
            id=user.id,
            uid=user.uid,
            email=user.email,
            name=user.name,
            photo_url=user.photo_url,
            role=roles.derive_role(user.email, admin_emails, approved_tutor_emails).value,
            created_at=user.created_at,
        )
        for user in users
    ]
    return page_envelope(items, total, page, limit, key='users')


@router.get('/admin/users', response_model=UserPageResponse, dependencies=[Depends(require_admin)])
def list_users(
    search: str = Query(default=''),
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
):
    page, limit = clamp_page(page, limit)
    try:
        return list_users_with_roles(db, search, page, limit)
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'User listing failed') from exc


@router.patch('/admin/users/{user_id}/role', response_model=UserResponse, dependencies=[Depends(require_admin)])
def change_user_role(user_id: int, data: RoleChangeRequest, db: Session = Depends(get_db)):
    try:
        user = get_or_404(db, User, user_id, 'User not found.')
        roles.apply_role_change(db, user, data.role)
        db.commit()
        db.refresh(user)
        role = roles.resolve_role(db, user.email)
    except SQLAlchemyError as exc:
        db.rollback()
        raise internal_error(exc, 'Role change failed') from exc

    logger.info('User %s is now %s', user.email, role.value)
    return UserResponse(
        id=user.id,
        uid=user.uid,
        email=user.email,
        name=user.name,
        photo_url=user.photo_url,
        role=role.value,
        created_at=user.created_at,
    )
