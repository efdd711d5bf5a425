"""Effective role derivation and admin role changes.

No collection stores a canonical role. An email is an admin when it has an
Admin record, a tutor when it has an approved tutor application, and a student
otherwise. ``User.role`` mirrors the last admin decision for display only and
is never consulted here.
"""
import logging
from collections.abc import Collection
from enum import Enum

from sqlalchemy.orm import Session

from tutorhub.models.admin import Admin
from tutorhub.models.tutor_application import APPROVED, REMOVED, TutorApplication
from tutorhub.models.user import User

logger = logging.getLogger(__name__)


class Role(str, Enum):
    ADMIN = "admin"
    TUTOR = "tutor"
    STUDENT = "student"


def derive_role(email: str, admin_emails: Collection[str], approved_tutor_emails: Collection[str]) -> Role:
    if email in admin_emails:
        return Role.ADMIN
    if email in approved_tutor_emails:
        return Role.TUTOR
    return Role.STUDENT


def is_admin(db: Session, email: str) -> bool:
    return db.query(Admin.id).filter(Admin.email == email).first() is not None


def is_approved_tutor(db: Session, email: str) -> bool:
    approved = db.query(TutorApplication.id).filter(
        TutorApplication.email == email,
        TutorApplication.status == APPROVED,
    ).first()
    return approved is not None


def resolve_role(db: Session, email: str) -> Role:
    if is_admin(db, email):
        return Role.ADMIN
    if is_approved_tutor(db, email):
        return Role.TUTOR
    return Role.STUDENT


def load_role_sets(db: Session) -> tuple[set[str], set[str]]:
    admin_emails = {email for (email,) in db.query(Admin.email).all()}
    approved_tutor_emails = {
        email
        for (email,) in db.query(TutorApplication.email).filter(TutorApplication.status == APPROVED).all()
    }
    return admin_emails, approved_tutor_emails


def apply_role_change(db: Session, user: User, role: Role) -> None:
    """Move ``user`` to ``role`` across the admin, tutor and user tables.

    Every step converges on the target state, so re-running the change after a
    failure is safe. The caller owns the transaction and commits once.
    """
    admin_record = db.query(Admin).filter(Admin.email == user.email).first()
    if role is Role.ADMIN:
        if admin_record is None:
            db.add(Admin(email=user.email))
    elif admin_record is not None:
        db.delete(admin_record)

    applications = db.query(TutorApplication).filter(
        TutorApplication.email == user.email,
    ).order_by(TutorApplication.id.asc()).all()
    if role is Role.TUTOR:
        if applications:
            for application in applications:
                application.status = APPROVED
                application.feedback = None
        else:
            db.add(TutorApplication(
                email=user.email,
                name=user.name or user.email,
                photo_url=user.photo_url,
                status=APPROVED,
            ))
    else:
        for application in applications:
            application.status = REMOVED

    user.role = role.value
    logger.info('Role change staged for user %s -> %s', user.id, role.value)
