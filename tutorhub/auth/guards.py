"""Composable access-control guards.

A guard is a callable taking a :class:`GuardContext` and raising
``HTTPException(403)`` to reject. Routes declare an explicit, ordered guard list
with :func:`authorize`; the list is evaluated left to right and stops at the
first rejection. There is no implicit allow: an empty list is rejected when the
route is declared.
"""
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tutorhub.auth import roles
from tutorhub.auth.dependencies import get_verified_identity
from tutorhub.auth.jwt_handler import VerifiedIdentity
from tutorhub.database import get_db
from tutorhub.models.user import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GuardContext:
    identity: VerifiedIdentity
    db: Session
    path_params: Mapping[str, str]


Guard = Callable[[GuardContext], None]


def _forbidden(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def admin_only(context: GuardContext) -> None:
    if roles.resolve_role(context.db, context.identity.email) is not roles.Role.ADMIN:
        raise _forbidden('Admin access required.')


def approved_tutor_only(context: GuardContext) -> None:
    if not roles.is_approved_tutor(context.db, context.identity.email):
        raise _forbidden('Approved tutor access required.')


def student_only(context: GuardContext) -> None:
    # Students have no override collection, so the stored fallback role is the signal here.
    user = context.db.query(User).filter(User.email == context.identity.email).first()
    if user is None or user.role != roles.Role.STUDENT.value:
        raise _forbidden('Student access required.')


def self_access(param: str = 'email') -> Guard:
    def guard(context: GuardContext) -> None:
        requested = (context.path_params.get(param) or '').strip().lower()
        if not requested or requested != context.identity.email:
            raise _forbidden('You can only access your own resources.')

    guard.__name__ = f'self_access_{param}'
    return guard


def any_of(*guards: Guard) -> Guard:
    if not guards:
        raise ValueError('any_of() requires at least one guard.')

    def guard(context: GuardContext) -> None:
        rejection: HTTPException | None = None
        for candidate in guards:
            try:
                candidate(context)
                return
            except HTTPException as exc:
                if exc.status_code != status.HTTP_403_FORBIDDEN:
                    raise
                rejection = exc
        raise rejection

    guard.__name__ = 'any_of_' + '_'.join(getattr(g, '__name__', 'guard') for g in guards)
    return guard


def run_guards(guards: tuple[Guard, ...], context: GuardContext) -> None:
    for guard in guards:
        guard(context)


def authorize(*guards: Guard):
    """Build a dependency that verifies identity, then applies ``guards`` in order."""
    if not guards:
        raise ValueError('authorize() requires at least one guard; use get_verified_identity for authenticated-only routes.')

    def dependency(
        request: Request,
        identity: VerifiedIdentity = Depends(get_verified_identity),
        db: Session = Depends(get_db),
    ) -> VerifiedIdentity:
        context = GuardContext(identity=identity, db=db, path_params=request.path_params)
        try:
            run_guards(guards, context)
        except SQLAlchemyError as exc:
            logger.exception('Role lookup failed while authorizing %s', request.url.path)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail='Internal server error',
            ) from exc
        return identity

    return dependency


require_admin = authorize(admin_only)
require_tutor_or_admin = authorize(any_of(approved_tutor_only, admin_only))
