import logging

from fastapi import APIRouter, Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tutorhub.auth import roles
from tutorhub.auth.dependencies import extract_credential, get_verified_identity, security, verify_credential
from tutorhub.auth.jwt_handler import VerifiedIdentity
from tutorhub.core import config
from tutorhub.database import get_db
from tutorhub.routes.common import internal_error

router = APIRouter(tags=['auth'])
logger = logging.getLogger(__name__)


class LoginRequest(BaseModel):
    token: str | None = None


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=config.SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=config.SESSION_COOKIE_SECURE,
        samesite='lax',
        max_age=config.SESSION_COOKIE_MAX_AGE_DAYS * 24 * 60 * 60,
        path='/',
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=config.SESSION_COOKIE_NAME,
        httponly=True,
        secure=config.SESSION_COOKIE_SECURE,
        samesite='lax',
        path='/',
    )


@router.post('/login')
def login(
    request: Request,
    response: Response,
    data: LoginRequest | None = None,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
):
    # An explicit token in the body is what the client just received from the provider.
    token = (data.token or '').strip() if data else ''
    if not token:
        token = extract_credential(request, credentials)
    identity = verify_credential(token)

    set_session_cookie(response, token)
    logger.info('Session established for %s', identity.email)
    return {'success': True, 'email': identity.email}


@router.post('/logout')
def logout(response: Response):
    clear_session_cookie(response)
    return {'success': True}


@router.get('/me')
def me(identity: VerifiedIdentity = Depends(get_verified_identity), db: Session = Depends(get_db)):
    try:
        role = roles.resolve_role(db, identity.email)
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'Role lookup failed') from exc
    return {'email': identity.email, 'name': identity.name, 'role': role.value}
