import logging

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from tutorhub.auth import jwt_handler
from tutorhub.auth.jwt_handler import VerifiedIdentity
from tutorhub.core import config

security = HTTPBearer(auto_error=False)
logger = logging.getLogger(__name__)


def extract_credential(request: Request, credentials: HTTPAuthorizationCredentials | None) -> str | None:
    """Return the raw credential, preferring the session cookie over the bearer header."""
    cookie_token = (request.cookies.get(config.SESSION_COOKIE_NAME) or '').strip()
    if cookie_token:
        return cookie_token
    if credentials and (credentials.credentials or '').strip():
        return credentials.credentials.strip()
    return None


def verify_credential(token: str | None) -> VerifiedIdentity:
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail='Not authenticated',
            headers={'WWW-Authenticate': 'Bearer'},
        )
    try:
        return jwt_handler.verify_identity_token(token)
    except jwt_handler.IdentityProviderUnavailable as exc:
        logger.exception('Identity provider unavailable during token verification')
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='Internal server error',
        ) from exc
    except jwt_handler.IdentityVerificationError as exc:
        logger.debug('Auth failed: %s', exc)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail='Invalid token',
            headers={'WWW-Authenticate': 'Bearer'},
        ) from exc


def get_verified_identity(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> VerifiedIdentity:
    identity = verify_credential(extract_credential(request, credentials))
    request.state.identity = identity
    return identity


def get_optional_identity(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> VerifiedIdentity | None:
    """Like ``get_verified_identity`` but a missing or stale credential yields ``None``."""
    token = extract_credential(request, credentials)
    if token is None:
        return None
    try:
        return get_verified_identity(request, credentials)
    except HTTPException as exc:
        if exc.status_code != status.HTTP_401_UNAUTHORIZED:
            raise
        return None
