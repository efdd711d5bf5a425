"""Identity token verification.

Credentials are issued by a third-party identity provider. With
``IDENTITY_JWKS_URL`` configured, tokens are RS256-signed and verified against
the provider's published keys. Otherwise they are HS256 tokens signed with
``JWT_SECRET_KEY``, which ``create_identity_token`` can mint locally.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from functools import lru_cache

import jwt

from tutorhub.core import config


class IdentityVerificationError(Exception):
    """The credential is missing, malformed, expired, or carries no email."""


class IdentityProviderUnavailable(Exception):
    """The identity provider's signing keys could not be fetched."""


@dataclass(frozen=True)
class VerifiedIdentity:
    email: str
    uid: str | None = None
    name: str | None = None
    claims: dict = field(default_factory=dict, compare=False, repr=False)


def create_identity_token(
    email: str,
    uid: str | None = None,
    name: str | None = None,
    expires_minutes: int | None = None,
) -> str:
    expire_minutes = expires_minutes or config.JWT_EXPIRES_MINUTES
    now = datetime.now(timezone.utc)
    payload = {
        "sub": uid or email,
        "email": email,
        "exp": now + timedelta(minutes=expire_minutes),
        "iat": now,
    }
    if name:
        payload["name"] = name
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


@lru_cache(maxsize=1)
def _jwks_client(url: str) -> jwt.PyJWKClient:
    return jwt.PyJWKClient(url)


def _decode(token: str) -> dict:
    if config.IDENTITY_JWKS_URL:
        signing_key = _jwks_client(config.IDENTITY_JWKS_URL).get_signing_key_from_jwt(token)
        options = {"verify_aud": bool(config.IDENTITY_AUDIENCE)}
        return jwt.decode(
            token,
            signing_key.key,
            algorithms=["RS256"],
            audience=config.IDENTITY_AUDIENCE or None,
            issuer=config.IDENTITY_ISSUER or None,
            options=options,
        )
    return jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])


def verify_identity_token(token: str) -> VerifiedIdentity:
    if not token:
        raise IdentityVerificationError("Missing credential")
    try:
        payload = _decode(token)
    except jwt.PyJWKClientConnectionError as exc:
        raise IdentityProviderUnavailable("Identity provider keys unavailable") from exc
    except jwt.PyJWTError as exc:
        raise IdentityVerificationError("Invalid token") from exc

    email = (payload.get("email") or "").strip().lower()
    if not email:
        raise IdentityVerificationError("Token has no email claim")

    return VerifiedIdentity(
        email=email,
        uid=payload.get("user_id") or payload.get("sub"),
        name=payload.get("name"),
        claims=payload,
    )
