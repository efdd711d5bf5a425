from datetime import datetime, timedelta, timezone

import jwt
import pytest

from tutorhub.auth import jwt_handler
from tutorhub.core import config


def test_verify_identity_token_returns_normalized_email() -> None:
    token = jwt_handler.create_identity_token('Alice@X.com', uid='uid-1', name='Alice')

    identity = jwt_handler.verify_identity_token(token)

    assert identity.email == 'alice@x.com'
    assert identity.uid == 'uid-1'
    assert identity.name == 'Alice'


def test_verify_identity_token_rejects_missing_email() -> None:
    token = jwt.encode({'sub': 'uid-1'}, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)

    with pytest.raises(jwt_handler.IdentityVerificationError):
        jwt_handler.verify_identity_token(token)


def test_verify_identity_token_rejects_expired_token() -> None:
    payload = {
        'email': 'alice@x.com',
        'exp': datetime.now(timezone.utc) - timedelta(minutes=1),
    }
    token = jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)

    with pytest.raises(jwt_handler.IdentityVerificationError):
        jwt_handler.verify_identity_token(token)


def test_verify_identity_token_rejects_foreign_signature() -> None:
    token = jwt.encode({'email': 'alice@x.com'}, 'someone-else', algorithm='HS256')

    with pytest.raises(jwt_handler.IdentityVerificationError):
        jwt_handler.verify_identity_token(token)


def test_verify_identity_token_rejects_empty_credential() -> None:
    with pytest.raises(jwt_handler.IdentityVerificationError):
        jwt_handler.verify_identity_token('')


def test_unreachable_key_server_is_reported_as_provider_failure(monkeypatch) -> None:
    class UnreachableJwksClient:
        def get_signing_key_from_jwt(self, _token):
            raise jwt.PyJWKClientConnectionError('connection refused')

    monkeypatch.setattr(config, 'IDENTITY_JWKS_URL', 'https://idp.example.com/jwks')
    monkeypatch.setattr(jwt_handler, '_jwks_client', lambda _url: UnreachableJwksClient())

    with pytest.raises(jwt_handler.IdentityProviderUnavailable):
        jwt_handler.verify_identity_token('header.payload.signature')
