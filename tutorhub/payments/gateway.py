"""Thin adapter over the payment processor's payment-intent endpoint.

The processor is called with a form-encoded POST authenticated by the secret
key. Only the client secret and intent id are returned to the caller; card
details never pass through this service.
"""
import logging

import requests

from tutorhub.core import config

logger = logging.getLogger(__name__)


class PaymentGatewayError(Exception):
    """The processor could not be reached or refused to create the intent."""


def to_minor_units(amount: float) -> int:
    return int(round(amount * 100))


def create_payment_intent(amount: float, currency: str | None = None) -> dict[str, str]:
    if not config.PAYMENT_SECRET_KEY:
        raise PaymentGatewayError('payment_key_missing')

    data = {
        'amount': to_minor_units(amount),
        'currency': currency or config.PAYMENT_CURRENCY,
        'payment_method_types[]': 'card',
    }
    try:
        r = requests.post(
            config.PAYMENT_API_URL,
            data=data,
            auth=(config.PAYMENT_SECRET_KEY, ''),
            timeout=config.PAYMENT_TIMEOUT_SECONDS,
        )
    except requests.RequestException as exc:
        raise PaymentGatewayError('payment_processor_unreachable') from exc

    if r.status_code != 200:
        logger.warning('Payment processor returned %s', r.status_code)
        raise PaymentGatewayError('payment_intent_failed')

    try:
        body = r.json()
    except ValueError as exc:
        raise PaymentGatewayError('invalid_response') from exc
    if not isinstance(body, dict) or 'client_secret' not in body:
        raise PaymentGatewayError('client_secret_missing')
    return {'client_secret': body['client_secret'], 'payment_intent_id': body.get('id', '')}
