import pytest

from tutorhub.models.payment import Payment
from tutorhub.payments import gateway


def test_self_access_guard_blocks_other_users_payments(client, auth, seed) -> None:
    seed(Payment(email='alice@x.com', amount=10, transaction_id='pi_a'))

    response = client.get('/payments/user/alice@x.com', headers=auth('bob@x.com'))
    with_payload = client.request(
        'GET',
        '/payments/user/alice@x.com',
        headers=auth('bob@x.com'),
        json={'email': 'alice@x.com'},
    )

    assert response.status_code == 403
    assert with_payload.status_code == 403


def test_user_can_list_own_payments(client, auth, seed) -> None:
    seed(Payment(email='alice@x.com', amount=10, transaction_id='pi_a'))
    seed(Payment(email='bob@x.com', amount=12, transaction_id='pi_b'))

    response = client.get('/payments/user/alice@x.com', headers=auth('alice@x.com'))

    assert [item['transaction_id'] for item in response.json()] == ['pi_a']


def test_store_payment_records_verified_payer(client, auth, make_session) -> None:
    session = make_session('tina@x.com', fee=15)

    response = client.post(
        '/payments/store-payment',
        json={'amount': 15, 'transaction_id': 'pi_777', 'session_id': session.id, 'email': 'mallory@x.com'},
        headers=auth('sam@x.com'),
    )

    assert response.status_code == 201
    assert response.json()['email'] == 'sam@x.com'
    assert response.json()['session_id'] == session.id


def test_store_payment_is_idempotent_per_transaction(client, auth, session_factory) -> None:
    payload = {'amount': 15, 'transaction_id': 'pi_777'}

    first = client.post('/payments/store-payment', json=payload, headers=auth('sam@x.com'))
    second = client.post('/payments/store-payment', json=payload, headers=auth('sam@x.com'))
    stolen = client.post('/payments/store-payment', json=payload, headers=auth('eve@x.com'))

    assert second.json()['id'] == first.json()['id']
    assert stolen.status_code == 409
    with session_factory() as db:
        assert db.query(Payment).count() == 1


def test_store_payment_rejects_negative_amount(client, auth, session_factory, make_session) -> None:
    session = make_session('tina@x.com')

    negative = client.post(
        '/payments/store-payment',
        json={'amount': -50, 'transaction_id': 'pi_neg', 'session_id': session.id},
        headers=auth('sam@x.com'),
    )
    free = client.post(
        '/payments/store-payment',
        json={'amount': 0, 'transaction_id': 'pi_free', 'session_id': session.id},
        headers=auth('sam@x.com'),
    )

    assert negative.status_code == 422
    assert free.status_code == 201
    with session_factory() as db:
        assert [payment.transaction_id for payment in db.query(Payment).all()] == ['pi_free']


def test_store_payment_for_unknown_session(client, auth) -> None:
    response = client.post(
        '/payments/store-payment',
        json={'amount': 15, 'transaction_id': 'pi_1', 'session_id': 404},
        headers=auth('sam@x.com'),
    )

    assert response.status_code == 404


def test_store_payment_requires_identity(client) -> None:
    response = client.post('/payments/store-payment', json={'amount': 15, 'transaction_id': 'pi_1'})

    assert response.status_code == 401


def test_create_payment_intent_delegates_to_gateway(client, monkeypatch) -> None:
    captured = {}

    def fake_create_payment_intent(amount, currency=None):
        captured['amount'] = amount
        return {'client_secret': 'pi_1_secret', 'payment_intent_id': 'pi_1'}

    monkeypatch.setattr(gateway, 'create_payment_intent', fake_create_payment_intent)

    response = client.post('/payments/create-payment-intent', json={'amount': 19.99})

    assert response.status_code == 200
    assert response.json() == {'client_secret': 'pi_1_secret', 'payment_intent_id': 'pi_1'}
    assert captured['amount'] == 19.99


def test_create_payment_intent_hides_gateway_errors(client, monkeypatch) -> None:
    def failing_gateway(amount, currency=None):
        raise gateway.PaymentGatewayError('payment_intent_failed')

    monkeypatch.setattr(gateway, 'create_payment_intent', failing_gateway)

    response = client.post('/payments/create-payment-intent', json={'amount': 5})

    assert response.status_code == 500
    assert response.json() == {'detail': 'Internal server error'}


@pytest.mark.parametrize('amount', [0, -3])
def test_create_payment_intent_rejects_non_positive_amount(client, amount) -> None:
    assert client.post('/payments/create-payment-intent', json={'amount': amount}).status_code == 422


def test_payments_listing_admin_only(client, auth, make_admin, seed) -> None:
    make_admin('boss@x.com')
    seed(Payment(email='alice@x.com', amount=10, transaction_id='pi_a'))

    assert client.get('/payments', headers=auth('alice@x.com')).status_code == 403
    assert len(client.get('/payments', headers=auth('boss@x.com')).json()) == 1
