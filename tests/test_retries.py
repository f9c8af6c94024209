from types import SimpleNamespace

import pytest
import razorpay
import requests

from academy import firestore_dao as dao
from academy.routes import auth as auth_routes
from academy.services import payments
from conftest import login


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr('tenacity.nap.time.sleep', lambda seconds: None)


class FakeResponse:
    def __init__(self, status_code, body=None):
        self.status_code = status_code
        self._body = body or {}

    def json(self):
        return self._body


def stub_identity_toolkit(monkeypatch, *outcomes):
    pending = list(outcomes)
    calls = []

    def post(url, json=None, timeout=None):
        calls.append(url)
        outcome = pending.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    monkeypatch.setattr(auth_routes.http_requests, 'post', post)
    return calls


class FakeOrders:
    def __init__(self, outcomes):
        self._outcomes = list(outcomes)
        self.calls = 0

    def create(self, data):
        self.calls += 1
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return dict(outcome, amount=data['amount'])


class FakeRazorpay:
    def __init__(self, *outcomes):
        self.order = FakeOrders(outcomes)


# ---------------------------------------------------------------------------
# Firebase Auth REST
# ---------------------------------------------------------------------------

def test_sign_in_retries_server_errors_and_rate_limits(ctx, monkeypatch):
    calls = stub_identity_toolkit(
        monkeypatch,
        FakeResponse(503),
        FakeResponse(429, {'error': {'message': 'RESOURCE_EXHAUSTED'}}),
        FakeResponse(200, {'idToken': 'token-alice'}),
    )
    assert auth_routes._firebase_sign_in('alice@example.com', 'pw') == ('token-alice', None)
    assert len(calls) == 3


def test_sign_in_retries_connection_errors(ctx, monkeypatch):
    calls = stub_identity_toolkit(
        monkeypatch,
        requests.ConnectionError('reset'),
        FakeResponse(200, {'idToken': 'token-alice'}),
    )
    assert auth_routes._firebase_sign_in('alice@example.com', 'pw') == ('token-alice', None)
    assert len(calls) == 2


def test_sign_in_does_not_retry_credential_errors(ctx, monkeypatch):
    calls = stub_identity_toolkit(monkeypatch, FakeResponse(400, {'error': {'message': 'INVALID_PASSWORD'}}))
    assert auth_routes._firebase_sign_in('alice@example.com', 'bad') == (None, 'INVALID_PASSWORD')
    assert len(calls) == 1


def test_sign_in_gives_up_after_three_attempts(ctx, monkeypatch):
    calls = stub_identity_toolkit(monkeypatch, FakeResponse(503), FakeResponse(502), FakeResponse(429))
    assert auth_routes._firebase_sign_in('alice@example.com', 'pw') == (None, 'UNAVAILABLE')
    assert len(calls) == 3


def test_login_page_reports_unavailable_auth(client, student, monkeypatch):
    stub_identity_toolkit(monkeypatch, FakeResponse(500), FakeResponse(500), FakeResponse(500))
    resp = client.post('/auth/login', data={'email': 'alice@example.com', 'password': 'pw'})
    assert resp.status_code == 200
    assert b'Sign in is temporarily unavailable' in resp.data


def test_password_reset_retries_then_sends(ctx, monkeypatch):
    calls = stub_identity_toolkit(monkeypatch, FakeResponse(429), FakeResponse(200, {'email': 'a@example.com'}))
    assert auth_routes._send_password_reset('a@example.com') is True
    assert len(calls) == 2


# ---------------------------------------------------------------------------
# Razorpay orders
# ---------------------------------------------------------------------------

def test_order_creation_retries_transient_failures():
    client = FakeRazorpay(
        razorpay.errors.ServerError('upstream down'),
        payments.RateLimited('429'),
        {'id': 'order_ok'},
    )
    order = payments._create_razorpay_order(client, {'amount': 353900})
    assert order == {'id': 'order_ok', 'amount': 353900}
    assert client.order.calls == 3


def test_order_creation_does_not_retry_bad_requests():
    client = FakeRazorpay(razorpay.errors.BadRequestError('amount too small'))
    with pytest.raises(razorpay.errors.BadRequestError):
        payments._create_razorpay_order(client, {'amount': 1})
    assert client.order.calls == 1


def test_rate_limit_hook_raises_only_on_429(ctx):
    with pytest.raises(payments.RateLimited):
        payments._raise_on_rate_limit(SimpleNamespace(status_code=429, url='https://api.razorpay.com/v1/orders'))
    assert payments._raise_on_rate_limit(SimpleNamespace(status_code=400, url='x')) is None

    client = payments.get_client()
    assert payments._raise_on_rate_limit in client.session.hooks['response']


def test_order_route_reports_exhausted_retries(client, student, course, monkeypatch):
    fake = FakeRazorpay(*[razorpay.errors.ServerError('down')] * 3)
    monkeypatch.setattr(payments, 'get_client', lambda: fake)
    login(client, 'alice')

    resp = client.post(f"/payments/order/{course['id']}")
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Could not start the payment. Please try again.'
    assert fake.order.calls == 3
    assert dao.get_course_payments(course['id'], status='created') == []
