import hashlib
import hmac

import pytest

from academy import firestore_dao as dao
from academy.services import payments
from conftest import login, make_course


def sign(order_id, payment_id, secret='rzp_test_secret'):
    return hmac.new(secret.encode(), f'{order_id}|{payment_id}'.encode(), hashlib.sha256).hexdigest()


@pytest.fixture(autouse=True)
def fake_orders(monkeypatch):
    monkeypatch.setattr(payments, '_create_razorpay_order',
                        lambda client, payload: {'id': 'order_abc', 'amount': payload['amount']})


def test_checkout_page_shows_breakdown(client, student, course):
    login(client, 'alice')
    resp = client.get(f"/payments/checkout/{course['id']}")
    assert resp.status_code == 200
    assert '₹3,539'.encode() in resp.data


def test_checkout_redirects_enrolled_users(client, student, course):
    dao.enroll_in_course('alice', course['id'])
    login(client, 'alice')
    resp = client.get(f"/payments/checkout/{course['id']}")
    assert resp.headers['Location'].endswith(f"/courses/{course['id']}")


def test_order_requires_login(client, course):
    resp = client.post(f"/payments/order/{course['id']}")
    assert resp.status_code == 401


def test_full_checkout_flow(client, student, course):
    login(client, 'alice')
    order = client.post(f"/payments/order/{course['id']}").get_json()
    assert order['order_id'] == 'order_abc'
    assert order['amount'] == 353900
    assert order['currency'] == 'INR'

    resp = client.post('/payments/verify', json={
        'razorpay_order_id': 'order_abc',
        'razorpay_payment_id': 'pay_xyz',
        'razorpay_signature': sign('order_abc', 'pay_xyz'),
    })
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['success'] is True
    assert body['redirect'].endswith(f"/courses/{course['id']}")

    assert dao.check_user_enrollment('alice', course['id'])
    assert dao.get_payment('order_abc')['status'] == 'paid'


def test_verify_rejects_bad_signature(client, student, course):
    login(client, 'alice')
    client.post(f"/payments/order/{course['id']}")
    resp = client.post('/payments/verify', json={
        'razorpay_order_id': 'order_abc',
        'razorpay_payment_id': 'pay_xyz',
        'razorpay_signature': 'forged',
    })
    assert resp.status_code == 400
    assert not dao.check_user_enrollment('alice', course['id'])


def test_verify_requires_all_fields(client, student):
    login(client, 'alice')
    assert client.post('/payments/verify', json={'razorpay_order_id': 'x'}).status_code == 400


def test_cancel_marks_order(client, student, course):
    login(client, 'alice')
    client.post(f"/payments/order/{course['id']}")
    resp = client.post('/payments/cancel', json={'order_id': 'order_abc'})
    assert resp.get_json()['status'] == 'cancelled'
    assert dao.get_payment('order_abc')['status'] == 'cancelled'


def test_free_enrollment(client, db, student, instructor):
    make_course(db, 'free', price=0)
    login(client, 'alice')
    resp = client.post('/payments/enroll-free/free')
    assert resp.headers['Location'].endswith('/courses/free')
    assert dao.check_user_enrollment('alice', 'free')


def test_free_enrollment_refuses_paid_courses(client, student, course):
    login(client, 'alice')
    resp = client.post(f"/payments/enroll-free/{course['id']}")
    assert f"/payments/checkout/{course['id']}" in resp.headers['Location']
    assert not dao.check_user_enrollment('alice', course['id'])


def test_unavailable_course_cannot_be_bought(client, db, student, instructor):
    make_course(db, 'soon', available=False)
    login(client, 'alice')
    resp = client.post('/payments/order/soon')
    assert resp.status_code == 400
