import hashlib
import hmac

import pytest

from academy import firestore_dao as dao
from academy.decorators import CurrentUser
from academy.services import payments
from academy.services.payments import PaymentError, SignatureMismatch


def sign(order_id, payment_id, secret='rzp_test_secret'):
    return hmac.new(secret.encode(), f'{order_id}|{payment_id}'.encode(), hashlib.sha256).hexdigest()


@pytest.fixture
def buyer(student):
    return CurrentUser(dict(student, uid='alice'))


@pytest.fixture
def fake_orders(monkeypatch):
    created = []

    def fake_create(client, payload):
        created.append(payload)
        return {'id': f'order_{len(created)}', 'amount': payload['amount'], 'currency': payload['currency']}

    monkeypatch.setattr(payments, '_create_razorpay_order', fake_create)
    return created


def test_total_amount_adds_gst():
    totals = payments.calculate_total_amount(2999)
    assert totals == {'base_amount': 2999, 'tax_amount': 540, 'processing_fee': 0, 'total_amount': 3539}
    assert payments.calculate_total_amount(1000, tax_rate=0.18, processing_fee=25)['total_amount'] == 1205


def test_subunits():
    assert payments.to_subunits(3539) == 353900
    assert payments.to_subunits(10.5) == 1050


def test_format_amount_uses_indian_grouping():
    assert payments.format_amount(129999) == '₹1,29,999'
    assert payments.format_amount(2999) == '₹2,999'
    assert payments.format_amount(999) == '₹999'
    assert payments.format_amount(12345678) == '₹1,23,45,678'
    assert payments.format_amount(1500, 'USD') == '$1,500'


def test_create_order_persists_created_payment(ctx, buyer, course, fake_orders):
    options = payments.create_order(course, buyer)
    assert options['order_id'] == 'order_1'
    assert options['amount'] == 353900
    assert options['key'] == 'rzp_test_key'
    assert options['prefill']['email'] == 'alice@example.com'
    assert fake_orders[0]['notes'] == {'course_id': course['id'], 'user_id': 'alice'}

    payment = dao.get_payment('order_1')
    assert payment['status'] == 'created'
    assert payment['total_amount'] == 3539
    assert payment['user_id'] == 'alice'


def test_create_order_rejects_free_and_enrolled(ctx, buyer, course, fake_orders):
    with pytest.raises(PaymentError):
        payments.create_order(dict(course, price=0), buyer)
    dao.enroll_in_course('alice', course['id'])
    with pytest.raises(PaymentError):
        payments.create_order(course, buyer)
    assert fake_orders == []


def test_create_order_requires_configuration(ctx, app, buyer, course, fake_orders):
    app.config['RAZORPAY_KEY_SECRET'] = None
    with pytest.raises(PaymentError):
        payments.create_order(course, buyer)


def test_complete_payment_enrolls_once(ctx, buyer, course, fake_orders):
    payments.create_order(course, buyer)
    enrollment = payments.complete_payment(buyer, 'order_1', 'pay_1', sign('order_1', 'pay_1'))
    assert enrollment['course_id'] == course['id']
    assert enrollment['payment']['payment_id'] == 'pay_1'
    assert enrollment['payment']['amount'] == 3539
    assert dao.get_payment('order_1')['status'] == 'paid'

    replay = payments.complete_payment(buyer, 'order_1', 'pay_1', sign('order_1', 'pay_1'))
    assert replay['id'] == enrollment['id']
    assert dao.get_course(course['id'])['total_students'] == 1


def test_bad_signature_marks_payment_failed(ctx, buyer, course, fake_orders):
    payments.create_order(course, buyer)
    with pytest.raises(SignatureMismatch):
        payments.complete_payment(buyer, 'order_1', 'pay_1', sign('order_1', 'pay_1', 'wrong'))
    payment = dao.get_payment('order_1')
    assert payment['status'] == 'failed'
    assert payment['failure_reason'] == 'signature_mismatch'
    assert not dao.check_user_enrollment('alice', course['id'])


def test_other_users_cannot_complete_an_order(ctx, db, buyer, course, fake_orders):
    payments.create_order(course, buyer)
    intruder = CurrentUser({'uid': 'mallory', 'email': 'm@example.com'})
    with pytest.raises(PaymentError):
        payments.complete_payment(intruder, 'order_1', 'pay_1', sign('order_1', 'pay_1'))


def test_fail_payment_records_cancellation(ctx, buyer, course, fake_orders):
    payments.create_order(course, buyer)
    payment = payments.fail_payment(buyer, 'order_1', 'Payment cancelled by user', cancelled=True)
    assert payment['status'] == 'cancelled'
    assert dao.get_payment('order_1')['failure_reason'] == 'Payment cancelled by user'
