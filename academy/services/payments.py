"""Razorpay checkout: pricing, order creation and server-side verification."""

import logging
import uuid
from decimal import Decimal, ROUND_HALF_UP

import razorpay
import requests
from flask import current_app
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception

from academy import firestore_dao as dao

logger = logging.getLogger(__name__)

MERCHANT_NAME = 'Data Rhythm Academy'
THEME_COLOR = '#3B82F6'
CURRENCY_SYMBOLS = {'INR': '₹', 'USD': '$', 'EUR': '€', 'GBP': '£'}


class PaymentError(Exception):
    """Payment could not be started or completed."""


class SignatureMismatch(PaymentError):
    """Razorpay signature did not match the order/payment pair."""


class RateLimited(Exception):
    """Razorpay answered 429 Too Many Requests."""


# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------

def _round_half_up(value):
    return int(Decimal(str(value)).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def calculate_total_amount(base_amount, tax_rate=0.18, processing_fee=0):
    """Price breakdown for a course: GST on the base price plus any fee."""
    tax_amount = _round_half_up(base_amount * tax_rate)
    return {
        'base_amount': base_amount,
        'tax_amount': tax_amount,
        'processing_fee': processing_fee,
        'total_amount': base_amount + tax_amount + processing_fee,
    }


def to_subunits(amount):
    """Razorpay expects amounts in the smallest currency unit (paise)."""
    return _round_half_up(amount * 100)


def _group_indian(digits):
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ','.join(groups + [tail])


def format_amount(amount, currency='INR'):
    """Whole-unit display price, e.g. ₹1,29,999 or $49."""
    value = _round_half_up(amount or 0)
    sign = '-' if value < 0 else ''
    digits = str(abs(value))
    grouped = _group_indian(digits) if currency == 'INR' else f'{abs(value):,}'
    symbol = CURRENCY_SYMBOLS.get(currency, f'{currency} ')
    return f'{sign}{symbol}{grouped}'


# ---------------------------------------------------------------------------
# Razorpay client
# ---------------------------------------------------------------------------

def get_client():
    key_id = current_app.config.get('RAZORPAY_KEY_ID')
    key_secret = current_app.config.get('RAZORPAY_KEY_SECRET')
    if not key_id or not key_secret:
        raise PaymentError('Online payments are not configured. Please contact support.')
    client = razorpay.Client(auth=(key_id, key_secret))
    # The SDK reports 429 as BadRequestError.
    client.session.hooks['response'].append(_raise_on_rate_limit)
    return client


def _raise_on_rate_limit(response, *args, **kwargs):
    if response.status_code == 429:
        raise RateLimited(f'Razorpay rate limit hit for {response.url}')


def _is_transient(exc):
    return isinstance(exc, (requests.ConnectionError, requests.Timeout,
                            razorpay.errors.ServerError, RateLimited))


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
    retry=retry_if_exception(_is_transient),
    reraise=True
)
def _create_razorpay_order(client, payload):
    return client.order.create(data=payload)


def checkout_totals(course):
    cfg = current_app.config
    return calculate_total_amount(
        course.get('price') or 0,
        cfg.get('PAYMENT_TAX_RATE', 0.18),
        cfg.get('PAYMENT_PROCESSING_FEE', 0),
    )


def create_order(course, user):
    """Create a Razorpay order for a paid course and persist it as 'created'.

    Returns the options the checkout widget needs.
    """
    if not course.get('price'):
        raise PaymentError('This course is free. Enroll directly instead.')
    if dao.check_user_enrollment(user.uid, course['id']):
        raise PaymentError('You are already enrolled in this course.')

    totals = checkout_totals(course)
    currency = course.get('currency') or current_app.config.get('PAYMENT_CURRENCY', 'INR')
    payload = {
        'amount': to_subunits(totals['total_amount']),
        'currency': currency,
        'receipt': f'rcpt_{uuid.uuid4().hex[:20]}',
        'notes': {'course_id': course['id'], 'user_id': user.uid},
    }

    client = get_client()
    try:
        order = _create_razorpay_order(client, payload)
    except (razorpay.errors.BadRequestError, razorpay.errors.ServerError,
            razorpay.errors.GatewayError, requests.RequestException, RateLimited) as e:
        logger.error('Razorpay order creation failed for course %s: %s', course['id'], e)
        raise PaymentError('Could not start the payment. Please try again.') from e

    dao.create_payment(order['id'], {
        'user_id': user.uid,
        'course_id': course['id'],
        'currency': currency,
        'status': 'created',
        **totals,
    })
    logger.info('Payment initiated for course %s', course['id'],
                extra={'course_id': course['id'], 'user_id': user.uid, 'order_id': order['id']})

    return {
        'key': current_app.config['RAZORPAY_KEY_ID'],
        'order_id': order['id'],
        'amount': order.get('amount', payload['amount']),
        'currency': currency,
        'name': MERCHANT_NAME,
        'description': f"Payment for {course.get('title', '')}",
        'prefill': {
            'name': user.name,
            'email': user.email or '',
            'contact': user.phone or '',
        },
        'theme': {'color': THEME_COLOR},
        'totals': totals,
    }


def verify_payment(order_id, payment_id, signature):
    """Check the checkout signature with the Razorpay utility."""
    params = {
        'razorpay_order_id': order_id,
        'razorpay_payment_id': payment_id,
        'razorpay_signature': signature,
    }
    try:
        ok = get_client().utility.verify_payment_signature(params)
    except razorpay.errors.SignatureVerificationError as e:
        raise SignatureMismatch('Payment verification failed.') from e
    if ok is False:
        raise SignatureMismatch('Payment verification failed.')


def complete_payment(user, order_id, payment_id, signature):
    """Verify a checkout response, mark the order paid and enroll the user.

    Replaying an already paid order returns the existing enrollment.
    """
    payment = dao.get_payment(order_id)
    if not payment or payment.get('user_id') != user.uid:
        raise PaymentError('Unknown payment order.')

    course_id = payment['course_id']
    if payment.get('status') == 'paid':
        existing = dao.get_enrollment(course_id, user.uid)
        if existing:
            return existing

    try:
        verify_payment(order_id, payment_id, signature)
    except SignatureMismatch:
        logger.warning('Signature mismatch for order %s', order_id,
                       extra={'order_id': order_id, 'user_id': user.uid})
        dao.update_payment(order_id, {
            'status': 'failed',
            'payment_id': payment_id,
            'failure_reason': 'signature_mismatch',
        })
        raise

    dao.update_payment(order_id, {'status': 'paid', 'payment_id': payment_id})
    logger.info('Payment %s captured for order %s', payment_id, order_id,
                extra={'order_id': order_id, 'user_id': user.uid, 'course_id': course_id})

    try:
        return dao.enroll_in_course(user.uid, course_id, payment={
            'payment_id': payment_id,
            'order_id': order_id,
            'amount': payment.get('total_amount'),
            'currency': payment.get('currency', 'INR'),
            'payment_method': 'razorpay',
        })
    except dao.EnrollmentError:
        existing = dao.get_enrollment(course_id, user.uid)
        if existing:
            return existing
        raise


def fail_payment(user, order_id, reason, cancelled=False):
    """Record a failed or dismissed checkout."""
    payment = dao.get_payment(order_id)
    if not payment or payment.get('user_id') != user.uid:
        raise PaymentError('Unknown payment order.')
    if payment.get('status') == 'paid':
        return payment
    status = 'cancelled' if cancelled else 'failed'
    dao.update_payment(order_id, {'status': status, 'failure_reason': reason})
    logger.warning('Payment %s for order %s: %s', status, order_id, reason,
                   extra={'order_id': order_id, 'user_id': user.uid})
    payment.update(status=status, failure_reason=reason)
    return payment
