import logging

from flask import Blueprint, render_template, redirect, url_for, flash, request, jsonify, abort
from academy.decorators import auth_required, api_auth_required, get_current_user
from academy import firestore_dao as dao
from academy.events import notify_enrollment
from academy.services import payments
from academy.services.payments import PaymentError, SignatureMismatch

logger = logging.getLogger(__name__)

bp = Blueprint('payments', __name__, url_prefix='/payments')


def _purchasable_course(course_id):
    course = dao.get_course(course_id)
    if not course or not course.get('is_published'):
        return None
    return course


@bp.route('/checkout/<course_id>')
@auth_required
def checkout(course_id):
    user = get_current_user()
    course = _purchasable_course(course_id)
    if not course:
        abort(404)

    if dao.check_user_enrollment(user.uid, course_id):
        flash('You are already enrolled in this course.', 'info')
        return redirect(url_for('courses.detail', course_id=course_id))
    if not course.get('available', True):
        flash('This course is not open for enrollment yet.', 'warning')
        return redirect(url_for('courses.detail', course_id=course_id))
    if not course.get('price'):
        return render_template('payments/checkout.html', course=course, totals=None)

    return render_template('payments/checkout.html',
                           course=course,
                           totals=payments.checkout_totals(course))


@bp.route('/order/<course_id>', methods=['POST'])
@api_auth_required
def create_order(course_id):
    user = get_current_user()
    course = _purchasable_course(course_id)
    if not course:
        return jsonify({'error': 'Course not found'}), 404
    if not course.get('available', True):
        return jsonify({'error': 'This course is not open for enrollment yet.'}), 400

    try:
        options = payments.create_order(course, user)
    except PaymentError as e:
        return jsonify({'error': str(e)}), 400
    return jsonify(options)


@bp.route('/verify', methods=['POST'])
@api_auth_required
def verify():
    user = get_current_user()
    payload = request.get_json(silent=True) or {}
    order_id = payload.get('razorpay_order_id')
    payment_id = payload.get('razorpay_payment_id')
    signature = payload.get('razorpay_signature')
    if not (order_id and payment_id and signature):
        return jsonify({'error': 'Incomplete payment response.'}), 400

    try:
        enrollment = payments.complete_payment(user, order_id, payment_id, signature)
    except SignatureMismatch as e:
        return jsonify({'error': str(e)}), 400
    except PaymentError as e:
        return jsonify({'error': str(e)}), 404
    except dao.EnrollmentError as e:
        logger.error('Paid order %s could not be enrolled: %s', order_id, e)
        return jsonify({'error': 'Payment received but enrollment failed. Please contact support.',
                        'retry': True}), 500

    course_id = enrollment['course_id']
    notify_enrollment(user.uid, course_id)
    flash('Payment successful! You have been enrolled in the course.', 'success')
    return jsonify({
        'success': True,
        'enrollment_id': enrollment['id'],
        'payment_id': payment_id,
        'redirect': url_for('courses.detail', course_id=course_id),
    })


@bp.route('/cancel', methods=['POST'])
@api_auth_required
def cancel():
    user = get_current_user()
    payload = request.get_json(silent=True) or {}
    order_id = payload.get('order_id')
    if not order_id:
        return jsonify({'error': 'Missing order ID.'}), 400
    reason = payload.get('reason') or 'Payment cancelled by user'
    try:
        payment = payments.fail_payment(user, order_id, reason,
                                        cancelled=bool(payload.get('cancelled', True)))
    except PaymentError as e:
        return jsonify({'error': str(e)}), 404
    return jsonify({'success': True, 'status': payment['status']})


@bp.route('/enroll-free/<course_id>', methods=['POST'])
@auth_required
def enroll_free(course_id):
    user = get_current_user()
    course = _purchasable_course(course_id)
    if not course:
        abort(404)
    if course.get('price'):
        flash('This course requires payment.', 'warning')
        return redirect(url_for('payments.checkout', course_id=course_id))
    if not course.get('available', True):
        flash('This course is not open for enrollment yet.', 'warning')
        return redirect(url_for('courses.detail', course_id=course_id))

    try:
        dao.enroll_in_course(user.uid, course_id)
    except dao.EnrollmentError as e:
        flash(str(e), 'info')
        return redirect(url_for('courses.detail', course_id=course_id))

    notify_enrollment(user.uid, course_id)
    flash(f"You are now enrolled in {course.get('title', 'the course')}!", 'success')
    return redirect(url_for('courses.detail', course_id=course_id))
