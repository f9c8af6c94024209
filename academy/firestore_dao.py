"""
Firestore Data Access Object (DAO) layer.

Route files and services call functions from this module instead of
talking to Firestore directly. Every function returns plain dicts
(with an 'id' key) so templates can use them as-is.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone

from google.api_core.exceptions import AlreadyExists
from google.cloud.firestore_v1 import FieldFilter, ArrayUnion, ArrayRemove, Increment, Query

from academy.firebase_init import get_db
from academy.firestore_models import (
    User, Course, Lesson, CourseProgress, Enrollment, ScheduledClass,
    Review, Payment,
)

logger = logging.getLogger(__name__)


class EnrollmentError(Exception):
    """Raised when an enrollment cannot be created or found."""


class ReviewError(Exception):
    """Raised when a review cannot be stored."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _doc_to_dict(doc_snapshot):
    """Convert a Firestore DocumentSnapshot to a dict with 'id' field."""
    if not doc_snapshot.exists:
        return None
    d = doc_snapshot.to_dict()
    d['id'] = doc_snapshot.id
    return d


def _query_to_list(query_ref):
    """Run a query and return a list of dicts."""
    return [_doc_to_dict(doc) for doc in query_ref.stream()]


def _now():
    return datetime.now(timezone.utc)


# ========================================================================
# Users  (collection: users)
# ========================================================================

UNIQUE_ID_CODES = {
    'student': 'STU',
    'instructor': 'INS',
    'admin': 'ADM',
    'super_admin': 'ADM',
}


def get_user(uid):
    """Get a user document by UID. Returns dict or None."""
    doc = get_db().collection('users').document(uid).get()
    return _doc_to_dict(doc)


def get_user_by_email(email):
    """Get a user by email address. Returns dict or None."""
    docs = (
        get_db().collection('users')
        .where(filter=FieldFilter('email', '==', email))
        .limit(1)
        .stream()
    )
    for doc in docs:
        return _doc_to_dict(doc)
    return None


def unique_id_prefix(role, now=None):
    code = UNIQUE_ID_CODES.get(role, 'STU')
    year = (now or _now()).strftime('%y')
    return f'DRA-{code}-{year}'


def generate_unique_id(role, now=None):
    """Next human-readable code for a role, e.g. DRA-STU-25001.

    Scans every user for the highest numeric suffix under the current
    role/year prefix. Not coordinated: two concurrent registrations can
    receive the same code.
    """
    prefix = unique_id_prefix(role, now)
    highest = 0
    for doc in get_db().collection('users').stream():
        code = (doc.to_dict() or {}).get('unique_id') or ''
        if not code.startswith(prefix):
            continue
        suffix = code[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return f'{prefix}{highest + 1:03d}'


def create_user_profile(uid, data):
    """Create the profile document for a Firebase Auth user.

    Fills list fields, status and a unique ID. Returns the stored dict.
    """
    role = data.get('role') or 'student'
    user = User.from_dict(dict(data, role=role))
    if role == 'instructor' and user.created_courses is None:
        user.created_courses = []
    if not user.unique_id:
        user.unique_id = generate_unique_id(role)
    doc = user.to_dict()
    get_db().collection('users').document(uid).set(doc)
    logger.info('Created profile %s for %s (%s)', user.unique_id, uid, role)
    doc['id'] = uid
    return doc


def update_user(uid, data):
    """Update fields on an existing user document."""
    data.setdefault('updated_at', _now())
    get_db().collection('users').document(uid).update(data)


def record_login(uid):
    get_db().collection('users').document(uid).update({'last_login_at': _now()})


def get_all_users(role=None):
    """All users, newest first, optionally restricted to one role."""
    q = get_db().collection('users')
    if role:
        q = q.where(filter=FieldFilter('role', '==', role))
    return _query_to_list(q.order_by('created_at', direction=Query.DESCENDING))


def get_users_by_ids(uids):
    """Fetch multiple users by their UIDs, skipping missing ones."""
    results = []
    for uid in uids or []:
        d = get_user(uid)
        if d:
            results.append(d)
    return results


# ========================================================================
# Courses  (collection: courses)
# ========================================================================

def get_course(course_id):
    """Get a course by ID. Returns dict or None."""
    doc = get_db().collection('courses').document(course_id).get()
    return _doc_to_dict(doc)


def create_course(data):
    """Create a course and link it to its instructor. Returns the doc ID."""
    doc = Course.from_dict(data).to_dict()
    _, doc_ref = get_db().collection('courses').add(doc)

    get_db().collection('users').document(doc['instructor_id']).update({
        'created_courses': ArrayUnion([doc_ref.id]),
        'updated_at': _now(),
    })
    logger.info('Course %s created by %s', doc_ref.id, doc['instructor_id'])
    return doc_ref.id


def update_course(course_id, data):
    """Update fields on an existing course."""
    data.setdefault('updated_at', _now())
    get_db().collection('courses').document(course_id).update(data)


def set_course_published(course_id, published):
    update_course(course_id, {'is_published': bool(published)})


def get_published_courses():
    """Published courses, newest first."""
    return _query_to_list(
        get_db().collection('courses')
        .where(filter=FieldFilter('is_published', '==', True))
        .order_by('created_at', direction=Query.DESCENDING)
    )


def get_instructor_courses(instructor_id):
    """Courses owned by an instructor, newest first."""
    return _query_to_list(
        get_db().collection('courses')
        .where(filter=FieldFilter('instructor_id', '==', instructor_id))
        .order_by('created_at', direction=Query.DESCENDING)
    )


def get_all_courses():
    return _query_to_list(
        get_db().collection('courses')
        .order_by('created_at', direction=Query.DESCENDING)
    )


def get_courses_by_ids(course_ids):
    """Fetch courses by ID, preserving order and skipping missing ones."""
    courses = []
    for cid in course_ids or []:
        c = get_course(cid)
        if c:
            courses.append(c)
    return courses


def add_lesson(course_id, data):
    """Append a lesson to a course. Returns the lesson dict."""
    course = get_course(course_id)
    if not course:
        raise ValueError(f'Course {course_id} not found')
    lessons = list(course.get('lessons') or [])
    next_order = max((int(l.get('order') or 0) for l in lessons), default=0) + 1
    lesson = Lesson.from_dict(dict(data, order=next_order), uuid.uuid4().hex[:12])
    lessons.append(lesson.to_dict())
    update_course(course_id, {'lessons': lessons})
    return lesson.to_dict()


def find_lesson(course, lesson_id):
    for lesson in course.get('lessons') or []:
        if lesson.get('id') == lesson_id:
            return lesson
    return None


# ========================================================================
# Enrollments  (collection: enrollments)
# ========================================================================

def _enrollment_id(course_id, user_id):
    return f"{course_id}_{user_id}"


def get_enrollment(course_id, user_id):
    """Get an enrollment by composite key. Returns dict or None."""
    doc = get_db().collection('enrollments').document(_enrollment_id(course_id, user_id)).get()
    return _doc_to_dict(doc)


def check_user_enrollment(user_id, course_id):
    """Check whether a user is enrolled in a course."""
    doc = get_db().collection('enrollments').document(_enrollment_id(course_id, user_id)).get()
    return doc.exists


def enroll_in_course(user_id, course_id, payment=None):
    """Enroll a user in a course.

    The enrollment record, the user's enrolled_courses entry and the
    course's total_students counter are committed in one batch.
    `payment` is an optional dict with payment_id, order_id, amount,
    currency and payment_method.
    """
    db = get_db()
    course = get_course(course_id)
    if not course:
        raise EnrollmentError('Course not found.')

    enrollment_ref = db.collection('enrollments').document(_enrollment_id(course_id, user_id))
    if enrollment_ref.get().exists:
        raise EnrollmentError('You are already enrolled in this course.')

    now = _now()
    payment_data = None
    if payment:
        payment_data = dict(payment, payment_date=now, status='completed')

    enrollment = Enrollment(
        user_id=user_id,
        course_id=course_id,
        enrolled_at=now,
        last_activity=now,
        progress=CourseProgress(
            total_lessons=len(course.get('lessons') or []),
            last_accessed_at=now,
        ),
        payment=payment_data,
    )
    data = enrollment.to_dict()

    batch = db.batch()
    batch.create(enrollment_ref, data)
    batch.update(db.collection('users').document(user_id), {
        'enrolled_courses': ArrayUnion([course_id]),
        'updated_at': now,
    })
    batch.update(db.collection('courses').document(course_id), {
        'total_students': Increment(1),
    })
    try:
        batch.commit()
    except AlreadyExists:
        raise EnrollmentError('You are already enrolled in this course.')

    logger.info('User %s enrolled in %s', user_id, course_id,
                extra={'user_id': user_id, 'course_id': course_id})
    data['id'] = enrollment_ref.id
    return data


def get_user_enrollments(user_id):
    """Enrollments of a user, newest first."""
    return _query_to_list(
        get_db().collection('enrollments')
        .where(filter=FieldFilter('user_id', '==', user_id))
        .order_by('enrolled_at', direction=Query.DESCENDING)
    )


def get_course_enrollments(course_id):
    return _query_to_list(
        get_db().collection('enrollments')
        .where(filter=FieldFilter('course_id', '==', course_id))
    )


def get_user_enrolled_courses(user_id):
    """Courses a user is enrolled in, each merged with its enrollment."""
    courses = []
    for enrollment in get_user_enrollments(user_id):
        course = get_course(enrollment['course_id'])
        if not course:
            continue
        course['enrollment'] = enrollment
        course['progress'] = enrollment.get('progress') or {}
        courses.append(course)
    return courses


def update_course_progress(user_id, course_id, progress):
    """Merge progress fields into an enrollment's progress record."""
    ref = get_db().collection('enrollments').document(_enrollment_id(course_id, user_id))
    snap = ref.get()
    if not snap.exists:
        raise EnrollmentError('Enrollment not found.')
    now = _now()
    merged = dict(snap.to_dict().get('progress') or {})
    merged.update(progress)
    merged['last_accessed_at'] = now
    ref.update({'progress': merged, 'last_activity': now})
    return merged


def mark_lesson_complete(user_id, course_id, lesson_id):
    """Record a completed lesson and recompute the completion percentage.

    Completing an already completed lesson changes nothing. Reaching 100%
    marks the enrollment completed. Returns the resulting progress summary.
    """
    ref = get_db().collection('enrollments').document(_enrollment_id(course_id, user_id))
    snap = ref.get()
    if not snap.exists:
        raise EnrollmentError('Enrollment not found.')

    enrollment = Enrollment.from_dict(snap.to_dict(), snap.id)
    progress = enrollment.progress
    if lesson_id in progress.completed_lessons:
        return {
            'completed_lessons': progress.completed_lessons,
            'total_lessons': progress.total_lessons,
            'completion_percentage': progress.completion_percentage,
            'completed': enrollment.completed_at is not None,
        }

    course = get_course(course_id) or {}
    total = len(course.get('lessons') or []) or progress.total_lessons
    completed = progress.completed_lessons + [lesson_id]
    percentage = CourseProgress.percentage(len(completed), total)

    now = _now()
    updates = {
        'progress.completed_lessons': completed,
        'progress.total_lessons': total,
        'progress.completion_percentage': percentage,
        'progress.last_accessed_at': now,
        'last_activity': now,
    }
    if percentage == 100:
        updates['completed_at'] = now
        updates['status'] = 'completed'
    ref.update(updates)

    return {
        'completed_lessons': completed,
        'total_lessons': total,
        'completion_percentage': percentage,
        'completed': percentage == 100,
    }


# ========================================================================
# Wishlist  (users.wishlist)
# ========================================================================

def get_wishlist(user_id):
    user = get_user(user_id) or {}
    return list(user.get('wishlist') or [])


def add_to_wishlist(user_id, course_id):
    update_user(user_id, {'wishlist': ArrayUnion([course_id])})


def remove_from_wishlist(user_id, course_id):
    update_user(user_id, {'wishlist': ArrayRemove([course_id])})


def clear_wishlist(user_id):
    update_user(user_id, {'wishlist': []})


# ========================================================================
# Scheduled classes  (collection: scheduled_classes)
# ========================================================================

def get_scheduled_class(class_id):
    doc = get_db().collection('scheduled_classes').document(class_id).get()
    return _doc_to_dict(doc)


def create_scheduled_class(data):
    """Schedule a live class. end_time is derived from start_time + duration."""
    cls = ScheduledClass.from_dict(data)
    if cls.start_time and not cls.end_time:
        cls.end_time = cls.start_time + timedelta(minutes=cls.duration)
    _, doc_ref = get_db().collection('scheduled_classes').add(cls.to_dict())
    return doc_ref.id


def update_scheduled_class(class_id, data):
    if data.get('start_time') and data.get('duration'):
        data['end_time'] = data['start_time'] + timedelta(minutes=int(data['duration']))
    data.setdefault('updated_at', _now())
    get_db().collection('scheduled_classes').document(class_id).update(data)


def cancel_scheduled_class(class_id):
    update_scheduled_class(class_id, {'status': 'cancelled'})


def get_course_classes(course_id):
    """All classes of a course ordered by start time."""
    return _query_to_list(
        get_db().collection('scheduled_classes')
        .where(filter=FieldFilter('course_id', '==', course_id))
        .order_by('start_time')
    )


def get_upcoming_classes(course_ids, now=None):
    """Scheduled (not cancelled) classes starting after `now` across courses."""
    now = now or _now()
    upcoming = []
    for cid in course_ids or []:
        for c in get_course_classes(cid):
            start = c.get('start_time')
            if c.get('status') == 'scheduled' and start and start >= now:
                upcoming.append(c)
    upcoming.sort(key=lambda c: c['start_time'])
    return upcoming


# ========================================================================
# Reviews  (collection: reviews)
# ========================================================================

def get_course_reviews(course_id):
    return _query_to_list(
        get_db().collection('reviews')
        .where(filter=FieldFilter('course_id', '==', course_id))
        .order_by('created_at', direction=Query.DESCENDING)
    )


def create_review(course_id, user_id, data):
    """Store a user's review and refresh the course rating.

    One review per user per course.
    """
    ref = get_db().collection('reviews').document(f'{course_id}_{user_id}')
    if ref.get().exists:
        raise ReviewError('You have already reviewed this course.')
    review = Review.from_dict(dict(data, course_id=course_id, user_id=user_id))
    if not 1 <= review.rating <= 5:
        raise ReviewError('Rating must be between 1 and 5.')
    ref.set(review.to_dict())

    ratings = [r.get('rating') or 0 for r in get_course_reviews(course_id)]
    average = round(sum(ratings) / len(ratings), 1) if ratings else 0.0
    update_course(course_id, {'rating': average, 'total_ratings': len(ratings)})
    return ref.id


# ========================================================================
# Payments  (collection: payments, keyed by Razorpay order ID)
# ========================================================================

def create_payment(order_id, data):
    doc = Payment.from_dict(dict(data, order_id=order_id)).to_dict()
    get_db().collection('payments').document(order_id).set(doc)
    return doc


def get_payment(order_id):
    doc = get_db().collection('payments').document(order_id).get()
    return _doc_to_dict(doc)


def update_payment(order_id, data):
    data.setdefault('updated_at', _now())
    get_db().collection('payments').document(order_id).update(data)


def get_course_payments(course_id, status='paid'):
    return _query_to_list(
        get_db().collection('payments')
        .where(filter=FieldFilter('course_id', '==', course_id))
        .where(filter=FieldFilter('status', '==', status))
    )


# ========================================================================
# Contact messages  (collection: contact_messages)
# ========================================================================

def create_contact_message(data):
    """Store a contact form submission; name, email, subject and message are required."""
    missing = [k for k in ('name', 'email', 'subject', 'message') if not data.get(k)]
    if missing:
        raise ValueError(f"Missing contact fields: {', '.join(missing)}")
    data.setdefault('created_at', _now())
    data.setdefault('status', 'new')
    _, doc_ref = get_db().collection('contact_messages').add(data)
    return doc_ref.id


# ========================================================================
# Administration  (collections: admin_logs, instructor_student_relationships)
# ========================================================================

def _log_admin_action(action, admin_id, **fields):
    entry = dict(fields, action=action, admin_id=admin_id, timestamp=_now())
    get_db().collection('admin_logs').add(entry)
    logger.info('Admin %s: %s %s', admin_id, action, fields)


def get_admin_logs(limit=20):
    return _query_to_list(
        get_db().collection('admin_logs')
        .order_by('timestamp', direction=Query.DESCENDING)
        .limit(limit)
    )


def update_user_role(user_id, new_role, admin_id):
    """Change a user's role, re-issuing the unique ID for the new role."""
    user = get_user(user_id)
    if not user:
        raise ValueError(f'User {user_id} not found')
    old_role = user.get('role', 'student')

    updates = {
        'role': new_role,
        'updated_at': _now(),
        'last_modified_by': admin_id,
    }
    current_code = user.get('unique_id') or ''
    if not current_code.startswith(f"DRA-{UNIQUE_ID_CODES.get(new_role, 'STU')}-"):
        updates['unique_id'] = generate_unique_id(new_role)
    if new_role == 'instructor' and user.get('created_courses') is None:
        updates['created_courses'] = []

    get_db().collection('users').document(user_id).update(updates)
    _log_admin_action('role_change', admin_id, target_user_id=user_id,
                      old_role=old_role, new_role=new_role)
    return updates


def update_user_status(user_id, status, admin_id):
    get_db().collection('users').document(user_id).update({
        'profile_status': status,
        'updated_at': _now(),
        'last_modified_by': admin_id,
    })
    _log_admin_action('status_change', admin_id, target_user_id=user_id,
                      new_status=status)


def assign_student_to_instructor(instructor_id, student_id, admin_id, course_id=None):
    db = get_db()
    now = _now()
    db.collection('users').document(instructor_id).update({
        'assigned_students': ArrayUnion([student_id]),
        'updated_at': now,
    })
    db.collection('users').document(student_id).update({
        'assigned_instructors': ArrayUnion([instructor_id]),
        'updated_at': now,
    })
    db.collection('instructor_student_relationships').add({
        'instructor_id': instructor_id,
        'student_id': student_id,
        'assigned_at': now,
        'assigned_by': admin_id,
        'course_id': course_id,
        'status': 'active',
    })
    _log_admin_action('assign_student', admin_id, instructor_id=instructor_id,
                      student_id=student_id, course_id=course_id)


def remove_student_from_instructor(instructor_id, student_id, admin_id):
    db = get_db()
    now = _now()
    db.collection('users').document(instructor_id).update({
        'assigned_students': ArrayRemove([student_id]),
        'updated_at': now,
    })
    db.collection('users').document(student_id).update({
        'assigned_instructors': ArrayRemove([instructor_id]),
        'updated_at': now,
    })
    relationships = (
        db.collection('instructor_student_relationships')
        .where(filter=FieldFilter('instructor_id', '==', instructor_id))
        .where(filter=FieldFilter('student_id', '==', student_id))
        .where(filter=FieldFilter('status', '==', 'active'))
        .stream()
    )
    for doc in relationships:
        doc.reference.update({
            'status': 'inactive',
            'removed_at': now,
            'removed_by': admin_id,
        })
    _log_admin_action('remove_student', admin_id, instructor_id=instructor_id,
                      student_id=student_id)


def get_instructor_students(instructor_id):
    """Students with an active assignment to the instructor."""
    relationships = _query_to_list(
        get_db().collection('instructor_student_relationships')
        .where(filter=FieldFilter('instructor_id', '==', instructor_id))
        .where(filter=FieldFilter('status', '==', 'active'))
    )
    student_ids = []
    for r in relationships:
        if r['student_id'] not in student_ids:
            student_ids.append(r['student_id'])
    return get_users_by_ids(student_ids)


def get_user_management_stats():
    users = _query_to_list(get_db().collection('users'))
    epoch = datetime.min.replace(tzinfo=timezone.utc)
    recent = sorted(users, key=lambda u: u.get('created_at') or epoch, reverse=True)
    return {
        'total_users': len(users),
        'total_students': sum(1 for u in users if u.get('role') == 'student'),
        'total_instructors': sum(1 for u in users if u.get('role') == 'instructor'),
        'total_admins': sum(1 for u in users if u.get('role') in ('admin', 'super_admin')),
        'active_users': sum(1 for u in users if u.get('profile_status') == 'active'),
        'suspended_users': sum(1 for u in users if u.get('profile_status') == 'suspended'),
        'recent_signups': recent[:5],
    }
