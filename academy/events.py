"""Socket.IO rooms pushing class schedule and enrollment changes to browsers."""

import logging

from flask_socketio import emit, join_room, leave_room
from academy import socketio
from academy.decorators import get_current_user
from academy import firestore_dao as dao

logger = logging.getLogger(__name__)


def _get_socket_user():
    """Get current user from the Flask session context in Socket.IO events."""
    user = get_current_user()
    if user and user.is_authenticated and not user.is_suspended:
        return user
    return None


def _user_has_course_access(user, course):
    if not course:
        return False
    if user.can_manage_course(course):
        return True
    return dao.check_user_enrollment(user.uid, course['id'])


def _serialize_class(cls):
    data = dict(cls)
    for key in ('start_time', 'end_time', 'created_at', 'updated_at'):
        if data.get(key) is not None:
            data[key] = data[key].isoformat()
    return data


@socketio.on('connect')
def handle_connect():
    user = _get_socket_user()
    if user:
        join_room(f'user_{user.uid}')
        emit('connected', {'user_id': user.uid, 'name': user.name})


@socketio.on('join_user')
def handle_join_user(data=None):
    user = _get_socket_user()
    if not user:
        emit('error', {'message': 'Authentication required'})
        return
    join_room(f'user_{user.uid}')
    emit('joined_user', {'user_id': user.uid})


@socketio.on('join_course')
def handle_join_course(data):
    user = _get_socket_user()
    if not user:
        return

    course_id = (data or {}).get('course_id')
    if not course_id:
        return

    course = dao.get_course(course_id)
    if not _user_has_course_access(user, course):
        emit('error', {'message': 'Access denied to this course'})
        return

    join_room(f'course_{course_id}')
    classes = [
        _serialize_class(c) for c in dao.get_course_classes(course_id)
        if c.get('status') == 'scheduled'
    ]
    emit('course_classes', {'course_id': course_id, 'classes': classes})


@socketio.on('leave_course')
def handle_leave_course(data):
    course_id = (data or {}).get('course_id')
    if course_id:
        leave_room(f'course_{course_id}')


# ---------------------------------------------------------------------------
# Server-side notifications (called from routes)
# ---------------------------------------------------------------------------

def notify_class_change(event, scheduled_class):
    """event: class_scheduled | class_updated | class_cancelled"""
    course_id = scheduled_class.get('course_id')
    socketio.emit(event, _serialize_class(scheduled_class), to=f'course_{course_id}')
    logger.debug('Emitted %s for course %s', event, course_id)


def notify_enrollment(user_id, course_id, progress=None):
    socketio.emit('enrollment_updated', {
        'course_id': course_id,
        'progress': progress or {},
    }, to=f'user_{user_id}')
