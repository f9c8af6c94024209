import pytest

from academy import socketio, firestore_dao as dao
from academy.events import notify_class_change, notify_enrollment
from conftest import login, in_days


@pytest.fixture
def socket_client(app, client):
    def connect(uid):
        login(client, uid)
        return socketio.test_client(app, flask_test_client=client)
    return connect


def _events(sio, name):
    return [e['args'][0] for e in sio.get_received() if e['name'] == name]


def test_connect_greets_logged_in_user(socket_client, student):
    sio = socket_client('alice')
    assert sio.is_connected()
    assert _events(sio, 'connected') == [{'user_id': 'alice', 'name': 'Alice'}]


def test_join_course_sends_schedule(socket_client, student, course):
    dao.enroll_in_course('alice', course['id'])
    class_id = dao.create_scheduled_class({'course_id': course['id'], 'title': 'Live', 'start_time': in_days(1)})
    cancelled = dao.create_scheduled_class({'course_id': course['id'], 'title': 'Off', 'start_time': in_days(2)})
    dao.cancel_scheduled_class(cancelled)

    sio = socket_client('alice')
    sio.get_received()
    sio.emit('join_course', {'course_id': course['id']})
    payload = _events(sio, 'course_classes')[0]
    assert payload['course_id'] == course['id']
    assert [c['id'] for c in payload['classes']] == [class_id]
    assert isinstance(payload['classes'][0]['start_time'], str)


def test_join_course_denied_without_enrollment(socket_client, student, course):
    sio = socket_client('alice')
    sio.get_received()
    sio.emit('join_course', {'course_id': course['id']})
    assert _events(sio, 'error') == [{'message': 'Access denied to this course'}]


def test_class_changes_reach_course_room(app, socket_client, student, course):
    dao.enroll_in_course('alice', course['id'])
    sio = socket_client('alice')
    sio.emit('join_course', {'course_id': course['id']})
    sio.get_received()

    class_id = dao.create_scheduled_class({'course_id': course['id'], 'title': 'Live', 'start_time': in_days(1)})
    with app.app_context():
        notify_class_change('class_scheduled', dao.get_scheduled_class(class_id))
    received = _events(sio, 'class_scheduled')
    assert received[0]['id'] == class_id
    assert received[0]['title'] == 'Live'


def test_enrollment_updates_reach_user_room(app, socket_client, student, course):
    sio = socket_client('alice')
    sio.emit('join_user')
    assert _events(sio, 'joined_user') == [{'user_id': 'alice'}]

    with app.app_context():
        notify_enrollment('alice', course['id'], {'completion_percentage': 33})
    assert _events(sio, 'enrollment_updated') == [
        {'course_id': course['id'], 'progress': {'completion_percentage': 33}}
    ]


def test_anonymous_socket_cannot_join_user_room(app):
    sio = socketio.test_client(app)
    sio.emit('join_user')
    assert _events(sio, 'error') == [{'message': 'Authentication required'}]
