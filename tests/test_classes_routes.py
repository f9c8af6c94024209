from academy import firestore_dao as dao
from conftest import login, in_days


def test_timetable_shows_upcoming_enrolled_classes(client, student, course):
    dao.enroll_in_course('alice', course['id'])
    dao.create_scheduled_class({'course_id': course['id'], 'title': 'Tomorrow session', 'start_time': in_days(1)})
    dao.create_scheduled_class({'course_id': course['id'], 'title': 'Last week recap', 'start_time': in_days(-7)})
    login(client, 'alice')

    resp = client.get('/classes/')
    assert resp.status_code == 200
    assert b'Tomorrow session' in resp.data
    assert b'Last week recap' not in resp.data

    resp = client.get('/classes/?show=all')
    assert b'Last week recap' in resp.data


def test_timetable_hides_courses_not_enrolled(client, student, course):
    dao.create_scheduled_class({'course_id': course['id'], 'title': 'Members only', 'start_time': in_days(1)})
    login(client, 'alice')
    assert b'Members only' not in client.get('/classes/').data
