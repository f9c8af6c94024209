import io
from datetime import datetime, timezone

from openpyxl import load_workbook

from academy.services.exports import users_workbook, course_roster_workbook


def _rows(data):
    ws = load_workbook(io.BytesIO(data)).active
    return ws, list(ws.iter_rows(values_only=True))


def test_users_workbook_rows():
    ws, rows = _rows(users_workbook([{
        'unique_id': 'DRA-STU-26001', 'display_name': 'Alice', 'email': 'alice@example.com',
        'role': 'student', 'enrolled_courses': ['c1', 'c2'],
        'created_at': datetime(2026, 1, 5, 9, 30, tzinfo=timezone.utc),
    }]))
    assert ws.title == 'Users'
    assert rows[1] == ('DRA-STU-26001', 'Alice', 'alice@example.com', 'student', 'active', 2, '2026-01-05 09:30')


def test_formula_like_names_are_stored_as_text():
    data = users_workbook([
        {'display_name': '=HYPERLINK("http://evil.example","x")', 'email': '@cmd@example.com'},
        {'display_name': '+1 Tutor', 'email': '-x@example.com'},
    ])
    ws = load_workbook(io.BytesIO(data)).active
    for row in ws.iter_rows(min_row=2, max_col=3):
        for cell in row[1:]:
            assert cell.data_type == 's'
    assert ws['B2'].value == '\'=HYPERLINK("http://evil.example","x")'
    assert ws['C2'].value == "'@cmd@example.com"
    assert ws['B3'].value == "'+1 Tutor"


def test_roster_escapes_student_names_and_titles_sheet():
    course = {'title': 'SQL: Joins [Live]'}
    enrollment = {'progress': {'completion_percentage': 50}, 'payment': {'amount': 2359}}
    ws, rows = _rows(course_roster_workbook(course, [({'display_name': '=1+1', 'email': 'a@example.com'}, enrollment)]))
    assert ws.title == 'SQL Joins Live'
    assert rows[1][1] == "'=1+1"
    assert rows[1][4:] == (50, 'active', 2359)
