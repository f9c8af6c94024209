"""Spreadsheet exports for the admin and instructor dashboards."""

import io

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


def _style_header(ws, columns):
    header_font = Font(bold=True)
    header_fill = PatternFill(start_color='E0E0E0', end_color='E0E0E0', fill_type='solid')
    for idx, (title, width) in enumerate(columns, start=1):
        cell = ws.cell(row=1, column=idx, value=title)
        cell.font = header_font
        cell.fill = header_fill
        ws.column_dimensions[cell.column_letter].width = width


FORMULA_PREFIXES = ('=', '+', '-', '@')


def _safe(value):
    """Keep user text from being stored as a spreadsheet formula."""
    if isinstance(value, str) and value.startswith(FORMULA_PREFIXES):
        return "'" + value
    return value


def _fmt_date(value):
    return value.strftime('%Y-%m-%d %H:%M') if value else ''


def _to_bytes(wb):
    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()


def users_workbook(users):
    wb = Workbook()
    ws = wb.active
    ws.title = 'Users'
    _style_header(ws, [
        ('Unique ID', 18), ('Name', 28), ('Email', 34), ('Role', 14),
        ('Status', 12), ('Enrolled courses', 18), ('Joined', 18),
    ])
    for u in users:
        ws.append([
            _safe(u.get('unique_id') or ''),
            _safe(u.get('display_name') or ''),
            _safe(u.get('email') or ''),
            u.get('role') or 'student',
            u.get('profile_status') or 'active',
            len(u.get('enrolled_courses') or []),
            _fmt_date(u.get('created_at')),
        ])
    return _to_bytes(wb)


def course_roster_workbook(course, rows):
    """rows: list of (user dict, enrollment dict) pairs."""
    wb = Workbook()
    ws = wb.active
    ws.title = 'Roster'
    _style_header(ws, [
        ('Unique ID', 18), ('Student', 28), ('Email', 34), ('Enrolled', 18),
        ('Completion %', 14), ('Status', 12), ('Amount paid', 14),
    ])
    for user, enrollment in rows:
        progress = enrollment.get('progress') or {}
        payment = enrollment.get('payment') or {}
        ws.append([
            _safe(user.get('unique_id') or ''),
            _safe(user.get('display_name') or ''),
            _safe(user.get('email') or ''),
            _fmt_date(enrollment.get('enrolled_at')),
            progress.get('completion_percentage', 0),
            enrollment.get('status', 'active'),
            payment.get('amount') or 0,
        ])
    title = ''.join(ch for ch in (course.get('title') or '') if ch not in '[]:*?/\\')
    ws.title = title.strip()[:31] or 'Roster'
    return _to_bytes(wb)
