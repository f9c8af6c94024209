from datetime import datetime, timezone

from flask import Blueprint, render_template, request
from academy.decorators import auth_required, get_current_user
from academy import firestore_dao as dao

bp = Blueprint('classes', __name__, url_prefix='/classes')


@bp.route('/')
@auth_required
def timetable():
    """Live classes for the courses the current user is enrolled in."""
    user = get_current_user()
    enrolled = dao.get_user_enrolled_courses(user.uid)
    course_titles = {c['id']: c.get('title', '') for c in enrolled}

    show_past = request.args.get('show') == 'all'
    now = datetime.now(timezone.utc)
    if show_past:
        classes = []
        for course_id in course_titles:
            classes.extend(dao.get_course_classes(course_id))
        epoch = datetime.min.replace(tzinfo=timezone.utc)
        classes.sort(key=lambda c: c.get('start_time') or epoch)
    else:
        classes = dao.get_upcoming_classes(list(course_titles), now=now)

    by_day = {}
    for cls in classes:
        start = cls.get('start_time')
        day = start.date() if start else None
        by_day.setdefault(day, []).append(cls)

    return render_template('classes/timetable.html',
                           classes=classes,
                           by_day=by_day,
                           course_titles=course_titles,
                           show_past=show_past,
                           now=now)
