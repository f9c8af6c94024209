import logging
import re
from datetime import datetime, timezone

from flask import Blueprint, render_template, redirect, url_for, flash, abort, Response
from academy.decorators import role_required, get_current_user
from academy import firestore_dao as dao
from academy.events import notify_class_change
from academy.forms import ScheduledClassForm
from academy.services.exports import course_roster_workbook, XLSX_MIMETYPE

logger = logging.getLogger(__name__)

bp = Blueprint('instructor', __name__, url_prefix='/instructor')

TEACHING_ROLES = ('instructor', 'admin', 'super_admin')


def _teaching_courses(user):
    if user.is_admin():
        return dao.get_all_courses()
    return dao.get_instructor_courses(user.uid)


def _get_managed_course(course_id):
    user = get_current_user()
    course = dao.get_course(course_id)
    if not course:
        abort(404)
    if not user.can_manage_course(course):
        abort(403)
    return course


def _get_managed_class(class_id):
    cls = dao.get_scheduled_class(class_id)
    if not cls:
        abort(404)
    _get_managed_course(cls['course_id'])
    return cls


def _class_start(form):
    return datetime.combine(form.date.data, form.time.data, tzinfo=timezone.utc)


@bp.route('/')
@role_required(*TEACHING_ROLES)
def dashboard():
    user = get_current_user()
    courses = _teaching_courses(user)

    course_stats = []
    total_students = 0
    total_revenue = 0
    for course in courses:
        enrollments = dao.get_course_enrollments(course['id'])
        revenue = sum(p.get('total_amount') or 0 for p in dao.get_course_payments(course['id']))
        percentages = [
            (e.get('progress') or {}).get('completion_percentage', 0) for e in enrollments
        ]
        course_stats.append({
            'course': course,
            'students': len(enrollments),
            'revenue': revenue,
            'average_progress': round(sum(percentages) / len(percentages)) if percentages else 0,
        })
        total_students += len(enrollments)
        total_revenue += revenue

    upcoming = dao.get_upcoming_classes([c['id'] for c in courses])

    return render_template('instructor/dashboard.html',
                           course_stats=course_stats,
                           total_courses=len(courses),
                           published_courses=sum(1 for c in courses if c.get('is_published')),
                           total_students=total_students,
                           total_revenue=total_revenue,
                           assigned_students=dao.get_instructor_students(user.uid),
                           upcoming=upcoming[:5],
                           course_titles={c['id']: c.get('title', '') for c in courses})


@bp.route('/courses/<course_id>/roster.xlsx')
@role_required(*TEACHING_ROLES)
def export_roster(course_id):
    course = _get_managed_course(course_id)
    enrollments = dao.get_course_enrollments(course_id)
    users = {u['id']: u for u in dao.get_users_by_ids([e['user_id'] for e in enrollments])}
    rows = [(users[e['user_id']], e) for e in enrollments if e['user_id'] in users]

    safe_name = re.sub(r'[^A-Za-z0-9_-]+', '_', course.get('title') or course_id).strip('_')
    return Response(
        course_roster_workbook(course, rows),
        mimetype=XLSX_MIMETYPE,
        headers={'Content-Disposition': f'attachment;filename=roster_{safe_name or course_id}.xlsx'}
    )


@bp.route('/classes', methods=['GET', 'POST'])
@role_required(*TEACHING_ROLES)
def classes():
    user = get_current_user()
    courses = _teaching_courses(user)
    form = ScheduledClassForm()
    form.course_id.choices = [(c['id'], c.get('title', c['id'])) for c in courses]

    if form.validate_on_submit():
        course = _get_managed_course(form.course_id.data)
        class_id = dao.create_scheduled_class({
            'course_id': course['id'],
            'instructor_id': course.get('instructor_id') or user.uid,
            'title': form.title.data,
            'description': form.description.data or None,
            'start_time': _class_start(form),
            'duration': form.duration.data,
            'platform': form.platform.data,
            'meeting_url': form.meeting_url.data or None,
        })
        notify_class_change('class_scheduled', dao.get_scheduled_class(class_id))
        logger.info('Class %s scheduled for course %s', class_id, course['id'],
                    extra={'course_id': course['id'], 'user_id': user.uid})
        flash('Class scheduled.', 'success')
        return redirect(url_for('instructor.classes'))

    scheduled = []
    for course in courses:
        scheduled.extend(dao.get_course_classes(course['id']))
    epoch = datetime.min.replace(tzinfo=timezone.utc)
    scheduled.sort(key=lambda c: c.get('start_time') or epoch)

    return render_template('instructor/classes.html',
                           form=form,
                           scheduled=scheduled,
                           editing=None,
                           course_titles={c['id']: c.get('title', '') for c in courses})


@bp.route('/classes/<class_id>/edit', methods=['GET', 'POST'])
@role_required(*TEACHING_ROLES)
def edit_class(class_id):
    cls = _get_managed_class(class_id)
    if cls.get('status') == 'cancelled':
        flash('Cancelled classes cannot be edited.', 'warning')
        return redirect(url_for('instructor.classes'))

    form = ScheduledClassForm()
    form.course_id.choices = [(cls['course_id'], cls['course_id'])]
    form.submit.label.text = 'Save changes'

    if not form.is_submitted():
        start = cls.get('start_time')
        form.course_id.data = cls['course_id']
        form.title.data = cls.get('title')
        form.description.data = cls.get('description')
        form.date.data = start.date() if start else None
        form.time.data = start.time().replace(tzinfo=None) if start else None
        form.duration.data = cls.get('duration', 60)
        form.platform.data = cls.get('platform', 'zoom')
        form.meeting_url.data = cls.get('meeting_url')

    if form.validate_on_submit():
        dao.update_scheduled_class(class_id, {
            'title': form.title.data,
            'description': form.description.data or None,
            'start_time': _class_start(form),
            'duration': form.duration.data,
            'platform': form.platform.data,
            'meeting_url': form.meeting_url.data or None,
        })
        notify_class_change('class_updated', dao.get_scheduled_class(class_id))
        flash('Class updated.', 'success')
        return redirect(url_for('instructor.classes'))

    return render_template('instructor/classes.html',
                           form=form,
                           scheduled=[],
                           editing=cls,
                           course_titles={})


@bp.route('/classes/<class_id>/cancel', methods=['POST'])
@role_required(*TEACHING_ROLES)
def cancel_class(class_id):
    cls = _get_managed_class(class_id)
    if cls.get('status') != 'cancelled':
        dao.cancel_scheduled_class(class_id)
        cls['status'] = 'cancelled'
        notify_class_change('class_cancelled', cls)
        flash('Class cancelled. Enrolled students have been notified.', 'info')
    return redirect(url_for('instructor.classes'))
