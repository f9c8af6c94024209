import logging
from datetime import datetime

from flask import Blueprint, render_template, redirect, url_for, flash, request, abort, Response
from academy.decorators import role_required, get_current_user, ADMIN_ROLES
from academy import firestore_dao as dao
from academy.firestore_models import ROLES
from academy.forms import RoleForm, StatusForm, AssignStudentForm
from academy.services.exports import users_workbook, XLSX_MIMETYPE

logger = logging.getLogger(__name__)

bp = Blueprint('admin', __name__, url_prefix='/admin')


def _get_target_user(user_id):
    target = dao.get_user(user_id)
    if not target:
        abort(404)
    return target


def _can_modify(admin, target):
    """Only super admins may touch admin accounts; nobody edits themselves here."""
    if target['id'] == admin.uid:
        return False
    if target.get('role') in ADMIN_ROLES and not admin.is_super_admin():
        return False
    return True


def _assign_form(instructors, students):
    form = AssignStudentForm()
    form.instructor_id.choices = [
        (u['id'], f"{u.get('display_name') or u.get('email')} ({u.get('unique_id') or '-'})")
        for u in instructors
    ]
    form.student_id.choices = [
        (u['id'], f"{u.get('display_name') or u.get('email')} ({u.get('unique_id') or '-'})")
        for u in students
    ]
    return form


@bp.route('/')
@role_required(*ADMIN_ROLES)
def dashboard():
    role_filter = request.args.get('role', 'all')
    users = dao.get_all_users(role_filter if role_filter in ROLES else None)
    search = request.args.get('q', '').strip().lower()
    if search:
        users = [
            u for u in users
            if search in (u.get('display_name') or '').lower()
            or search in (u.get('email') or '').lower()
            or search in (u.get('unique_id') or '').lower()
        ]

    instructors = dao.get_all_users('instructor')
    students = dao.get_all_users('student')
    courses = dao.get_all_courses()

    return render_template('admin/dashboard.html',
                           stats=dao.get_user_management_stats(),
                           users=users,
                           courses=courses,
                           published_count=sum(1 for c in courses if c.get('is_published')),
                           logs=dao.get_admin_logs(),
                           role_form=RoleForm(),
                           status_form=StatusForm(),
                           assign_form=_assign_form(instructors, students),
                           instructors=instructors,
                           role_filter=role_filter,
                           search=search,
                           roles=ROLES)


@bp.route('/users/<user_id>/role', methods=['POST'])
@role_required(*ADMIN_ROLES)
def change_role(user_id):
    admin = get_current_user()
    target = _get_target_user(user_id)
    form = RoleForm()
    if not form.validate_on_submit():
        flash('Choose a valid role.', 'danger')
        return redirect(url_for('admin.dashboard'))

    new_role = form.role.data
    if not _can_modify(admin, target):
        flash('You cannot change the role of this account.', 'danger')
        return redirect(url_for('admin.dashboard'))
    if new_role in ADMIN_ROLES and not admin.is_super_admin():
        flash('Only a super admin can grant admin access.', 'danger')
        return redirect(url_for('admin.dashboard'))
    if new_role == target.get('role'):
        flash('The user already has that role.', 'info')
        return redirect(url_for('admin.dashboard'))

    updates = dao.update_user_role(user_id, new_role, admin.uid)
    label = target.get('display_name') or target.get('email')
    if 'unique_id' in updates:
        flash(f"{label} is now {new_role.replace('_', ' ')} ({updates['unique_id']}).", 'success')
    else:
        flash(f"{label} is now {new_role.replace('_', ' ')}.", 'success')
    return redirect(url_for('admin.dashboard'))


@bp.route('/users/<user_id>/status', methods=['POST'])
@role_required(*ADMIN_ROLES)
def change_status(user_id):
    admin = get_current_user()
    target = _get_target_user(user_id)
    form = StatusForm()
    if not form.validate_on_submit():
        flash('Choose a valid status.', 'danger')
        return redirect(url_for('admin.dashboard'))
    if not _can_modify(admin, target):
        flash('You cannot change the status of this account.', 'danger')
        return redirect(url_for('admin.dashboard'))

    dao.update_user_status(user_id, form.status.data, admin.uid)
    flash(f"Status updated to {form.status.data}.", 'success')
    return redirect(url_for('admin.dashboard'))


@bp.route('/assignments', methods=['POST'])
@role_required(*ADMIN_ROLES)
def assign_student():
    admin = get_current_user()
    form = _assign_form(dao.get_all_users('instructor'), dao.get_all_users('student'))
    if not form.validate_on_submit():
        flash('Pick an instructor and a student.', 'danger')
        return redirect(url_for('admin.dashboard'))

    course_id = (form.course_id.data or '').strip() or None
    if course_id and not dao.get_course(course_id):
        flash('That course does not exist.', 'danger')
        return redirect(url_for('admin.dashboard'))

    dao.assign_student_to_instructor(form.instructor_id.data, form.student_id.data,
                                     admin.uid, course_id=course_id)
    flash('Student assigned.', 'success')
    return redirect(url_for('admin.dashboard'))


@bp.route('/assignments/remove', methods=['POST'])
@role_required(*ADMIN_ROLES)
def remove_assignment():
    admin = get_current_user()
    instructor_id = request.form.get('instructor_id')
    student_id = request.form.get('student_id')
    if not instructor_id or not student_id:
        flash('Missing instructor or student.', 'danger')
        return redirect(url_for('admin.dashboard'))

    dao.remove_student_from_instructor(instructor_id, student_id, admin.uid)
    flash('Assignment removed.', 'info')
    return redirect(url_for('admin.dashboard'))


@bp.route('/courses/<course_id>/publish', methods=['POST'])
@role_required(*ADMIN_ROLES)
def toggle_publish(course_id):
    admin = get_current_user()
    course = dao.get_course(course_id)
    if not course:
        abort(404)

    published = not course.get('is_published', False)
    if published and not course.get('lessons'):
        flash('Add at least one lesson before publishing.', 'warning')
        return redirect(url_for('admin.dashboard'))

    dao.set_course_published(course_id, published)
    logger.info('Admin %s set course %s published=%s', admin.uid, course_id, published,
                extra={'course_id': course_id, 'user_id': admin.uid})
    flash(f"{course.get('title', 'Course')} is now {'published' if published else 'unpublished'}.", 'success')
    return redirect(url_for('admin.dashboard'))


@bp.route('/users/export.xlsx')
@role_required(*ADMIN_ROLES)
def export_users():
    role_filter = request.args.get('role')
    users = dao.get_all_users(role_filter if role_filter in ROLES else None)
    stamp = datetime.now().strftime('%Y%m%d')
    return Response(
        users_workbook(users),
        mimetype=XLSX_MIMETYPE,
        headers={'Content-Disposition': f'attachment;filename=users_{stamp}.xlsx'}
    )
