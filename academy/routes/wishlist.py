from flask import Blueprint, render_template, redirect, url_for, flash, request, abort
from academy.decorators import auth_required, get_current_user
from academy import firestore_dao as dao
from academy.services import catalog

bp = Blueprint('wishlist', __name__, url_prefix='/wishlist')


@bp.route('/')
@auth_required
def list_wishlist():
    user = get_current_user()
    courses = dao.get_courses_by_ids(dao.get_wishlist(user.uid))

    query = request.args.get('q', '').strip()
    category = request.args.get('category', 'all')
    sort_by = request.args.get('sort', 'popular')
    filtered = catalog.filter_courses(courses, query=query, category=category)
    filtered = catalog.sort_courses(filtered, sort_by if sort_by in catalog.SORT_OPTIONS else 'popular')

    return render_template('wishlist/list.html',
                           courses=filtered,
                           total_count=len(courses),
                           total_value=catalog.wishlist_total(courses),
                           categories=catalog.categories(courses),
                           sort_options=catalog.SORT_OPTIONS,
                           filters={'q': query, 'category': category, 'sort': sort_by})


@bp.route('/<course_id>/add', methods=['POST'])
@auth_required
def add(course_id):
    user = get_current_user()
    course = dao.get_course(course_id)
    if not course or not course.get('is_published'):
        abort(404)
    dao.add_to_wishlist(user.uid, course_id)
    flash(f"Added {course.get('title', 'course')} to your wishlist.", 'success')
    return redirect(request.referrer or url_for('courses.detail', course_id=course_id))


@bp.route('/<course_id>/remove', methods=['POST'])
@auth_required
def remove(course_id):
    user = get_current_user()
    dao.remove_from_wishlist(user.uid, course_id)
    flash('Removed from your wishlist.', 'info')
    return redirect(request.referrer or url_for('wishlist.list_wishlist'))


@bp.route('/clear', methods=['POST'])
@auth_required
def clear():
    user = get_current_user()
    dao.clear_wishlist(user.uid)
    flash('Your wishlist has been cleared.', 'info')
    return redirect(url_for('wishlist.list_wishlist'))
