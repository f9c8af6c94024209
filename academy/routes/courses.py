import logging

from flask import (Blueprint, render_template, redirect, url_for, flash, request,
                   jsonify, abort, session)
from academy.decorators import auth_required, role_required, get_current_user
from academy import firestore_dao as dao
from academy.events import notify_enrollment
from academy.forms import CourseForm, LessonForm, ReviewForm
from academy.services import catalog
from academy.services.payments import checkout_totals
from academy.services.storage import read_image_upload, upload_course_thumbnail, get_signed_url

logger = logging.getLogger(__name__)

bp = Blueprint('courses', __name__, url_prefix='/courses')

MANAGER_ROLES = ('instructor', 'admin', 'super_admin')


def _get_visible_course(course_id, user):
    """Published course, or any course its owner/an admin may see."""
    course = dao.get_course(course_id)
    if not course:
        abort(404)
    if not course.get('is_published') and not user.can_manage_course(course):
        abort(404)
    return course


def _get_managed_course(course_id, user):
    course = dao.get_course(course_id)
    if not course:
        abort(404)
    if not user.can_manage_course(course):
        abort(403)
    return course


def _suggestion(course):
    return {
        'id': course['id'],
        'title': course.get('title', ''),
        'instructor_name': course.get('instructor_name', ''),
        'category': course.get('category', ''),
        'price': course.get('price') or 0,
        'url': url_for('courses.detail', course_id=course['id']),
    }


@bp.route('/')
def list_courses():
    query = request.args.get('q', '').strip()
    category = request.args.get('category', 'all')
    level = request.args.get('level', 'all')
    availability = request.args.get('availability', 'all')
    price = request.args.get('price', 'all')
    sort_by = request.args.get('sort', 'popular')
    if sort_by not in catalog.SORT_OPTIONS:
        sort_by = 'popular'

    if query:
        session['recent_searches'] = catalog.remember_search(session.get('recent_searches'), query)

    all_courses = dao.get_published_courses()
    results = catalog.filter_courses(all_courses, query=query, category=category, level=level,
                                     availability=availability, price=price)
    results = catalog.sort_courses(results, sort_by)

    user = get_current_user()
    wishlist = set(user.get('wishlist') or []) if user.is_authenticated else set()
    enrolled = set(user.get('enrolled_courses') or []) if user.is_authenticated else set()

    return render_template('courses/list.html',
                           courses=results,
                           total=len(all_courses),
                           categories=catalog.categories(all_courses),
                           sort_options=catalog.SORT_OPTIONS,
                           recent_searches=session.get('recent_searches', []),
                           popular_searches=catalog.POPULAR_SEARCHES,
                           wishlist=wishlist,
                           enrolled=enrolled,
                           filters={
                               'q': query, 'category': category, 'level': level,
                               'availability': availability, 'price': price, 'sort': sort_by,
                           })


@bp.route('/suggest')
def suggest():
    query = request.args.get('q', '')
    courses = dao.get_published_courses()
    if not query.strip():
        return jsonify({
            'suggestions': [],
            'recent': session.get('recent_searches', []),
            'popular_searches': catalog.POPULAR_SEARCHES,
            'popular_courses': [_suggestion(c) for c in catalog.popular_courses(courses)],
        })
    return jsonify({
        'suggestions': [_suggestion(c) for c in catalog.suggest(courses, query)],
    })


@bp.route('/recent-searches/clear', methods=['POST'])
def clear_recent_searches():
    term = request.form.get('term')
    if term:
        session['recent_searches'] = [s for s in session.get('recent_searches', []) if s != term]
    else:
        session.pop('recent_searches', None)
    return redirect(request.referrer or url_for('courses.list_courses'))


@bp.route('/my')
@auth_required
def my_courses():
    user = get_current_user()
    courses = dao.get_user_enrolled_courses(user.uid)
    status = request.args.get('status', 'all')
    if status == 'in-progress':
        courses = [c for c in courses if (c['progress'].get('completion_percentage') or 0) < 100]
    elif status == 'completed':
        courses = [c for c in courses if (c['progress'].get('completion_percentage') or 0) >= 100]
    return render_template('courses/my_courses.html', courses=courses, status=status)


@bp.route('/<course_id>')
def detail(course_id):
    user = get_current_user()
    course = _get_visible_course(course_id, user)

    enrollment = None
    in_wishlist = False
    if user.is_authenticated:
        enrollment = dao.get_enrollment(course_id, user.uid)
        in_wishlist = course_id in (user.get('wishlist') or [])

    reviews = dao.get_course_reviews(course_id)
    can_review = bool(enrollment) and not any(r.get('user_id') == user.uid for r in reviews)
    lessons = sorted(course.get('lessons') or [], key=lambda l: l.get('order') or 0)

    return render_template('courses/detail.html',
                           course=course,
                           lessons=lessons,
                           enrollment=enrollment,
                           in_wishlist=in_wishlist,
                           reviews=reviews,
                           can_review=can_review,
                           review_form=ReviewForm() if can_review else None,
                           can_manage=user.can_manage_course(course) if user.is_authenticated else False,
                           upcoming=dao.get_upcoming_classes([course_id])[:3],
                           totals=checkout_totals(course))


@bp.route('/<course_id>/lessons/<lesson_id>')
def lesson(course_id, lesson_id):
    user = get_current_user()
    course = _get_visible_course(course_id, user)
    current = dao.find_lesson(course, lesson_id)
    if not current:
        abort(404)

    enrollment = dao.get_enrollment(course_id, user.uid) if user.is_authenticated else None
    allowed = current.get('is_preview') or enrollment or (
        user.is_authenticated and user.can_manage_course(course))
    if not allowed:
        if not user.is_authenticated:
            flash('Please log in to continue.', 'info')
            return redirect(url_for('auth.login', next=request.url))
        flash('Enroll in this course to access its lessons.', 'warning')
        return redirect(url_for('courses.detail', course_id=course_id))

    lessons = sorted(course.get('lessons') or [], key=lambda l: l.get('order') or 0)
    ids = [l['id'] for l in lessons]
    idx = ids.index(lesson_id)
    completed = []
    if enrollment:
        completed = (enrollment.get('progress') or {}).get('completed_lessons') or []
        dao.update_course_progress(user.uid, course_id, {})

    return render_template('courses/lesson.html',
                           course=course,
                           lesson=current,
                           lessons=lessons,
                           completed=completed,
                           enrollment=enrollment,
                           prev_lesson=lessons[idx - 1] if idx > 0 else None,
                           next_lesson=lessons[idx + 1] if idx + 1 < len(lessons) else None)


@bp.route('/<course_id>/lessons/<lesson_id>/complete', methods=['POST'])
@auth_required
def complete_lesson(course_id, lesson_id):
    user = get_current_user()
    course = dao.get_course(course_id)
    if not course or not dao.find_lesson(course, lesson_id):
        if request.is_json:
            return jsonify({'error': 'Lesson not found'}), 404
        abort(404)

    try:
        result = dao.mark_lesson_complete(user.uid, course_id, lesson_id)
    except dao.EnrollmentError as e:
        if request.is_json:
            return jsonify({'error': str(e)}), 403
        flash(str(e), 'danger')
        return redirect(url_for('courses.detail', course_id=course_id))

    notify_enrollment(user.uid, course_id, result)
    if request.is_json:
        return jsonify({'success': True, **result})

    if result['completed']:
        flash(f"Congratulations! You completed {course.get('title', 'the course')}.", 'success')
    else:
        flash(f"Lesson completed. You are {result['completion_percentage']}% through the course.", 'success')

    next_id = request.form.get('next_lesson_id')
    if next_id and dao.find_lesson(course, next_id):
        return redirect(url_for('courses.lesson', course_id=course_id, lesson_id=next_id))
    return redirect(url_for('courses.detail', course_id=course_id))


@bp.route('/<course_id>/reviews', methods=['POST'])
@auth_required
def add_review(course_id):
    user = get_current_user()
    course = _get_visible_course(course_id, user)
    enrollment = dao.get_enrollment(course_id, user.uid)
    if not enrollment:
        flash('Only enrolled students can review this course.', 'warning')
        return redirect(url_for('courses.detail', course_id=course_id))

    form = ReviewForm()
    if form.validate_on_submit():
        try:
            dao.create_review(course_id, user.uid, {
                'user_name': user.name,
                'rating': form.rating.data,
                'title': form.title.data,
                'content': form.content.data,
                'is_verified_purchase': bool(enrollment.get('payment')),
            })
        except dao.ReviewError as e:
            flash(str(e), 'warning')
        else:
            flash('Thanks for your review!', 'success')
    else:
        for errors in form.errors.values():
            flash(errors[0], 'danger')
    return redirect(url_for('courses.detail', course_id=course['id']))


# ---------------------------------------------------------------------------
# Course authoring (instructors and admins)
# ---------------------------------------------------------------------------

def _course_data_from_form(form):
    return {
        'title': form.title.data,
        'short_description': form.short_description.data or None,
        'description': form.description.data,
        'category': form.category.data,
        'level': form.level.data,
        'price': form.price.data or 0,
        'original_price': form.original_price.data or None,
        'duration': form.duration.data or None,
        'tags': form.tag_list(),
        'available': form.available.data,
    }


def _save_thumbnail(form, course_id):
    thumb = form.thumbnail.data
    if not thumb or not getattr(thumb, 'filename', ''):
        return None
    data, ext = read_image_upload(thumb)
    path = upload_course_thumbnail(course_id, data, ext)
    return get_signed_url(path)


@bp.route('/create', methods=['GET', 'POST'])
@role_required(*MANAGER_ROLES)
def create():
    user = get_current_user()
    form = CourseForm()
    if form.validate_on_submit():
        data = _course_data_from_form(form)
        data.update({
            'instructor_id': user.uid,
            'instructor_name': user.name,
            'is_published': False,
        })
        course_id = dao.create_course(data)
        try:
            thumbnail_url = _save_thumbnail(form, course_id)
        except ValueError as e:
            flash(str(e), 'warning')
        else:
            if thumbnail_url:
                dao.update_course(course_id, {'thumbnail_url': thumbnail_url})
        flash('Course created! Add lessons and publish it when you are ready.', 'success')
        return redirect(url_for('courses.detail', course_id=course_id))

    return render_template('courses/form.html', form=form, course=None)


@bp.route('/<course_id>/edit', methods=['GET', 'POST'])
@role_required(*MANAGER_ROLES)
def edit(course_id):
    user = get_current_user()
    course = _get_managed_course(course_id, user)

    form = CourseForm(data=dict(course, tags=', '.join(course.get('tags') or []), thumbnail=None))
    if form.validate_on_submit():
        data = _course_data_from_form(form)
        try:
            thumbnail_url = _save_thumbnail(form, course_id)
        except ValueError as e:
            flash(str(e), 'danger')
            return render_template('courses/form.html', form=form, course=course)
        if thumbnail_url:
            data['thumbnail_url'] = thumbnail_url
        dao.update_course(course_id, data)
        flash('Course updated!', 'success')
        return redirect(url_for('courses.detail', course_id=course_id))

    return render_template('courses/form.html', form=form, course=course)


@bp.route('/<course_id>/publish', methods=['POST'])
@role_required(*MANAGER_ROLES)
def toggle_publish(course_id):
    user = get_current_user()
    course = _get_managed_course(course_id, user)
    publish = not course.get('is_published')
    if publish and not course.get('lessons'):
        flash('Add at least one lesson before publishing.', 'warning')
        return redirect(url_for('courses.detail', course_id=course_id))
    dao.set_course_published(course_id, publish)
    flash('Course published!' if publish else 'Course unpublished.', 'success')
    return redirect(request.referrer or url_for('courses.detail', course_id=course_id))


@bp.route('/<course_id>/lessons/new', methods=['GET', 'POST'])
@role_required(*MANAGER_ROLES)
def add_lesson(course_id):
    user = get_current_user()
    course = _get_managed_course(course_id, user)
    form = LessonForm()
    if form.validate_on_submit():
        dao.add_lesson(course_id, {
            'title': form.title.data,
            'description': form.description.data or None,
            'video_url': form.video_url.data or None,
            'duration_minutes': form.duration_minutes.data or 0,
            'is_preview': form.is_preview.data,
        })
        flash('Lesson added.', 'success')
        return redirect(url_for('courses.detail', course_id=course_id))
    return render_template('courses/lesson_form.html', form=form, course=course)
