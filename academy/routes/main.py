import logging

from flask import Blueprint, render_template, redirect, url_for, jsonify, request, flash
from academy.decorators import auth_required, get_current_user
from academy import firestore_dao as dao
from academy.forms import ContactForm
from academy.services import catalog

logger = logging.getLogger(__name__)

bp = Blueprint('main', __name__)


@bp.route('/health')
def health():
    return jsonify({'status': 'ok'}), 200


@bp.route('/')
def index():
    courses = dao.get_published_courses()
    return render_template('index.html',
                           popular_courses=catalog.popular_courses(courses),
                           categories=catalog.categories(courses),
                           popular_searches=catalog.POPULAR_SEARCHES,
                           total_courses=len(courses))


@bp.route('/about')
def about():
    return render_template('about.html')


@bp.route('/privacy')
def privacy():
    return render_template('privacy.html')


@bp.route('/contact', methods=['GET', 'POST'])
def contact():
    form = ContactForm()
    user = get_current_user()
    if request.method == 'GET' and user.is_authenticated:
        form.name.data = user.display_name
        form.email.data = user.email

    if form.validate_on_submit():
        dao.create_contact_message({
            'name': form.name.data,
            'email': form.email.data,
            'subject': form.subject.data,
            'message': form.message.data,
            'user_id': user.uid or None,
        })
        flash('Thanks for reaching out! We will get back to you soon.', 'success')
        return redirect(url_for('main.contact'))

    return render_template('contact.html', form=form)


@bp.route('/dashboard')
@auth_required
def dashboard():
    user = get_current_user()

    if user.is_admin():
        return redirect(url_for('admin.dashboard'))
    if user.is_instructor():
        return redirect(url_for('instructor.dashboard'))

    enrolled = dao.get_user_enrolled_courses(user.uid)
    in_progress = [c for c in enrolled if (c['progress'].get('completion_percentage') or 0) < 100]
    completed = [c for c in enrolled if (c['progress'].get('completion_percentage') or 0) >= 100]
    upcoming = dao.get_upcoming_classes([c['id'] for c in enrolled])[:5]
    course_titles = {c['id']: c.get('title', '') for c in enrolled}

    total_lessons_done = sum(len(c['progress'].get('completed_lessons') or []) for c in enrolled)
    average = 0
    if enrolled:
        average = round(sum(c['progress'].get('completion_percentage') or 0 for c in enrolled) / len(enrolled))

    return render_template('dashboard/student.html',
                           enrolled=enrolled,
                           in_progress=in_progress,
                           completed=completed,
                           upcoming=upcoming,
                           course_titles=course_titles,
                           total_lessons_done=total_lessons_done,
                           average_progress=average,
                           wishlist_count=len(user.get('wishlist') or []))
