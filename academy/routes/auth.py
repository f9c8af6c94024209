import logging
from datetime import timedelta
from urllib.parse import urlparse, urljoin

import requests as http_requests
from firebase_admin import auth as firebase_auth
from firebase_admin import exceptions as firebase_exceptions
from flask import (Blueprint, render_template, redirect, url_for, flash,
                   request, make_response, session, current_app, jsonify)
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from academy.decorators import auth_required, get_current_user
from academy.firebase_init import get_auth
from academy import firestore_dao as dao
from academy.services.storage import read_image_upload, upload_profile_image, get_signed_url
from academy.forms import RegistrationForm, LoginForm, ForgotPasswordForm, ProfileForm

logger = logging.getLogger(__name__)

bp = Blueprint('auth', __name__, url_prefix='/auth')

IDENTITY_TOOLKIT_URL = 'https://identitytoolkit.googleapis.com/v1/accounts:{method}'

SIGN_IN_ERRORS = {
    'EMAIL_NOT_FOUND': 'No account found with this email address.',
    'INVALID_PASSWORD': 'Incorrect password.',
    'INVALID_LOGIN_CREDENTIALS': 'Incorrect email or password.',
    'INVALID_EMAIL': 'Invalid email address.',
    'USER_DISABLED': 'This account has been disabled.',
    'TOO_MANY_ATTEMPTS_TRY_LATER': 'Too many failed attempts. Please try again later.',
    'UNAVAILABLE': 'Sign in is temporarily unavailable. Please try again in a moment.',
}
DEFAULT_SIGN_IN_ERROR = 'Sign in failed. Please check your details and try again.'


class _TransientAuthError(Exception):
    pass


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
    retry=retry_if_exception_type((http_requests.ConnectionError,
                                   http_requests.Timeout,
                                   _TransientAuthError)),
    reraise=True
)
def _identity_toolkit(method, payload):
    """POST to the Firebase Auth REST API. Returns (ok, body)."""
    api_key = current_app.config.get('FIREBASE_WEB_API_KEY')
    if not api_key:
        logger.error('FIREBASE_WEB_API_KEY is not configured')
        return False, {'error': {'message': 'CONFIGURATION_NOT_FOUND'}}

    resp = http_requests.post(
        f'{IDENTITY_TOOLKIT_URL.format(method=method)}?key={api_key}',
        json=payload,
        timeout=10,
    )
    if resp.status_code == 429 or resp.status_code >= 500:
        raise _TransientAuthError(f'{method} returned {resp.status_code}')
    return resp.status_code == 200, resp.json()


def _error_code(body):
    message = (body or {}).get('error', {}).get('message', '')
    return message.split(':')[0].split(' ')[0].strip()


def _firebase_sign_in(email, password):
    """Verify email/password via Firebase Auth REST API.

    Returns (id_token, None) on success or (None, error_code).
    """
    try:
        ok, body = _identity_toolkit('signInWithPassword', {
            'email': email,
            'password': password,
            'returnSecureToken': True,
        })
    except (http_requests.RequestException, _TransientAuthError) as e:
        logger.error('Firebase sign-in unavailable: %s', e)
        return None, 'UNAVAILABLE'
    if ok:
        return body.get('idToken'), None
    return None, _error_code(body)


def _send_password_reset(email):
    try:
        ok, body = _identity_toolkit('sendOobCode', {
            'requestType': 'PASSWORD_RESET',
            'email': email,
        })
    except (http_requests.RequestException, _TransientAuthError) as e:
        logger.error('Password reset unavailable: %s', e)
        return False
    if not ok:
        logger.info('Password reset not sent: %s', _error_code(body))
    return ok


def is_safe_url(target):
    if not target:
        return False
    ref_url = urlparse(request.host_url)
    test_url = urlparse(urljoin(request.host_url, target))
    return test_url.scheme in ('', 'http', 'https') and ref_url.netloc == test_url.netloc


def _start_session(id_token):
    """Exchange an ID token for a session cookie. Returns the decoded token."""
    auth = get_auth()
    decoded = auth.verify_id_token(id_token)
    expires_in = timedelta(days=current_app.config.get('SESSION_COOKIE_DAYS', 5))
    session['firebase_session'] = auth.create_session_cookie(id_token, expires_in=expires_in)
    return decoded


@bp.route('/register', methods=['GET', 'POST'])
def register():
    current_user = get_current_user()
    if current_user.is_authenticated:
        return redirect(url_for('main.dashboard'))

    form = RegistrationForm()
    if form.validate_on_submit():
        display_name = f'{form.first_name.data} {form.last_name.data}'.strip()
        auth = get_auth()
        try:
            firebase_user = auth.create_user(
                email=form.email.data,
                password=form.password.data,
                display_name=display_name,
            )
        except firebase_auth.EmailAlreadyExistsError:
            flash('An account with this email already exists.', 'danger')
            return render_template('auth/register.html', form=form)
        except (ValueError, firebase_exceptions.FirebaseError) as e:
            logger.warning('Firebase user creation failed: %s', e)
            flash('We could not create your account. Please try again.', 'danger')
            return render_template('auth/register.html', form=form)

        try:
            profile = dao.create_user_profile(firebase_user.uid, {
                'email': form.email.data,
                'display_name': display_name,
                'first_name': form.first_name.data,
                'last_name': form.last_name.data,
                'phone': form.phone.data or None,
                'experience': form.experience.data,
                'learning_goals': form.learning_goals.data or None,
                'provider': 'email',
                'role': 'student',
            })
        except Exception:
            logger.exception('Profile creation failed for %s', firebase_user.uid)
            auth.delete_user(firebase_user.uid)
            flash('We could not create your account. Please try again.', 'danger')
            return render_template('auth/register.html', form=form)

        flash(f"Welcome to Data Rhythm Academy! Your student ID is {profile['unique_id']}. Please sign in.", 'success')
        return redirect(url_for('auth.login'))

    return render_template('auth/register.html', form=form)


@bp.route('/login', methods=['GET', 'POST'])
def login():
    current_user = get_current_user()
    if current_user.is_authenticated:
        return redirect(url_for('main.dashboard'))

    form = LoginForm()

    saved_email = request.cookies.get('saved_email', '')
    if request.method == 'GET' and saved_email:
        form.email.data = saved_email
        form.remember_id.data = True

    if form.validate_on_submit():
        id_token, error_code = _firebase_sign_in(form.email.data, form.password.data)
        if id_token:
            try:
                decoded = _start_session(id_token)
            except (ValueError, firebase_exceptions.FirebaseError) as e:
                logger.warning('Session creation failed: %s', e)
                flash('We could not sign you in. Please try again.', 'danger')
                return render_template('auth/login.html', form=form)

            profile = dao.get_user(decoded['uid'])
            if profile and profile.get('profile_status') == 'suspended':
                session.pop('firebase_session', None)
                flash('Your account has been suspended. Please contact support.', 'danger')
                return render_template('auth/login.html', form=form)
            if profile:
                dao.record_login(decoded['uid'])

            flash('Signed in successfully!', 'success')
            next_page = request.args.get('next')
            if next_page and is_safe_url(next_page):
                response = make_response(redirect(next_page))
            else:
                response = make_response(redirect(url_for('main.dashboard')))

            if form.remember_id.data:
                response.set_cookie(
                    'saved_email', str(form.email.data),
                    max_age=60 * 60 * 24 * 365,
                )
            else:
                response.delete_cookie('saved_email')
            return response

        flash(SIGN_IN_ERRORS.get(error_code, DEFAULT_SIGN_IN_ERROR), 'danger')

    return render_template('auth/login.html', form=form)


@bp.route('/session', methods=['POST'])
def create_session():
    """Sign in with an ID token obtained client-side (Google/GitHub popups)."""
    payload = request.get_json(silent=True) or {}
    id_token = payload.get('id_token')
    if not id_token:
        return jsonify({'error': 'Missing ID token.'}), 400

    try:
        decoded = _start_session(id_token)
    except (ValueError, firebase_exceptions.FirebaseError) as e:
        logger.warning('OAuth session creation failed: %s', e)
        return jsonify({'error': 'Sign in failed. Please try again.'}), 401

    uid = decoded['uid']
    profile = dao.get_user(uid)
    if not profile:
        provider = (decoded.get('firebase') or {}).get('sign_in_provider', 'oauth')
        profile = dao.create_user_profile(uid, {
            'email': decoded.get('email', ''),
            'display_name': decoded.get('name') or decoded.get('email', '').split('@')[0],
            'photo_url': decoded.get('picture'),
            'provider': provider.replace('.com', ''),
            'role': 'student',
        })
    elif profile.get('profile_status') == 'suspended':
        session.pop('firebase_session', None)
        return jsonify({'error': 'Your account has been suspended.'}), 403
    else:
        dao.record_login(uid)

    next_page = payload.get('next')
    redirect_to = next_page if next_page and is_safe_url(next_page) else url_for('main.dashboard')
    return jsonify({'success': True, 'redirect': redirect_to})


@bp.route('/logout')
@auth_required
def logout():
    session.pop('firebase_session', None)
    flash('You have been signed out. See you soon!', 'success')
    return redirect(url_for('main.index'))


@bp.route('/forgot-password', methods=['GET', 'POST'])
def forgot_password():
    current_user = get_current_user()
    if current_user.is_authenticated:
        return redirect(url_for('main.dashboard'))

    form = ForgotPasswordForm()
    if form.validate_on_submit():
        _send_password_reset(form.email.data)
        flash('If an account exists for that email, a password reset link is on its way.', 'info')
        return redirect(url_for('auth.login'))

    return render_template('auth/forgot_password.html', form=form)


@bp.route('/profile', methods=['GET', 'POST'])
@auth_required
def profile():
    current_user = get_current_user()
    form = ProfileForm()

    if request.method == 'GET':
        form.display_name.data = current_user.display_name
        form.phone.data = current_user.phone
        form.bio.data = current_user.bio

    if form.validate_on_submit():
        updates = {
            'display_name': form.display_name.data,
            'phone': form.phone.data or None,
            'bio': form.bio.data or None,
        }
        photo = form.photo.data
        if photo and getattr(photo, 'filename', ''):
            try:
                data, ext = read_image_upload(photo)
                path = upload_profile_image(current_user.uid, data, ext)
            except ValueError as e:
                flash(str(e), 'danger')
                return redirect(url_for('auth.profile'))
            updates['photo_url'] = get_signed_url(path)
            updates['photo_path'] = path

        dao.update_user(current_user.uid, updates)
        flash('Your profile has been saved.', 'success')
        return redirect(url_for('auth.profile'))

    return render_template('auth/profile.html', form=form)
