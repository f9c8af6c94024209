import logging
from functools import wraps

from firebase_admin import auth as firebase_auth
from firebase_admin import exceptions as firebase_exceptions
from flask import request, redirect, url_for, flash, g, session, jsonify

from academy.firebase_init import get_auth, get_db

logger = logging.getLogger(__name__)

ADMIN_ROLES = ('admin', 'super_admin')


def _verify_session():
    """Verify Firebase session cookie and return the user's profile dict."""
    session_cookie = session.get('firebase_session')
    if not session_cookie:
        return None

    auth = get_auth()
    try:
        decoded = auth.verify_session_cookie(session_cookie, check_revoked=True)
    except (ValueError, firebase_auth.InvalidSessionCookieError,
            firebase_auth.RevokedSessionCookieError,
            firebase_auth.UserDisabledError):
        session.pop('firebase_session', None)
        return None
    except firebase_exceptions.FirebaseError as e:
        logger.warning('Session verification unavailable: %s', e)
        return None

    uid = decoded['uid']
    user_doc = get_db().collection('users').document(uid).get()
    if not user_doc.exists:
        return None

    user_data = user_doc.to_dict()
    user_data['uid'] = uid
    user_data['id'] = uid
    return user_data


class CurrentUser:
    """Proxy object providing attribute access to the current user dict."""

    def __init__(self, data=None):
        self._data = data or {}

    def __getattr__(self, name):
        if name.startswith('_'):
            raise AttributeError(name)
        return self._data.get(name)

    def __getitem__(self, key):
        return self._data[key]

    def __contains__(self, key):
        return key in self._data

    def get(self, key, default=None):
        return self._data.get(key, default)

    @property
    def is_authenticated(self):
        return bool(self._data)

    @property
    def uid(self):
        return self._data.get('uid', '')

    @property
    def id(self):
        return self._data.get('uid', '')

    @property
    def role(self):
        return self._data.get('role', 'student')

    @property
    def name(self):
        return self._data.get('display_name') or self._data.get('email', '')

    @property
    def initial(self):
        name = self.name
        return name[0].upper() if name else '?'

    @property
    def is_suspended(self):
        return self._data.get('profile_status') == 'suspended'

    def is_student(self):
        return self.role == 'student'

    def is_instructor(self):
        return self.role == 'instructor'

    def is_admin(self):
        return self.role in ADMIN_ROLES

    def is_super_admin(self):
        return self.role == 'super_admin'

    def owns_course(self, course):
        return bool(course) and course.get('instructor_id') == self.uid

    def can_manage_course(self, course):
        return self.is_admin() or self.owns_course(course)


def load_current_user():
    """Load current user into g before each request."""
    if hasattr(g, '_current_user'):
        return
    user_data = _verify_session()
    g._current_user = CurrentUser(user_data)


def get_current_user():
    if not hasattr(g, '_current_user'):
        load_current_user()
    return g._current_user


def _reject_suspended(user):
    session.pop('firebase_session', None)
    g._current_user = CurrentUser()
    logger.warning('Suspended account %s tried to access %s', user.uid, request.path)
    flash('Your account has been suspended. Please contact support.', 'danger')
    return redirect(url_for('auth.login'))


def auth_required(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        user = get_current_user()
        if not user.is_authenticated:
            flash('Please log in to continue.', 'info')
            return redirect(url_for('auth.login', next=request.url))
        if user.is_suspended:
            return _reject_suspended(user)
        g.current_user = user
        return f(*args, **kwargs)
    return decorated


def role_required(*roles):
    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            user = get_current_user()
            if not user.is_authenticated:
                flash('Please log in to continue.', 'info')
                return redirect(url_for('auth.login', next=request.url))
            if user.is_suspended:
                return _reject_suspended(user)
            if user.role not in roles:
                flash('You do not have access to that page.', 'danger')
                return redirect(url_for('main.dashboard'))
            g.current_user = user
            return f(*args, **kwargs)
        return decorated
    return decorator


def api_auth_required(f):
    """JSON flavour of auth_required for XHR endpoints."""
    @wraps(f)
    def decorated(*args, **kwargs):
        user = get_current_user()
        if not user.is_authenticated:
            return jsonify({'error': 'Authentication required.'}), 401
        if user.is_suspended:
            return jsonify({'error': 'Your account has been suspended.'}), 403
        g.current_user = user
        return f(*args, **kwargs)
    return decorated
