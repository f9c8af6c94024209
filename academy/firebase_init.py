import os
import logging
import firebase_admin
from firebase_admin import credentials, firestore, storage, auth

logger = logging.getLogger(__name__)

DEFAULT_CREDENTIALS_PATH = './firebase-service-account.json'

# Module-level handles; tests assign in-memory fakes here before create_app().
_app = None
_db = None
_bucket = None
_auth = None


def _setting(app_config, key, default=''):
    value = app_config.get(key) if app_config else None
    return value or os.environ.get(key, default)


def _load_credentials(app_config):
    cred_path = _setting(app_config, 'GOOGLE_APPLICATION_CREDENTIALS', DEFAULT_CREDENTIALS_PATH)
    if os.path.exists(cred_path):
        logger.debug('Using service account file %s', cred_path)
        return credentials.Certificate(cred_path)
    logger.debug('No service account file, using application default credentials')
    return credentials.ApplicationDefault()


def init_firebase(app_config=None):
    """Initialise the Admin SDK once per process."""
    global _app, _db, _bucket

    if _app is not None:
        return

    bucket_name = _setting(app_config, 'FIREBASE_STORAGE_BUCKET')
    project_id = _setting(app_config, 'FIREBASE_PROJECT_ID')

    options = {}
    if bucket_name:
        options['storageBucket'] = bucket_name
    if project_id:
        options['projectId'] = project_id

    try:
        _app = firebase_admin.get_app()
    except ValueError:
        _app = firebase_admin.initialize_app(_load_credentials(app_config), options=options or None)

    _db = firestore.client(_app)
    if bucket_name:
        _bucket = storage.bucket(app=_app)

    logger.info('Firebase initialised (project: %s, storage bucket: %s)',
                project_id or 'default', bucket_name or 'none')


def get_db():
    if _db is None:
        init_firebase()
    return _db


def get_bucket():
    """Storage bucket, or None when FIREBASE_STORAGE_BUCKET is unset."""
    if _bucket is None and _app is None:
        init_firebase()
    return _bucket


def get_auth():
    """Firebase Auth client; the SDK module unless a replacement was injected."""
    return _auth if _auth is not None else auth
