import copy
import itertools
from datetime import datetime, timezone, timedelta

import pytest
from firebase_admin import auth as firebase_auth
from firebase_admin import exceptions as firebase_exceptions
from google.api_core.exceptions import AlreadyExists, NotFound
from google.cloud.firestore_v1 import ArrayUnion, ArrayRemove, Increment

from academy import firebase_init


# ---------------------------------------------------------------------------
# In-memory Firestore
# ---------------------------------------------------------------------------

_ids = itertools.count(1)


def _apply_value(current, value):
    if isinstance(value, ArrayUnion):
        result = list(current or [])
        for v in value.values:
            if v not in result:
                result.append(v)
        return result
    if isinstance(value, ArrayRemove):
        return [v for v in (current or []) if v not in value.values]
    if isinstance(value, Increment):
        return (current or 0) + value.value
    return copy.deepcopy(value)


def _apply_update(doc, data):
    for key, value in data.items():
        parts = key.split('.')
        target = doc
        for part in parts[:-1]:
            target = target.setdefault(part, {})
        target[parts[-1]] = _apply_value(target.get(parts[-1]), value)


class FakeSnapshot:
    def __init__(self, reference, data):
        self.reference = reference
        self.id = reference.id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeDocument:
    def __init__(self, store, collection, doc_id):
        self._store = store
        self._collection = collection
        self.id = doc_id

    @property
    def _docs(self):
        return self._store.setdefault(self._collection, {})

    def get(self):
        return FakeSnapshot(self, copy.deepcopy(self._docs.get(self.id)))

    def set(self, data, merge=False):
        if merge and self.id in self._docs:
            _apply_update(self._docs[self.id], data)
        else:
            self._docs[self.id] = {}
            _apply_update(self._docs[self.id], data)

    def create(self, data):
        if self.id in self._docs:
            raise AlreadyExists(f'{self._collection}/{self.id} already exists')
        self.set(data)

    def update(self, data):
        if self.id not in self._docs:
            raise NotFound(f'{self._collection}/{self.id} not found')
        _apply_update(self._docs[self.id], data)

    def delete(self):
        self._docs.pop(self.id, None)


class FakeQuery:
    def __init__(self, store, collection, filters=None, orders=None, limit=None):
        self._store = store
        self._collection = collection
        self._filters = filters or []
        self._orders = orders or []
        self._limit = limit

    def where(self, filter=None):
        return FakeQuery(self._store, self._collection,
                         self._filters + [filter], self._orders, self._limit)

    def order_by(self, field, direction='ASCENDING'):
        return FakeQuery(self._store, self._collection,
                         self._filters, self._orders + [(field, direction)], self._limit)

    def limit(self, count):
        return FakeQuery(self._store, self._collection, self._filters, self._orders, count)

    @staticmethod
    def _matches(data, f):
        value = data.get(f.field_path)
        if f.op_string == '==':
            return value == f.value
        if f.op_string == 'in':
            return value in f.value
        if f.op_string == 'array_contains':
            return f.value in (value or [])
        if f.op_string == '>=':
            return value is not None and value >= f.value
        raise NotImplementedError(f.op_string)

    def stream(self):
        docs = self._store.setdefault(self._collection, {})
        rows = [
            (doc_id, data) for doc_id, data in docs.items()
            if all(self._matches(data, f) for f in self._filters)
        ]
        for field, direction in reversed(self._orders):
            present = [r for r in rows if r[1].get(field) is not None]
            missing = [r for r in rows if r[1].get(field) is None]
            present.sort(key=lambda r: r[1][field], reverse=direction == 'DESCENDING')
            rows = present + missing
        if self._limit is not None:
            rows = rows[:self._limit]
        return [
            FakeSnapshot(FakeDocument(self._store, self._collection, doc_id), copy.deepcopy(data))
            for doc_id, data in rows
        ]


class FakeCollection(FakeQuery):
    def __init__(self, store, name):
        super().__init__(store, name)

    def document(self, doc_id=None):
        return FakeDocument(self._store, self._collection, doc_id or f'auto{next(_ids):06d}')

    def add(self, data):
        ref = self.document()
        ref.set(data)
        return datetime.now(timezone.utc), ref


class FakeBatch:
    def __init__(self):
        self._ops = []

    def create(self, ref, data):
        self._ops.append(('create', ref, data))

    def set(self, ref, data):
        self._ops.append(('set', ref, data))

    def update(self, ref, data):
        self._ops.append(('update', ref, data))

    def commit(self):
        for op, ref, _ in self._ops:
            if op == 'create' and ref.get().exists:
                raise AlreadyExists(f'{ref.id} already exists')
            if op == 'update' and not ref.get().exists:
                raise NotFound(f'{ref.id} not found')
        for op, ref, data in self._ops:
            getattr(ref, op)(data)


class FakeFirestore:
    def __init__(self):
        self.store = {}

    def collection(self, name):
        return FakeCollection(self.store, name)

    def batch(self):
        return FakeBatch()

    def docs(self, name):
        return self.store.get(name, {})


# ---------------------------------------------------------------------------
# Auth and Storage
# ---------------------------------------------------------------------------

class FakeUserRecord:
    def __init__(self, uid, email, display_name=None):
        self.uid = uid
        self.email = email
        self.display_name = display_name


class FakeAuth:
    """Session cookies are the uid itself; ID tokens are 'token-<uid>'."""

    EmailAlreadyExistsError = firebase_auth.EmailAlreadyExistsError

    def __init__(self):
        self.users = {}
        self.deleted = []

    def create_user(self, email, password=None, display_name=None):
        if any(u.email == email for u in self.users.values()):
            raise firebase_auth.EmailAlreadyExistsError('exists', None, None)
        uid = f'uid-{next(_ids):04d}'
        self.users[uid] = FakeUserRecord(uid, email, display_name)
        return self.users[uid]

    def get_user_by_email(self, email):
        for user in self.users.values():
            if user.email == email:
                return user
        raise firebase_auth.UserNotFoundError('missing')

    def update_user(self, uid, **kwargs):
        return self.users.get(uid)

    def delete_user(self, uid):
        self.users.pop(uid, None)
        self.deleted.append(uid)

    def verify_id_token(self, id_token):
        if not id_token.startswith('token-'):
            raise ValueError('bad token')
        return {'uid': id_token[len('token-'):], 'email': 'oauth@example.com',
                'name': 'OAuth User', 'firebase': {'sign_in_provider': 'google.com'}}

    def create_session_cookie(self, id_token, expires_in=None):
        return self.verify_id_token(id_token)['uid']

    def verify_session_cookie(self, cookie, check_revoked=False):
        if not cookie or cookie == 'invalid':
            raise firebase_auth.InvalidSessionCookieError('invalid')
        if cookie == 'unreachable':
            raise firebase_exceptions.UnavailableError('certificate fetch failed')
        return {'uid': cookie}


class FakeBlob:
    def __init__(self, bucket, name):
        self._bucket = bucket
        self.name = name
        self.content_type = None

    def upload_from_string(self, data, content_type=None):
        self._bucket.files[self.name] = data

    def upload_from_file(self, fileobj, content_type=None):
        self._bucket.files[self.name] = fileobj.read()

    def exists(self):
        return self.name in self._bucket.files

    def generate_signed_url(self, **kwargs):
        return f'https://storage.example.com/{self.name}'


class FakeBucket:
    def __init__(self):
        self.files = {}

    def blob(self, name):
        return FakeBlob(self, name)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def db(monkeypatch):
    fake_db = FakeFirestore()
    monkeypatch.setattr(firebase_init, '_app', object())
    monkeypatch.setattr(firebase_init, '_db', fake_db)
    monkeypatch.setattr(firebase_init, '_auth', FakeAuth())
    monkeypatch.setattr(firebase_init, '_bucket', FakeBucket())
    return fake_db


@pytest.fixture
def fake_auth(db):
    return firebase_init._auth


@pytest.fixture
def bucket(db):
    return firebase_init._bucket


@pytest.fixture
def app(db):
    from academy import create_app
    from config import TestConfig
    application = create_app(TestConfig)
    return application


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ctx(app):
    with app.test_request_context():
        yield


def make_user(db, uid, role='student', **fields):
    data = {
        'email': f'{uid}@example.com',
        'display_name': uid.title(),
        'role': role,
        'profile_status': 'active',
        'unique_id': None,
        'enrolled_courses': [],
        'wishlist': [],
        'created_at': datetime.now(timezone.utc),
    }
    if role == 'instructor':
        data['created_courses'] = []
    data.update(fields)
    db.collection('users').document(uid).set(data)
    return dict(data, id=uid)


def make_course(db, course_id='course1', instructor_id='sarah', lessons=3, **fields):
    data = {
        'title': 'Introduction to Python',
        'description': 'Python basics',
        'short_description': 'Start here',
        'category': 'Programming',
        'level': 'beginner',
        'price': 2999,
        'currency': 'INR',
        'instructor_id': instructor_id,
        'instructor_name': 'Sarah',
        'is_published': True,
        'available': True,
        'tags': ['python'],
        'lessons': [
            {'id': f'l{i}', 'title': f'Lesson {i}', 'order': i, 'duration_minutes': 30,
             'is_preview': i == 1}
            for i in range(1, lessons + 1)
        ],
        'total_students': 0,
        'rating': 0.0,
        'total_ratings': 0,
        'created_at': datetime.now(timezone.utc),
    }
    data.update(fields)
    db.collection('courses').document(course_id).set(data)
    return dict(data, id=course_id)


def login(client, uid):
    with client.session_transaction() as sess:
        sess['firebase_session'] = uid


def in_days(days):
    return datetime.now(timezone.utc) + timedelta(days=days)


@pytest.fixture
def student(db):
    return make_user(db, 'alice', unique_id='DRA-STU-26001')


@pytest.fixture
def instructor(db):
    return make_user(db, 'sarah', role='instructor', unique_id='DRA-INS-26001')


@pytest.fixture
def admin(db):
    return make_user(db, 'boss', role='admin', unique_id='DRA-ADM-26001')


@pytest.fixture
def super_admin(db):
    return make_user(db, 'root', role='super_admin', unique_id='DRA-ADM-26002')


@pytest.fixture
def course(db, instructor):
    return make_course(db)
