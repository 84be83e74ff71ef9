import copy
import itertools
import operator

import pytest

import firebase_setup
import settings

ADMIN_USER = {'uid': 'admin-1', 'email': 'admin@example.com', 'email_verified': True}

_OPERATORS = {
    '==': operator.eq,
    '!=': operator.ne,
    '<': operator.lt,
    '<=': operator.le,
    '>': operator.gt,
    '>=': operator.ge,
}


class FakeSnapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeDocument:
    def __init__(self, db, collection, doc_id):
        self._db = db
        self._collection = collection
        self.id = doc_id

    @property
    def _store(self):
        return self._db.data.setdefault(self._collection, {})

    def get(self):
        self._db.check()
        return FakeSnapshot(self.id, self._store.get(self.id))

    def set(self, data, merge=False):
        self._db.check()
        if merge and self.id in self._store:
            self._store[self.id].update(copy.deepcopy(data))
        else:
            self._store[self.id] = copy.deepcopy(data)

    def update(self, data):
        self._db.check()
        if self.id not in self._store:
            raise KeyError(self.id)
        self._store[self.id].update(copy.deepcopy(data))

    def delete(self):
        self._db.check()
        self._store.pop(self.id, None)


class FakeQuery:
    def __init__(self, db, collection, filters=()):
        self._db = db
        self._collection = collection
        self._filters = list(filters)

    def where(self, filter=None):
        return FakeQuery(self._db, self._collection, self._filters + [filter])

    def stream(self):
        self._db.check()
        for doc_id, data in list(self._db.data.get(self._collection, {}).items()):
            if all(self._accepts(data, field_filter) for field_filter in self._filters):
                yield FakeSnapshot(doc_id, copy.deepcopy(data))

    @staticmethod
    def _accepts(data, field_filter):
        if field_filter.field_path not in data:
            return False
        try:
            return _OPERATORS[field_filter.op_string](data[field_filter.field_path], field_filter.value)
        except TypeError:
            return False


class FakeCollection(FakeQuery):
    def __init__(self, db, name):
        super().__init__(db, name)
        self._ids = db.ids

    def document(self, doc_id):
        return FakeDocument(self._db, self._collection, doc_id)

    def add(self, data):
        self._db.check()
        reference = self.document(f'auto{next(self._ids)}')
        reference.set(data)
        return None, reference


class FakeFirestore:
    """The slice of the Admin SDK Firestore client the gateway uses."""

    def __init__(self):
        self.data = {}
        self.ids = itertools.count(1)
        self.fail_with = None

    def check(self):
        if self.fail_with is not None:
            raise self.fail_with

    def collection(self, name):
        return FakeCollection(self, name)

    def seed(self, collection, doc_id, data):
        self.data.setdefault(collection, {})[doc_id] = copy.deepcopy(data)


@pytest.fixture(autouse=True)
def no_firebase(monkeypatch):
    """Never reach real Firebase from tests."""
    monkeypatch.setattr(firebase_setup, 'get_firebase_app', lambda: None)
    monkeypatch.setattr(firebase_setup, 'get_firestore_client', lambda: None)
    monkeypatch.setattr(firebase_setup, 'get_storage_bucket', lambda: None)
    monkeypatch.setattr(settings, 'FIREBASE_WEB_API_KEY', 'test-api-key')
    monkeypatch.setattr(settings, 'FIREBASE_PROJECT_ID', 'demo-project')
    monkeypatch.setattr(settings, 'IS_DEVELOPMENT', False)


@pytest.fixture
def fake_db(monkeypatch):
    db = FakeFirestore()
    monkeypatch.setattr(firebase_setup, 'get_firestore_client', lambda: db)
    return db


@pytest.fixture
def client():
    from app import app
    app.config['TESTING'] = True
    return app.test_client()


@pytest.fixture
def auth_headers(monkeypatch):
    import auth_guard
    monkeypatch.setattr(auth_guard, 'resolve_token', lambda token: dict(ADMIN_USER))
    return {'Authorization': 'Bearer test-id-token'}
