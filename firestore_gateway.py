"""Dual-path Firestore access.

Every operation tries the Admin SDK first. When the SDK is not initialized
or raises (typically missing service-account credentials), the same
operation is replayed through the Firestore REST API with the caller's ID
token. Both paths return plain dicts that carry the document ``id``.
"""
import operator
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from google.cloud.firestore_v1.base_query import FieldFilter

import firebase_setup
import firestore_rest

Filter = Tuple[str, str, Any]

_USE_DEFAULT_CLIENT = object()

COMPARATORS = {
    '==': operator.eq,
    '!=': operator.ne,
    '<': operator.lt,
    '<=': operator.le,
    '>': operator.gt,
    '>=': operator.ge,
}


def _comparable(value: Any):
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return firestore_rest.parse_timestamp(value).timestamp()
        except ValueError:
            return value
    return value


def matches(document: Dict[str, Any], filters: Iterable[Filter]) -> bool:
    for field, op, expected in filters:
        actual = document.get(field)
        if op == '==':
            if actual != expected:
                return False
            continue
        if op == '!=':
            if actual == expected:
                return False
            continue
        if actual is None:
            return False
        try:
            if not COMPARATORS[op](_comparable(actual), _comparable(expected)):
                return False
        except TypeError:
            return False
    return True


def sort_key(field: str) -> Callable[[Dict[str, Any]], float]:
    def key(document):
        value = _comparable(document.get(field))
        return value if isinstance(value, float) else 0.0
    return key


def snapshot_to_dict(snapshot) -> Dict[str, Any]:
    data = snapshot.to_dict() or {}
    data['id'] = snapshot.id
    return data


class FirestoreGateway:
    def __init__(self, id_token: Optional[str] = None, client=_USE_DEFAULT_CLIENT):
        self.id_token = id_token
        self._client = client

    @property
    def client(self):
        if self._client is _USE_DEFAULT_CLIENT:
            self._client = firebase_setup.get_firestore_client()
        return self._client

    def _run(self, action: str, sdk_call, rest_call):
        client = self.client
        if client is not None:
            try:
                return sdk_call(client)
            except Exception as exc:
                print(f"[WARN] Admin SDK {action} failed, trying Firestore REST API: {exc}")
        return rest_call()

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        def sdk(client):
            snapshot = client.collection(collection).document(doc_id).get()
            return snapshot_to_dict(snapshot) if snapshot.exists else None

        def rest():
            return firestore_rest.get_document(collection, doc_id, self.id_token)

        return self._run(f'get {collection}/{doc_id}', sdk, rest)

    def list(self, collection: str, filters: Iterable[Filter] = ()) -> List[Dict[str, Any]]:
        """Documents matching every ``(field, op, value)`` filter, in no particular order.

        Ordering is left to callers: a Firestore ``order_by`` silently drops
        documents that lack the field, and older documents often do.
        """
        filters = list(filters)

        def sdk(client):
            query = client.collection(collection)
            for field, op, value in filters:
                query = query.where(filter=FieldFilter(field, op, value))
            return [snapshot_to_dict(snapshot) for snapshot in query.stream()]

        def rest():
            # The REST list endpoint has no query support
            return [
                document for document in firestore_rest.get_collection(collection, self.id_token)
                if matches(document, filters)
            ]

        return self._run(f'list {collection}', sdk, rest)

    def add(self, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
        def sdk(client):
            _, reference = client.collection(collection).add(data)
            return {**data, 'id': reference.id}

        def rest():
            return firestore_rest.create_document(collection, data, self.id_token)

        return self._run(f'add {collection}', sdk, rest)

    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = True) -> Dict[str, Any]:
        def sdk(client):
            client.collection(collection).document(doc_id).set(data, merge=merge)
            return {**data, 'id': doc_id}

        def rest():
            # A masked PATCH creates missing documents and merges into existing ones
            return firestore_rest.create_document(collection, data, self.id_token, doc_id=doc_id)

        return self._run(f'set {collection}/{doc_id}', sdk, rest)

    def update(self, collection: str, doc_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Apply ``updates`` and return the merged document, or None if it does not exist."""
        def sdk(client):
            reference = client.collection(collection).document(doc_id)
            if not reference.get().exists:
                return None
            reference.update(updates)
            return snapshot_to_dict(reference.get())

        def rest():
            existing = firestore_rest.get_document(collection, doc_id, self.id_token)
            if existing is None:
                return None
            patched = firestore_rest.create_document(collection, updates, self.id_token, doc_id=doc_id)
            return {**existing, **patched, 'id': doc_id}

        return self._run(f'update {collection}/{doc_id}', sdk, rest)

    def delete(self, collection: str, doc_id: str) -> bool:
        """Delete the document; False when it did not exist."""
        def sdk(client):
            reference = client.collection(collection).document(doc_id)
            if not reference.get().exists:
                return False
            reference.delete()
            return True

        def rest():
            if firestore_rest.get_document(collection, doc_id, self.id_token) is None:
                return False
            firestore_rest.delete_document(collection, doc_id, self.id_token)
            return True

        return self._run(f'delete {collection}/{doc_id}', sdk, rest)

    def count(self, collection: str) -> int:
        return len(self.list(collection))
