from datetime import datetime, timezone

import firestore_rest
from firestore_gateway import FirestoreGateway, matches, sort_key


def test_sdk_path_reads_and_writes(fake_db):
    gateway = FirestoreGateway('token')

    created = gateway.add('products', {'name': 'Desk', 'popular': False})
    assert created['id'] == 'auto1'

    updated = gateway.update('products', created['id'], {'popular': True})
    assert updated == {'id': 'auto1', 'name': 'Desk', 'popular': True}

    assert gateway.list('products', [('popular', '==', True)])[0]['name'] == 'Desk'
    assert gateway.delete('products', 'auto1') is True
    assert gateway.get('products', 'auto1') is None


def test_update_and_delete_report_missing_documents(fake_db):
    gateway = FirestoreGateway()
    assert gateway.update('orders', 'nope', {'status': 'paid'}) is None
    assert gateway.delete('orders', 'nope') is False


def test_falls_back_to_rest_when_sdk_raises(fake_db, monkeypatch):
    fake_db.fail_with = RuntimeError('Could not load the default credentials')
    seen = {}

    def fake_get_document(collection, doc_id, id_token=None):
        seen['args'] = (collection, doc_id, id_token)
        return {'id': doc_id, 'name': 'From REST'}

    monkeypatch.setattr(firestore_rest, 'get_document', fake_get_document)

    document = FirestoreGateway('user-token').get('admin', 'u1')

    assert document == {'id': 'u1', 'name': 'From REST'}
    assert seen['args'] == ('admin', 'u1', 'user-token')


def test_rest_path_filters_in_python(monkeypatch):
    documents = [
        {'id': 'a', 'status': 'pending', 'createdAt': datetime(2024, 1, 2, tzinfo=timezone.utc)},
        {'id': 'b', 'status': 'paid', 'createdAt': datetime(2024, 1, 3, tzinfo=timezone.utc)},
        {'id': 'c', 'status': 'pending'},
    ]
    monkeypatch.setattr(firestore_rest, 'get_collection', lambda collection, id_token=None: list(documents))

    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    result = FirestoreGateway('token').list('orders', [('status', '==', 'pending'), ('createdAt', '>=', start)])

    assert [document['id'] for document in result] == ['a']


def test_rest_update_merges_existing_document(monkeypatch):
    monkeypatch.setattr(firestore_rest, 'get_document',
                        lambda collection, doc_id, id_token=None: {'id': doc_id, 'name': 'Old', 'count': 1})
    captured = {}

    def fake_create(collection, data, id_token=None, doc_id=None):
        captured.update(collection=collection, data=data, doc_id=doc_id)
        return {**data, 'id': doc_id}

    monkeypatch.setattr(firestore_rest, 'create_document', fake_create)

    merged = FirestoreGateway('token').update('products', 'p1', {'count': 5})

    assert captured == {'collection': 'products', 'data': {'count': 5}, 'doc_id': 'p1'}
    assert merged == {'id': 'p1', 'name': 'Old', 'count': 5}


def test_matches_handles_string_timestamps_and_missing_fields():
    cutoff = datetime(2024, 6, 1, tzinfo=timezone.utc)
    assert matches({'createdAt': '2024-06-02T00:00:00Z'}, [('createdAt', '>=', cutoff)])
    assert not matches({}, [('createdAt', '>=', cutoff)])
    assert not matches({'createdAt': 'yesterday'}, [('createdAt', '>=', cutoff)])


def test_sort_key_puts_undated_documents_last():
    documents = [
        {'id': 'old', 'createdAt': datetime(2023, 1, 1, tzinfo=timezone.utc)},
        {'id': 'none'},
        {'id': 'new', 'createdAt': '2024-01-01T00:00:00Z'},
    ]
    documents.sort(key=sort_key('createdAt'), reverse=True)
    assert [document['id'] for document in documents] == ['new', 'old', 'none']
