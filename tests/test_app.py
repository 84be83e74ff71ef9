import settings
from app import cors_origins


def test_root_and_health(client):
    assert client.get('/').get_json() == {'message': 'Server is running!'}

    health = client.get('/health').get_json()
    assert health['status'] == 'ok'
    assert health['timestamp']


def test_unknown_route_uses_error_envelope(client):
    response = client.get('/api/nothing-here')
    assert response.status_code == 404
    assert response.get_json() == {'success': False, 'message': 'Route not found'}


def test_wrong_method(client):
    response = client.put('/health')
    assert response.status_code == 405
    assert response.get_json()['message'] == 'Method not allowed'


def test_firestore_permission_errors_become_403(client, auth_headers, monkeypatch):
    import firestore_rest

    def denied(collection, doc_id, id_token=None):
        raise firestore_rest.FirestoreRestError('Missing or insufficient permissions.', 403)

    monkeypatch.setattr(firestore_rest, 'get_document', denied)

    response = client.delete('/api/orders/o1', headers=auth_headers)

    assert response.status_code == 403
    assert response.get_json()['message'] == 'Permission denied. Please check your Firestore security rules.'


def test_error_details_only_in_development(client, auth_headers, monkeypatch):
    import firestore_rest

    def broken(collection, doc_id, id_token=None):
        raise firestore_rest.FirestoreRestError('Backend exploded', 500)

    monkeypatch.setattr(firestore_rest, 'get_document', broken)

    quiet = client.get('/api/products/p1', headers=auth_headers).get_json()
    assert quiet == {'success': False, 'message': 'Failed to retrieve product'}

    monkeypatch.setattr(settings, 'IS_DEVELOPMENT', True)
    verbose = client.get('/api/products/p1', headers=auth_headers).get_json()
    assert verbose['error']['type'] == 'FirestoreRestError'
    assert verbose['error']['message'] == 'Backend exploded'


def test_cors_origins(monkeypatch):
    monkeypatch.setattr(settings, 'IS_PRODUCTION', False)
    assert cors_origins() == '*'

    monkeypatch.setattr(settings, 'IS_PRODUCTION', True)
    monkeypatch.setattr(settings, 'FRONTEND_URL', 'https://shop.example.com')
    assert cors_origins()[0] == 'https://shop.example.com'
    assert 'http://localhost:3000' in cors_origins()
