"""Firestore REST API client used when the Admin SDK cannot be.

Requests are authorized with the caller's Firebase ID token when one is
available (so Firestore security rules apply) and with the web API key
otherwise. Documents travel in Firestore's typed JSON wire format, see
https://firebase.google.com/docs/firestore/reference/rest/v1/Value
"""
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

import settings

SIMPLE_FIELD_NAME = re.compile(r'^[A-Za-z_][A-Za-z_0-9]*$')
FRACTION_PATTERN = re.compile(r'\.(\d+)')


class FirestoreRestError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None, payload: Optional[dict] = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload or {}


def documents_url() -> str:
    return (
        f'https://firestore.googleapis.com/v1/projects/{settings.FIREBASE_PROJECT_ID}'
        '/databases/(default)/documents'
    )


def build_headers(id_token: Optional[str] = None) -> Dict[str, str]:
    headers = {'Content-Type': 'application/json'}
    if id_token:
        headers['Authorization'] = f'Bearer {id_token}'
    elif settings.FIREBASE_WEB_API_KEY:
        headers['X-Goog-Api-Key'] = settings.FIREBASE_WEB_API_KEY
    return headers


# Wire format conversion

def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime('%Y-%m-%dT%H:%M:%S.%f') + 'Z'


def parse_timestamp(raw: str) -> datetime:
    # Firestore sends up to nanosecond precision, datetime keeps microseconds
    text = raw.strip()
    if text.endswith('Z') or text.endswith('z'):
        text = text[:-1] + '+00:00'
    text = FRACTION_PATTERN.sub(lambda m: '.' + m.group(1)[:6].ljust(6, '0'), text, count=1)
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_firestore_value(value: Any) -> Dict[str, Any]:
    if value is None:
        return {'nullValue': None}
    # bool is an int subclass, test it first
    if isinstance(value, bool):
        return {'booleanValue': value}
    if isinstance(value, int):
        return {'integerValue': str(value)}
    if isinstance(value, float):
        return {'doubleValue': value}
    if isinstance(value, str):
        return {'stringValue': value}
    if isinstance(value, datetime):
        return {'timestampValue': format_timestamp(value)}
    if isinstance(value, (list, tuple)):
        return {'arrayValue': {'values': [to_firestore_value(item) for item in value]}}
    if isinstance(value, dict):
        return {'mapValue': {'fields': to_firestore_fields(value)}}
    raise TypeError(f'Cannot store value of type {type(value).__name__} in Firestore')


def to_firestore_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    return {key: to_firestore_value(value) for key, value in data.items()}


def from_firestore_value(value: Any) -> Any:
    if not isinstance(value, dict):
        return value

    if 'stringValue' in value:
        return value['stringValue']
    if 'integerValue' in value:
        return int(value['integerValue'])
    if 'doubleValue' in value:
        return float(value['doubleValue'])
    if 'booleanValue' in value:
        flag = value['booleanValue']
        return flag is True or flag == 'true'
    if 'timestampValue' in value:
        return parse_timestamp(value['timestampValue'])
    if 'nullValue' in value:
        return None
    if 'arrayValue' in value:
        return [from_firestore_value(item) for item in (value['arrayValue'] or {}).get('values', [])]
    if 'mapValue' in value:
        return from_firestore_fields((value['mapValue'] or {}).get('fields', {}))
    if 'referenceValue' in value:
        return value['referenceValue']
    if 'geoPointValue' in value:
        point = value['geoPointValue'] or {}
        return {'latitude': point.get('latitude', 0.0), 'longitude': point.get('longitude', 0.0)}
    if 'bytesValue' in value:
        return value['bytesValue']

    # Already a plain map
    return value


def from_firestore_fields(fields: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return {key: from_firestore_value(value) for key, value in (fields or {}).items()}


def is_wire_value(value: Any) -> bool:
    return isinstance(value, dict) and len(value) == 1 and next(iter(value)).endswith('Value')


def document_id(name: str) -> str:
    return name.rsplit('/', 1)[-1]


def quote_field_path(field: str) -> str:
    if SIMPLE_FIELD_NAME.match(field):
        return field
    escaped = field.replace('\\', '\\\\').replace('`', '\\`')
    return f'`{escaped}`'


# HTTP

def _error_from_response(response: requests.Response, action: str) -> FirestoreRestError:
    try:
        payload = response.json()
    except ValueError:
        payload = {'message': response.reason}

    detail = None
    if isinstance(payload, dict):
        error_block = payload.get('error')
        if isinstance(error_block, dict):
            detail = error_block.get('message')
        detail = detail or payload.get('message')

    message = f'Firestore REST API error: {response.status_code} {response.reason} - {detail or "Unknown error"}'
    print(f"[ERROR] Firestore REST {action} failed: {message}")
    return FirestoreRestError(message, response.status_code, payload if isinstance(payload, dict) else {})


def _send(method: str, url: str, action: str, **kwargs) -> requests.Response:
    try:
        return requests.request(method, url, timeout=settings.REQUEST_TIMEOUT, **kwargs)
    except requests.exceptions.RequestException as exc:
        print(f"[ERROR] Firestore REST {action} unreachable: {exc}")
        raise FirestoreRestError(f'Firestore REST API unreachable: {exc}', 503) from exc


def get_document(collection: str, doc_id: str, id_token: Optional[str] = None) -> Optional[Dict[str, Any]]:
    url = f'{documents_url()}/{collection}/{doc_id}'
    response = _send('GET', url, 'get', headers=build_headers(id_token))

    if response.status_code == 404:
        return None
    if not response.ok:
        raise _error_from_response(response, 'get')

    document = response.json()
    if 'fields' not in document and 'name' not in document:
        return None

    result = from_firestore_fields(document.get('fields'))
    result['id'] = document_id(document.get('name', doc_id))
    return result


def get_collection(collection: str, id_token: Optional[str] = None) -> List[Dict[str, Any]]:
    url = f'{documents_url()}/{collection}'
    documents = []
    page_token = None

    while True:
        params = {'pageSize': 300}
        if page_token:
            params['pageToken'] = page_token
        response = _send('GET', url, 'list', headers=build_headers(id_token), params=params)

        if response.status_code == 404:
            return documents
        if not response.ok:
            raise _error_from_response(response, 'list')

        body = response.json()
        for document in body.get('documents', []):
            item = from_firestore_fields(document.get('fields'))
            item['id'] = document_id(document['name'])
            documents.append(item)

        page_token = body.get('nextPageToken')
        if not page_token:
            return documents


def create_document(collection: str, data: Dict[str, Any], id_token: Optional[str] = None,
                    doc_id: Optional[str] = None) -> Dict[str, Any]:
    """Create a document, or patch the given fields of ``doc_id`` when provided."""
    fields = to_firestore_fields(data)
    body = {'fields': fields}

    if doc_id:
        url = f'{documents_url()}/{collection}/{doc_id}'
        # Without an update mask PATCH replaces the whole document
        params = [('updateMask.fieldPaths', quote_field_path(field)) for field in fields]
        response = _send('PATCH', url, 'update', headers=build_headers(id_token), params=params, json=body)
    else:
        url = f'{documents_url()}/{collection}'
        response = _send('POST', url, 'create', headers=build_headers(id_token), json=body)

    if not response.ok:
        raise _error_from_response(response, 'update' if doc_id else 'create')

    result = response.json()
    created_id = doc_id or document_id(result.get('name', ''))
    document = from_firestore_fields(result['fields']) if result.get('fields') else dict(data)
    document['id'] = created_id
    return document


def delete_document(collection: str, doc_id: str, id_token: Optional[str] = None) -> None:
    url = f'{documents_url()}/{collection}/{doc_id}'
    response = _send('DELETE', url, 'delete', headers=build_headers(id_token))
    if not response.ok:
        raise _error_from_response(response, 'delete')
