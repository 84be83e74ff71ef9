import re
import traceback
from typing import Iterable, List, Optional

from flask import jsonify

import settings

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')


class ApiError(Exception):
    """Error raised inside a handler and rendered as the standard error envelope."""

    def __init__(self, message: str, status: int = 500, error: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.error = error


def send_success(data=None, message: str = 'Success', status: int = 200):
    return jsonify({
        'success': True,
        'message': message,
        'data': data,
    }), status


def send_error(message: str = 'An error occurred', status: int = 500, error: Optional[BaseException] = None):
    response = {
        'success': False,
        'message': message,
    }

    if settings.IS_DEVELOPMENT and error is not None:
        response['error'] = {
            'message': str(error),
            'type': type(error).__name__,
            'traceback': ''.join(traceback.format_exception(type(error), error, error.__traceback__)),
        }

    return jsonify(response), status


def validate_required_fields(body: dict, required_fields: Iterable[str]) -> List[str]:
    missing = []
    for field in required_fields:
        value = body.get(field)
        if value is None or value == '' or (isinstance(value, str) and not value.strip()):
            missing.append(field)
    return missing


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email or ''))


def parse_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == 'true'
    return value is True


def request_payload(request) -> dict:
    """JSON body when present, otherwise the submitted form fields."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()
