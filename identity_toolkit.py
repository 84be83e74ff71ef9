from typing import Optional

import requests

import settings

IDENTITY_TOOLKIT_URL = 'https://identitytoolkit.googleapis.com/v1/accounts'
SECURE_TOKEN_URL = 'https://securetoken.googleapis.com/v1/token'

INVALID_CREDENTIALS_MESSAGE = 'Invalid email or password. Please check your credentials.'
CONFIG_ERROR_MESSAGE = 'Authentication service configuration error. Please check Firebase API key.'

FRIENDLY_ERRORS = {
    'EMAIL_EXISTS': ('Email already registered', 409),
    'INVALID_EMAIL': ('Invalid email address', 400),
    'WEAK_PASSWORD': ('Password is too weak. Please use at least 6 characters.', 400),
    'EMAIL_NOT_FOUND': (INVALID_CREDENTIALS_MESSAGE, 401),
    'INVALID_PASSWORD': (INVALID_CREDENTIALS_MESSAGE, 401),
    'INVALID_LOGIN_CREDENTIALS': (INVALID_CREDENTIALS_MESSAGE, 401),
    'USER_DISABLED': ('User account is disabled', 403),
    'TOO_MANY_ATTEMPTS_TRY_LATER': ('Too many failed login attempts. Please try again later.', 429),
    'TOKEN_EXPIRED': ('Session expired. Please log in again.', 401),
    'INVALID_REFRESH_TOKEN': ('Session expired. Please log in again.', 401),
    'USER_NOT_FOUND': ('User not found', 401),
}


class IdentityToolkitError(Exception):
    def __init__(self, message: str, status: int, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code


def friendly_error(code: Optional[str], fallback_status: int = 400) -> IdentityToolkitError:
    code = code or ''
    # Some codes carry a detail suffix, e.g. "WEAK_PASSWORD : Password should be at least 6 characters"
    base_code = code.split(':', 1)[0].strip()

    if base_code in FRIENDLY_ERRORS:
        message, status = FRIENDLY_ERRORS[base_code]
        return IdentityToolkitError(message, status, base_code)
    if 'API key' in code or 'API_KEY' in code:
        return IdentityToolkitError(CONFIG_ERROR_MESSAGE, 500, base_code)
    return IdentityToolkitError(code or 'Authentication failed', fallback_status, base_code or None)


def _post(url: str, payload: dict, fallback_status: int, form: bool = False) -> dict:
    if not settings.FIREBASE_WEB_API_KEY:
        raise IdentityToolkitError(CONFIG_ERROR_MESSAGE, 500)

    try:
        if form:
            response = requests.post(url, params={'key': settings.FIREBASE_WEB_API_KEY}, data=payload,
                                     timeout=settings.REQUEST_TIMEOUT)
        else:
            response = requests.post(url, params={'key': settings.FIREBASE_WEB_API_KEY}, json=payload,
                                     timeout=settings.REQUEST_TIMEOUT)
    except requests.exceptions.RequestException as exc:
        print(f"[ERROR] Authentication service unreachable: {exc}")
        raise IdentityToolkitError('Cannot connect to authentication service. Please try again shortly.', 503)

    try:
        data = response.json()
    except ValueError:
        data = {}

    if response.status_code != 200 or 'error' in data:
        error_block = data.get('error') or {}
        code = error_block.get('message') if isinstance(error_block, dict) else str(error_block)
        print(f"[ERROR] Firebase Auth API error ({response.status_code}): {code}")
        if not code:
            raise IdentityToolkitError(f'Request failed with status {response.status_code}',
                                       response.status_code or 500)
        raise friendly_error(code, fallback_status)

    return data


def _require(data: dict, *keys: str) -> dict:
    if not all(data.get(key) for key in keys):
        print(f"[ERROR] Invalid response data from Firebase: missing one of {keys}")
        raise IdentityToolkitError('Invalid response from authentication service', 500)
    return data


def sign_up(email: str, password: str) -> dict:
    data = _post(f'{IDENTITY_TOOLKIT_URL}:signUp', {
        'email': email,
        'password': password,
        'returnSecureToken': True,
    }, fallback_status=400)
    return _require(data, 'localId', 'idToken')


def sign_in(email: str, password: str) -> dict:
    data = _post(f'{IDENTITY_TOOLKIT_URL}:signInWithPassword', {
        'email': email,
        'password': password,
        'returnSecureToken': True,
    }, fallback_status=401)
    return _require(data, 'localId', 'idToken')


def refresh_id_token(refresh_token: str) -> dict:
    data = _post(SECURE_TOKEN_URL, {
        'grant_type': 'refresh_token',
        'refresh_token': refresh_token,
    }, fallback_status=401, form=True)
    data = _require(data, 'id_token', 'user_id')
    return {
        'token': data['id_token'],
        'refreshToken': data.get('refresh_token', refresh_token),
        'expiresIn': data.get('expires_in'),
        'uid': data['user_id'],
    }
