from functools import wraps
from typing import Optional

import jwt
from firebase_admin import auth as firebase_auth
from flask import g, request

import firebase_setup
import settings
from api_helpers import send_error


class TokenError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def get_bearer_token() -> Optional[str]:
    header = request.headers.get('Authorization', '')
    if not header.startswith('Bearer '):
        return None
    return header[len('Bearer '):].strip()


def decode_unverified(token: str) -> dict:
    """Read the claims of an ID token without checking its signature."""
    try:
        payload = jwt.decode(token, options={'verify_signature': False, 'verify_exp': True})
    except jwt.ExpiredSignatureError:
        raise TokenError('Token expired')
    except jwt.InvalidTokenError as exc:
        print(f"[ERROR] JWT decode error: {exc}")
        raise TokenError('Invalid token')

    if not payload.get('sub') or not payload.get('email'):
        raise TokenError('Invalid token')

    return {
        'uid': payload['sub'],
        'email': payload['email'],
        'email_verified': payload.get('email_verified', False),
    }


def resolve_token(token: str) -> dict:
    firebase_app = firebase_setup.get_firebase_app()
    sdk_error = None

    if firebase_app is not None:
        try:
            return firebase_auth.verify_id_token(token, app=firebase_app)
        except firebase_auth.ExpiredIdTokenError:
            raise TokenError('Token expired')
        except firebase_auth.RevokedIdTokenError:
            raise TokenError('Token revoked')
        except firebase_auth.InvalidIdTokenError:
            raise TokenError('Invalid token')
        except Exception as exc:
            # Missing project id, certificate fetch failure or no credentials
            sdk_error = exc
    else:
        sdk_error = RuntimeError('Firebase Admin SDK not initialized')

    if not settings.ALLOW_UNVERIFIED_TOKENS:
        print(f"[ERROR] Token verification unavailable: {sdk_error}")
        raise TokenError('Authentication failed')

    print(f"[WARN] Admin SDK token verification failed, attempting JWT decode: {sdk_error}")
    return decode_unverified(token)


def verify_token(view):
    """Require a Firebase ID token and expose the caller as ``g.user``."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        header = request.headers.get('Authorization', '')
        if not header.startswith('Bearer '):
            return send_error('No token provided', 401)

        token = get_bearer_token()
        if not token:
            return send_error('Invalid token format', 401)

        try:
            decoded = resolve_token(token)
        except TokenError as exc:
            return send_error(exc.message, 401)

        g.id_token = token
        g.user = {
            'uid': decoded.get('uid') or decoded.get('sub'),
            'email': decoded.get('email'),
            'emailVerified': bool(decoded.get('email_verified', False)),
        }
        return view(*args, **kwargs)

    return wrapper
