from datetime import datetime, timezone

from flask import Blueprint, g, request

import identity_toolkit
from api_helpers import is_valid_email, request_payload, send_error, send_success, validate_required_fields
from auth_guard import verify_token
from firestore_gateway import FirestoreGateway

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


def text_errors(data: dict, fields) -> list:
    return [field for field in fields if not isinstance(data.get(field), str)]


def load_admin_profile(uid: str, id_token: str):
    """Admin document for ``uid``; None when missing or unreadable."""
    try:
        return FirestoreGateway(id_token).get('admin', uid)
    except Exception as exc:
        print(f"[WARN] Could not read admin profile for {uid} (non-critical): {exc}")
        return None


@auth_bp.route('/register', methods=['POST'])
def register():
    data = request_payload(request)

    missing = validate_required_fields(data, ['name', 'email', 'password', 'confirmPassword'])
    if missing:
        return send_error(f"Missing required fields: {', '.join(missing)}", 400)
    invalid = text_errors(data, ['name', 'email', 'password', 'confirmPassword'])
    if invalid:
        return send_error(f"Fields must be text: {', '.join(invalid)}", 400)

    name = data['name'].strip()
    email = data['email'].strip()
    password = data['password']

    if password != data['confirmPassword']:
        return send_error('Passwords do not match', 400)
    if len(password) < 6:
        return send_error('Password must be at least 6 characters', 400)
    if not is_valid_email(email):
        return send_error('Invalid email format', 400)

    try:
        account = identity_toolkit.sign_up(email, password)
    except identity_toolkit.IdentityToolkitError as exc:
        return send_error(exc.message, exc.status)

    uid = account['localId']
    try:
        FirestoreGateway(account['idToken']).set('admin', uid, {
            'name': name,
            'email': email,
            'uid': uid,
            'createdAt': datetime.now(timezone.utc),
            'status': 'active',
        }, merge=False)
        print(f"[SUCCESS] Admin registered: {email}")
    except Exception as exc:
        # The auth account exists either way, the profile can be filled in later
        print(f"[ERROR] Admin profile write failed during registration: {exc}")

    return send_success({
        'user': {
            'uid': uid,
            'email': account.get('email', email),
            'name': name,
        },
        'token': account['idToken'],
        'refreshToken': account.get('refreshToken'),
    }, 'Registration successful', 201)


@auth_bp.route('/login', methods=['POST'])
def login():
    data = request_payload(request)

    missing = validate_required_fields(data, ['email', 'password'])
    if missing:
        return send_error(f"Missing required fields: {', '.join(missing)}", 400)
    invalid = text_errors(data, ['email', 'password'])
    if invalid:
        return send_error(f"Fields must be text: {', '.join(invalid)}", 400)

    try:
        account = identity_toolkit.sign_in(data['email'].strip(), data['password'])
    except identity_toolkit.IdentityToolkitError as exc:
        return send_error(exc.message, exc.status)

    admin = load_admin_profile(account['localId'], account['idToken']) or {}

    return send_success({
        'user': {
            'uid': account['localId'],
            'email': account.get('email'),
            'name': admin.get('name') or account.get('displayName') or '',
        },
        'token': account['idToken'],
        'refreshToken': account.get('refreshToken'),
    }, 'Login successful')


@auth_bp.route('/refresh', methods=['POST'])
def refresh():
    data = request_payload(request)
    refresh_token = data.get('refreshToken')
    refresh_token = refresh_token.strip() if isinstance(refresh_token, str) else ''
    if not refresh_token:
        return send_error('Missing required fields: refreshToken', 400)

    try:
        tokens = identity_toolkit.refresh_id_token(refresh_token)
    except identity_toolkit.IdentityToolkitError as exc:
        return send_error(exc.message, exc.status)

    return send_success(tokens, 'Token refreshed successfully')


@auth_bp.route('/me', methods=['GET'])
@verify_token
def me():
    admin = load_admin_profile(g.user['uid'], g.id_token) or {}
    return send_success({
        'uid': g.user['uid'],
        'email': g.user['email'],
        'name': admin.get('name') or '',
        'emailVerified': g.user['emailVerified'],
        'avatarUrl': admin.get('avatarUrl') or None,
    }, 'User retrieved successfully')


@auth_bp.route('/logout', methods=['POST'])
@verify_token
def logout():
    # ID tokens are stateless, the client discards them
    return send_success(None, 'Logout successful')
