from datetime import datetime, timezone

from flask import Blueprint, g, request

import image_storage
from api_helpers import ApiError, request_payload, send_error, send_success
from auth_guard import verify_token
from firestore_gateway import FirestoreGateway
from normalizers import delivered_revenue, serialize_timestamp

admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin')


def profile_response(uid: str, email: str, admin: dict) -> dict:
    return {
        'uid': uid,
        'name': admin.get('name') or '',
        'email': admin.get('email') or email or '',
        'avatarUrl': admin.get('avatarUrl') or None,
        'createdAt': serialize_timestamp(admin.get('createdAt')),
        'updatedAt': serialize_timestamp(admin.get('updatedAt')),
    }


@admin_bp.route('/profile', methods=['GET'])
@verify_token
def get_profile():
    uid = g.user['uid']
    try:
        admin = FirestoreGateway(g.id_token).get('admin', uid)
    except Exception as exc:
        print(f"[WARN] Admin profile unavailable for {uid}: {exc}")
        admin = None

    if not admin:
        # Lets the profile page work before the admin document exists
        return send_success(profile_response(uid, g.user['email'], {}),
                            'Profile retrieved successfully (basic info)')

    return send_success(profile_response(uid, g.user['email'], admin), 'Profile retrieved successfully')


@admin_bp.route('/profile', methods=['PUT'])
@verify_token
def update_profile():
    data = request_payload(request)
    name = data.get('name')
    if not isinstance(name, str) or not name.strip():
        return send_error('Name is required', 400)

    uid = g.user['uid']
    gateway = FirestoreGateway(g.id_token)
    gateway.set('admin', uid, {
        'name': name.strip(),
        'email': g.user['email'] or '',
        'uid': uid,
        'updatedAt': datetime.now(timezone.utc),
    })
    admin = gateway.get('admin', uid) or {'name': name.strip()}
    return send_success(profile_response(uid, g.user['email'], admin), 'Profile updated successfully')


@admin_bp.route('/stats', methods=['GET'])
@verify_token
def get_stats():
    gateway = FirestoreGateway(g.id_token)

    try:
        product_count = gateway.count('products')
    except Exception as exc:
        print(f"[ERROR] Error fetching product count: {exc}")
        product_count = 0

    try:
        orders = gateway.list('orders')
        orders_count = len(orders)
        revenue = delivered_revenue(orders)
    except Exception as exc:
        print(f"[WARN] Orders collection might not exist: {exc}")
        orders_count = 0
        revenue = 0.0

    return send_success({
        'productCount': product_count,
        'ordersCount': orders_count,
        'revenue': revenue,
    }, 'Statistics retrieved successfully')


@admin_bp.route('/avatar', methods=['POST'])
@verify_token
def upload_avatar():
    uid = g.user['uid']
    file = request.files.get('avatar')
    if file is None:
        return send_error('No file uploaded', 400)

    try:
        avatar_url = image_storage.store_image(file, f'admin-avatars/{uid}', uid, allow_inline=False)
    except ApiError:
        raise
    except Exception as exc:
        print(f"[ERROR] Upload avatar error: {exc}")
        return send_error('Failed to upload avatar', 500, exc)

    FirestoreGateway(g.id_token).set('admin', uid, {
        'avatarUrl': avatar_url,
        'updatedAt': datetime.now(timezone.utc),
    })

    return send_success({'avatarUrl': avatar_url}, 'Avatar uploaded successfully')
