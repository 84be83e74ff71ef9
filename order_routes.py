from datetime import datetime, time, timezone
from typing import Optional

from flask import Blueprint, g, request

import settings
from api_helpers import ApiError, request_payload, send_error, send_success
from auth_guard import verify_token
from firestore_gateway import FirestoreGateway, sort_key
from firestore_rest import parse_timestamp
from normalizers import normalize_order, summarize_orders

orders_bp = Blueprint('orders', __name__, url_prefix='/api/orders')

VALID_STATUSES = ['pending', 'processing', 'shipped', 'delivered', 'completed', 'cancelled', 'paid', 'rejected']


def parse_date_param(name: str, end_of_day: bool = False) -> Optional[datetime]:
    raw = (request.args.get(name) or '').strip()
    if not raw:
        return None
    try:
        value = parse_timestamp(raw)
    except ValueError:
        raise ApiError(f'Invalid {name}', 400)
    if end_of_day:
        value = datetime.combine(value.date(), time(23, 59, 59, 999000), tzinfo=value.tzinfo)
    return value


def parse_limit() -> Optional[int]:
    raw = request.args.get('limit')
    if raw is None or raw.strip() == '':
        return settings.DEFAULT_ORDER_LIMIT
    try:
        limit = int(raw)
    except ValueError:
        return settings.DEFAULT_ORDER_LIMIT
    return limit if limit > 0 else None


@orders_bp.route('/stats', methods=['GET'])
@verify_token
def get_order_stats():
    try:
        orders = FirestoreGateway(g.id_token).list('orders')
    except Exception as exc:
        print(f"[WARN] Orders collection might not exist: {exc}")
        orders = []

    return send_success(summarize_orders(orders), 'Order statistics retrieved successfully')


@orders_bp.route('/', methods=['GET'], strict_slashes=False)
@verify_token
def get_orders():
    filters = []
    status = request.args.get('status')
    if status:
        filters.append(('status', '==', status))
    start_date = parse_date_param('startDate')
    if start_date:
        filters.append(('createdAt', '>=', start_date))
    end_date = parse_date_param('endDate', end_of_day=True)
    if end_date:
        filters.append(('createdAt', '<=', end_date))
    limit = parse_limit()

    try:
        documents = FirestoreGateway(g.id_token).list('orders', filters)
    except Exception as exc:
        print(f"[ERROR] Get orders error: {exc}")
        return send_error('Failed to retrieve orders', 500, exc)

    documents.sort(key=sort_key('createdAt'), reverse=True)
    if limit:
        documents = documents[:limit]

    orders = [normalize_order(document['id'], document) for document in documents]
    return send_success(orders, 'Orders retrieved successfully')


@orders_bp.route('/<order_id>', methods=['GET'])
@verify_token
def get_order(order_id):
    try:
        document = FirestoreGateway(g.id_token).get('orders', order_id)
    except Exception as exc:
        print(f"[ERROR] Get order error: {exc}")
        return send_error('Failed to retrieve order', 500, exc)

    if not document:
        return send_error('Order not found', 404)
    return send_success(normalize_order(order_id, document), 'Order retrieved successfully')


@orders_bp.route('/<order_id>/status', methods=['PATCH'])
@verify_token
def update_order_status(order_id):
    data = request_payload(request)
    status = data.get('status')

    if not status or not isinstance(status, str):
        return send_error('Status is required', 400)

    status = status.strip().lower()
    if status not in VALID_STATUSES:
        return send_error(f"Invalid status. Must be one of: {', '.join(VALID_STATUSES)}", 400)

    updates = {
        'status': status,
        'updatedAt': datetime.now(timezone.utc),
    }
    if 'notes' in data:
        # Older orders read "comments"
        updates['notes'] = data['notes']
        updates['comments'] = data['notes']
    if status == 'rejected' and data.get('rejectedReason'):
        updates['rejectedReason'] = data['rejectedReason']

    if FirestoreGateway(g.id_token).update('orders', order_id, updates) is None:
        return send_error('Order not found', 404)

    return send_success({'status': status, 'notes': updates.get('notes')}, 'Order status updated successfully')


@orders_bp.route('/<order_id>', methods=['DELETE'])
@verify_token
def delete_order(order_id):
    if not FirestoreGateway(g.id_token).delete('orders', order_id):
        return send_error('Order not found', 404)

    print(f"[INFO] Order deleted: {order_id}")
    return send_success(None, 'Order deleted successfully')
