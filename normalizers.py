"""Shape Firestore documents into API responses.

Orders in particular were written by several generations of the storefront,
so customer info, line items and amounts live under different keys depending
on when the order was placed.
"""
import math
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import firestore_rest

PENDING_STATUSES = ('pending', 'processing', 'shipped')
COMPLETED_STATUSES = ('delivered', 'completed', 'paid')
REVENUE_STATUSES = ('delivered', 'completed')


def serialize_timestamp(value: Any) -> Optional[str]:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    if isinstance(value, str):
        return value
    if hasattr(value, 'ToDatetime'):
        # protobuf Timestamp
        return serialize_timestamp(value.ToDatetime(tzinfo=timezone.utc))
    return str(value)


def parse_amount(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        amount = float(value) if isinstance(value, (int, float)) else float(str(value).strip())
    except (ValueError, OverflowError):
        return 0.0
    # NaN and infinities cannot be sent as JSON
    return amount if math.isfinite(amount) else 0.0


def order_total(data: Dict[str, Any]) -> float:
    if data.get('totalAmount') is not None:
        return parse_amount(data['totalAmount'])
    return parse_amount(data.get('total') or data.get('amount') or 0)


def convert_cart_items(items: Any) -> List[Any]:
    if isinstance(items, dict):
        # Some orders keyed their line items by position
        items = list(items.values())
    if not isinstance(items, list):
        return [items] if items else []
    converted = []
    for item in items:
        if firestore_rest.is_wire_value(item):
            converted.append(firestore_rest.from_firestore_value(item))
        else:
            converted.append(item)
    return converted


def _clean(value: Any) -> Any:
    """Make nested values JSON friendly."""
    if isinstance(value, datetime):
        return serialize_timestamp(value)
    if isinstance(value, dict):
        return {key: _clean(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_clean(item) for item in value]
    if hasattr(value, 'latitude') and hasattr(value, 'longitude'):
        return {'latitude': value.latitude, 'longitude': value.longitude}
    if hasattr(value, 'path') and hasattr(value, 'id'):
        # DocumentReference
        return value.path
    return value


def normalize_order(doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    customer = data.get('customer') if isinstance(data.get('customer'), dict) else {}
    products = data.get('products') or data.get('items') or data.get('cartItems') or []

    return {
        'id': doc_id,
        'orderId': data.get('orderId') or f'#ORD-{(doc_id or "")[:6].upper() or "N/A"}',
        'customer': {
            'name': data.get('customerName') or customer.get('name') or 'Unknown',
            'email': data.get('customerEmail') or customer.get('email') or '',
            'avatar': data.get('customerAvatar') or customer.get('avatar') or None,
        },
        'products': _clean(convert_cart_items(products)),
        'totalAmount': order_total(data),
        'status': data.get('status') or 'pending',
        'createdAt': serialize_timestamp(data.get('createdAt')),
        'updatedAt': serialize_timestamp(data.get('updatedAt')),
        'shippingAddress': _clean(data.get('shippingAddress')) or None,
        'notes': data.get('notes') or data.get('comments') or None,
        'rejectedReason': data.get('rejectedReason') or None,
    }


def serialize_product(document: Dict[str, Any]) -> Dict[str, Any]:
    product = _clean(document)
    product['createdAt'] = serialize_timestamp(document.get('createdAt'))
    product['updatedAt'] = serialize_timestamp(document.get('updatedAt'))
    product['popular'] = document.get('popular') is True
    return product


def summarize_orders(orders: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    total_orders = 0
    pending_orders = 0
    completed_orders = 0
    revenue = 0.0
    total_cost = 0.0

    for order in orders:
        total_orders += 1
        status = str(order.get('status') or '').lower()
        total = order_total(order)
        total_cost += total

        if status in COMPLETED_STATUSES:
            completed_orders += 1
            revenue += total
        elif status in PENDING_STATUSES:
            pending_orders += 1

    return {
        'totalOrders': total_orders,
        'pendingOrders': pending_orders,
        'completedOrders': completed_orders,
        'revenue': round(revenue, 2),
        'totalCost': round(total_cost, 2),
    }


def delivered_revenue(orders: Iterable[Dict[str, Any]]) -> float:
    revenue = sum(
        order_total(order) for order in orders
        if str(order.get('status') or '').lower() in REVENUE_STATUSES
    )
    return round(revenue, 2)
