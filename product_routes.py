import math
from datetime import datetime, timezone
from typing import Optional

from flask import Blueprint, g, request

import image_storage
import settings
from api_helpers import ApiError, parse_bool, request_payload, send_error, send_success, validate_required_fields
from auth_guard import verify_token
from firestore_gateway import FirestoreGateway, sort_key
from normalizers import serialize_product

products_bp = Blueprint('products', __name__, url_prefix='/api/products')

POPULAR_LIMIT_MESSAGE = (
    f'Maximum of {settings.MAX_POPULAR_PRODUCTS} products can be popular at a time. '
    'Please remove a popular product first.'
)


def parse_price(value) -> float:
    try:
        price = float(value)
    except (TypeError, ValueError, OverflowError):
        raise ApiError('Price must be a positive number', 400)
    if not math.isfinite(price) or price <= 0:
        raise ApiError('Price must be a positive number', 400)
    return price


def parse_count(value) -> int:
    count: Optional[int] = None
    if isinstance(value, int) and not isinstance(value, bool):
        count = value
    elif isinstance(value, float) and value.is_integer():
        count = int(value)
    elif isinstance(value, str):
        try:
            count = int(value.strip())
        except ValueError:
            try:
                as_float = float(value)
            except ValueError:
                as_float = None
            if as_float is not None and as_float.is_integer():
                count = int(as_float)

    if count is None or count < 0:
        raise ApiError('Count must be a non-negative integer', 400)
    return count


def text_field(data: dict, field: str) -> str:
    value = data.get(field)
    if not isinstance(value, str):
        raise ApiError(f'{field.capitalize()} must be text', 400)
    return value.strip()


def popular_limit_reached(gateway: FirestoreGateway, product_id: Optional[str]) -> bool:
    popular = gateway.list('products', [('popular', '==', True)])
    others = [product for product in popular if product.get('id') != product_id]
    return len(others) >= settings.MAX_POPULAR_PRODUCTS


@products_bp.route('/', methods=['GET'], strict_slashes=False)
@verify_token
def get_products():
    try:
        products = FirestoreGateway(g.id_token).list('products')
    except Exception as exc:
        print(f"[ERROR] Get products error: {exc}")
        return send_error('Failed to retrieve products', 500, exc)

    products.sort(key=sort_key('createdAt'), reverse=True)
    return send_success([serialize_product(product) for product in products], 'Products retrieved successfully')


@products_bp.route('/<product_id>', methods=['GET'])
@verify_token
def get_product(product_id):
    try:
        product = FirestoreGateway(g.id_token).get('products', product_id)
    except Exception as exc:
        print(f"[ERROR] Get product error: {exc}")
        return send_error('Failed to retrieve product', 500, exc)

    if not product:
        return send_error('Product not found', 404)
    return send_success(serialize_product(product), 'Product retrieved successfully')


@products_bp.route('/', methods=['POST'], strict_slashes=False)
@verify_token
def create_product():
    data = request_payload(request)

    missing = validate_required_fields(data, ['name', 'description', 'price', 'count', 'category'])
    if missing:
        return send_error(f"Missing required fields: {', '.join(missing)}", 400)

    price = parse_price(data['price'])
    count = parse_count(data['count'])

    image = request.files.get('image')
    if image is not None and image.filename:
        image_url = image_storage.store_image(image, 'products', g.user['uid'])
    elif isinstance(data.get('imageUrl'), str) and data['imageUrl'].strip():
        image_url = data['imageUrl'].strip()
    else:
        return send_error('Product image is required', 400)

    product_data = {
        'name': text_field(data, 'name'),
        'description': text_field(data, 'description'),
        'price': price,
        'count': count,
        'category': text_field(data, 'category'),
        'imageUrl': image_url,
        'status': data.get('status') or 'active',
        'popular': False,
        'createdAt': datetime.now(timezone.utc),
        'createdBy': g.user['uid'],
    }

    try:
        product = FirestoreGateway(g.id_token).add('products', product_data)
    except Exception as exc:
        print(f"[ERROR] Create product error: {exc}")
        return send_error(f'Failed to create product: {exc}', 500, exc)

    print(f"[SUCCESS] Product created: {product['id']}")
    return send_success(serialize_product(product), 'Product created successfully', 201)


@products_bp.route('/<product_id>', methods=['PUT'])
@verify_token
def update_product(product_id):
    data = request_payload(request)

    updates = {}
    for field in ('name', 'description', 'category'):
        if field in data:
            updates[field] = text_field(data, field)
    if 'price' in data:
        updates['price'] = parse_price(data['price'])
    if 'count' in data:
        updates['count'] = parse_count(data['count'])
    if 'status' in data:
        updates['status'] = data['status']
    if 'popular' in data:
        updates['popular'] = parse_bool(data['popular'])

    if not updates:
        return send_error('No fields provided to update', 400)

    gateway = FirestoreGateway(g.id_token)
    existing = gateway.get('products', product_id)
    if not existing:
        return send_error('Product not found', 404)

    if updates.get('popular') and existing.get('popular') is not True:
        if popular_limit_reached(gateway, product_id):
            return send_error(POPULAR_LIMIT_MESSAGE, 400)

    updates['updatedAt'] = datetime.now(timezone.utc)
    product = gateway.update('products', product_id, updates)
    if product is None:
        return send_error('Product not found', 404)

    return send_success(serialize_product(product), 'Product updated successfully')


@products_bp.route('/<product_id>/popular', methods=['PATCH'])
@verify_token
def toggle_popular(product_id):
    data = request_payload(request)
    make_popular = parse_bool(data.get('popular'))

    gateway = FirestoreGateway(g.id_token)
    existing = gateway.get('products', product_id)
    if not existing:
        return send_error('Product not found', 404)

    if make_popular and popular_limit_reached(gateway, product_id):
        return send_error(POPULAR_LIMIT_MESSAGE, 400)

    product = gateway.update('products', product_id, {
        'popular': make_popular,
        'updatedAt': datetime.now(timezone.utc),
    })
    if product is None:
        return send_error('Product not found', 404)

    message = 'Product marked as popular' if make_popular else 'Product removed from popular'
    return send_success(serialize_product(product), message)


@products_bp.route('/<product_id>', methods=['DELETE'])
@verify_token
def delete_product(product_id):
    if not FirestoreGateway(g.id_token).delete('products', product_id):
        return send_error('Product not found', 404)

    print(f"[INFO] Product deleted: {product_id}")
    return send_success(None, 'Product deleted successfully')
