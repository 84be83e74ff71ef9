from datetime import datetime, timezone

from normalizers import normalize_order, order_total, parse_amount, serialize_product, summarize_orders


def test_normalize_order_reads_flat_customer_fields():
    order = normalize_order('abcdef123', {
        'customerName': 'Ana',
        'customerEmail': 'ana@example.com',
        'items': [{'name': 'Mug', 'quantity': 1}],
        'total': '19.90',
        'comments': 'Leave at door',
        'createdAt': datetime(2024, 2, 1, 9, 30, tzinfo=timezone.utc),
    })

    assert order['orderId'] == '#ORD-ABCDEF'
    assert order['customer'] == {'name': 'Ana', 'email': 'ana@example.com', 'avatar': None}
    assert order['products'] == [{'name': 'Mug', 'quantity': 1}]
    assert order['totalAmount'] == 19.9
    assert order['status'] == 'pending'
    assert order['notes'] == 'Leave at door'
    assert order['createdAt'] == '2024-02-01T09:30:00+00:00'


def test_normalize_order_reads_nested_customer_and_wire_format_cart():
    order = normalize_order('x1', {
        'orderId': 'ORD-7',
        'customer': {'name': 'Ben', 'avatar': 'https://img'},
        'cartItems': [
            {'mapValue': {'fields': {'name': {'stringValue': 'Tea'}, 'qty': {'integerValue': '3'}}}},
            {'name': 'Cup', 'qty': 1},
        ],
        'totalAmount': 0,
        'amount': 50,
        'status': 'shipped',
    })

    assert order['orderId'] == 'ORD-7'
    assert order['customer'] == {'name': 'Ben', 'email': '', 'avatar': 'https://img'}
    assert order['products'] == [{'name': 'Tea', 'qty': 3}, {'name': 'Cup', 'qty': 1}]
    # totalAmount wins whenever it is present, even when zero
    assert order['totalAmount'] == 0.0
    assert order['status'] == 'shipped'


def test_normalize_order_defaults_for_empty_document():
    order = normalize_order('q', {})
    assert order['customer']['name'] == 'Unknown'
    assert order['products'] == []
    assert order['totalAmount'] == 0.0
    assert order['createdAt'] is None


def test_amount_parsing_tolerates_junk():
    assert parse_amount('12.5') == 12.5
    assert parse_amount('n/a') == 0.0
    assert parse_amount(None) == 0.0
    assert order_total({'total': None, 'amount': '7'}) == 7.0


def test_summarize_orders_groups_statuses():
    stats = summarize_orders([
        {'status': 'pending', 'total': 10},
        {'status': 'Processing', 'totalAmount': '5.005'},
        {'status': 'delivered', 'amount': 20.333},
        {'status': 'paid', 'totalAmount': 1},
        {'status': 'cancelled', 'total': 100},
    ])

    assert stats == {
        'totalOrders': 5,
        'pendingOrders': 2,
        'completedOrders': 2,
        'revenue': 21.33,
        'totalCost': 136.34,
    }


def test_serialize_product_formats_timestamps_and_popular():
    product = serialize_product({
        'id': 'p1',
        'name': 'Lamp',
        'createdAt': datetime(2024, 1, 1, tzinfo=timezone.utc),
        'popular': 'yes',
    })
    assert product['createdAt'] == '2024-01-01T00:00:00+00:00'
    assert product['updatedAt'] is None
    assert product['popular'] is False


def test_non_finite_amounts_count_as_zero():
    assert parse_amount('NaN') == 0.0
    assert parse_amount('Infinity') == 0.0
    assert parse_amount(float('-inf')) == 0.0
    assert parse_amount(10 ** 400) == 0.0
    assert normalize_order('n1', {'totalAmount': 'inf'})['totalAmount'] == 0.0


def test_line_items_stored_as_a_map_are_kept():
    order = normalize_order('m1', {'items': {'0': {'name': 'Mug'}, '1': {'name': 'Tea'}}})
    assert order['products'] == [{'name': 'Mug'}, {'name': 'Tea'}]
