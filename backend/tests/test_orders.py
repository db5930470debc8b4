import re
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import event, func, select

from jewelry_shop.core.exceptions import BadRequestError, NotFoundError
from jewelry_shop.models.catalog import Product
from jewelry_shop.models.order import Order, OrderStatus, PaymentStatus
from jewelry_shop.modules.orders.service import OrderService, build_order_number, compute_total


async def stock_of(db, product_id):
    query = select(Product.stock_quantity).where(Product.id == product_id)
    return (await db.execute(query)).scalar_one()


async def order_count(db):
    return (await db.execute(select(func.count(Order.id)))).scalar_one()


def test_build_order_number_uses_last_six_digits():
    assert build_order_number(42, now_ms=1700000123456) == "ORD-42-123456"


def test_compute_total():
    items = [
        {"price": Decimal("10.00"), "quantity": 3},
        {"price": 100, "quantity": 1},
    ]
    assert compute_total(items) == Decimal("130.00")


# ==================== Service ====================


async def test_total_is_recomputed_from_items(db, customer, ring, necklace, order_details):
    order = await OrderService(db).create_order(
        customer_id=customer.id,
        items=[
            {"id": ring.id, "name": "Ring", "price": Decimal("50.00"), "quantity": 2},
            {"id": necklace.id, "name": "Necklace", "price": Decimal("30.00"), "quantity": 1},
        ],
        order_details=order_details,
        declared_total=Decimal("999"),
    )

    assert order.total == Decimal("130.00")
    assert order.status == OrderStatus.PENDING
    assert order.payment_status == PaymentStatus.PENDING
    items = sorted(order.items, key=lambda item: item.product_id)
    assert [item.total for item in items] == [Decimal("100.00"), Decimal("30.00")]
    assert order.total == sum(item.total for item in order.items)


async def test_order_number_is_stored_and_stable(db, customer, ring, order_details):
    orders = OrderService(db)
    order = await orders.create_order(
        customer.id, [{"id": ring.id, "price": 10, "quantity": 1}], order_details
    )

    assert re.fullmatch(rf"ORD-{order.id}-\d{{6}}", order.order_number)
    first = order.order_number
    again = await orders.get_order(order.id, customer.id)
    assert again.order_number == first


async def test_missing_product_rolls_back_everything(db, customer, ring, order_details):
    customer_id, ring_id = customer.id, ring.id

    with pytest.raises(BadRequestError):
        await OrderService(db).create_order(
            customer_id,
            [
                {"id": ring_id, "price": 10, "quantity": 2},
                {"id": 9999, "price": 5, "quantity": 1},
            ],
            order_details,
        )

    assert await order_count(db) == 0
    assert await stock_of(db, ring_id) == 5


async def test_stock_is_taken_and_insufficient_stock_rejected(
    db, customer, ring, necklace, order_details
):
    customer_id, ring_id, necklace_id = customer.id, ring.id, necklace.id
    orders = OrderService(db)

    await orders.create_order(
        customer_id, [{"id": ring_id, "price": 10, "quantity": 3}], order_details
    )
    assert await stock_of(db, ring_id) == 2
    await db.commit()

    with pytest.raises(BadRequestError, match="Insufficient stock"):
        await orders.create_order(
            customer_id, [{"id": necklace_id, "price": 100, "quantity": 3}], order_details
        )

    assert await order_count(db) == 1
    assert await stock_of(db, necklace_id) == 2


async def test_stock_untouched_when_reservation_disabled(db, customer, ring, order_details):
    orders = OrderService(db, reserve_stock=False)
    await orders.create_order(
        customer.id, [{"id": ring.id, "price": 10, "quantity": 50}], order_details
    )
    assert await stock_of(db, ring.id) == 5


async def test_cancel_only_from_pending(db, customer, ring, order_details):
    orders = OrderService(db)
    order = await orders.create_order(
        customer.id, [{"id": ring.id, "price": 10, "quantity": 2}], order_details
    )

    cancelled = await orders.cancel_order(order.id, customer.id)
    assert cancelled.status == OrderStatus.CANCELLED
    assert await stock_of(db, ring.id) == 5

    with pytest.raises(BadRequestError, match="Only pending orders"):
        await orders.cancel_order(order.id, customer.id)


async def test_customer_cannot_cancel_shipped_order(db, customer, ring, order_details):
    orders = OrderService(db)
    order = await orders.create_order(
        customer.id, [{"id": ring.id, "price": 10, "quantity": 1}], order_details
    )

    shipped = await orders.update_status_admin(order.id, OrderStatus.SHIPPED)
    assert shipped.status == OrderStatus.SHIPPED

    with pytest.raises(BadRequestError):
        await orders.cancel_order(order.id, customer.id)


async def test_reopening_cancelled_order_reserves_stock_again(db, customer, ring, order_details):
    orders = OrderService(db)
    order = await orders.create_order(
        customer.id, [{"id": ring.id, "price": 10, "quantity": 2}], order_details
    )

    await orders.update_status_admin(order.id, OrderStatus.CANCELLED)
    assert await stock_of(db, ring.id) == 5

    await orders.update_status_admin(order.id, OrderStatus.PROCESSING)
    assert await stock_of(db, ring.id) == 3


async def test_orders_are_scoped_to_their_owner(
    db, customer, other_customer, ring, order_details
):
    orders = OrderService(db)
    order = await orders.create_order(
        customer.id, [{"id": ring.id, "price": 10, "quantity": 1}], order_details
    )

    with pytest.raises(NotFoundError):
        await orders.get_order(order.id, other_customer.id)
    with pytest.raises(NotFoundError):
        await orders.cancel_order(order.id, other_customer.id)

    assert await orders.get_customer_orders(other_customer.id) == []
    assert [o.id for o in await orders.get_customer_orders(customer.id)] == [order.id]


async def test_admin_listing_filters_and_sorts(db, customer, ring, necklace, order_details):
    orders = OrderService(db)
    small = await orders.create_order(
        customer.id, [{"id": ring.id, "price": 10, "quantity": 1}], order_details
    )
    large = await orders.create_order(
        customer.id, [{"id": necklace.id, "price": 100, "quantity": 1}], order_details
    )
    await orders.update_status_admin(large.id, OrderStatus.SHIPPED)

    shipped = await orders.get_orders_admin(status=OrderStatus.SHIPPED)
    assert shipped["total"] == 1
    assert [o.id for o in shipped["items"]] == [large.id]

    by_total = await orders.get_orders_admin(sort_by="total", sort_order="asc")
    assert [o.id for o in by_total["items"]] == [small.id, large.id]
    assert by_total["total_pages"] == 1

    paged = await orders.get_orders_admin(page=2, limit=1, sort_by="totalAmount")
    assert paged["total"] == 2
    assert paged["total_pages"] == 2
    assert len(paged["items"]) == 1


async def test_mark_paid_is_idempotent(db, customer, ring, order_details):
    orders = OrderService(db)
    order = await orders.create_order(
        customer.id, [{"id": ring.id, "price": 10, "quantity": 1}], order_details
    )

    assert await orders.mark_paid(order, reference="MOMO-1") is True
    assert await orders.mark_paid(order, reference="MOMO-1") is False
    assert order.status == OrderStatus.PAID
    assert order.payment_status == PaymentStatus.PAID
    assert order.paid_at is not None


async def test_products_locked_once_in_id_order(db, customer, ring, necklace, order_details):
    ring_id, necklace_id = ring.id, necklace.id
    statements = []

    def record(conn, cursor, statement, parameters, context, executemany):
        if "FROM products" in statement:
            statements.append((statement, list(parameters)))

    engine = db.bind.sync_engine
    event.listen(engine, "before_cursor_execute", record)
    try:
        await OrderService(db).create_order(
            customer.id,
            [
                {"id": necklace_id, "price": 100, "quantity": 1},
                {"id": ring_id, "price": 10, "quantity": 1},
                {"id": necklace_id, "price": 100, "quantity": 1},
            ],
            order_details,
        )
    finally:
        event.remove(engine, "before_cursor_execute", record)

    [(statement, parameters)] = statements
    assert "ORDER BY products.id" in statement
    assert parameters == sorted([ring_id, necklace_id])
    assert await stock_of(db, necklace_id) == 0


async def test_payment_on_cancelled_order_flags_refund(db, customer, ring, order_details):
    orders = OrderService(db)
    order = await orders.create_order(
        customer.id, [{"id": ring.id, "price": 10, "quantity": 1}], order_details
    )
    assert order.refund_required is False

    await orders.update_status_admin(order.id, OrderStatus.CANCELLED)
    assert await orders.mark_paid(order, reference="MOMO-LATE") is True

    assert order.status == OrderStatus.CANCELLED
    assert order.payment_status == PaymentStatus.PAID
    assert order.refund_required is True


async def test_cancelling_paid_order_flags_refund(db, customer, ring, order_details):
    orders = OrderService(db)
    order = await orders.create_order(
        customer.id, [{"id": ring.id, "price": 10, "quantity": 1}], order_details
    )
    await orders.mark_paid(order)

    cancelled = await orders.update_status_admin(order.id, OrderStatus.CANCELLED)
    assert cancelled.refund_required is True
    assert await stock_of(db, ring.id) == 5


async def test_admin_payment_paid_settles_order(db, customer, ring, order_details):
    orders = OrderService(db)
    order = await orders.create_order(
        customer.id, [{"id": ring.id, "price": 10, "quantity": 1}], order_details
    )

    paid = await orders.update_payment_status_admin(order.id, PaymentStatus.PAID)
    assert paid.payment_status == PaymentStatus.PAID
    assert paid.status == OrderStatus.PAID
    assert paid.paid_at is not None


async def test_admin_payment_failed_keeps_order_pending(db, customer, ring, order_details):
    orders = OrderService(db)
    order = await orders.create_order(
        customer.id, [{"id": ring.id, "price": 10, "quantity": 1}], order_details
    )

    failed = await orders.update_payment_status_admin(order.id, PaymentStatus.FAILED)
    assert failed.payment_status == PaymentStatus.FAILED
    assert failed.status == OrderStatus.PENDING
    assert failed.paid_at is None


async def test_admin_listing_filters_by_customer_and_date(
    db, customer, other_customer, ring, order_details
):
    orders = OrderService(db)
    old = await orders.create_order(
        customer.id, [{"id": ring.id, "price": 10, "quantity": 1}], order_details
    )
    recent = await orders.create_order(
        customer.id, [{"id": ring.id, "price": 10, "quantity": 1}], order_details
    )
    theirs = await orders.create_order(
        other_customer.id, [{"id": ring.id, "price": 10, "quantity": 1}], order_details
    )
    old.created_at = datetime(2024, 1, 10)
    recent.created_at = datetime(2024, 3, 10)
    theirs.created_at = datetime(2024, 3, 12)
    await db.flush()

    mine = await orders.get_orders_admin(customer_id=customer.id)
    assert {o.id for o in mine["items"]} == {old.id, recent.id}
    assert mine["total"] == 2

    march = await orders.get_orders_admin(
        date_from=datetime(2024, 3, 1), date_to=datetime(2024, 3, 31)
    )
    assert [o.id for o in march["items"]] == [theirs.id, recent.id]

    january_only = await orders.get_orders_admin(date_to=datetime(2024, 2, 1))
    assert [o.id for o in january_only["items"]] == [old.id]

    both = await orders.get_orders_admin(
        customer_id=customer.id, date_from=datetime(2024, 3, 1)
    )
    assert [o.id for o in both["items"]] == [recent.id]


# ==================== API ====================


def order_payload(ring, necklace, order_details):
    return {
        "items": [
            {"id": ring.id, "name": "Ring", "price": 50, "quantity": 2},
            {"id": necklace.id, "name": "Necklace", "price": 30, "quantity": 1},
        ],
        "total": 999,
        "order_details": order_details,
        "payment_method": "COD",
    }


async def test_api_create_and_list_orders(
    client, customer_headers, ring, necklace, order_details
):
    response = await client.post(
        "/api/orders",
        json=order_payload(ring, necklace, order_details),
        headers=customer_headers,
    )
    assert response.status_code == 201
    body = response.json()
    assert body["total"] == 130
    assert body["order_details"]["city"] == "Ha Noi"
    assert {item["id"] for item in body["items"]} == {ring.id, necklace.id}

    mine = await client.get("/api/orders/user", headers=customer_headers)
    assert [o["id"] for o in mine.json()] == [body["id"]]

    detail = await client.get(f"/api/orders/{body['id']}", headers=customer_headers)
    assert detail.json()["order_number"] == body["order_number"]


async def test_api_requires_authentication(client, ring, necklace, order_details):
    response = await client.post("/api/orders", json=order_payload(ring, necklace, order_details))
    assert response.status_code == 401


async def test_api_rejects_invalid_quantity(client, customer_headers, ring, order_details):
    response = await client.post(
        "/api/orders",
        json={
            "items": [{"id": ring.id, "price": 10, "quantity": 0}],
            "order_details": order_details,
        },
        headers=customer_headers,
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Validation failed"


async def test_api_admin_routes_need_admin(client, customer_headers, admin_headers):
    assert (await client.get("/api/orders/admin", headers=customer_headers)).status_code == 401

    response = await client.get("/api/orders/admin", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["total"] == 0


async def test_api_shipped_order_cannot_be_cancelled(
    client, customer_headers, admin_headers, ring, necklace, order_details
):
    created = await client.post(
        "/api/orders",
        json=order_payload(ring, necklace, order_details),
        headers=customer_headers,
    )
    order_id = created.json()["id"]

    shipped = await client.patch(
        f"/api/orders/admin/{order_id}/status",
        json={"status": "SHIPPED"},
        headers=admin_headers,
    )
    assert shipped.status_code == 200
    assert shipped.json()["status"] == "SHIPPED"

    cancel = await client.post(f"/api/orders/{order_id}/cancel", headers=customer_headers)
    assert cancel.status_code == 400


async def test_api_other_customer_gets_404(
    client, customer_headers, other_headers, ring, necklace, order_details
):
    created = await client.post(
        "/api/orders",
        json=order_payload(ring, necklace, order_details),
        headers=customer_headers,
    )
    response = await client.get(
        f"/api/orders/{created.json()['id']}", headers=other_headers
    )
    assert response.status_code == 404


async def test_api_admin_marks_order_paid(
    client, customer_headers, admin_headers, ring, necklace, order_details
):
    created = await client.post(
        "/api/orders",
        json=order_payload(ring, necklace, order_details),
        headers=customer_headers,
    )
    order_id = created.json()["id"]

    denied = await client.patch(
        f"/api/orders/admin/{order_id}/payment",
        json={"payment_status": "PAID"},
        headers=customer_headers,
    )
    assert denied.status_code == 401

    response = await client.patch(
        f"/api/orders/admin/{order_id}/payment",
        json={"payment_status": "PAID"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["payment_status"] == "PAID"
    assert body["status"] == "PAID"
    assert body["paid_at"] is not None
    assert body["refund_required"] is False


async def test_api_admin_filters_orders_by_customer(
    client, customer_headers, other_headers, admin_headers, customer, ring, necklace,
    order_details,
):
    mine = await client.post(
        "/api/orders",
        json=order_payload(ring, necklace, order_details),
        headers=customer_headers,
    )
    await client.post(
        "/api/orders",
        json=order_payload(ring, necklace, order_details),
        headers=other_headers,
    )

    response = await client.get(
        "/api/orders/admin", params={"customerId": customer.id}, headers=admin_headers
    )
    assert response.json()["total"] == 1
    assert [o["id"] for o in response.json()["items"]] == [mine.json()["id"]]

    future = await client.get(
        "/api/orders/admin", params={"dateFrom": "2999-01-01T00:00:00"}, headers=admin_headers
    )
    assert future.json()["total"] == 0
