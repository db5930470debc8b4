"""
Order Service - Order creation, lookups and status transitions.
"""

import math
import time
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from jewelry_shop.core.config import settings
from jewelry_shop.core.exceptions import BadRequestError, NotFoundError
from jewelry_shop.models.catalog import Product
from jewelry_shop.models.customer import Customer
from jewelry_shop.models.order import (
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)

# Accepted sort keys (snake_case and camelCase) for admin listings
SORT_FIELDS = {
    "created_at": Order.created_at,
    "createdAt": Order.created_at,
    "updated_at": Order.updated_at,
    "updatedAt": Order.updated_at,
    "total": Order.total,
}


def build_order_number(order_id: int, now_ms: int | None = None) -> str:
    """ORD-{id}-{last 6 digits of epoch millis}."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"ORD-{order_id}-{str(now_ms)[-6:]}"


def compute_total(items: list[dict[str, Any]]) -> Decimal:
    """Sum of price x quantity over the submitted items."""
    return sum(
        (Decimal(str(item["price"])) * int(item["quantity"]) for item in items),
        Decimal("0"),
    )


class OrderService:
    """
    Service for creating orders and moving them through their lifecycle.

    Lifecycle:
        PENDING -> PROCESSING -> SHIPPED -> DELIVERED
        PENDING -> CANCELLED (owner or admin)
        PENDING -> PAID (payment settlement)

    Admins may set any status directly.

    Usage:
        orders = OrderService(db_session)
        order = await orders.create_order(customer_id, items, order_details)
    """

    def __init__(self, db: AsyncSession, reserve_stock: bool | None = None) -> None:
        """Initialize order service with database session."""
        self.db = db
        self.reserve_stock = (
            settings.reserve_stock if reserve_stock is None else reserve_stock
        )

    def _order_query(self):
        return (
            select(Order)
            .options(
                selectinload(Order.items)
                .selectinload(OrderItem.product)
                .selectinload(Product.images)
            )
            .where(Order.deleted_at.is_(None))
            .execution_options(populate_existing=True)
        )

    # ==================== Creation ====================

    async def create_order(
        self,
        customer_id: int,
        items: list[dict[str, Any]],
        order_details: dict[str, Any],
        payment_method: PaymentMethod = PaymentMethod.COD,
        declared_total: Decimal | None = None,
    ) -> Order:
        """
        Create an order and its line items in one transaction.

        The total is always recomputed from the items; ``declared_total``
        is only compared and logged.

        Args:
            customer_id: Owning customer
            items: List of {id, name, price, quantity}
            order_details: Shipping details (full_name, email, phone,
                address, city, postal_code, notes)
            payment_method: COD, VIETQR or MOMO
            declared_total: Total computed by the client

        Returns:
            Created order with items loaded

        Raises:
            NotFoundError: If the customer does not exist
            BadRequestError: On empty orders, missing products or
                insufficient stock (nothing is persisted)
        """
        customer = await self.db.get(Customer, customer_id)
        if not customer or customer.deleted_at is not None:
            raise NotFoundError(f"Customer with ID {customer_id} not found")

        if not items:
            raise BadRequestError("Order must contain at least one item")

        total = compute_total(items)
        if declared_total is not None and Decimal(str(declared_total)) != total:
            logger.warning(
                f"Declared total {declared_total} differs from computed {total} "
                f"for customer {customer_id}"
            )

        try:
            order = Order(
                customer_id=customer_id,
                status=OrderStatus.PENDING,
                total=total,
                payment_method=payment_method,
                payment_status=PaymentStatus.PENDING,
                shipping_name=order_details["full_name"],
                shipping_email=order_details["email"],
                shipping_phone=order_details["phone"],
                shipping_address=order_details["address"],
                shipping_city=order_details["city"],
                shipping_postal_code=order_details["postal_code"],
                customer_notes=order_details.get("notes"),
                items=[],
            )
            self.db.add(order)
            await self.db.flush()

            products = await self._lock_products(item["id"] for item in items)

            for item in items:
                quantity = int(item["quantity"])
                if quantity <= 0:
                    raise BadRequestError("Quantity must be greater than zero")

                product = products.get(int(item["id"]))
                if not product or product.deleted_at is not None:
                    raise BadRequestError(f"Product with ID {item['id']} not found")

                if self.reserve_stock:
                    self._take_stock(product, quantity)

                unit_price = Decimal(str(item["price"]))
                order.items.append(
                    OrderItem(
                        product_id=product.id,
                        product_name=item.get("name") or product.name,
                        unit_price=unit_price,
                        quantity=quantity,
                        total=unit_price * quantity,
                    )
                )

            order.order_number = build_order_number(order.id)
            await self.db.flush()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"Created order {order.order_number} for customer {customer_id} "
            f"({len(items)} items, total {total})"
        )
        return await self.get_order_admin(order.id)

    # ==================== Customer reads ====================

    async def get_customer_orders(self, customer_id: int) -> list[Order]:
        """Get all orders of a customer, newest first."""
        query = (
            self._order_query()
            .where(Order.customer_id == customer_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_order(self, order_id: int, customer_id: int) -> Order:
        """Get order owned by the customer."""
        query = self._order_query().where(
            Order.id == order_id,
            Order.customer_id == customer_id,
        )
        result = await self.db.execute(query)
        order = result.scalar_one_or_none()
        if not order:
            raise NotFoundError(f"Order with ID {order_id} not found")
        return order

    async def cancel_order(self, order_id: int, customer_id: int) -> Order:
        """
        Cancel a pending order on behalf of its owner.

        Raises:
            NotFoundError: If the order is not the customer's
            BadRequestError: If the order is no longer pending
        """
        order = await self.get_order(order_id, customer_id)

        if order.status != OrderStatus.PENDING:
            raise BadRequestError("Only pending orders can be cancelled")

        await self._apply_status(order, OrderStatus.CANCELLED)
        await self.db.flush()
        logger.info(f"Order {order.order_number} cancelled by customer {customer_id}")
        return await self.get_order(order_id, customer_id)

    # ==================== Admin ====================

    async def get_order_admin(self, order_id: int) -> Order:
        """Get any order by ID."""
        result = await self.db.execute(self._order_query().where(Order.id == order_id))
        order = result.scalar_one_or_none()
        if not order:
            raise NotFoundError(f"Order with ID {order_id} not found")
        return order

    async def get_orders_admin(
        self,
        status: OrderStatus | None = None,
        payment_status: PaymentStatus | None = None,
        customer_id: int | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> dict[str, Any]:
        """
        Get all orders with filters, sorting and pagination.

        Unknown ``sort_by`` values fall back to ``created_at``.
        """
        conditions = [Order.deleted_at.is_(None)]
        if status:
            conditions.append(Order.status == status)
        if payment_status:
            conditions.append(Order.payment_status == payment_status)
        if customer_id is not None:
            conditions.append(Order.customer_id == customer_id)
        if date_from:
            conditions.append(Order.created_at >= date_from)
        if date_to:
            conditions.append(Order.created_at <= date_to)

        count_query = select(func.count(Order.id)).where(*conditions)
        total = (await self.db.execute(count_query)).scalar_one()

        query = self._order_query().where(*conditions)
        column = SORT_FIELDS.get(sort_by, Order.created_at)
        if sort_order.lower() == "asc":
            query = query.order_by(column.asc(), Order.id.asc())
        else:
            query = query.order_by(column.desc(), Order.id.desc())

        query = query.limit(limit).offset((page - 1) * limit)
        result = await self.db.execute(query)

        return {
            "items": list(result.scalars().all()),
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit) if limit else 0,
        }

    async def update_status_admin(self, order_id: int, status: OrderStatus) -> Order:
        """Set any status on an order."""
        order = await self.get_order_admin(order_id)
        previous = order.status

        await self._apply_status(order, status)
        await self.db.flush()

        logger.info(f"Order {order.order_number} status {previous.value} -> {status.value}")
        return await self.get_order_admin(order_id)

    async def update_payment_status_admin(
        self,
        order_id: int,
        payment_status: PaymentStatus,
    ) -> Order:
        """
        Set payment status on an order.

        PAID goes through ``mark_paid`` so the order status and
        ``paid_at`` follow the same rules as a provider settlement.
        """
        order = await self.get_order_admin(order_id)

        if payment_status == PaymentStatus.PAID:
            await self.mark_paid(order)
        else:
            order.payment_status = payment_status
            await self.db.flush()

        logger.info(f"Order {order.order_number} payment status -> {payment_status.value}")
        return await self.get_order_admin(order_id)

    # ==================== Payment settlement ====================

    async def mark_paid(self, order: Order, reference: str | None = None) -> bool:
        """
        Record a successful payment.

        Idempotent: returns False when the order was already paid.
        """
        if order.payment_status == PaymentStatus.PAID:
            logger.info(f"Order {order.order_number} already paid, ignoring")
            return False

        order.payment_status = PaymentStatus.PAID
        order.paid_at = datetime.utcnow()
        if reference:
            order.payment_reference = reference
        if order.status == OrderStatus.PENDING:
            order.status = OrderStatus.PAID
        elif order.status == OrderStatus.CANCELLED:
            order.refund_required = True
            logger.warning(
                f"Payment received for cancelled order {order.order_number}, refund required"
            )

        await self.db.flush()
        logger.info(f"Order {order.order_number} marked as paid")
        return True

    async def mark_payment_failed(self, order: Order) -> bool:
        """Record a failed payment unless the order is already paid."""
        if order.payment_status != PaymentStatus.PENDING:
            return False

        order.payment_status = PaymentStatus.FAILED
        await self.db.flush()
        logger.info(f"Order {order.order_number} payment failed")
        return True

    # ==================== Stock ====================

    async def _lock_products(self, product_ids: Iterable[int]) -> dict[int, Product]:
        """Lock product rows in one statement, always in ascending id order."""
        ids = sorted({int(product_id) for product_id in product_ids})
        if not ids:
            return {}
        query = (
            select(Product)
            .where(Product.id.in_(ids))
            .order_by(Product.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        return {product.id: product for product in result.scalars().all()}

    def _take_stock(self, product: Product, quantity: int) -> None:
        if product.stock_quantity < quantity:
            raise BadRequestError(
                f"Insufficient stock for {product.name}: "
                f"{product.stock_quantity} available, {quantity} requested"
            )
        product.stock_quantity -= quantity

    async def _apply_status(self, order: Order, status: OrderStatus) -> None:
        """Set status, releasing or re-reserving stock around CANCELLED."""
        if self.reserve_stock:
            releasing = status == OrderStatus.CANCELLED and order.status != OrderStatus.CANCELLED
            reserving = order.status == OrderStatus.CANCELLED and status != OrderStatus.CANCELLED
            if releasing or reserving:
                products = await self._lock_products(item.product_id for item in order.items)

            if releasing:
                for item in order.items:
                    product = products.get(item.product_id)
                    if product:
                        product.stock_quantity += item.quantity
            elif reserving:
                for item in order.items:
                    product = products.get(item.product_id)
                    if not product or product.deleted_at is not None:
                        raise BadRequestError(
                            f"Product with ID {item.product_id} no longer exists"
                        )
                    self._take_stock(product, item.quantity)

        if status == OrderStatus.CANCELLED and order.payment_status == PaymentStatus.PAID:
            order.refund_required = True
        order.status = status
