"""
Order models.

Includes:
- Orders (with shipping details and payment state)
- Order line items (price snapshots)
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from jewelry_shop.core.database import Base, SoftDeleteMixin, TimestampMixin

if TYPE_CHECKING:
    from jewelry_shop.models.catalog import Product
    from jewelry_shop.models.customer import Customer


class OrderStatus(str, PyEnum):
    """Order processing status."""

    PENDING = "PENDING"
    PAID = "PAID"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, PyEnum):
    """Settlement state of an order."""

    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"


class PaymentMethod(str, PyEnum):
    """How the customer pays."""

    COD = "COD"
    VIETQR = "VIETQR"
    MOMO = "MOMO"


class Order(TimestampMixin, SoftDeleteMixin, Base):
    """Customer order."""

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    # Set once, right after the id is assigned
    order_number: Mapped[str | None] = mapped_column(String(50), unique=True, index=True)
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), index=True)

    # Status
    status: Mapped[OrderStatus] = mapped_column(
        Enum(OrderStatus), default=OrderStatus.PENDING
    )

    # Pricing
    total: Mapped[Decimal] = mapped_column(Numeric(10, 2))

    # Payment
    payment_method: Mapped[PaymentMethod] = mapped_column(
        Enum(PaymentMethod), default=PaymentMethod.COD
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus), default=PaymentStatus.PENDING
    )
    payment_reference: Mapped[str | None] = mapped_column(String(100), index=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime)
    # Set when money arrives for an order that was already cancelled
    refund_required: Mapped[bool] = mapped_column(Boolean, default=False)

    # Shipping
    shipping_name: Mapped[str] = mapped_column(String(255))
    shipping_email: Mapped[str] = mapped_column(String(255))
    shipping_phone: Mapped[str] = mapped_column(String(50))
    shipping_address: Mapped[str] = mapped_column(Text)
    shipping_city: Mapped[str] = mapped_column(String(100))
    shipping_postal_code: Mapped[str] = mapped_column(String(20))
    customer_notes: Mapped[str | None] = mapped_column(Text)

    # Relationships
    customer: Mapped["Customer"] = relationship(back_populates="orders")
    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID

    def __repr__(self) -> str:
        return f"<Order {self.order_number or self.id}>"


class OrderItem(Base):
    """Line item in an order."""

    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id"), index=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id"))

    # Snapshot at time of order
    product_name: Mapped[str] = mapped_column(String(255))
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    total: Mapped[Decimal] = mapped_column(Numeric(10, 2))

    # Relationships
    order: Mapped["Order"] = relationship(back_populates="items")
    product: Mapped["Product"] = relationship(back_populates="order_items")
