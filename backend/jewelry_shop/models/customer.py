"""
Customer account model.
"""

from datetime import datetime
from enum import Enum as PyEnum
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from jewelry_shop.core.database import Base, SoftDeleteMixin, TimestampMixin

if TYPE_CHECKING:
    from jewelry_shop.models.order import Order
    from jewelry_shop.models.review import Review


class Role(str, PyEnum):
    """Account role."""

    CUSTOMER = "customer"
    ADMIN = "admin"


class Customer(TimestampMixin, SoftDeleteMixin, Base):
    """Customer account (admins are customers with the admin role)."""

    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    first_name: Mapped[str] = mapped_column(String(100))
    last_name: Mapped[str] = mapped_column(String(100))
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(50))
    role: Mapped[str] = mapped_column(String(20), default=Role.CUSTOMER.value)
    last_login: Mapped[datetime | None] = mapped_column(DateTime)

    # Relationships
    orders: Mapped[list["Order"]] = relationship(back_populates="customer")
    reviews: Mapped[list["Review"]] = relationship(back_populates="customer")

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value

    def __repr__(self) -> str:
        return f"<Customer {self.email}>"
