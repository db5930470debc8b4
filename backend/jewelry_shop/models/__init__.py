"""
Database models.

Importing this package registers every table on ``Base.metadata``.
"""

from jewelry_shop.models.catalog import Category, Product, ProductCategory, ProductImage
from jewelry_shop.models.customer import Customer, Role
from jewelry_shop.models.order import (
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from jewelry_shop.models.review import Review

__all__ = [
    "Category",
    "Customer",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentMethod",
    "PaymentStatus",
    "Product",
    "ProductCategory",
    "ProductImage",
    "Review",
    "Role",
]
