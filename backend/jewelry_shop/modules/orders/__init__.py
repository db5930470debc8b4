"""
Orders Module - Order engine.

Features:
- Transactional order creation with server-side totals
- Stock reservation with row locks
- Customer cancellation and admin status control
- Payment settlement hooks
"""

from jewelry_shop.modules.orders.service import OrderService

__all__ = [
    "OrderService",
]
