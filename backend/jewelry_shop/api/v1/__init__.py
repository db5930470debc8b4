"""
API Version 1 Router.

Combines all API endpoints under the /api prefix.
"""

from fastapi import APIRouter

from jewelry_shop.api.v1.endpoints import (
    auth,
    categories,
    orders,
    payments,
    products,
    reviews,
)

router = APIRouter()

# Include endpoint routers
router.include_router(auth.router, prefix="/auth", tags=["Auth"])
router.include_router(products.router, prefix="/products", tags=["Products"])
router.include_router(categories.router, prefix="/categories", tags=["Categories"])
router.include_router(orders.router, prefix="/orders", tags=["Orders"])
router.include_router(payments.router, prefix="/payments", tags=["Payments"])
router.include_router(reviews.router, prefix="/reviews", tags=["Reviews"])
