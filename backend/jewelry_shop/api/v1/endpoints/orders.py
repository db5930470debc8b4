"""
Order API Endpoints.

Customer checkout and order history, plus admin order management.
Admin routes are declared before ``/{order_id}`` so they match first.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession

from jewelry_shop.api.v1.serializers import order_to_dict
from jewelry_shop.core.database import get_db
from jewelry_shop.core.security import TokenUser, get_current_user, require_admin
from jewelry_shop.models.order import OrderStatus, PaymentMethod, PaymentStatus
from jewelry_shop.modules.orders.service import OrderService

router = APIRouter()


# ==================== Schemas ====================


class OrderItemRequest(BaseModel):
    """Line item as submitted from the basket."""

    id: int = Field(description="Product ID")
    name: str | None = None
    price: Decimal = Field(ge=0)
    quantity: int = Field(gt=0)
    image_url: str | None = None


class OrderDetailsRequest(BaseModel):
    """Shipping and contact details."""

    full_name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    phone: str = Field(min_length=1, max_length=50)
    address: str = Field(min_length=1)
    city: str = Field(min_length=1, max_length=100)
    postal_code: str = Field(min_length=1, max_length=20)
    notes: str | None = None


class CreateOrderRequest(BaseModel):
    """Create new order."""

    items: list[OrderItemRequest] = Field(min_length=1)
    total: Decimal | None = Field(default=None, description="Client-side total, display only")
    order_details: OrderDetailsRequest
    payment_method: PaymentMethod = PaymentMethod.COD


class UpdateStatusRequest(BaseModel):
    """Admin status change."""

    status: OrderStatus


class UpdatePaymentStatusRequest(BaseModel):
    """Admin payment status change."""

    payment_status: PaymentStatus


# ==================== Customer ====================


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_order(
    request: CreateOrderRequest,
    user: TokenUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """
    Create an order for the authenticated customer.

    The total is recomputed from the items.
    """
    orders = OrderService(db)
    order = await orders.create_order(
        customer_id=user.id,
        items=[item.model_dump() for item in request.items],
        order_details=request.order_details.model_dump(),
        payment_method=request.payment_method,
        declared_total=request.total,
    )
    return order_to_dict(order)


@router.get("/user")
async def get_user_orders(
    user: TokenUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[dict[str, Any]]:
    """Get the caller's orders."""
    orders = OrderService(db)
    return [order_to_dict(o) for o in await orders.get_customer_orders(user.id)]


# ==================== Admin ====================


@router.get("/admin")
async def get_all_orders(
    status: OrderStatus | None = Query(None),
    payment_status: PaymentStatus | None = Query(None, alias="paymentStatus"),
    customer_id: int | None = Query(None, alias="customerId"),
    date_from: datetime | None = Query(None, alias="dateFrom"),
    date_to: datetime | None = Query(None, alias="dateTo"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: str = Query("created_at", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    _: TokenUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """
    Get all orders with filters and pagination.

    ``sortBy`` accepts created_at, updated_at or total.
    """
    orders = OrderService(db)
    result = await orders.get_orders_admin(
        status=status,
        payment_status=payment_status,
        customer_id=customer_id,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return {**result, "items": [order_to_dict(o) for o in result["items"]]}


@router.get("/admin/{order_id}")
async def get_order_admin(
    order_id: int,
    _: TokenUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Get any order."""
    orders = OrderService(db)
    return order_to_dict(await orders.get_order_admin(order_id))


@router.patch("/admin/{order_id}/status")
async def update_order_status(
    order_id: int,
    request: UpdateStatusRequest,
    _: TokenUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Set order status."""
    orders = OrderService(db)
    return order_to_dict(await orders.update_status_admin(order_id, request.status))


@router.patch("/admin/{order_id}/payment")
async def update_payment_status(
    order_id: int,
    request: UpdatePaymentStatusRequest,
    _: TokenUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Set order payment status."""
    orders = OrderService(db)
    order = await orders.update_payment_status_admin(order_id, request.payment_status)
    return order_to_dict(order)


# ==================== Customer (by id) ====================


@router.get("/{order_id}")
async def get_order(
    order_id: int,
    user: TokenUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Get one of the caller's orders."""
    orders = OrderService(db)
    return order_to_dict(await orders.get_order(order_id, user.id))


@router.post("/{order_id}/cancel")
async def cancel_order(
    order_id: int,
    user: TokenUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Cancel one of the caller's pending orders."""
    orders = OrderService(db)
    return order_to_dict(await orders.cancel_order(order_id, user.id))
