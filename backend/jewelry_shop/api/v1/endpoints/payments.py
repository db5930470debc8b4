"""
Payment API Endpoints.

QR code generation for VietQR and MoMo, the MoMo IPN webhook,
payment confirmation and settlement status polling.
"""

import json
from typing import Any

from fastapi import APIRouter, Depends, Query, Request, Response, status
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from jewelry_shop.core.database import get_db
from jewelry_shop.core.security import TokenUser, get_current_user, require_admin
from jewelry_shop.modules.payments.momo import MoMoClient, get_momo_client
from jewelry_shop.modules.payments.service import PaymentService
from jewelry_shop.modules.payments.vietqr import VietQRClient, get_vietqr_client

router = APIRouter()


def get_payment_service(
    db: AsyncSession = Depends(get_db),
    momo: MoMoClient = Depends(get_momo_client),
    vietqr: VietQRClient = Depends(get_vietqr_client),
) -> PaymentService:
    return PaymentService(db, momo=momo, vietqr=vietqr)


def _scope(user: TokenUser) -> int | None:
    # Admins may act on any order
    return None if user.is_admin else user.id


# ==================== QR Codes ====================


@router.post("/generate-vietqr/{order_id}")
async def generate_vietqr(
    order_id: int,
    user: TokenUser = Depends(get_current_user),
    payments: PaymentService = Depends(get_payment_service),
) -> dict[str, Any]:
    """
    Generate a VietQR bank transfer code for an order.

    Falls back to a placeholder code when VietQR is unavailable.
    """
    qr = await payments.generate_vietqr(order_id, customer_id=_scope(user))
    return qr.to_dict()


@router.post("/generate-momo/{order_id}")
async def generate_momo(
    order_id: int,
    user: TokenUser = Depends(get_current_user),
    payments: PaymentService = Depends(get_payment_service),
) -> dict[str, Any]:
    """
    Generate a MoMo wallet payment code for an order.

    Falls back to a placeholder code when MoMo is unavailable.
    """
    qr = await payments.generate_momo(order_id, customer_id=_scope(user))
    return qr.to_dict()


# ==================== Webhooks ====================


@router.post("/momo-callback", status_code=status.HTTP_204_NO_CONTENT)
async def momo_callback(
    request: Request,
    payments: PaymentService = Depends(get_payment_service),
) -> Response:
    """
    MoMo IPN endpoint.

    Always answers 204 so MoMo stops retrying; processing problems
    are logged instead.
    """
    body = await request.body()
    try:
        payload = json.loads(body or b"{}")
    except ValueError:
        logger.warning(f"Ignoring MoMo callback with invalid JSON body ({len(body)} bytes)")
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    if not isinstance(payload, dict):
        logger.warning("Ignoring MoMo callback with non-object body")
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    await payments.handle_momo_callback(payload)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/momo-confirm")
async def momo_confirm(
    partner_ref_id: str = Query(..., alias="partnerRefId"),
    request_type: str = Query("capture", alias="requestType"),
    _: TokenUser = Depends(require_admin),
    payments: PaymentService = Depends(get_payment_service),
) -> dict[str, Any]:
    """Capture or revert a MoMo payment (``requestType`` capture or revertAuthorize)."""
    return await payments.confirm_momo(partner_ref_id, request_type)


# ==================== Status ====================


@router.get("/status/{order_id}")
async def get_payment_status(
    order_id: int,
    user: TokenUser = Depends(get_current_user),
    payments: PaymentService = Depends(get_payment_service),
) -> dict[str, Any]:
    """Get payment settlement state: pending, paid or failed."""
    state = await payments.check_payment_status(order_id, customer_id=_scope(user))
    return {"order_id": order_id, "status": state.value}
