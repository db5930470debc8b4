"""
Payment Service - QR generation, callbacks and settlement polling.

Live providers are optional: when a provider is not configured or
its API fails, a mock QR code is returned instead of an error.
"""

import time
from datetime import datetime, timedelta
from typing import Any

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from jewelry_shop.core.config import settings
from jewelry_shop.core.exceptions import BadRequestError, NotFoundError
from jewelry_shop.models.order import Order, OrderStatus, PaymentMethod, PaymentStatus
from jewelry_shop.modules.orders.service import OrderService
from jewelry_shop.modules.payments.momo import (
    CONFIRM_REQUEST_TYPES,
    RESULT_SUCCESS,
    MoMoClient,
    MoMoStatusProvider,
)
from jewelry_shop.modules.payments.providers import (
    OfflineStatusProvider,
    PaymentState,
    QRCodeData,
    StatusProvider,
    build_mock_qr,
)
from jewelry_shop.modules.payments.vietqr import VietQRClient

STORED_STATES = {
    PaymentStatus.PAID: PaymentState.PAID,
    PaymentStatus.FAILED: PaymentState.FAILED,
}


class PaymentService:
    """
    Payment operations for orders.

    Usage:
        payments = PaymentService(db_session, momo=get_momo_client(), vietqr=get_vietqr_client())
        qr = await payments.generate_momo(order_id, customer_id=user.id)
    """

    def __init__(
        self,
        db: AsyncSession,
        momo: MoMoClient,
        vietqr: VietQRClient,
        qr_expire_minutes: int | None = None,
    ) -> None:
        self.db = db
        self.momo = momo
        self.vietqr = vietqr
        self.orders = OrderService(db)
        self.qr_expire_minutes = qr_expire_minutes or settings.payment_qr_expire_minutes

    async def _get_payable_order(self, order_id: int, customer_id: int | None) -> Order:
        """Load order (scoped to the customer unless None) that can still be paid."""
        if customer_id is None:
            order = await self.orders.get_order_admin(order_id)
        else:
            order = await self.orders.get_order(order_id, customer_id)

        if order.payment_status == PaymentStatus.PAID:
            raise BadRequestError("Order is already paid")
        if order.status == OrderStatus.CANCELLED:
            raise BadRequestError("Cancelled orders cannot be paid")
        return order

    def _mock_qr(self, order: Order) -> QRCodeData:
        return build_mock_qr(
            order_id=order.id,
            order_number=order.order_number,
            amount=order.total,
            expire_minutes=self.qr_expire_minutes,
        )

    async def _select_method(self, order: Order, method: PaymentMethod) -> None:
        order.payment_method = method
        # A new attempt after a failure starts over
        if order.payment_status == PaymentStatus.FAILED:
            order.payment_status = PaymentStatus.PENDING
        await self.db.flush()

    # ==================== QR generation ====================

    async def generate_vietqr(self, order_id: int, customer_id: int | None = None) -> QRCodeData:
        """Bank-transfer QR for the stored order total."""
        order = await self._get_payable_order(order_id, customer_id)
        await self._select_method(order, PaymentMethod.VIETQR)

        if self.vietqr.is_configured:
            data_url = await self.vietqr.generate(
                amount=int(order.total),
                add_info=order.order_number or f"ORDER {order.id}",
            )
            if data_url:
                return QRCodeData(
                    order_id=order.id,
                    order_number=order.order_number,
                    qr_code=data_url,
                    amount=order.total,
                    expires_at=datetime.utcnow() + timedelta(minutes=self.qr_expire_minutes),
                    provider="vietqr",
                )
            logger.warning(f"VietQR failed for order {order.id}, using mock QR code")

        return self._mock_qr(order)

    async def generate_momo(self, order_id: int, customer_id: int | None = None) -> QRCodeData:
        """MoMo wallet QR for the stored order total."""
        order = await self._get_payable_order(order_id, customer_id)
        await self._select_method(order, PaymentMethod.MOMO)

        if self.momo.is_configured:
            provider_order_id = f"{order.order_number}-{int(time.time())}"
            response = await self.momo.create_payment(
                provider_order_id=provider_order_id,
                amount=int(order.total),
                order_info=f"Payment for order {order.order_number}",
                extra_data=self.momo.encode_extra_data(order.id),
            )

            if response and response.get("resultCode") == RESULT_SUCCESS:
                order.payment_reference = provider_order_id
                await self.db.flush()
                return QRCodeData(
                    order_id=order.id,
                    order_number=order.order_number,
                    qr_code=response.get("qrCodeUrl") or response.get("payUrl", ""),
                    pay_url=response.get("payUrl"),
                    amount=order.total,
                    expires_at=datetime.utcnow() + timedelta(minutes=self.qr_expire_minutes),
                    provider="momo",
                )

            if response:
                logger.warning(
                    f"MoMo rejected order {order.id}: "
                    f"{response.get('resultCode')} {response.get('message')}"
                )
            logger.warning(f"MoMo unavailable for order {order.id}, using mock QR code")

        return self._mock_qr(order)

    # ==================== Callbacks ====================

    async def handle_momo_callback(self, payload: dict[str, Any]) -> bool:
        """
        Process a MoMo IPN.

        Never raises: failures are logged and the provider is still
        acknowledged. Safe to receive the same notification twice.

        Returns:
            True if the order changed state
        """
        try:
            if not self.momo.accepts_callback(payload):
                logger.warning(
                    f"Rejected unverified MoMo callback for {payload.get('orderId')}"
                )
                return False

            order_id = self.momo.decode_extra_data(payload.get("extraData", ""))
            order = await self.orders.get_order_admin(order_id)
            result_code = int(payload.get("resultCode", -1))

            logger.info(
                f"MoMo callback for order {order_id}: "
                f"{result_code} {payload.get('message', '')}"
            )

            if result_code == RESULT_SUCCESS:
                return await self.orders.mark_paid(order, reference=payload.get("orderId"))
            return await self.orders.mark_payment_failed(order)

        except Exception as e:
            logger.exception(f"Failed to process MoMo callback: {e}")
            await self.db.rollback()
            return False

    async def confirm_momo(self, partner_ref_id: str, request_type: str) -> dict[str, Any]:
        """
        Capture or revert a MoMo payment by its provider order id.

        Without MoMo credentials the request is treated as accepted.
        """
        if request_type not in CONFIRM_REQUEST_TYPES:
            raise BadRequestError(
                f"requestType must be one of: {', '.join(CONFIRM_REQUEST_TYPES)}"
            )

        query = select(Order).where(
            Order.payment_reference == partner_ref_id,
            Order.deleted_at.is_(None),
        )
        found = (await self.db.execute(query)).scalar_one_or_none()
        if not found:
            raise NotFoundError(f"Payment {partner_ref_id} not found")
        order = await self.orders.get_order_admin(found.id)

        if self.momo.is_configured:
            response = await self.momo.confirm(
                provider_order_id=partner_ref_id,
                amount=int(order.total),
                request_type=request_type,
            )
            if response is None:
                result_code, message = -1, "Gateway unavailable"
            else:
                result_code = int(response.get("resultCode", -1))
                message = response.get("message", "")
        else:
            logger.warning(f"MoMo not configured, accepting {request_type} for {partner_ref_id}")
            result_code, message = RESULT_SUCCESS, "Mock confirmation"

        if result_code == RESULT_SUCCESS:
            if request_type == "capture":
                await self.orders.mark_paid(order, reference=partner_ref_id)
            else:
                await self.orders.mark_payment_failed(order)

        return {
            "order_id": order.id,
            "partner_ref_id": partner_ref_id,
            "request_type": request_type,
            "result_code": result_code,
            "message": message,
            "payment_status": order.payment_status.value,
        }

    # ==================== Status ====================

    def status_provider_for(self, order: Order) -> StatusProvider:
        """Pick the status provider matching how the order is paid."""
        if (
            order.payment_method == PaymentMethod.MOMO
            and order.payment_reference
            and self.momo.is_configured
        ):
            return MoMoStatusProvider(self.momo)
        return OfflineStatusProvider()

    async def check_payment_status(
        self,
        order_id: int,
        customer_id: int | None = None,
    ) -> PaymentState:
        """
        Report settlement state, asking the provider while still pending.

        A provider answer of paid or failed is recorded on the order.
        """
        if customer_id is None:
            order = await self.orders.get_order_admin(order_id)
        else:
            order = await self.orders.get_order(order_id, customer_id)

        if order.payment_status in STORED_STATES:
            return STORED_STATES[order.payment_status]

        provider = self.status_provider_for(order)
        state = await provider.check_status(order.payment_reference)

        if state == PaymentState.PAID:
            await self.orders.mark_paid(order)
        elif state == PaymentState.FAILED:
            await self.orders.mark_payment_failed(order)

        return state
