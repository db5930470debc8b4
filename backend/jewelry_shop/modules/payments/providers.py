"""
Payment provider primitives.

Includes:
- PaymentState reported by status providers
- QRCodeData returned to the storefront
- StatusProvider interface and the offline implementation
- The static mock QR code used when no live provider answers
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any

# 1x1 transparent PNG
MOCK_QR_CODE = (
    "data:image/png;base64,"
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mP8z8BQDwAEhQGAhKmMIQAAAABJRU5ErkJggg=="
)


class PaymentState(str, Enum):
    """Settlement state as reported by a provider."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


@dataclass
class QRCodeData:
    """Scannable payment code for one order."""

    order_id: int
    order_number: str | None
    qr_code: str
    amount: Decimal
    expires_at: datetime
    provider: str
    pay_url: str | None = None

    @property
    def is_mock(self) -> bool:
        return self.provider == "mock"

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "order_number": self.order_number,
            "qr_code": self.qr_code,
            "pay_url": self.pay_url,
            "amount": float(self.amount),
            "expires_at": self.expires_at.isoformat(),
            "provider": self.provider,
        }


def build_mock_qr(
    order_id: int,
    order_number: str | None,
    amount: Decimal,
    expire_minutes: int = 30,
) -> QRCodeData:
    """Static QR payload with a fixed expiry window."""
    return QRCodeData(
        order_id=order_id,
        order_number=order_number,
        qr_code=MOCK_QR_CODE,
        amount=amount,
        expires_at=datetime.utcnow() + timedelta(minutes=expire_minutes),
        provider="mock",
    )


class StatusProvider(ABC):
    """Answers whether a provider-side payment has settled."""

    name: str = "provider"

    @abstractmethod
    async def check_status(self, provider_ref: str | None) -> PaymentState:
        """Return the settlement state of the referenced payment."""


class OfflineStatusProvider(StatusProvider):
    """
    Provider with no status API (mock, VietQR bank transfer, COD).

    Settlement only arrives through callbacks or admin updates,
    so polling always reports pending.
    """

    name = "offline"

    async def check_status(self, provider_ref: str | None) -> PaymentState:
        return PaymentState.PENDING
