"""
Payments Module - QR payments for orders.

Features:
- VietQR bank-transfer codes
- MoMo wallet payments with signed requests
- MoMo callback (IPN) and capture/revert confirmation
- Pluggable settlement status providers
- Mock QR fallback when a provider is unavailable
"""

from jewelry_shop.modules.payments.momo import MoMoClient
from jewelry_shop.modules.payments.providers import PaymentState, StatusProvider
from jewelry_shop.modules.payments.service import PaymentService
from jewelry_shop.modules.payments.vietqr import VietQRClient

__all__ = [
    "MoMoClient",
    "PaymentService",
    "PaymentState",
    "StatusProvider",
    "VietQRClient",
]
