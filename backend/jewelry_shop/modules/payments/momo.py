"""
MoMo e-wallet client.

Handles:
- Signed captureWallet payment requests (QR + pay URL)
- Payment status queries
- Capture / revert confirmation
- IPN (callback) signature verification

Every request is signed with HMAC-SHA256 over a ``key=value&...``
string whose keys are in alphabetical order.

MoMo API Documentation:
https://developers.momo.vn/v3/docs/payment/api/wallet/onetime
"""

import base64
import hashlib
import hmac
import json
from typing import Any, Sequence
from uuid import uuid4

import httpx
from loguru import logger
from pydantic_settings import BaseSettings, SettingsConfigDict

from jewelry_shop.modules.payments.providers import PaymentState, StatusProvider

CREATE_SIGNATURE_KEYS = (
    "accessKey",
    "amount",
    "extraData",
    "ipnUrl",
    "orderId",
    "orderInfo",
    "partnerCode",
    "redirectUrl",
    "requestId",
    "requestType",
)

IPN_SIGNATURE_KEYS = (
    "accessKey",
    "amount",
    "extraData",
    "message",
    "orderId",
    "orderInfo",
    "orderType",
    "partnerCode",
    "payType",
    "requestId",
    "responseTime",
    "resultCode",
    "transId",
)

QUERY_SIGNATURE_KEYS = ("accessKey", "orderId", "partnerCode", "requestId")

CONFIRM_SIGNATURE_KEYS = (
    "accessKey",
    "amount",
    "description",
    "orderId",
    "partnerCode",
    "requestId",
    "requestType",
)

RESULT_SUCCESS = 0
# Initiated, processing, or authorized but not captured yet
RESULT_PENDING = {1000, 7000, 7002, 9000}

CONFIRM_REQUEST_TYPES = ("capture", "revertAuthorize")


class MoMoSettings(BaseSettings):
    """MoMo wallet configuration."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    momo_partner_code: str = ""
    momo_access_key: str = ""
    momo_secret_key: str = ""
    momo_endpoint: str = "https://test-payment.momo.vn"
    momo_redirect_url: str = "http://localhost:3000/payment/momo/result"
    momo_ipn_url: str = "http://localhost:8000/api/payments/momo-callback"
    momo_request_type: str = "captureWallet"
    momo_lang: str = "vi"
    momo_timeout: float = 10.0
    # Only for local development without credentials
    momo_accept_unsigned_callbacks: bool = False


class MoMoClient:
    """
    Async client for the MoMo payment gateway.

    Usage:
        momo = MoMoClient()
        if momo.is_configured:
            response = await momo.create_payment(
                provider_order_id="ORD-7-123456-1712",
                amount=1500000,
                order_info="Payment for ORD-7-123456",
                extra_data=MoMoClient.encode_extra_data(7),
            )
    """

    def __init__(
        self,
        partner_code: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        endpoint: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        accept_unsigned_callbacks: bool | None = None,
    ) -> None:
        """
        Initialize MoMo client.

        Args:
            partner_code: MoMo partner code (or from env)
            access_key: MoMo access key (or from env)
            secret_key: HMAC secret (or from env)
            endpoint: Gateway base URL (or from env)
            transport: Custom httpx transport
            accept_unsigned_callbacks: Trust callbacks when no secret is set
                (or from env)
        """
        self.settings = MoMoSettings()
        self.partner_code = partner_code or self.settings.momo_partner_code
        self.access_key = access_key or self.settings.momo_access_key
        self.secret_key = secret_key or self.settings.momo_secret_key
        self.endpoint = (endpoint or self.settings.momo_endpoint).rstrip("/")
        self.timeout = self.settings.momo_timeout
        self._transport = transport
        self.accept_unsigned_callbacks = (
            self.settings.momo_accept_unsigned_callbacks
            if accept_unsigned_callbacks is None
            else accept_unsigned_callbacks
        )

        if not self.is_configured:
            logger.warning("MoMo credentials not configured - mock QR codes will be used")

    @property
    def is_configured(self) -> bool:
        return bool(self.partner_code and self.access_key and self.secret_key)

    # ==================== Signing ====================

    def sign(self, fields: dict[str, Any], keys: Sequence[str]) -> str:
        """HMAC-SHA256 hex digest of ``k1=v1&k2=v2...`` over ``keys``."""
        raw = "&".join(f"{key}={fields.get(key, '')}" for key in keys)
        return hmac.new(
            self.secret_key.encode(),
            raw.encode(),
            hashlib.sha256,
        ).hexdigest()

    def verify_ipn(self, payload: dict[str, Any]) -> bool:
        """Check the signature of an IPN callback body."""
        signature = payload.get("signature")
        if not signature:
            logger.warning("MoMo callback without signature")
            return False

        fields = {**payload, "accessKey": self.access_key}
        expected = self.sign(fields, IPN_SIGNATURE_KEYS)
        return hmac.compare_digest(str(signature), expected)

    def accepts_callback(self, payload: dict[str, Any]) -> bool:
        """
        Decide whether an IPN body may be processed.

        Without a secret there is nothing to verify against, so callbacks
        are refused unless ``accept_unsigned_callbacks`` is on.
        """
        if self.is_configured:
            return self.verify_ipn(payload)
        if self.accept_unsigned_callbacks:
            logger.warning("Processing unsigned MoMo callback (credentials not configured)")
            return True
        return False

    @staticmethod
    def encode_extra_data(order_id: int) -> str:
        """Opaque token carrying our order id through MoMo."""
        return base64.b64encode(json.dumps({"orderId": order_id}).encode()).decode()

    @staticmethod
    def decode_extra_data(extra_data: str) -> int:
        """
        Recover the order id from ``extraData``.

        Raises:
            ValueError: If the token is not base64 JSON with an integer orderId
        """
        try:
            data = json.loads(base64.b64decode(extra_data, validate=True))
            return int(data["orderId"])
        except (ValueError, TypeError, KeyError) as e:
            raise ValueError(f"Invalid extraData token: {extra_data!r}") from e

    # ==================== API ====================

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any] | None:
        try:
            async with httpx.AsyncClient(
                base_url=self.endpoint,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(path, json=payload)
                response.raise_for_status()
                return response.json()

        except httpx.HTTPStatusError as e:
            logger.error(f"MoMo HTTP error on {path}: {e.response.status_code}")
            return None
        except httpx.RequestError as e:
            logger.error(f"MoMo request error on {path}: {e}")
            return None
        except ValueError as e:
            logger.error(f"MoMo returned invalid JSON on {path}: {e}")
            return None

    async def create_payment(
        self,
        provider_order_id: str,
        amount: int,
        order_info: str,
        extra_data: str,
    ) -> dict[str, Any] | None:
        """
        Create a captureWallet payment.

        Args:
            provider_order_id: Unique order id on the MoMo side
            amount: Amount in VND
            order_info: Description shown to the payer
            extra_data: Token echoed back in the callback

        Returns:
            Gateway response (resultCode, payUrl, qrCodeUrl, ...) or None on error
        """
        payload: dict[str, Any] = {
            "partnerCode": self.partner_code,
            "accessKey": self.access_key,
            "requestId": uuid4().hex,
            "amount": amount,
            "orderId": provider_order_id,
            "orderInfo": order_info,
            "redirectUrl": self.settings.momo_redirect_url,
            "ipnUrl": self.settings.momo_ipn_url,
            "extraData": extra_data,
            "requestType": self.settings.momo_request_type,
        }
        payload["signature"] = self.sign(payload, CREATE_SIGNATURE_KEYS)
        payload["lang"] = self.settings.momo_lang
        del payload["accessKey"]

        logger.info(f"Creating MoMo payment {provider_order_id} for {amount} VND")
        return await self._post("/v2/gateway/api/create", payload)

    async def query_status(self, provider_order_id: str) -> dict[str, Any] | None:
        """Query the state of a payment."""
        payload: dict[str, Any] = {
            "partnerCode": self.partner_code,
            "accessKey": self.access_key,
            "requestId": uuid4().hex,
            "orderId": provider_order_id,
        }
        payload["signature"] = self.sign(payload, QUERY_SIGNATURE_KEYS)
        payload["lang"] = self.settings.momo_lang
        del payload["accessKey"]

        return await self._post("/v2/gateway/api/query", payload)

    async def confirm(
        self,
        provider_order_id: str,
        amount: int,
        request_type: str,
        description: str = "",
    ) -> dict[str, Any] | None:
        """Capture or revert an authorized payment."""
        if request_type not in CONFIRM_REQUEST_TYPES:
            raise ValueError(f"Unsupported MoMo request type: {request_type}")

        payload: dict[str, Any] = {
            "partnerCode": self.partner_code,
            "accessKey": self.access_key,
            "requestId": uuid4().hex,
            "orderId": provider_order_id,
            "amount": amount,
            "requestType": request_type,
            "description": description,
        }
        payload["signature"] = self.sign(payload, CONFIRM_SIGNATURE_KEYS)
        payload["lang"] = self.settings.momo_lang
        del payload["accessKey"]

        logger.info(f"MoMo {request_type} for {provider_order_id}")
        return await self._post("/v2/gateway/api/confirm", payload)


class MoMoStatusProvider(StatusProvider):
    """Polls the MoMo query API."""

    name = "momo"

    def __init__(self, client: MoMoClient) -> None:
        self.client = client

    async def check_status(self, provider_ref: str | None) -> PaymentState:
        if not provider_ref:
            return PaymentState.PENDING

        response = await self.client.query_status(provider_ref)
        if response is None:
            # Gateway unreachable; report what we know
            return PaymentState.PENDING

        result_code = int(response.get("resultCode", -1))
        if result_code == RESULT_SUCCESS:
            return PaymentState.PAID
        if result_code in RESULT_PENDING:
            return PaymentState.PENDING

        logger.info(
            f"MoMo payment {provider_ref} failed: "
            f"{result_code} {response.get('message', '')}"
        )
        return PaymentState.FAILED


# Singleton instance
_momo_client: MoMoClient | None = None


def get_momo_client() -> MoMoClient:
    """Get or create MoMo client singleton."""
    global _momo_client
    if _momo_client is None:
        _momo_client = MoMoClient()
    return _momo_client
