"""
VietQR bank-transfer QR generation.

VietQR API Documentation:
https://www.vietqr.io/danh-sach-api/link-tao-ma-nhanh/api-tao-ma-qr
"""

from typing import Any

import httpx
from loguru import logger
from pydantic_settings import BaseSettings, SettingsConfigDict


class VietQRSettings(BaseSettings):
    """VietQR configuration."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    vietqr_client_id: str = ""
    vietqr_api_key: str = ""
    vietqr_endpoint: str = "https://api.vietqr.io/v2/generate"
    vietqr_account_no: str = ""
    vietqr_account_name: str = ""
    vietqr_acq_id: str = ""  # Bank BIN
    vietqr_template: str = "compact"
    vietqr_timeout: float = 10.0


class VietQRClient:
    """
    Client for the VietQR generate API.

    Usage:
        vietqr = VietQRClient()
        data_url = await vietqr.generate(amount=1500000, add_info="ORD-7-123456")
    """

    def __init__(
        self,
        settings: VietQRSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or VietQRSettings()
        self._transport = transport

        if not self.is_configured:
            logger.warning("VietQR not configured - mock QR codes will be used")

    @property
    def is_configured(self) -> bool:
        s = self.settings
        return bool(
            s.vietqr_client_id
            and s.vietqr_api_key
            and s.vietqr_account_no
            and s.vietqr_acq_id
        )

    async def generate(self, amount: int, add_info: str) -> str | None:
        """
        Generate a bank-transfer QR image.

        Args:
            amount: Amount in VND
            add_info: Transfer description (order number)

        Returns:
            ``data:image/png;base64,...`` URL or None on error
        """
        s = self.settings
        payload: dict[str, Any] = {
            "accountNo": s.vietqr_account_no,
            "accountName": s.vietqr_account_name,
            "acqId": s.vietqr_acq_id,
            "amount": amount,
            "addInfo": add_info,
            "format": "text",
            "template": s.vietqr_template,
        }
        headers = {
            "x-client-id": s.vietqr_client_id,
            "x-api-key": s.vietqr_api_key,
        }

        try:
            async with httpx.AsyncClient(
                timeout=s.vietqr_timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(s.vietqr_endpoint, json=payload, headers=headers)
                response.raise_for_status()
                result = response.json()

        except httpx.HTTPStatusError as e:
            logger.error(f"VietQR HTTP error: {e.response.status_code}")
            return None
        except httpx.RequestError as e:
            logger.error(f"VietQR request error: {e}")
            return None
        except ValueError as e:
            logger.error(f"VietQR returned invalid JSON: {e}")
            return None

        if result.get("code") != "00":
            logger.error(f"VietQR API error: {result.get('code')} {result.get('desc')}")
            return None

        return (result.get("data") or {}).get("qrDataURL")


# Singleton instance
_vietqr_client: VietQRClient | None = None


def get_vietqr_client() -> VietQRClient:
    """Get or create VietQR client singleton."""
    global _vietqr_client
    if _vietqr_client is None:
        _vietqr_client = VietQRClient()
    return _vietqr_client
