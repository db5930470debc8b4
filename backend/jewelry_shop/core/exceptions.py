"""
Error taxonomy and its HTTP mapping.

Services raise these; the application turns them into JSON responses
with the same ``{"detail": ...}`` shape as ``HTTPException``.
"""

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from loguru import logger


class ShopError(Exception):
    """Base class for domain errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class NotFoundError(ShopError):
    """Entity missing by id (or not visible to the caller)."""

    status_code = status.HTTP_404_NOT_FOUND


class BadRequestError(ShopError):
    """Validation failure or business-rule violation."""

    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedError(ShopError):
    """Bad credentials, missing/invalid token, or missing privileges."""

    status_code = status.HTTP_401_UNAUTHORIZED


async def shop_error_handler(request: Request, exc: ShopError) -> ORJSONResponse:
    headers = None
    if isinstance(exc, UnauthorizedError):
        headers = {"WWW-Authenticate": "Bearer"}
    return ORJSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=headers,
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> ORJSONResponse:
    errors: list[dict[str, Any]] = [
        {
            "field": ".".join(str(part) for part in err["loc"] if part != "body"),
            "message": err["msg"],
            "type": err["type"],
        }
        for err in exc.errors()
    ]
    logger.debug(f"Validation failed on {request.url.path}: {len(errors)} error(s)")
    return ORJSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=jsonable_encoder({"detail": "Validation failed", "errors": errors}),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the domain and validation handlers to the application."""
    app.add_exception_handler(ShopError, shop_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
