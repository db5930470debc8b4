"""
Jewelry Shop Backend Application.

FastAPI application with product catalog, customer accounts,
orders, Vietnamese payment gateways and product reviews.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from fastapi.staticfiles import StaticFiles
from loguru import logger

from jewelry_shop.api.v1 import router as api_v1_router
from jewelry_shop.core.config import settings
from jewelry_shop.core.database import close_db, init_db
from jewelry_shop.core.exceptions import register_exception_handlers
from jewelry_shop.modules.catalog.uploads import get_image_storage


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    logger.info("Starting Jewelry Shop Backend...")

    await init_db()
    logger.info("Database initialized")

    get_image_storage().ensure_directory()

    logger.info("Jewelry Shop Backend started successfully")

    yield

    logger.info("Shutting down Jewelry Shop Backend...")
    await close_db()
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Jewelry Shop Backend

    ## Features

    - **Catalog**: Products, categories and image uploads
    - **Accounts**: Customer registration and JWT login
    - **Orders**: Checkout, order history and admin management
    - **Payments**: VietQR and MoMo QR codes with MoMo IPN
    - **Reviews**: Product ratings from customers and guests
    """,
    openapi_url=f"{settings.api_prefix}/openapi.json",
    docs_url=settings.api_prefix,
    redoc_url=None,
    default_response_class=ORJSONResponse,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include API router
app.include_router(api_v1_router, prefix=settings.api_prefix)

# Uploaded product images
app.mount(
    "/uploads",
    StaticFiles(directory=settings.upload_dir, check_dir=False),
    name="uploads",
)


@app.get("/health", tags=["System"])
async def health_check() -> dict:
    """Health check endpoint for monitoring."""
    return {
        "status": "healthy",
        "version": settings.app_version,
    }
