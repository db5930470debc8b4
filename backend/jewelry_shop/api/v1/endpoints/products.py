"""
Product API Endpoints.

Public catalog browsing; writes require an admin.
"""

from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from jewelry_shop.api.v1.serializers import product_to_dict
from jewelry_shop.core.database import get_db
from jewelry_shop.core.security import TokenUser, require_admin
from jewelry_shop.modules.catalog.service import CatalogService
from jewelry_shop.modules.catalog.uploads import ImageStorage, get_image_storage

router = APIRouter()


# ==================== Schemas ====================


class ProductImageIn(BaseModel):
    """Image reference attached to a product."""

    image_url: str = Field(min_length=1, max_length=500)
    alt_text: str | None = None
    is_primary: bool = False


class CreateProductRequest(BaseModel):
    """Create new product."""

    name: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    base_price: Decimal = Field(ge=0, decimal_places=2)
    sale_price: Decimal | None = Field(default=None, ge=0, decimal_places=2)
    sku: str = Field(min_length=1, max_length=50)
    stock_quantity: int = Field(ge=0)
    is_featured: bool = False
    metal_type: str | None = None
    gemstone_type: str | None = None
    weight: Decimal | None = Field(default=None, ge=0)
    dimensions: str | None = None
    category_ids: list[int] | None = None
    images: list[ProductImageIn] | None = None


class UpdateProductRequest(BaseModel):
    """Partial product update; omitted fields are left untouched."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    base_price: Decimal | None = Field(default=None, ge=0, decimal_places=2)
    sale_price: Decimal | None = Field(default=None, ge=0, decimal_places=2)
    sku: str | None = Field(default=None, min_length=1, max_length=50)
    stock_quantity: int | None = Field(default=None, ge=0)
    is_featured: bool | None = None
    metal_type: str | None = None
    gemstone_type: str | None = None
    weight: Decimal | None = Field(default=None, ge=0)
    dimensions: str | None = None
    category_ids: list[int] | None = None
    images: list[ProductImageIn] | None = None


# ==================== Public ====================


@router.get("")
async def get_products(
    search: str | None = Query(None, description="Search name, description and SKU"),
    category_id: int | None = Query(None, alias="categoryId"),
    featured: bool | None = Query(None, description="Filter by featured flag"),
    min_price: Decimal | None = Query(None, alias="minPrice", ge=0),
    max_price: Decimal | None = Query(None, alias="maxPrice", ge=0),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """
    Get products with filtering and pagination.

    Returns the page of products with total count and page info.
    """
    catalog = CatalogService(db)
    result = await catalog.get_products(
        search=search,
        category_id=category_id,
        featured=featured,
        min_price=min_price,
        max_price=max_price,
        page=page,
        limit=limit,
    )
    return {
        **result,
        "products": [product_to_dict(p) for p in result["products"]],
    }


@router.get("/{product_id}")
async def get_product(
    product_id: int,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Get product details with images and categories."""
    catalog = CatalogService(db)
    return product_to_dict(await catalog.get_product(product_id))


# ==================== Admin ====================


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_product(
    request: CreateProductRequest,
    _: TokenUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Create new product."""
    catalog = CatalogService(db)
    product = await catalog.create_product(request.model_dump())
    return product_to_dict(product)


@router.post("/upload", status_code=status.HTTP_201_CREATED)
async def upload_images(
    files: list[UploadFile] = File(..., description="Product images (jpeg, png, gif)"),
    _: TokenUser = Depends(require_admin),
    storage: ImageStorage = Depends(get_image_storage),
) -> dict[str, Any]:
    """Upload product images and return their URLs."""
    urls = await storage.save_all(files)
    return {"urls": urls}


@router.patch("/{product_id}")
async def update_product(
    product_id: int,
    request: UpdateProductRequest,
    _: TokenUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """
    Update product.

    Sending ``images`` replaces every image; sending ``category_ids``
    replaces every category link.
    """
    catalog = CatalogService(db)
    product = await catalog.update_product(
        product_id, request.model_dump(exclude_unset=True)
    )
    return product_to_dict(product)


@router.delete("/{product_id}")
async def delete_product(
    product_id: int,
    _: TokenUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, str]:
    """Soft-delete product."""
    catalog = CatalogService(db)
    await catalog.delete_product(product_id)
    return {"message": "Product deleted successfully"}
