"""
Category API Endpoints.
"""

from typing import Any

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from jewelry_shop.api.v1.serializers import category_to_dict
from jewelry_shop.core.database import get_db
from jewelry_shop.core.security import TokenUser, require_admin
from jewelry_shop.modules.catalog.service import CatalogService

router = APIRouter()


# ==================== Schemas ====================


class CreateCategoryRequest(BaseModel):
    """Create new category."""

    name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    parent_id: int | None = None


class UpdateCategoryRequest(BaseModel):
    """Partial category update."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    parent_id: int | None = None


# ==================== Endpoints ====================


@router.get("")
async def get_categories(
    db: AsyncSession = Depends(get_db),
) -> list[dict[str, Any]]:
    """Get all product categories."""
    catalog = CatalogService(db)
    return [category_to_dict(c) for c in await catalog.get_categories()]


@router.get("/{category_id}")
async def get_category(
    category_id: int,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Get category with its parent."""
    catalog = CatalogService(db)
    return category_to_dict(await catalog.get_category(category_id), include_parent=True)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_category(
    request: CreateCategoryRequest,
    _: TokenUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Create new category."""
    catalog = CatalogService(db)
    category = await catalog.create_category(
        name=request.name,
        description=request.description,
        parent_id=request.parent_id,
    )
    return category_to_dict(category, include_parent=True)


@router.patch("/{category_id}")
async def update_category(
    category_id: int,
    request: UpdateCategoryRequest,
    _: TokenUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Update category."""
    data = request.model_dump(exclude_unset=True)
    if data.get("name") is None:
        data.pop("name", None)

    catalog = CatalogService(db)
    category = await catalog.update_category(category_id, data)
    return category_to_dict(category, include_parent=True)


@router.delete("/{category_id}")
async def delete_category(
    category_id: int,
    _: TokenUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, str]:
    """Soft-delete category."""
    catalog = CatalogService(db)
    await catalog.delete_category(category_id)
    return {"message": "Category deleted successfully"}
