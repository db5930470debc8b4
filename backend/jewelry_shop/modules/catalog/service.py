"""
Catalog Service - Product and category management.
"""

import math
from decimal import Decimal
from typing import Any

from loguru import logger
from slugify import slugify
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from jewelry_shop.core.exceptions import BadRequestError, NotFoundError
from jewelry_shop.models.catalog import Category, Product, ProductCategory, ProductImage

PRODUCT_FIELDS = (
    "name",
    "description",
    "base_price",
    "sale_price",
    "sku",
    "stock_quantity",
    "is_featured",
    "metal_type",
    "gemstone_type",
    "weight",
    "dimensions",
)

REQUIRED_PRODUCT_FIELDS = {
    "name",
    "description",
    "base_price",
    "sku",
    "stock_quantity",
    "is_featured",
}


def _product_options() -> list:
    return [
        selectinload(Product.images),
        selectinload(Product.category_links).selectinload(ProductCategory.category),
    ]


class CatalogService:
    """
    Service for managing products and categories.

    Products and categories are soft-deleted: every read here
    ignores rows with ``deleted_at`` set.

    Usage:
        catalog = CatalogService(db_session)
        page = await catalog.get_products(search="ring", featured=True)
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize catalog service with database session."""
        self.db = db

    # ==================== Categories ====================

    async def get_categories(self) -> list[Category]:
        """Get all categories."""
        query = (
            select(Category)
            .options(selectinload(Category.parent))
            .where(Category.deleted_at.is_(None))
            .order_by(Category.name)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_category(self, category_id: int) -> Category:
        """Get category by ID with its parent."""
        query = (
            select(Category)
            .options(selectinload(Category.parent))
            .where(Category.id == category_id, Category.deleted_at.is_(None))
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        category = result.scalar_one_or_none()
        if not category:
            raise NotFoundError(f"Category with ID {category_id} not found")
        return category

    async def create_category(
        self,
        name: str,
        description: str | None = None,
        parent_id: int | None = None,
    ) -> Category:
        """Create new category."""
        if parent_id is not None:
            await self._require_category(parent_id, "Parent category")

        category = Category(
            name=name,
            slug=await self._unique_slug(Category, name, fallback="category"),
            description=description,
            parent_id=parent_id,
        )
        self.db.add(category)
        await self.db.flush()
        logger.info(f"Created category {category.slug}")
        return await self.get_category(category.id)

    async def update_category(self, category_id: int, data: dict[str, Any]) -> Category:
        """Update category fields present in ``data``."""
        category = await self.get_category(category_id)

        if "parent_id" in data and data["parent_id"] is not None:
            if data["parent_id"] == category_id:
                raise BadRequestError("Category cannot be its own parent")
            await self._require_category(data["parent_id"], "Parent category")

        for key in ("name", "description", "parent_id"):
            if key in data:
                setattr(category, key, data[key])

        await self.db.flush()
        return await self.get_category(category_id)

    async def delete_category(self, category_id: int) -> None:
        """Soft-delete category."""
        category = await self.get_category(category_id)
        category.soft_delete()
        await self.db.flush()
        logger.info(f"Deleted category {category.slug}")

    async def _require_category(self, category_id: int, label: str = "Category") -> None:
        query = select(Category.id).where(
            Category.id == category_id, Category.deleted_at.is_(None)
        )
        if (await self.db.execute(query)).scalar_one_or_none() is None:
            raise BadRequestError(f"{label} with ID {category_id} not found")

    async def _unique_slug(self, model, text: str, fallback: str) -> str:
        """Slugify ``text``, appending -2, -3, ... until unused in ``model``."""
        base = slugify(text) or fallback
        slug = base
        counter = 2
        while (
            await self.db.execute(select(model.id).where(model.slug == slug))
        ).first():
            slug = f"{base}-{counter}"
            counter += 1
        return slug

    # ==================== Products ====================

    async def get_products(
        self,
        search: str | None = None,
        category_id: int | None = None,
        featured: bool | None = None,
        min_price: Decimal | None = None,
        max_price: Decimal | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> dict[str, Any]:
        """
        Get products with filters and pagination.

        Args:
            search: Substring matched against name, description and SKU
            category_id: Only products linked to this category
            featured: Filter by featured flag
            min_price: Lower bound on effective price
            max_price: Upper bound on effective price
            page: Page number, starting at 1
            limit: Page size

        Returns:
            Dict with products, total_count, current_page, total_pages
        """
        query = select(Product).where(Product.deleted_at.is_(None))

        if search:
            pattern = f"%{search}%"
            query = query.where(
                Product.name.ilike(pattern)
                | Product.description.ilike(pattern)
                | Product.sku.ilike(pattern)
            )

        if category_id is not None:
            query = query.where(
                Product.id.in_(
                    select(ProductCategory.product_id).where(
                        ProductCategory.category_id == category_id
                    )
                )
            )

        if featured is not None:
            query = query.where(Product.is_featured == featured)

        effective_price = func.coalesce(Product.sale_price, Product.base_price)
        if min_price is not None:
            query = query.where(effective_price >= min_price)
        if max_price is not None:
            query = query.where(effective_price <= max_price)

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar_one()

        query = (
            query.options(*_product_options())
            .order_by(Product.created_at.desc(), Product.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        result = await self.db.execute(query)

        return {
            "products": list(result.scalars().all()),
            "total_count": total,
            "current_page": page,
            "total_pages": math.ceil(total / limit) if limit else 0,
        }

    async def get_product(self, product_id: int) -> Product:
        """Get product by ID with images and categories."""
        query = (
            select(Product)
            .options(*_product_options())
            .where(Product.id == product_id, Product.deleted_at.is_(None))
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        product = result.scalar_one_or_none()
        if not product:
            raise NotFoundError(f"Product with ID {product_id} not found")
        return product

    async def get_product_by_sku(self, sku: str) -> Product | None:
        """Get product by SKU (case-insensitive), soft-deleted rows included."""
        query = select(Product).where(func.lower(Product.sku) == sku.lower())
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def create_product(self, data: dict[str, Any]) -> Product:
        """
        Create new product.

        ``data`` may carry ``images`` (list of dicts) and ``category_ids``.

        Raises:
            BadRequestError: On duplicate SKU or unknown category
        """
        await self._ensure_sku_available(data["sku"])

        product = Product(**{k: data[k] for k in PRODUCT_FIELDS if k in data})
        product.slug = await self._unique_slug(
            Product, f"{data['name']}-{data['sku']}", fallback="product"
        )
        product.images = self._build_images(data.get("images") or [])
        product.category_links = await self._build_category_links(
            data.get("category_ids") or [], existing=[]
        )

        self.db.add(product)
        await self.db.flush()
        logger.info(f"Created product {product.sku}")
        return await self.get_product(product.id)

    async def update_product(self, product_id: int, data: dict[str, Any]) -> Product:
        """
        Update product fields present in ``data``.

        A supplied ``images`` list (even empty) replaces all images;
        a supplied ``category_ids`` list replaces all category links.
        """
        product = await self.get_product(product_id)

        if data.get("sku") and data["sku"] != product.sku:
            await self._ensure_sku_available(data["sku"], exclude_id=product_id)

        for key in PRODUCT_FIELDS:
            if key not in data:
                continue
            if data[key] is None and key in REQUIRED_PRODUCT_FIELDS:
                continue
            setattr(product, key, data[key])

        if "images" in data:
            product.images = self._build_images(data["images"] or [])

        if "category_ids" in data:
            product.category_links = await self._build_category_links(
                data["category_ids"] or [], existing=product.category_links
            )

        await self.db.flush()
        return await self.get_product(product_id)

    async def delete_product(self, product_id: int) -> None:
        """Soft-delete product."""
        product = await self.get_product(product_id)
        product.soft_delete()
        await self.db.flush()
        logger.info(f"Deleted product {product.sku}")

    async def _ensure_sku_available(self, sku: str, exclude_id: int | None = None) -> None:
        existing = await self.get_product_by_sku(sku)
        if existing and existing.id != exclude_id:
            raise BadRequestError(f"Product with SKU {sku} already exists")

    def _build_images(self, images: list[dict[str, Any]]) -> list[ProductImage]:
        built = [
            ProductImage(
                image_url=image["image_url"],
                alt_text=image.get("alt_text"),
                is_primary=bool(image.get("is_primary", False)),
            )
            for image in images
        ]
        # First image is primary unless one was chosen
        if built and not any(image.is_primary for image in built):
            built[0].is_primary = True
        return built

    async def _build_category_links(
        self,
        category_ids: list[int],
        existing: list[ProductCategory],
    ) -> list[ProductCategory]:
        wanted = list(dict.fromkeys(category_ids))
        if wanted:
            query = select(Category.id).where(
                Category.id.in_(wanted), Category.deleted_at.is_(None)
            )
            found = set((await self.db.execute(query)).scalars().all())
            missing = [cid for cid in wanted if cid not in found]
            if missing:
                raise BadRequestError(
                    f"Categories not found: {', '.join(str(cid) for cid in missing)}"
                )

        # Reuse links that survive so the unique constraint is never hit
        current = {link.category_id: link for link in existing}
        return [current.get(cid) or ProductCategory(category_id=cid) for cid in wanted]
