"""
Catalog Module - Products and categories.

Features:
- Product catalog with search, price and category filters
- Nested categories
- Product image uploads
- Soft delete
"""

from jewelry_shop.modules.catalog.service import CatalogService
from jewelry_shop.modules.catalog.uploads import ImageStorage

__all__ = [
    "CatalogService",
    "ImageStorage",
]
