"""
Response builders shared by the v1 endpoints.
"""

from decimal import Decimal
from typing import Any

from jewelry_shop.models.catalog import Category, Product
from jewelry_shop.models.order import Order
from jewelry_shop.models.review import Review


def _money(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None


def _iso(value) -> str | None:
    return value.isoformat() if value else None


def category_to_dict(category: Category, include_parent: bool = False) -> dict[str, Any]:
    data = {
        "id": category.id,
        "name": category.name,
        "slug": category.slug,
        "description": category.description,
        "parent_id": category.parent_id,
    }
    if include_parent:
        data["parent"] = (
            {
                "id": category.parent.id,
                "name": category.parent.name,
                "slug": category.parent.slug,
            }
            if category.parent
            else None
        )
    return data


def product_to_dict(product: Product) -> dict[str, Any]:
    return {
        "id": product.id,
        "sku": product.sku,
        "name": product.name,
        "slug": product.slug,
        "description": product.description,
        "base_price": _money(product.base_price),
        "sale_price": _money(product.sale_price),
        "price": _money(product.price),
        "stock_quantity": product.stock_quantity,
        "in_stock": product.stock_quantity > 0,
        "is_featured": product.is_featured,
        "metal_type": product.metal_type,
        "gemstone_type": product.gemstone_type,
        "weight": _money(product.weight),
        "dimensions": product.dimensions,
        "image_url": product.primary_image_url,
        "images": [
            {
                "id": image.id,
                "image_url": image.image_url,
                "alt_text": image.alt_text,
                "is_primary": image.is_primary,
            }
            for image in product.images
        ],
        "categories": [
            {"id": c.id, "name": c.name, "slug": c.slug}
            for c in product.categories
            if c.deleted_at is None
        ],
        "created_at": _iso(product.created_at),
        "updated_at": _iso(product.updated_at),
    }


def order_to_dict(order: Order) -> dict[str, Any]:
    return {
        "id": order.id,
        "order_number": order.order_number,
        "customer_id": order.customer_id,
        "status": order.status.value,
        "payment_method": order.payment_method.value,
        "payment_status": order.payment_status.value,
        "paid_at": _iso(order.paid_at),
        "refund_required": order.refund_required,
        "total": _money(order.total),
        "items": [
            {
                "id": item.product_id,
                "name": item.product_name,
                "price": _money(item.unit_price),
                "quantity": item.quantity,
                "total": _money(item.total),
                "image_url": item.product.primary_image_url if item.product else None,
            }
            for item in order.items
        ],
        "order_details": {
            "full_name": order.shipping_name,
            "email": order.shipping_email,
            "phone": order.shipping_phone,
            "address": order.shipping_address,
            "city": order.shipping_city,
            "postal_code": order.shipping_postal_code,
            "notes": order.customer_notes,
        },
        "created_at": _iso(order.created_at),
        "updated_at": _iso(order.updated_at),
    }


def review_to_dict(review: Review) -> dict[str, Any]:
    return {
        "id": review.id,
        "product_id": review.product_id,
        "customer_id": review.customer_id,
        "author": review.author_name,
        "guest_email": review.guest_email,
        "rating": review.rating,
        "comment": review.comment,
        "is_verified_purchase": review.is_verified_purchase,
        "created_at": _iso(review.created_at),
    }
