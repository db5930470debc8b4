"""
Review Service - Product ratings from customers and guests.
"""

from typing import Any

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from jewelry_shop.core.exceptions import BadRequestError, NotFoundError
from jewelry_shop.models.catalog import Product
from jewelry_shop.models.order import Order, OrderItem, OrderStatus
from jewelry_shop.models.review import Review


class ReviewService:
    """
    Service for product reviews.

    Usage:
        reviews = ReviewService(db_session)
        await reviews.create_review(product_id=1, rating=5, guest_name="An", guest_email="an@x.vn")
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize review service with database session."""
        self.db = db

    def _review_query(self):
        return (
            select(Review)
            .options(selectinload(Review.customer))
            .where(Review.deleted_at.is_(None))
            .execution_options(populate_existing=True)
        )

    async def create_review(
        self,
        product_id: int,
        rating: int,
        comment: str | None = None,
        customer_id: int | None = None,
        guest_name: str | None = None,
        guest_email: str | None = None,
    ) -> Review:
        """
        Create review for a product.

        Guests (no ``customer_id``) must give a name and an email.

        Raises:
            NotFoundError: If the product does not exist
            BadRequestError: If guest details are missing or rating is out of range
        """
        product = await self.db.get(Product, product_id)
        if not product or product.deleted_at is not None:
            raise NotFoundError(f"Product with ID {product_id} not found")

        if customer_id is None and not (
            guest_name and guest_name.strip() and guest_email and guest_email.strip()
        ):
            raise BadRequestError(
                "Guest name and email are required for anonymous reviews"
            )

        if not 1 <= rating <= 5:
            raise BadRequestError("Rating must be between 1 and 5")

        review = Review(
            product_id=product_id,
            customer_id=customer_id,
            guest_name=None if customer_id is not None else guest_name.strip(),
            guest_email=None if customer_id is not None else guest_email.strip(),
            rating=rating,
            comment=comment,
            is_verified_purchase=(
                customer_id is not None
                and await self._has_purchased(customer_id, product_id)
            ),
        )
        self.db.add(review)
        await self.db.flush()

        logger.info(f"New {rating}-star review for product {product_id}")
        return await self.get_review(review.id)

    async def _has_purchased(self, customer_id: int, product_id: int) -> bool:
        query = (
            select(OrderItem.id)
            .join(Order)
            .where(
                Order.customer_id == customer_id,
                Order.status != OrderStatus.CANCELLED,
                Order.deleted_at.is_(None),
                OrderItem.product_id == product_id,
            )
            .limit(1)
        )
        return (await self.db.execute(query)).first() is not None

    async def get_reviews(self) -> list[Review]:
        """Get all reviews, newest first."""
        query = self._review_query().order_by(Review.created_at.desc(), Review.id.desc())
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_product_reviews(self, product_id: int) -> list[Review]:
        """Get reviews of one product, newest first."""
        query = (
            self._review_query()
            .where(Review.product_id == product_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_review(self, review_id: int) -> Review:
        """Get review by ID."""
        result = await self.db.execute(self._review_query().where(Review.id == review_id))
        review = result.scalar_one_or_none()
        if not review:
            raise NotFoundError(f"Review with ID {review_id} not found")
        return review

    async def delete_review(self, review_id: int) -> None:
        """Soft-delete review."""
        review = await self.get_review(review_id)
        review.soft_delete()
        await self.db.flush()

    async def get_rating_summary(self, product_id: int) -> dict[str, Any]:
        """Average rating and count for a product."""
        reviews = await self.get_product_reviews(product_id)
        count = len(reviews)
        average = round(sum(r.rating for r in reviews) / count, 2) if count else None
        return {"product_id": product_id, "count": count, "average": average}
