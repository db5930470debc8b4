"""
Review API Endpoints.

Anyone can read reviews. Customers post with their token,
guests post with a name and email.
"""

from typing import Any

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession

from jewelry_shop.api.v1.serializers import review_to_dict
from jewelry_shop.core.database import get_db
from jewelry_shop.core.security import TokenUser, get_optional_user, require_admin
from jewelry_shop.modules.reviews.service import ReviewService

router = APIRouter()


class CreateReviewRequest(BaseModel):
    """Create new review."""

    product_id: int
    rating: int = Field(ge=1, le=5)
    comment: str | None = Field(default=None, max_length=2000)
    guest_name: str | None = Field(default=None, max_length=100)
    guest_email: EmailStr | None = None


@router.get("")
async def get_reviews(db: AsyncSession = Depends(get_db)) -> list[dict[str, Any]]:
    """Get all reviews."""
    reviews = ReviewService(db)
    return [review_to_dict(r) for r in await reviews.get_reviews()]


@router.get("/product/{product_id}")
async def get_product_reviews(
    product_id: int,
    db: AsyncSession = Depends(get_db),
) -> list[dict[str, Any]]:
    """Get reviews of a product."""
    reviews = ReviewService(db)
    return [review_to_dict(r) for r in await reviews.get_product_reviews(product_id)]


@router.get("/product/{product_id}/summary")
async def get_rating_summary(
    product_id: int,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Get review count and average rating of a product."""
    return await ReviewService(db).get_rating_summary(product_id)


@router.get("/{review_id}")
async def get_review(
    review_id: int,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Get review by ID."""
    return review_to_dict(await ReviewService(db).get_review(review_id))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_review(
    request: CreateReviewRequest,
    user: TokenUser | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Create review as the authenticated customer or as a guest."""
    reviews = ReviewService(db)
    review = await reviews.create_review(
        product_id=request.product_id,
        rating=request.rating,
        comment=request.comment,
        customer_id=user.id if user else None,
        guest_name=request.guest_name,
        guest_email=str(request.guest_email) if request.guest_email else None,
    )
    return review_to_dict(review)


@router.delete("/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_review(
    review_id: int,
    _: TokenUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> Response:
    """Soft-delete review."""
    await ReviewService(db).delete_review(review_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
