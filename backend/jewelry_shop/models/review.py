"""
Product review model.
"""

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from jewelry_shop.core.database import Base, SoftDeleteMixin, TimestampMixin

if TYPE_CHECKING:
    from jewelry_shop.models.catalog import Product
    from jewelry_shop.models.customer import Customer


class Review(TimestampMixin, SoftDeleteMixin, Base):
    """Product review from a customer or a guest."""

    __tablename__ = "reviews"
    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating_range"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id"), index=True)
    customer_id: Mapped[int | None] = mapped_column(ForeignKey("customers.id"))

    # Guest reviewer (required when customer_id is empty)
    guest_name: Mapped[str | None] = mapped_column(String(255))
    guest_email: Mapped[str | None] = mapped_column(String(255))

    rating: Mapped[int] = mapped_column(Integer)  # 1-5
    comment: Mapped[str | None] = mapped_column(Text)
    is_verified_purchase: Mapped[bool] = mapped_column(Boolean, default=False)

    # Relationships
    product: Mapped["Product"] = relationship(back_populates="reviews")
    customer: Mapped["Customer | None"] = relationship(back_populates="reviews")

    @property
    def author_name(self) -> str:
        if self.customer is not None:
            return f"{self.customer.first_name} {self.customer.last_name}".strip()
        return self.guest_name or "Anonymous"
