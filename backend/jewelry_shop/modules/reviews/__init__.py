"""
Reviews Module - Product ratings.
"""

from jewelry_shop.modules.reviews.service import ReviewService

__all__ = [
    "ReviewService",
]
