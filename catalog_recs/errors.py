"""Exceptions raised by the recommendation engine."""

from __future__ import annotations

from uuid import UUID


class RecommendationError(Exception):
    """Base class for engine errors."""


class ProductNotFoundError(RecommendationError):
    def __init__(self, product_id: UUID | str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")
