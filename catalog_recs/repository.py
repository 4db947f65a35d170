"""
Catalog Recommendation Service — Repository Layer

Read-only access to the catalog and to delivered-order sales. The engine
only talks to ProductRepository; the in-memory implementation backs tests
and local development, asyncpg_repository backs production.
"""
from __future__ import annotations
import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional
from uuid import UUID

from catalog_recs.attributes import SpecField, fold_text, normalize_field_name
from catalog_recs.models import (
    Category, Order, OrderItem, OrderStatus, Product,
)

logger = logging.getLogger(__name__)


class SpecMatchMode(str, Enum):
    REGEX = "regex"         # case-insensitive alternation of tokens
    CONTAINS = "contains"   # case-insensitive substring


class ProductOrder(str, Enum):
    NEWEST = "newest"
    FEATURED = "featured"   # featured first, then newest


@dataclass(frozen=True)
class SpecFilter:
    """Products owning a spec row of `field` whose value matches `tokens`."""
    field: SpecField
    tokens: tuple[str, ...]
    mode: SpecMatchMode = SpecMatchMode.REGEX

    @property
    def pattern(self) -> str:
        if self.mode == SpecMatchMode.REGEX:
            return '|'.join(self.tokens)
        return self.tokens[0] if self.tokens else ''

    @property
    def name_patterns(self) -> list[str]:
        """ILIKE patterns covering the field's names and fragments."""
        terms = list(self.field.names) + list(self.field.fragments)
        return [f"%{t}%" for t in dict.fromkeys(terms)]

    def name_matches(self, name: Optional[str]) -> bool:
        folded = fold_text(normalize_field_name(name or ''))
        terms = [fold_text(t) for t in self.field.names + self.field.fragments]
        return any(t in folded for t in terms)

    def value_matches(self, value: Optional[str]) -> bool:
        if not self.tokens or value is None:
            return False
        text = fold_text(value)
        if self.mode == SpecMatchMode.REGEX:
            return re.search(self.pattern, text, re.IGNORECASE) is not None
        return fold_text(self.pattern) in text

# ============================================================
# Database Abstraction Layer (Repository Pattern)
# ============================================================

class ProductRepository:
    """
    Abstract read-only catalog access. All finders exclude `exclude_id`
    and only return active, in-stock products.
    """

    async def get_product(self, product_id: UUID) -> Optional[Product]:
        raise NotImplementedError

    async def list_products(self) -> list[Product]:
        """Every product regardless of status or stock, ordered by name."""
        raise NotImplementedError

    async def find_by_level2_categories(
        self, names: list[str], exclude_id: UUID, limit: int,
    ) -> list[Product]:
        raise NotImplementedError

    async def find_by_specification(
        self, spec_filter: SpecFilter, exclude_id: UUID, limit: int,
    ) -> list[Product]:
        raise NotImplementedError

    async def find_by_categories(
        self,
        category_ids: list[UUID],
        exclude_id: UUID,
        limit: int,
        level: Optional[int] = None,
        order: ProductOrder = ProductOrder.NEWEST,
    ) -> list[Product]:
        raise NotImplementedError

    async def find_active(self, exclude_id: UUID, limit: int) -> list[Product]:
        raise NotImplementedError

    async def get_delivered_sales(self, product_ids: list[UUID]) -> dict[UUID, int]:
        raise NotImplementedError

    async def health_check(self) -> dict:
        raise NotImplementedError

# ============================================================
# In-Memory Repository (for testing / local dev)
# ============================================================

class InMemoryRepository(ProductRepository):
    """In-memory implementation for testing without a database."""

    def __init__(self):
        self.products: dict[UUID, Product] = {}
        self.orders: dict[UUID, Order] = {}
        self.order_items: list[OrderItem] = []

    # ── Loading ──────────────────────────────────────────────────────────

    def add_product(self, product: Product) -> Product:
        self.products[product.id] = product
        return product

    def add_order(self, order: Order, items: Iterable[OrderItem]) -> Order:
        self.orders[order.id] = order
        self.order_items.extend(items)
        return order

    @classmethod
    def from_seed_file(cls, path: str | Path) -> "InMemoryRepository":
        """
        Load {"products": [...], "orders": [{"status": ..., "items": [...]}]}.
        Product entries follow the Product model field names.
        """
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        repo = cls()
        for raw in data.get("products", []):
            repo.add_product(Product.model_validate(raw))
        for raw in data.get("orders", []):
            items = raw.pop("items", [])
            order = Order.model_validate(raw)
            repo.add_order(order, [
                OrderItem(order_id=order.id, **item) for item in items
            ])
        logger.info(
            "Seeded in-memory catalog from %s (%d products, %d orders)",
            path, len(repo.products), len(repo.orders))
        return repo

    # ── Queries ──────────────────────────────────────────────────────────

    def _available(self, exclude_id: UUID) -> list[Product]:
        return [
            p for p in self.products.values()
            if p.id != exclude_id and p.is_available
        ]

    @staticmethod
    def _sorted(products: list[Product], order: ProductOrder) -> list[Product]:
        newest = sorted(products, key=_created_key, reverse=True)
        if order == ProductOrder.FEATURED:
            return sorted(newest, key=lambda p: p.featured, reverse=True)
        return newest

    async def get_product(self, product_id: UUID) -> Optional[Product]:
        return self.products.get(product_id)

    async def list_products(self) -> list[Product]:
        return sorted(self.products.values(), key=lambda p: p.name)

    async def find_by_level2_categories(
        self, names: list[str], exclude_id: UUID, limit: int,
    ) -> list[Product]:
        if not names or limit <= 0:
            return []
        wanted = set(names)
        matches = [
            p for p in self._available(exclude_id)
            if any(c.level == 2 and c.name in wanted for c in p.categories)
        ]
        return self._sorted(matches, ProductOrder.NEWEST)[:limit]

    async def find_by_specification(
        self, spec_filter: SpecFilter, exclude_id: UUID, limit: int,
    ) -> list[Product]:
        if limit <= 0:
            return []
        matches = [
            p for p in self._available(exclude_id)
            if any(
                spec_filter.name_matches(s.name) and spec_filter.value_matches(s.value)
                for s in p.specifications
            )
        ]
        return self._sorted(matches, ProductOrder.NEWEST)[:limit]

    async def find_by_categories(
        self,
        category_ids: list[UUID],
        exclude_id: UUID,
        limit: int,
        level: Optional[int] = None,
        order: ProductOrder = ProductOrder.NEWEST,
    ) -> list[Product]:
        if not category_ids or limit <= 0:
            return []
        wanted = set(category_ids)
        matches = [
            p for p in self._available(exclude_id)
            if any(
                c.id in wanted and (level is None or c.level == level)
                for c in p.categories
            )
        ]
        return self._sorted(matches, order)[:limit]

    async def find_active(self, exclude_id: UUID, limit: int) -> list[Product]:
        if limit <= 0:
            return []
        return self._sorted(self._available(exclude_id), ProductOrder.FEATURED)[:limit]

    async def get_delivered_sales(self, product_ids: list[UUID]) -> dict[UUID, int]:
        wanted = set(product_ids)
        sales: dict[UUID, int] = {}
        for item in self.order_items:
            if item.product_id not in wanted:
                continue
            order = self.orders.get(item.order_id)
            if order is None or order.status != OrderStatus.DELIVERED:
                continue
            sales[item.product_id] = sales.get(item.product_id, 0) + (item.quantity or 0)
        return sales

    async def health_check(self) -> dict:
        return {
            "status": "healthy",
            "backend": "memory",
            "products": len(self.products),
            "orders": len(self.orders),
        }


def _created_key(product: Product) -> datetime:
    return product.created_at


def category_ids(categories: Iterable[Category]) -> list[UUID]:
    return [c.id for c in categories]
