"""
asyncpg_repository.py — Production PostgreSQL repository implementation.

Implements the read-only ProductRepository interface over an asyncpg
connection pool. Candidate queries select product rows first and then
hydrate categories, specifications, variants and reviews in one batched
`= ANY($1)` query per relation.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Any, Optional
from uuid import UUID

import asyncpg

from catalog_recs.models import (
    Category, OrderStatus, Product, ProductSpecification, ProductStatus,
    ProductVariant, Review,
)
from catalog_recs.repository import (
    ProductOrder, ProductRepository, SpecFilter, SpecMatchMode,
)

logger = logging.getLogger(__name__)

PRODUCT_COLUMNS = """
    p.id, p.name, p.slug, p.thumbnail, p.price, p.compare_at_price, p.status,
    p.in_stock, p.stock_quantity, p.featured, p.created_at
"""

AVAILABLE = f"p.id <> $1 AND p.status = '{ProductStatus.ACTIVE.value}' AND p.in_stock"

ORDER_BY = {
    ProductOrder.NEWEST: "p.created_at DESC",
    ProductOrder.FEATURED: "p.featured DESC, p.created_at DESC",
}

# ── Connection Pool Manager ──────────────────────────────────────────────────

class DatabasePool:
    """Manages asyncpg connection pool lifecycle."""

    def __init__(
        self,
        dsn: str,
        min_size: int = 2,
        max_size: int = 10,
        command_timeout: float = 30.0,
    ):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self._pool: Optional[asyncpg.Pool] = None

    async def initialize(self) -> None:
        self._pool = await asyncpg.create_pool(
            self.dsn,
            min_size=self.min_size,
            max_size=self.max_size,
            command_timeout=self.command_timeout,
        )
        logger.info(
            "Database pool initialized (min=%d, max=%d)", self.min_size, self.max_size
        )

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database pool not initialized. Call initialize() first.")
        return self._pool

    @asynccontextmanager
    async def acquire(self):
        async with self.pool.acquire() as conn:
            yield conn

    async def close(self) -> None:
        if self._pool:
            await self._pool.close()
            logger.info("Database pool closed")


# ── Product Repository ───────────────────────────────────────────────────────

class AsyncPGProductRepository(ProductRepository):
    """
    Production repository implementing the ProductRepository interface.

    Tables read:
    - products, categories, product_categories
    - product_specifications, product_variants, reviews
    - orders, order_items (sales aggregation only)
    """

    def __init__(self, db: DatabasePool):
        self.db = db

    # ── Products ─────────────────────────────────────────────────────────

    async def get_product(self, product_id: UUID) -> Optional[Product]:
        async with self.db.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {PRODUCT_COLUMNS} FROM products p WHERE p.id = $1",
                product_id,
            )
            if not row:
                return None
            products = await self._hydrate(conn, [row])
            return products[0]

    async def list_products(self) -> list[Product]:
        return await self._fetch_products(
            f"SELECT {PRODUCT_COLUMNS} FROM products p ORDER BY p.name")

    async def find_by_level2_categories(
        self, names: list[str], exclude_id: UUID, limit: int,
    ) -> list[Product]:
        if not names or limit <= 0:
            return []
        query = f"""
            SELECT {PRODUCT_COLUMNS}
            FROM products p
            WHERE {AVAILABLE}
              AND EXISTS (
                SELECT 1 FROM product_categories pc
                JOIN categories c ON c.id = pc.category_id
                WHERE pc.product_id = p.id AND c.level = 2 AND c.name = ANY($2::text[])
              )
            ORDER BY {ORDER_BY[ProductOrder.NEWEST]}
            LIMIT $3
        """
        return await self._fetch_products(query, exclude_id, names, limit)

    async def find_by_specification(
        self, spec_filter: SpecFilter, exclude_id: UUID, limit: int,
    ) -> list[Product]:
        if not spec_filter.tokens or limit <= 0:
            return []
        if spec_filter.mode == SpecMatchMode.REGEX:
            value_clause, value = "s.value ~* $3", spec_filter.pattern
        else:
            value_clause, value = "s.value ILIKE $3", f"%{spec_filter.pattern}%"
        query = f"""
            SELECT {PRODUCT_COLUMNS}
            FROM products p
            WHERE {AVAILABLE}
              AND EXISTS (
                SELECT 1 FROM product_specifications s
                WHERE s.product_id = p.id
                  AND s.name ILIKE ANY($2::text[])
                  AND {value_clause}
              )
            ORDER BY {ORDER_BY[ProductOrder.NEWEST]}
            LIMIT $4
        """
        return await self._fetch_products(
            query, exclude_id, spec_filter.name_patterns, value, limit)

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
        query = f"""
            SELECT {PRODUCT_COLUMNS}
            FROM products p
            WHERE {AVAILABLE}
              AND EXISTS (
                SELECT 1 FROM product_categories pc
                JOIN categories c ON c.id = pc.category_id
                WHERE pc.product_id = p.id
                  AND c.id = ANY($2::uuid[])
                  AND ($3::int IS NULL OR c.level = $3::int)
              )
            ORDER BY {ORDER_BY[order]}
            LIMIT $4
        """
        return await self._fetch_products(query, exclude_id, category_ids, level, limit)

    async def find_active(self, exclude_id: UUID, limit: int) -> list[Product]:
        if limit <= 0:
            return []
        query = f"""
            SELECT {PRODUCT_COLUMNS}
            FROM products p
            WHERE {AVAILABLE}
            ORDER BY {ORDER_BY[ProductOrder.FEATURED]}
            LIMIT $2
        """
        return await self._fetch_products(query, exclude_id, limit)

    # ── Sales ────────────────────────────────────────────────────────────

    async def get_delivered_sales(self, product_ids: list[UUID]) -> dict[UUID, int]:
        if not product_ids:
            return {}
        async with self.db.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT oi.product_id, COALESCE(SUM(oi.quantity), 0) AS total
                FROM order_items oi
                JOIN orders o ON o.id = oi.order_id
                WHERE oi.product_id = ANY($1::uuid[]) AND o.status = $2
                GROUP BY oi.product_id
                """,
                product_ids,
                OrderStatus.DELIVERED.value,
            )
            return {r["product_id"]: int(r["total"]) for r in rows}

    # ── Health Check ─────────────────────────────────────────────────────

    async def health_check(self) -> dict:
        try:
            async with self.db.acquire() as conn:
                version = await conn.fetchval("SELECT version()")
                pool = self.db.pool
                return {
                    "status": "healthy",
                    "backend": "postgres",
                    "postgres_version": version,
                    "pool_size": pool.get_size(),
                    "pool_free": pool.get_idle_size(),
                    "pool_used": pool.get_size() - pool.get_idle_size(),
                }
        except (asyncpg.PostgresError, OSError, RuntimeError) as e:
            return {"status": "unhealthy", "backend": "postgres", "error": str(e)}

    # ── Internal ─────────────────────────────────────────────────────────

    async def _fetch_products(self, query: str, *args: Any) -> list[Product]:
        async with self.db.acquire() as conn:
            rows = await conn.fetch(query, *args)
            return await self._hydrate(conn, rows)

    async def _hydrate(self, conn: asyncpg.Connection, rows: list) -> list[Product]:
        """Attach relations to product rows, preserving row order."""
        if not rows:
            return []
        ids = [r["id"] for r in rows]

        categories: dict[UUID, list[Category]] = defaultdict(list)
        for r in await conn.fetch(
            """
            SELECT pc.product_id, c.id, c.name, c.level
            FROM product_categories pc
            JOIN categories c ON c.id = pc.category_id
            WHERE pc.product_id = ANY($1::uuid[])
            ORDER BY c.level, c.name
            """,
            ids,
        ):
            categories[r["product_id"]].append(
                Category(id=r["id"], name=r["name"], level=r["level"]))

        specs: dict[UUID, list[ProductSpecification]] = defaultdict(list)
        for r in await conn.fetch(
            """
            SELECT product_id, name, value, category
            FROM product_specifications
            WHERE product_id = ANY($1::uuid[])
            ORDER BY created_at, id
            """,
            ids,
        ):
            specs[r["product_id"]].append(ProductSpecification(
                name=r["name"] or "", value=r["value"], category=r["category"]))

        variants: dict[UUID, list[ProductVariant]] = defaultdict(list)
        for r in await conn.fetch(
            """
            SELECT id, product_id, price, compare_at_price, is_default, stock_quantity
            FROM product_variants
            WHERE product_id = ANY($1::uuid[])
            ORDER BY created_at, id
            """,
            ids,
        ):
            variants[r["product_id"]].append(ProductVariant(
                id=r["id"],
                price=r["price"],
                compare_at_price=r["compare_at_price"],
                is_default=bool(r["is_default"]),
                stock_quantity=r["stock_quantity"] or 0,
            ))

        reviews: dict[UUID, list[Review]] = defaultdict(list)
        for r in await conn.fetch(
            "SELECT product_id, rating FROM reviews WHERE product_id = ANY($1::uuid[])",
            ids,
        ):
            reviews[r["product_id"]].append(Review(rating=r["rating"]))

        return [
            Product(
                **dict(row),
                categories=categories[row["id"]],
                specifications=specs[row["id"]],
                variants=variants[row["id"]],
                reviews=reviews[row["id"]],
            )
            for row in rows
        ]
