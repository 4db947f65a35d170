"""
Catalog Recommendation Service — Recommendation Engine

Orchestrates one request:
  load source product → extract attributes → run generators concurrently →
  merge / score / rank → response assembly

Repository calls made while serving a request go through BoundedRepository,
which caps how many run at once and optionally times each one out. The
queries do not share a transaction; a concurrent catalog write may be
visible to some of them and not others.
"""
from __future__ import annotations
import asyncio
import logging
import time
from collections import Counter
from typing import Any, Optional
from uuid import UUID

from catalog_recs.attributes import (
    BALANCE_FIELD, FLEXIBILITY_FIELD, SKILL_FIELD, extract_attributes,
    normalize_field_name,
)
from catalog_recs.best_sellers import price_band, you_might_like
from catalog_recs.concurrency import gather_or_cancel
from catalog_recs.config import Settings, get_settings
from catalog_recs.errors import ProductNotFoundError
from catalog_recs.generators import (
    Candidate, brand_family_candidates, category_fallback_candidates,
    skill_progression_candidates, spec_similarity_candidates,
)
from catalog_recs.models import (
    AttributeBundle, CandidateSource, CatalogDebug, CatalogProductSummary,
    CurrentProductInfo, GeneratorOutput,
    ListCounts, PricingMeta, Product, RecommendationDebug, RecommendedProduct,
    SourceCounts, TwoListMeta, TwoListRecommendations, UnifiedMeta,
    UnifiedRecommendations,
)
from catalog_recs.pricing import calculate_ratings, resolve_display_price
from catalog_recs.repository import ProductRepository
from catalog_recs.scoring import related_products, unified_ranking

logger = logging.getLogger(__name__)

# ============================================================
# Bounded Repository
# ============================================================

class BoundedRepository(ProductRepository):
    """Delegating repository that limits concurrency and applies a per-query timeout."""

    def __init__(self, repo: ProductRepository, concurrency: int,
                 timeout: Optional[float] = None):
        self._repo = repo
        self._semaphore = asyncio.Semaphore(concurrency)
        self._timeout = timeout

    async def _run(self, coro):
        async with self._semaphore:
            if self._timeout is None:
                return await coro
            return await asyncio.wait_for(coro, self._timeout)

    async def get_product(self, product_id):
        return await self._run(self._repo.get_product(product_id))

    async def list_products(self):
        return await self._run(self._repo.list_products())

    async def find_by_level2_categories(self, names, exclude_id, limit):
        return await self._run(
            self._repo.find_by_level2_categories(names, exclude_id, limit))

    async def find_by_specification(self, spec_filter, exclude_id, limit):
        return await self._run(
            self._repo.find_by_specification(spec_filter, exclude_id, limit))

    async def find_by_categories(self, category_ids, exclude_id, limit, **kwargs):
        return await self._run(
            self._repo.find_by_categories(category_ids, exclude_id, limit, **kwargs))

    async def find_active(self, exclude_id, limit):
        return await self._run(self._repo.find_active(exclude_id, limit))

    async def get_delivered_sales(self, product_ids):
        return await self._run(self._repo.get_delivered_sales(product_ids))

    async def health_check(self):
        return await self._repo.health_check()

# ============================================================
# Response Assembly
# ============================================================

def to_recommended(candidate: Candidate, score: Optional[float] = None) -> RecommendedProduct:
    p = candidate.product
    pricing = resolve_display_price(p)
    return RecommendedProduct(
        id=p.id,
        name=p.name,
        slug=p.slug,
        thumbnail=p.thumbnail,
        price=pricing.display_price,
        compare_at_price=pricing.compare_at_price,
        discount_percentage=pricing.discount_percentage,
        ratings=calculate_ratings(p),
        featured=p.featured,
        in_stock=p.in_stock,
        created_at=p.created_at,
        source=candidate.source,
        reason=candidate.reason,
        score=round(candidate.score if score is None else score, 4),
        matched_spec=candidate.matched_spec,
        price_diff=candidate.price_diff,
        total_sales=candidate.total_sales,
        price_band=candidate.price_band,
        in_price_band=candidate.in_price_band,
        category_level1=candidate.category_level1,
    )


def current_product_info(attrs: AttributeBundle, with_play_style: bool = False) -> CurrentProductInfo:
    return CurrentProductInfo(
        brand=attrs.brand,
        skill_level=attrs.skill_level,
        specs=attrs.key_specs,
        play_style=attrs.play_style if with_play_style else None,
        specified=attrs.specified,
    )


def catalog_summary(products: list[Product]) -> CatalogDebug:
    """Category counts, distinct spec values and value histograms for the extracted fields."""
    by_category: Counter = Counter()
    spec_types: dict[str, list[Optional[str]]] = {}
    histograms = {SKILL_FIELD: Counter(), FLEXIBILITY_FIELD: Counter(), BALANCE_FIELD: Counter()}
    summaries = []

    for p in products:
        by_category.update(c.name for c in p.categories_at(2))
        for spec in p.specifications:
            values = spec_types.setdefault(normalize_field_name(spec.name), [])
            if spec.value not in values:
                values.append(spec.value)
            for field, counts in histograms.items():
                if field.matches(spec):
                    counts[(spec.value or "").strip()] += 1
        summaries.append(CatalogProductSummary(
            id=p.id,
            name=p.name,
            price=p.price,
            in_stock=p.in_stock,
            categories=[f"{c.name} (L{c.level})" for c in p.categories],
            specifications={s.name: s.value for s in p.specifications},
            variant_count=len(p.variants),
            variant_prices=[v.price for v in p.variants],
        ))

    return CatalogDebug(
        total_products=len(products),
        products_by_category=dict(by_category),
        specification_types=spec_types,
        skill_levels=dict(histograms[SKILL_FIELD]),
        flexibility_types=dict(histograms[FLEXIBILITY_FIELD]),
        balance_types=dict(histograms[BALANCE_FIELD]),
        products=summaries,
    )

# ============================================================
# Recommendation Engine
# ============================================================

class RecommendationEngine:
    """
    Serves the unified (v1) and two-list (v2) recommendation modes plus a
    debug view of the raw generator output.
    """

    def __init__(self, repo: ProductRepository, settings: Optional[Settings] = None):
        self.repo = repo
        self.settings = settings or get_settings()

    def _bounded(self) -> BoundedRepository:
        return BoundedRepository(
            self.repo,
            concurrency=self.settings.query_concurrency,
            timeout=self.settings.query_timeout_seconds,
        )

    async def _load(self, repo: ProductRepository, product_id: UUID) -> Product:
        product = await repo.get_product(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    async def _generate(
        self, repo: ProductRepository, product: Product, attrs: AttributeBundle,
    ) -> tuple[list[Candidate], list[Candidate], list[Candidate]]:
        brand, skill, specs = await gather_or_cancel(
            brand_family_candidates(repo, product, attrs.brand),
            skill_progression_candidates(repo, product, attrs.skill_level),
            spec_similarity_candidates(repo, product, attrs.key_specs),
        )
        logger.debug(
            "Generators for %s: brand=%d skill=%d specs=%d",
            product.id, len(brand), len(skill), len(specs))
        return brand, skill, specs

    # ── v1 ───────────────────────────────────────────────────────────────

    async def recommend_v1(
        self, product_id: UUID, limit: Optional[int] = None,
    ) -> UnifiedRecommendations:
        start = time.monotonic()
        limit = self.settings.default_limit if limit is None else limit
        repo = self._bounded()

        product = await self._load(repo, product_id)
        attrs = extract_attributes(product)
        brand, skill, specs = await self._generate(repo, product, attrs)

        candidates = brand + skill + specs
        if not candidates:
            candidates = await category_fallback_candidates(repo, product, limit)
            logger.debug("Fallback for %s: %d candidates", product.id, len(candidates))

        ranked = unified_ranking(
            candidates, product.id, limit, merge=self.settings.v1_merge_strategy)
        products = [to_recommended(r.candidate, score=r.score) for r in ranked]

        counts = Counter(p.source for p in products)
        elapsed = int((time.monotonic() - start) * 1000)
        logger.info(
            "[v1] product=%s brand=%s results=%d time=%dms",
            product.id, attrs.brand, len(products), elapsed)

        return UnifiedRecommendations(
            products=products,
            meta=UnifiedMeta(
                current_product=current_product_info(attrs),
                sources=SourceCounts(
                    brand=counts[CandidateSource.BRAND],
                    skill=counts[CandidateSource.SKILL],
                    specs=counts[CandidateSource.SPECS],
                    category=counts[CandidateSource.CATEGORY],
                ),
            ),
        )

    # ── v2 ───────────────────────────────────────────────────────────────

    async def recommend_v2(
        self,
        product_id: UUID,
        related_limit: Optional[int] = None,
        like_limit: Optional[int] = None,
    ) -> TwoListRecommendations:
        start = time.monotonic()
        s = self.settings
        related_limit = s.default_related_limit if related_limit is None else related_limit
        like_limit = s.default_like_limit if like_limit is None else like_limit
        repo = self._bounded()

        product = await self._load(repo, product_id)
        attrs = extract_attributes(product)
        related, liked = await gather_or_cancel(
            related_products(repo, product, attrs, related_limit),
            you_might_like(
                repo, product, like_limit,
                enforce_band=s.enforce_price_band,
                lower=s.price_band_lower,
                upper=s.price_band_upper,
            ),
        )

        current_price = resolve_display_price(product).display_price
        elapsed = int((time.monotonic() - start) * 1000)
        logger.info(
            "[v2] product=%s related=%d you_might_like=%d time=%dms",
            product.id, len(related), len(liked), elapsed)

        return TwoListRecommendations(
            related_products=[to_recommended(c) for c in related],
            you_might_like=[to_recommended(c) for c in liked],
            meta=TwoListMeta(
                current_product=current_product_info(attrs, with_play_style=True),
                counts=ListCounts(
                    related=len(related),
                    you_might_like=len(liked),
                    total=len(related) + len(liked),
                ),
                pricing=PricingMeta(
                    current_price=current_price,
                    price_range=price_band(
                        current_price, s.price_band_lower, s.price_band_upper),
                ),
            ),
        )

    # ── Debug ────────────────────────────────────────────────────────────

    async def debug(self, product_id: UUID) -> RecommendationDebug:
        """Extracted attributes and the unmerged output of each generator."""
        repo = self._bounded()
        product = await self._load(repo, product_id)
        attrs = extract_attributes(product)
        brand, skill, specs = await self._generate(repo, product, attrs)

        generators: dict[str, Any] = {}
        for name, output in (("brand", brand), ("skill", skill), ("specs", specs)):
            generators[name] = GeneratorOutput(
                count=len(output),
                products=[to_recommended(c) for c in output],
            )

        return RecommendationDebug(
            product_id=product.id,
            name=product.name,
            price=product.price,
            compare_at_price=product.compare_at_price,
            categories=[{"name": c.name, "level": c.level} for c in product.categories],
            specifications=product.specifications,
            variants=product.variants,
            extracted=attrs,
            generators=generators,
        )

    async def debug_catalog(self) -> CatalogDebug:
        """Summary of every product in the catalog, active or not."""
        products = await self._bounded().list_products()
        logger.debug("Catalog debug over %d products", len(products))
        return catalog_summary(products)
