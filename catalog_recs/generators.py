"""
Catalog Recommendation Service — Candidate Generators

Each generator asks the repository for one family of candidates and tags
every hit with its source, a generator score and a human-readable reason:

  brand   — same / compatible level-2 categories (BRAND_COMPATIBILITY)
  skill   — same tier and the next tier up (SKILL_PROGRESSION)
  specs   — exact / compatible flexibility and balance, same weight class
  category — fallback when the three above come back empty

Query results keep the repository's order (newest first unless noted).
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from catalog_recs.attributes import (
    BALANCE_FIELD, FLEXIBILITY_FIELD, SKILL_FIELD, WEIGHT_FIELD,
)
from catalog_recs.concurrency import gather_or_cancel
from catalog_recs.models import (
    Balance, CandidateSource, Flexibility, KeySpecs, PriceBand, Product,
    SkillLevel,
)
from catalog_recs.repository import (
    ProductOrder, ProductRepository, SpecFilter, SpecMatchMode, category_ids,
)

logger = logging.getLogger(__name__)


@dataclass
class Candidate:
    product: Product
    source: CandidateSource
    score: float
    reason: str
    matched_spec: Optional[str] = None

    # filled in by the two-list rankers
    price_diff: Optional[float] = None
    total_sales: Optional[int] = None
    price_band: Optional[PriceBand] = None
    in_price_band: Optional[bool] = None
    category_level1: Optional[str] = None

    @property
    def product_id(self) -> UUID:
        return self.product.id


def _tag(
    products: list[Product],
    source: CandidateSource,
    score: float,
    reason: str,
    matched_spec: Optional[str] = None,
) -> list[Candidate]:
    return [Candidate(p, source, score, reason, matched_spec) for p in products]

# ============================================================
# Brand Family
# ============================================================

@dataclass(frozen=True)
class BrandFamily:
    same: tuple[str, ...]
    compatible: tuple[str, ...] = ()
    reason: str = "same category products"


BRAND_COMPATIBILITY: dict[str, BrandFamily] = {
    'Vợt Yonex': BrandFamily(
        same=('Vợt Yonex',),
        compatible=('Vợt Victor', 'Vợt Li-Ning'),
        reason='Same Yonex racket line - premium brand',
    ),
    'Vợt Victor': BrandFamily(
        same=('Vợt Victor',),
        compatible=('Vợt Yonex', 'Vợt Li-Ning', 'Vợt Mizuno'),
        reason='Same Victor racket line - tournament grade',
    ),
    'Vợt Li-Ning': BrandFamily(
        same=('Vợt Li-Ning',),
        compatible=('Vợt Victor', 'Vợt Yonex', 'Vợt Kawasaki'),
        reason='Same Li-Ning racket line - modern design',
    ),
    'Giày Yonex': BrandFamily(
        same=('Giày Yonex',),
        compatible=('Giày Victor', 'Giày Mizuno'),
        reason='Same Yonex shoe line - advanced cushioning',
    ),
    'Giày Victor': BrandFamily(
        same=('Giày Victor',),
        compatible=('Giày Yonex', 'Giày Mizuno'),
        reason='Same Victor shoe line - movement support',
    ),
    'Giày Mizuno': BrandFamily(
        same=('Giày Mizuno',),
        compatible=('Giày Victor', 'Giày Yonex'),
        reason='Same Mizuno shoe line - high durability',
    ),
}

BRAND_SAME_WEIGHT = 1.0
BRAND_SAME_LIMIT = 4
BRAND_COMPATIBLE_WEIGHT = 0.7
BRAND_COMPATIBLE_LIMIT = 2


def brand_family(brand: str) -> BrandFamily:
    """Compatibility entry for a level-2 category; unknown brands only match themselves."""
    return BRAND_COMPATIBILITY.get(brand) or BrandFamily(same=(brand,))


async def brand_family_candidates(
    repo: ProductRepository, product: Product, brand: str,
) -> list[Candidate]:
    family = brand_family(brand)
    queries = [repo.find_by_level2_categories(
        list(family.same), product.id, BRAND_SAME_LIMIT)]
    if family.compatible:
        queries.append(repo.find_by_level2_categories(
            list(family.compatible), product.id, BRAND_COMPATIBLE_LIMIT))
    results = await gather_or_cancel(*queries)

    candidates = _tag(results[0], CandidateSource.BRAND, BRAND_SAME_WEIGHT, family.reason)
    if len(results) > 1:
        candidates += _tag(
            results[1], CandidateSource.BRAND, BRAND_COMPATIBLE_WEIGHT,
            f"compatible with {brand}")
    return candidates

# ============================================================
# Skill Progression
# ============================================================

@dataclass(frozen=True)
class SkillTier:
    same: tuple[str, ...]
    upgrade: tuple[str, ...] = ()
    reason: str = ""


SKILL_PROGRESSION: dict[SkillLevel, SkillTier] = {
    SkillLevel.BEGINNER: SkillTier(
        same=('beginner', 'mới chơi', 'khởi nghiệp'),
        upgrade=('intermediate', 'trung bình'),
        reason='Suitable for players new to badminton',
    ),
    SkillLevel.INTERMEDIATE: SkillTier(
        same=('intermediate', 'trung bình'),
        upgrade=('advanced', 'khá tốt'),
        reason='For intermediate players improving their technique',
    ),
    SkillLevel.ADVANCED: SkillTier(
        same=('advanced', 'khá tốt', 'giỏi'),
        reason='For players with strong technique',
    ),
}

SKILL_SAME_WEIGHT = 0.7
SKILL_UPGRADE_WEIGHT = 0.3
SKILL_LIMIT = 3


async def skill_progression_candidates(
    repo: ProductRepository, product: Product, skill_level: SkillLevel,
) -> list[Candidate]:
    tier = SKILL_PROGRESSION.get(skill_level)
    if tier is None:
        return []
    level = skill_level.value
    queries = [repo.find_by_specification(
        SpecFilter(SKILL_FIELD, tier.same), product.id, SKILL_LIMIT)]
    if tier.upgrade:
        queries.append(repo.find_by_specification(
            SpecFilter(SKILL_FIELD, tier.upgrade), product.id, SKILL_LIMIT))
    results = await gather_or_cancel(*queries)

    candidates = _tag(
        results[0], CandidateSource.SKILL, SKILL_SAME_WEIGHT,
        f"same skill level {level}", SKILL_FIELD.canonical)
    if len(results) > 1:
        candidates += _tag(
            results[1], CandidateSource.SKILL, SKILL_UPGRADE_WEIGHT,
            f"upgrade from skill level {level}", SKILL_FIELD.canonical)
    return candidates

# ============================================================
# Specification Similarity
# ============================================================

@dataclass(frozen=True)
class SpecCompatibility:
    exact: tuple[str, ...]
    compatible: tuple[str, ...] = ()


FLEXIBILITY_COMPATIBILITY: dict[Flexibility, SpecCompatibility] = {
    Flexibility.FLEXIBLE: SpecCompatibility(
        exact=('dẻo', 'flexible', 'mềm', 'soft'),
        compatible=('trung bình', 'medium', 'moderate'),
    ),
    Flexibility.MEDIUM: SpecCompatibility(
        exact=('trung bình', 'medium', 'moderate'),
        compatible=('dẻo', 'flexible', 'cứng', 'stiff'),
    ),
    Flexibility.STIFF: SpecCompatibility(
        exact=('cứng', 'stiff', 'hard'),
        compatible=('trung bình', 'medium', 'siêu cứng', 'extra stiff'),
    ),
    Flexibility.EXTRA_STIFF: SpecCompatibility(
        exact=('siêu cứng', 'extra stiff', 'very hard'),
        compatible=('cứng', 'stiff'),
    ),
}

BALANCE_COMPATIBILITY: dict[Balance, SpecCompatibility] = {
    Balance.HEAD_HEAVY: SpecCompatibility(
        exact=('head heavy', 'nặng đầu', 'heavy'),
        compatible=('even balance', 'cân bằng', 'even'),
    ),
    Balance.EVEN_BALANCE: SpecCompatibility(
        exact=('even balance', 'cân bằng', 'even'),
    ),
    Balance.HEAD_LIGHT: SpecCompatibility(
        exact=('head light', 'nhẹ đầu', 'light'),
        compatible=('even balance', 'cân bằng', 'even'),
    ),
}

FLEXIBILITY_EXACT_WEIGHT = 0.5
FLEXIBILITY_COMPATIBLE_WEIGHT = 0.2
BALANCE_EXACT_WEIGHT = 0.4
BALANCE_COMPATIBLE_WEIGHT = 0.15
WEIGHT_CLASS_WEIGHT = 0.3
SPEC_LIMIT = 2


@dataclass(frozen=True)
class SpecCondition:
    spec_filter: SpecFilter
    weight: float
    reason: str


def spec_conditions(key_specs: KeySpecs) -> list[SpecCondition]:
    """Query plan for the specs generator, in execution order."""
    conditions: list[SpecCondition] = []

    if key_specs.flexibility is not None:
        compat = FLEXIBILITY_COMPATIBILITY[key_specs.flexibility]
        flex = key_specs.flexibility.value
        if compat.exact:
            conditions.append(SpecCondition(
                SpecFilter(FLEXIBILITY_FIELD, compat.exact),
                FLEXIBILITY_EXACT_WEIGHT, f"same flexibility {flex}"))
        if compat.compatible:
            conditions.append(SpecCondition(
                SpecFilter(FLEXIBILITY_FIELD, compat.compatible),
                FLEXIBILITY_COMPATIBLE_WEIGHT, f"flexibility compatible with {flex}"))

    if key_specs.balance is not None:
        compat = BALANCE_COMPATIBILITY[key_specs.balance]
        balance = key_specs.balance.value
        if compat.exact:
            conditions.append(SpecCondition(
                SpecFilter(BALANCE_FIELD, compat.exact),
                BALANCE_EXACT_WEIGHT, f"same balance point {balance}"))
        if compat.compatible:
            conditions.append(SpecCondition(
                SpecFilter(BALANCE_FIELD, compat.compatible),
                BALANCE_COMPATIBLE_WEIGHT, f"balance point compatible with {balance}"))

    if key_specs.weight is not None:
        weight = key_specs.weight.value
        conditions.append(SpecCondition(
            SpecFilter(WEIGHT_FIELD, (weight,), SpecMatchMode.CONTAINS),
            WEIGHT_CLASS_WEIGHT, f"same weight {weight}"))

    return conditions


async def spec_similarity_candidates(
    repo: ProductRepository, product: Product, key_specs: KeySpecs,
) -> list[Candidate]:
    conditions = spec_conditions(key_specs)
    if not conditions:
        return []
    results = await gather_or_cancel(*(
        repo.find_by_specification(c.spec_filter, product.id, SPEC_LIMIT)
        for c in conditions
    ))
    candidates: list[Candidate] = []
    for condition, products in zip(conditions, results):
        candidates += _tag(
            products, CandidateSource.SPECS, condition.weight, condition.reason,
            condition.spec_filter.field.canonical)
    return candidates

# ============================================================
# Category Fallback
# ============================================================

FALLBACK_WEIGHT = 0.1
FALLBACK_REASON = "same category"


async def category_fallback_candidates(
    repo: ProductRepository, product: Product, limit: int,
) -> list[Candidate]:
    products = await repo.find_by_categories(
        category_ids(product.categories), product.id, limit, order=ProductOrder.NEWEST)
    if not products:
        logger.debug("No category siblings for %s; using featured catalog", product.id)
        products = await repo.find_active(product.id, limit)
    return _tag(products, CandidateSource.CATEGORY, FALLBACK_WEIGHT, FALLBACK_REASON)
