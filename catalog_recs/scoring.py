"""
Catalog Recommendation Service — Similarity Scoring

Two rankings share this module:

  unified_ranking  — v1: merges generator output, weights each candidate
                     by the generator it came from.
  related_products — v2: same level-2 category, scored on exact attribute
                     agreement, near-ties broken by price proximity.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from functools import cmp_to_key
from typing import Iterable
from uuid import UUID

from catalog_recs.attributes import extract_attributes
from catalog_recs.generators import Candidate
from catalog_recs.models import (
    AttributeBundle, CandidateSource, PlayStyle, Product,
)
from catalog_recs.pricing import resolve_display_price
from catalog_recs.ranking import dedupe, rank, truncate
from catalog_recs.repository import ProductRepository

logger = logging.getLogger(__name__)

# ============================================================
# v1: Unified Ranking
# ============================================================

SOURCE_WEIGHTS: dict[CandidateSource, float] = {
    CandidateSource.BRAND: 0.4,
    CandidateSource.SKILL: 0.35,
    CandidateSource.SPECS: 0.25,
}

MERGE_STRATEGIES = ("first", "max", "sum")


@dataclass
class RankedCandidate:
    candidate: Candidate
    score: float


def weighted_score(candidate: Candidate) -> float:
    """Generator score times source weight; fallback candidates keep their flat score."""
    weight = SOURCE_WEIGHTS.get(candidate.source)
    if weight is None:
        return candidate.score
    return candidate.score * weight


def _merge(candidates: list[Candidate], source_id: UUID, strategy: str) -> list[RankedCandidate]:
    if strategy == "first":
        return [RankedCandidate(c, weighted_score(c)) for c in dedupe(candidates, source_id)]

    merged: dict[UUID, RankedCandidate] = {}
    for c in candidates:
        if c.product_id == source_id:
            continue
        score = weighted_score(c)
        current = merged.get(c.product_id)
        if current is None:
            merged[c.product_id] = RankedCandidate(c, score)
        elif strategy == "sum":
            current.score += score
        elif score > current.score:
            # max: the strongest occurrence supplies source and reason
            current.candidate, current.score = c, score
    return list(merged.values())


def unified_ranking(
    candidates: Iterable[Candidate],
    source_id: UUID,
    limit: int,
    merge: str = "first",
) -> list[RankedCandidate]:
    """
    Rank concatenated generator output (brand, then skill, then specs, or
    the category fallback). Ties keep concatenation order.
    """
    if merge not in MERGE_STRATEGIES:
        raise ValueError(f"Unknown merge strategy: {merge}")
    merged = _merge(list(candidates), source_id, merge)
    return rank(merged, key=lambda r: r.score, limit=limit, reverse=True)

# ============================================================
# v2: Related Products
# ============================================================

SKILL_MATCH_WEIGHT = 0.4
FLEXIBILITY_MATCH_WEIGHT = 0.35
PLAY_STYLE_MATCH_WEIGHT = 0.25

SCORE_TIE_TOLERANCE = 0.01
RELATED_FETCH_FACTOR = 2


def specs_similarity(source: AttributeBundle, target: AttributeBundle) -> float:
    score = 0.0
    if source.skill_level == target.skill_level:
        score += SKILL_MATCH_WEIGHT
    flex_a, flex_b = source.key_specs.flexibility, target.key_specs.flexibility
    if flex_a is not None and flex_b is not None and flex_a == flex_b:
        score += FLEXIBILITY_MATCH_WEIGHT
    if (source.play_style != PlayStyle.UNKNOWN
            and target.play_style != PlayStyle.UNKNOWN
            and source.play_style == target.play_style):
        score += PLAY_STYLE_MATCH_WEIGHT
    return round(score, 4)


def compare_related(a: Candidate, b: Candidate) -> int:
    """Score descending; scores within tolerance fall back to price proximity."""
    if abs(a.score - b.score) < SCORE_TIE_TOLERANCE:
        diff = (a.price_diff or 0.0) - (b.price_diff or 0.0)
        return (diff > 0) - (diff < 0)
    return -1 if a.score > b.score else 1


async def related_products(
    repo: ProductRepository,
    product: Product,
    attrs: AttributeBundle,
    limit: int,
) -> list[Candidate]:
    if limit <= 0:
        return []
    current_price = resolve_display_price(product).display_price
    pool = await repo.find_by_level2_categories(
        [attrs.brand], product.id, limit * RELATED_FETCH_FACTOR)

    scored: list[Candidate] = []
    for p in pool:
        target = extract_attributes(p)
        price = resolve_display_price(p).display_price
        scored.append(Candidate(
            product=p,
            source=CandidateSource.RELATED,
            score=specs_similarity(attrs, target),
            reason=f"same brand {attrs.brand}, similar specs",
            price_diff=abs(price - current_price),
        ))

    logger.debug("Related pool for %s: %d candidates", product.id, len(scored))
    return truncate(sorted(scored, key=cmp_to_key(compare_related)), limit)
