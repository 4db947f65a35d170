"""
Catalog Recommendation Service — "You Might Like" best-seller ranking

Candidates share a level-1 category with the source product and must have
at least one unit sold through a delivered order. The price band around
the source price is reported on every item; it only filters when
enforcement is switched on.
"""
from __future__ import annotations
import logging

from catalog_recs.generators import Candidate
from catalog_recs.models import CandidateSource, PriceBand, Product
from catalog_recs.pricing import resolve_display_price
from catalog_recs.ranking import rank
from catalog_recs.repository import ProductOrder, ProductRepository, category_ids

logger = logging.getLogger(__name__)

PRICE_BAND_LOWER = 0.7
PRICE_BAND_UPPER = 1.3
BEST_SELLER_FETCH_FACTOR = 3
DEFAULT_CATEGORY_NAME = "this category"


def price_band(
    display_price: float,
    lower: float = PRICE_BAND_LOWER,
    upper: float = PRICE_BAND_UPPER,
) -> PriceBand:
    return PriceBand(min=display_price * lower, max=display_price * upper)


def _best_seller_key(c: Candidate):
    return (
        -(c.total_sales or 0),
        c.price_diff or 0.0,
        -int(c.product.featured),
        -c.product.created_at.timestamp(),
    )


async def you_might_like(
    repo: ProductRepository,
    product: Product,
    limit: int,
    enforce_band: bool = False,
    lower: float = PRICE_BAND_LOWER,
    upper: float = PRICE_BAND_UPPER,
) -> list[Candidate]:
    """
    Order: units sold desc, distance from the source price asc, featured
    first, newest first.
    """
    if limit <= 0:
        return []
    level1 = product.categories_at(1)
    if not level1:
        logger.debug("Product %s has no level-1 category; no best sellers", product.id)
        return []

    current_price = resolve_display_price(product).display_price
    band = price_band(current_price, lower, upper)
    category_name = level1[0].name or DEFAULT_CATEGORY_NAME

    pool = await repo.find_by_categories(
        category_ids(level1), product.id, limit * BEST_SELLER_FETCH_FACTOR,
        level=1, order=ProductOrder.FEATURED)
    if not pool:
        return []
    sales = await repo.get_delivered_sales([p.id for p in pool])

    candidates: list[Candidate] = []
    for p in pool:
        total = sales.get(p.id, 0)
        if total <= 0:
            continue
        price = resolve_display_price(p).display_price
        in_band = band.min <= price <= band.max
        if enforce_band and not in_band:
            continue
        candidates.append(Candidate(
            product=p,
            source=CandidateSource.YOU_MIGHT_LIKE,
            score=float(total),
            reason=f"Best seller in {category_name} - sold {total}",
            total_sales=total,
            price_diff=abs(price - current_price),
            price_band=band,
            in_price_band=in_band,
            category_level1=category_name,
        ))

    logger.debug(
        "Best sellers for %s: %d of %d candidates sold", product.id,
        len(candidates), len(pool))
    return rank(candidates, key=_best_seller_key, limit=limit)
