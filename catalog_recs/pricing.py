"""
Catalog Recommendation Service — Price Resolution

Display price comes from the product itself, or from one of its variants
when it has any:
  1. the first variant flagged is_default, else the first variant;
  2. overridden by the first variant with stock_quantity > 0.
"""
from __future__ import annotations
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from catalog_recs.models import PricingInfo, Product, ProductVariant, Ratings


def _to_price(value) -> Optional[float]:
    """Coerce a stored price; zero, blanks and junk become None."""
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    return price if price else None


def round_half_up(value: float, places: int = 1) -> float:
    """Round with halves going up (4.25 -> 4.3), unlike the builtin round()."""
    exponent = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP))


def select_variant(variants: list[ProductVariant]) -> Optional[ProductVariant]:
    if not variants:
        return None
    selected = next((v for v in variants if v.is_default), variants[0])
    stocked = next((v for v in variants if (v.stock_quantity or 0) > 0), None)
    return stocked or selected


def discount_percentage(price: float, compare_at_price: Optional[float]) -> float:
    if not compare_at_price or compare_at_price <= price:
        return 0
    return round_half_up((compare_at_price - price) / compare_at_price * 100)


def resolve_display_price(product: Product) -> PricingInfo:
    display_price = _to_price(product.price) or 0.0
    compare_at_price = _to_price(product.compare_at_price)

    variant = select_variant(product.variants)
    if variant is not None:
        display_price = _to_price(variant.price) or display_price
        compare_at_price = _to_price(variant.compare_at_price) or compare_at_price

    return PricingInfo(
        display_price=display_price,
        compare_at_price=compare_at_price,
        discount_percentage=discount_percentage(display_price, compare_at_price),
    )


def calculate_ratings(product: Product) -> Ratings:
    if not product.reviews:
        return Ratings()
    total = sum(r.rating for r in product.reviews)
    return Ratings(
        average=round_half_up(total / len(product.reviews)),
        count=len(product.reviews),
    )
