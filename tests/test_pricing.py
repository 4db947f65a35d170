"""Tests for display price resolution and rating aggregation."""

from catalog_recs.models import ProductVariant
from catalog_recs.pricing import (
    calculate_ratings, discount_percentage, resolve_display_price, select_variant,
)


def test_no_variants_uses_product_prices(make_product):
    product = make_product("Racket", price=1_000_000, compare_at_price=1_200_000)
    pricing = resolve_display_price(product)

    assert pricing.display_price == 1_000_000
    assert pricing.compare_at_price == 1_200_000
    assert pricing.discount_percentage == 16.7


def test_default_variant_selected(make_product):
    variants = [
        ProductVariant(price=900_000),
        ProductVariant(price=950_000, is_default=True),
    ]
    product = make_product("Racket", variants=variants)
    assert resolve_display_price(product).display_price == 950_000


def test_first_variant_when_none_default(make_product):
    variants = [ProductVariant(price=900_000), ProductVariant(price=950_000)]
    product = make_product("Racket", variants=variants)
    assert resolve_display_price(product).display_price == 900_000


def test_stocked_non_default_variant_wins(make_product):
    variants = [
        ProductVariant(price=950_000, is_default=True, stock_quantity=0),
        ProductVariant(price=990_000, stock_quantity=3),
    ]
    product = make_product("Racket", variants=variants)
    assert resolve_display_price(product).display_price == 990_000


def test_two_defaults_first_in_list_order_wins():
    first = ProductVariant(price=800_000, is_default=True)
    second = ProductVariant(price=850_000, is_default=True)
    assert select_variant([first, second]) is first


def test_variant_without_price_keeps_product_price(make_product):
    variants = [ProductVariant(price=None, is_default=True, compare_at_price=1_500_000)]
    product = make_product("Racket", price=1_000_000, variants=variants)
    pricing = resolve_display_price(product)

    assert pricing.display_price == 1_000_000
    assert pricing.compare_at_price == 1_500_000


def test_variant_compare_price_falls_back_to_product(make_product):
    variants = [ProductVariant(price=800_000, is_default=True)]
    product = make_product(
        "Racket", price=1_000_000, compare_at_price=1_000_000, variants=variants)
    pricing = resolve_display_price(product)

    assert pricing.display_price == 800_000
    assert pricing.compare_at_price == 1_000_000
    assert pricing.discount_percentage == 20.0


def test_discount_zero_unless_compare_strictly_greater():
    assert discount_percentage(100.0, None) == 0
    assert discount_percentage(100.0, 100.0) == 0
    assert discount_percentage(100.0, 90.0) == 0
    assert discount_percentage(75.0, 100.0) == 25.0


def test_ratings(make_product):
    product = make_product("Racket", reviews=[5, 4, 4])
    ratings = calculate_ratings(product)
    assert ratings.average == 4.3
    assert ratings.count == 3


def test_ratings_without_reviews(make_product):
    ratings = calculate_ratings(make_product("Racket"))
    assert ratings.average == 0
    assert ratings.count == 0


def test_halves_round_up(make_product):
    # 17 / 4 = 4.25 and 25 / 2000 * 100 = 1.25; banker's rounding would give 4.2 and 1.2
    assert calculate_ratings(make_product("Racket", reviews=[4, 4, 4, 5])).average == 4.3
    assert discount_percentage(1975, 2000) == 1.3
    assert discount_percentage(1_850_000, 2_000_000) == 7.5
