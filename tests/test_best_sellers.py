"""Tests for the "You Might Like" best-seller list."""

import asyncio

import pytest

from catalog_recs.best_sellers import price_band, you_might_like
from catalog_recs.models import CandidateSource, OrderStatus
from catalog_recs.repository import InMemoryRepository

from conftest import RACKETS, SHOES, add_sale


def test_price_band():
    band = price_band(1_000_000)
    assert band.min == pytest.approx(700_000)
    assert band.max == pytest.approx(1_300_000)

    narrow = price_band(1_000_000, lower=0.9, upper=1.1)
    assert narrow.min == pytest.approx(900_000)
    assert narrow.max == pytest.approx(1_100_000)


def test_best_sellers_from_catalog(catalog):
    repo, p = catalog
    liked = asyncio.run(you_might_like(repo, p["source"], limit=8))

    assert [c.product_id for c in liked] == [p["same"].id, p["victor"].id]
    top = liked[0]
    assert top.total_sales == 5
    assert top.source == CandidateSource.YOU_MIGHT_LIKE
    assert top.reason == "Best seller in Vợt cầu lông - sold 5"
    assert top.category_level1 == "Vợt cầu lông"
    assert top.in_price_band is True
    assert liked[1].in_price_band is False
    assert top.price_band.min == pytest.approx(2_800_000)


def test_unsold_and_undelivered_never_appear(catalog):
    repo, p = catalog
    liked = asyncio.run(you_might_like(repo, p["source"], limit=8))
    ids = {c.product_id for c in liked}

    # "entry" is in band but only has a pending order
    assert p["entry"].id not in ids
    assert p["source"].id not in ids
    assert p["retired"].id not in ids


def test_enforced_band_filters(catalog):
    repo, p = catalog
    liked = asyncio.run(you_might_like(repo, p["source"], limit=8, enforce_band=True))
    assert [c.product_id for c in liked] == [p["same"].id]


def test_no_level1_category_returns_empty(make_product):
    repo = InMemoryRepository()
    source = repo.add_product(make_product("Orphan"))
    assert asyncio.run(you_might_like(repo, source, limit=8)) == []


def test_tie_breaks(make_product):
    repo = InMemoryRepository()
    source = repo.add_product(make_product("Source", [SHOES], price=1_000_000))
    far = repo.add_product(make_product("Far", [SHOES], price=1_200_000, day=1))
    near = repo.add_product(make_product("Near", [SHOES], price=1_020_000, day=2))
    featured = repo.add_product(
        make_product("Featured", [SHOES], price=950_000, day=3, featured=True))
    newest = repo.add_product(make_product("Newest", [SHOES], price=950_000, day=4))
    older = repo.add_product(make_product("Older", [SHOES], price=950_000, day=0))
    top = repo.add_product(make_product("Top", [SHOES], price=2_000_000, day=5))
    for product in (far, near, featured, newest, older):
        add_sale(repo, product, 3)
    add_sale(repo, top, 9)
    add_sale(repo, top, 100, status=OrderStatus.CANCELLED)

    liked = asyncio.run(you_might_like(repo, source, limit=10))

    assert [c.product.name for c in liked] == [
        "Top", "Near", "Featured", "Newest", "Older", "Far",
    ]
    assert liked[0].total_sales == 9


def test_limit_applies_after_sorting(make_product):
    repo = InMemoryRepository()
    source = repo.add_product(make_product("Source", [RACKETS]))
    for i in range(6):
        add_sale(repo, repo.add_product(make_product(f"R{i}", [RACKETS], day=i)), i + 1)

    liked = asyncio.run(you_might_like(repo, source, limit=2))

    assert [c.total_sales for c in liked] == [6, 5]
    assert asyncio.run(you_might_like(repo, source, limit=0)) == []
