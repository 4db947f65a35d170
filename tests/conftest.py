"""Shared fixtures: a small badminton catalog in an InMemoryRepository."""

from datetime import datetime, timedelta, timezone

import pytest

from catalog_recs.config import Settings
from catalog_recs.models import (
    Category, Order, OrderItem, OrderStatus, Product, ProductSpecification,
    ProductStatus, ProductVariant, Review,
)
from catalog_recs.repository import InMemoryRepository

BASE_TIME = datetime(2025, 1, 1, tzinfo=timezone.utc)

RACKETS = Category(name="Vợt cầu lông", level=1)
SHOES = Category(name="Giày cầu lông", level=1)
ACCESSORIES = Category(name="Phụ kiện", level=1)
YONEX_RACKETS = Category(name="Vợt Yonex", level=2)
VICTOR_RACKETS = Category(name="Vợt Victor", level=2)
MIZUNO_SHOES = Category(name="Giày Mizuno", level=2)


def build_product(
    name,
    categories=(),
    specs=None,
    price=1_000_000,
    compare_at_price=None,
    day=0,
    featured=False,
    variants=(),
    reviews=(),
    status=ProductStatus.ACTIVE,
    in_stock=True,
):
    """Product with `specs` given as {spec name: value}."""
    return Product(
        name=name,
        slug=name.lower().replace(" ", "-"),
        price=price,
        compare_at_price=compare_at_price,
        status=status,
        in_stock=in_stock,
        featured=featured,
        created_at=BASE_TIME + timedelta(days=day),
        categories=list(categories),
        specifications=[
            ProductSpecification(name=k, value=v) for k, v in (specs or {}).items()
        ],
        variants=list(variants),
        reviews=[Review(rating=r) for r in reviews],
    )


def add_sale(repo, product, quantity, status=OrderStatus.DELIVERED):
    order = Order(status=status)
    repo.add_order(order, [
        OrderItem(order_id=order.id, product_id=product.id, quantity=quantity)
    ])
    return order


@pytest.fixture
def make_product():
    return build_product


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        repository_backend="memory",
        log_format="text",
        query_concurrency=2,
    )


@pytest.fixture
def catalog():
    """
    source  Yonex racket: advanced, stiff, head heavy, 4U, attack
    same    Yonex racket with identical specs (sold 5)
    entry   Yonex racket: intermediate, flexible (only a pending order)
    victor  Victor racket, advanced, priced outside the band (sold 2)
    shoe    Mizuno shoe, advanced skill row only
    retired inactive Yonex racket
    """
    repo = InMemoryRepository()
    racket_specs = {
        "Trình độ chơi": "Khá tốt",
        "Độ cứng đũa": "Cứng",
        "Điểm cân bằng": "Nặng đầu",
        "Trọng lượng": "4U (83g)",
        "Phong cách chơi": "Tấn công",
    }
    products = {
        "source": build_product(
            "Yonex Astrox 88D", [RACKETS, YONEX_RACKETS], racket_specs,
            price=4_000_000, day=1, reviews=[5, 4]),
        "same": build_product(
            "Yonex Astrox 88S", [RACKETS, YONEX_RACKETS], racket_specs,
            price=3_900_000, day=5),
        "entry": build_product(
            "Yonex Nanoflare 001", [RACKETS, YONEX_RACKETS],
            {"Trình độ chơi": "Trung bình", "Độ cứng đũa": "Dẻo"},
            price=4_000_000, day=4),
        "victor": build_product(
            "Victor Thruster K", [RACKETS, VICTOR_RACKETS],
            {"Trình Độ Chơi": "Khá tốt"},
            price=6_000_000, day=3),
        "shoe": build_product(
            "Mizuno Wave Claw", [SHOES, MIZUNO_SHOES],
            {"Trình độ chơi": "Khá tốt"},
            price=2_000_000, day=2),
        "retired": build_product(
            "Yonex Arcsaber 11", [RACKETS, YONEX_RACKETS], racket_specs,
            price=4_000_000, day=9, status=ProductStatus.INACTIVE),
    }
    for p in products.values():
        repo.add_product(p)

    add_sale(repo, products["same"], 3)
    add_sale(repo, products["same"], 2)
    add_sale(repo, products["victor"], 2)
    add_sale(repo, products["entry"], 10, status=OrderStatus.PENDING)
    add_sale(repo, products["retired"], 50)

    return repo, products
