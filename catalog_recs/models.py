"""
Catalog Recommendation Service — Core Pydantic Models
"""
from __future__ import annotations
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# ============================================================
# Enums
# ============================================================

class ProductStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    INACTIVE = "inactive"

class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPING = "shipping"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"

class SkillLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"

class Flexibility(str, Enum):
    FLEXIBLE = "flexible"
    MEDIUM = "medium"
    STIFF = "stiff"
    EXTRA_STIFF = "extra_stiff"

class Balance(str, Enum):
    HEAD_HEAVY = "head_heavy"
    EVEN_BALANCE = "even_balance"
    HEAD_LIGHT = "head_light"

class WeightClass(str, Enum):
    W3U = "3U"
    W4U = "4U"
    W5U = "5U"

class PlayStyle(str, Enum):
    ATTACK = "attack"
    DEFENSE = "defense"
    ALLROUND = "allround"
    CONTROL = "control"
    UNKNOWN = "unknown"

class CandidateSource(str, Enum):
    BRAND = "brand"
    SKILL = "skill"
    SPECS = "specs"
    CATEGORY = "category"
    RELATED = "related"
    YOU_MIGHT_LIKE = "you_might_like"

class RecommendationMode(str, Enum):
    V1 = "v1"
    V2 = "v2"

# ============================================================
# Catalog Models (read-only view)
# ============================================================

class Category(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    name: str
    level: int = 1

class ProductSpecification(BaseModel):
    """Free-text (name, value, category) row attached to a product."""
    name: str = ""
    value: Optional[str] = None
    category: Optional[str] = None

class ProductVariant(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    price: Optional[float] = None
    compare_at_price: Optional[float] = None
    is_default: bool = False
    stock_quantity: int = 0

class Review(BaseModel):
    rating: int

class Product(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    name: str
    slug: Optional[str] = None
    thumbnail: Optional[str] = None
    price: Optional[float] = None
    compare_at_price: Optional[float] = None
    status: ProductStatus = ProductStatus.ACTIVE
    in_stock: bool = True
    stock_quantity: int = 0
    featured: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    categories: list[Category] = Field(default_factory=list)
    specifications: list[ProductSpecification] = Field(default_factory=list)
    variants: list[ProductVariant] = Field(default_factory=list)
    reviews: list[Review] = Field(default_factory=list)

    @property
    def is_available(self) -> bool:
        return self.status == ProductStatus.ACTIVE and self.in_stock

    def categories_at(self, level: int) -> list[Category]:
        return [c for c in self.categories if c.level == level]

class Order(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    status: OrderStatus = OrderStatus.PENDING

class OrderItem(BaseModel):
    order_id: UUID
    product_id: UUID
    quantity: int = 0

# ============================================================
# Derived Values
# ============================================================

class ApiModel(BaseModel):
    """camelCase JSON keys on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class PricingInfo(BaseModel):
    display_price: float = 0.0
    compare_at_price: Optional[float] = None
    discount_percentage: float = 0.0

class Ratings(BaseModel):
    average: float = 0.0
    count: int = 0

class KeySpecs(BaseModel):
    """Technical specs; None means the product carries no such row."""
    flexibility: Optional[Flexibility] = None
    balance: Optional[Balance] = None
    weight: Optional[WeightClass] = None

class AttributeBundle(ApiModel):
    brand: str
    skill_level: SkillLevel
    flexibility: Flexibility
    balance: Balance
    weight_class: WeightClass
    play_style: PlayStyle
    key_specs: KeySpecs = Field(default_factory=KeySpecs)
    # attribute names backed by an actual specification row
    specified: list[str] = Field(default_factory=list)

    def is_specified(self, attribute: str) -> bool:
        return attribute in self.specified

# ============================================================
# API Response Models
# ============================================================

class PriceBand(ApiModel):
    min: float
    max: float

class RecommendedProduct(ApiModel):
    id: UUID
    name: str
    slug: Optional[str] = None
    thumbnail: Optional[str] = None
    price: float
    compare_at_price: Optional[float] = None
    discount_percentage: float = 0.0
    ratings: Ratings = Field(default_factory=Ratings)
    featured: bool = False
    in_stock: bool = True
    created_at: datetime
    source: CandidateSource
    reason: str = ""
    score: float = 0.0
    matched_spec: Optional[str] = None

    # v2 related
    price_diff: Optional[float] = None

    # v2 you-might-like
    total_sales: Optional[int] = None
    price_band: Optional[PriceBand] = None
    in_price_band: Optional[bool] = None
    category_level1: Optional[str] = None

class CurrentProductInfo(ApiModel):
    brand: str
    skill_level: SkillLevel
    specs: KeySpecs
    play_style: Optional[PlayStyle] = None
    specified: list[str] = Field(default_factory=list)

class SourceCounts(ApiModel):
    brand: int = 0
    skill: int = 0
    specs: int = 0
    category: int = 0

class UnifiedMeta(ApiModel):
    algorithm: str = "smart_recommendations"
    version: str = "1.0"
    current_product: CurrentProductInfo
    sources: SourceCounts

class UnifiedRecommendations(ApiModel):
    products: list[RecommendedProduct]
    meta: UnifiedMeta

class ListCounts(ApiModel):
    related: int = 0
    you_might_like: int = 0
    total: int = 0

class PricingMeta(ApiModel):
    current_price: float
    price_range: PriceBand

class TwoListMeta(ApiModel):
    algorithm: str = "two_list_recommendations"
    version: str = "2.0"
    current_product: CurrentProductInfo
    counts: ListCounts
    pricing: PricingMeta

class TwoListRecommendations(ApiModel):
    related_products: list[RecommendedProduct]
    you_might_like: list[RecommendedProduct]
    meta: TwoListMeta

class GeneratorOutput(ApiModel):
    count: int
    products: list[RecommendedProduct]

class RecommendationDebug(ApiModel):
    product_id: UUID
    name: str
    price: Optional[float] = None
    compare_at_price: Optional[float] = None
    categories: list[dict[str, Any]] = Field(default_factory=list)
    specifications: list[ProductSpecification] = Field(default_factory=list)
    variants: list[ProductVariant] = Field(default_factory=list)
    extracted: AttributeBundle
    generators: dict[str, GeneratorOutput] = Field(default_factory=dict)

class CatalogProductSummary(ApiModel):
    id: UUID
    name: str
    price: Optional[float] = None
    in_stock: bool
    categories: list[str] = Field(default_factory=list)  # "Vợt Yonex (L2)"
    specifications: dict[str, Optional[str]] = Field(default_factory=dict)
    variant_count: int = 0
    variant_prices: list[Optional[float]] = Field(default_factory=list)

class CatalogDebug(ApiModel):
    """Catalog-wide view of the data the extractors work from."""
    total_products: int
    products_by_category: dict[str, int] = Field(default_factory=dict)
    specification_types: dict[str, list[Optional[str]]] = Field(default_factory=dict)
    skill_levels: dict[str, int] = Field(default_factory=dict)
    flexibility_types: dict[str, int] = Field(default_factory=dict)
    balance_types: dict[str, int] = Field(default_factory=dict)
    products: list[CatalogProductSummary] = Field(default_factory=list)

class HealthResponse(BaseModel):
    status: str
    components: dict[str, dict]
    version: str
    uptime_seconds: int
