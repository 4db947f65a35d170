"""
Catalog Recommendation Service — Attribute Extraction

Turns a product's categories and free-text specification rows into the
normalized attribute bundle the generators and scorers compare on:
brand, skill level, flexibility, balance, weight class and play style.

Specification names are not a controlled vocabulary. Every lookup goes
through SPEC_FIELDS, which lists the exact names (compared case-insensitively
after normalization) and the name fragments that identify each field.
"""
from __future__ import annotations
import logging
import re
import unicodedata
from dataclasses import dataclass
from typing import Optional

from catalog_recs.models import (
    AttributeBundle, Balance, Flexibility, KeySpecs, PlayStyle, Product,
    ProductSpecification, SkillLevel, WeightClass,
)

logger = logging.getLogger(__name__)

UNKNOWN_BRAND = "Unknown"

# ============================================================
# Brand Detection
# ============================================================

BRAND_PATTERNS = [
    (r'yonex', 'Yonex'),
    (r'victor', 'Victor'),
    (r'li[\-\s]?ning|lining', 'Li-Ning'),
    (r'mizuno', 'Mizuno'),
    (r'kawasaki', 'Kawasaki'),
    (r'kumpoo', 'Kumpoo'),
    (r'apacs', 'Apacs'),
    (r'fleet', 'Fleet'),
    (r'forza', 'Forza'),
]


def detect_brand(text: str) -> Optional[str]:
    for pat, brand in BRAND_PATTERNS:
        if re.search(pat, text, re.IGNORECASE):
            return brand
    return None


def extract_brand(product: Product) -> str:
    """Level-2 category name, else a brand token in the product name."""
    level2 = product.categories_at(2)
    if level2 and level2[0].name.strip():
        return level2[0].name
    return detect_brand(product.name or '') or UNKNOWN_BRAND

# ============================================================
# Specification Field Dictionary
# ============================================================

@dataclass(frozen=True)
class SpecField:
    canonical: str
    names: tuple[str, ...]
    fragments: tuple[str, ...] = ()
    match_category: bool = False

    def matches(self, spec: ProductSpecification) -> bool:
        name = fold_text(normalize_field_name(spec.name or ''))
        if name in self._folded_names:
            return True
        if self.match_category and spec.category:
            if fold_text(normalize_field_name(spec.category)) in self._folded_names:
                return True
        return any(frag in name for frag in self._folded_fragments)

    @property
    def _folded_names(self) -> set[str]:
        return {fold_text(n) for n in self.names}

    @property
    def _folded_fragments(self) -> list[str]:
        return [fold_text(f) for f in self.fragments]


SKILL_FIELD = SpecField(
    canonical='skill_level',
    names=('Trình độ chơi', 'Trình Độ Chơi', 'Skill level'),
    match_category=True,
)
FLEXIBILITY_FIELD = SpecField(
    canonical='flexibility',
    names=('Độ cứng đũa', 'Độ Cứng Đũa', 'Shaft flexibility'),
    fragments=('độ cứng', 'cứng đũa', 'flexibility', 'stiffness'),
)
BALANCE_FIELD = SpecField(
    canonical='balance',
    names=('Điểm cân bằng', 'Điểm Cân Bằng', 'Balance point'),
    fragments=('điểm cân bằng', 'cân bằng', 'balance'),
)
WEIGHT_FIELD = SpecField(
    canonical='weight_class',
    names=('Trọng lượng', 'Trọng Lượng', 'Weight'),
    fragments=('trọng lượng', 'weight'),
)
PLAY_STYLE_FIELD = SpecField(
    canonical='play_style',
    names=('Phong cách chơi', 'Phong Cách Chơi', 'Play style'),
    fragments=('phong cách', 'play style'),
)

SPEC_FIELDS: dict[str, SpecField] = {
    f.canonical: f for f in (
        SKILL_FIELD, FLEXIBILITY_FIELD, BALANCE_FIELD, WEIGHT_FIELD, PLAY_STYLE_FIELD,
    )
}

# Ordered: first matching pattern wins.
SKILL_PATTERNS = [
    (r'mới chơi|beginner|khởi nghiệp', SkillLevel.BEGINNER),
    (r'trung bình|intermediate', SkillLevel.INTERMEDIATE),
    (r'khá tốt|advanced|giỏi', SkillLevel.ADVANCED),
]
FLEXIBILITY_PATTERNS = [
    (r'siêu cứng|extra stiff|very hard', Flexibility.EXTRA_STIFF),
    (r'dẻo|flexible|mềm|soft', Flexibility.FLEXIBLE),
    (r'trung bình|medium|moderate', Flexibility.MEDIUM),
    (r'cứng|stiff|hard', Flexibility.STIFF),
]
BALANCE_PATTERNS = [
    (r'head.*heavy|nặng.*đầu', Balance.HEAD_HEAVY),
    (r'even.*balance|cân.*bằng', Balance.EVEN_BALANCE),
    (r'head.*light|nhẹ.*đầu', Balance.HEAD_LIGHT),
]
WEIGHT_PATTERNS = [
    (r'3u', WeightClass.W3U),
    (r'4u', WeightClass.W4U),
    (r'5u', WeightClass.W5U),
]
PLAY_STYLE_PATTERNS = [
    (r'tấn công|attack|offensive', PlayStyle.ATTACK),
    (r'phòng thủ|defense|defensive', PlayStyle.DEFENSE),
    (r'all.*round|toàn diện|balanced', PlayStyle.ALLROUND),
    (r'control|kiểm soát', PlayStyle.CONTROL),
]

DEFAULT_SKILL_LEVEL = SkillLevel.INTERMEDIATE
DEFAULT_FLEXIBILITY = Flexibility.MEDIUM
DEFAULT_BALANCE = Balance.EVEN_BALANCE
DEFAULT_WEIGHT_CLASS = WeightClass.W4U


def normalize_field_name(name: str) -> str:
    """Trim whitespace and strip trailing colons: ' Trọng lượng : ' -> 'Trọng lượng'."""
    if not name:
        return ''
    return re.sub(r'[:\s]+$', '', unicodedata.normalize('NFC', name).strip())


def fold_text(text: str) -> str:
    return unicodedata.normalize('NFC', text).casefold()


def find_spec(product: Product, spec_field: SpecField) -> Optional[ProductSpecification]:
    for spec in product.specifications:
        if spec_field.matches(spec):
            return spec
    return None


def classify(value: Optional[str], patterns: list, default):
    """Map free text onto an enum member via ordered regex patterns."""
    text = fold_text(str(value)) if value is not None else ''
    for pat, member in patterns:
        if re.search(pat, text, re.IGNORECASE):
            return member
    return default

# ============================================================
# Extractors
# ============================================================

def extract_skill_level(product: Product) -> SkillLevel:
    spec = find_spec(product, SKILL_FIELD)
    if spec is None:
        return DEFAULT_SKILL_LEVEL
    return classify(spec.value, SKILL_PATTERNS, DEFAULT_SKILL_LEVEL)


def extract_key_specs(product: Product) -> KeySpecs:
    specs = KeySpecs()
    flex = find_spec(product, FLEXIBILITY_FIELD)
    if flex is not None:
        specs.flexibility = classify(flex.value, FLEXIBILITY_PATTERNS, DEFAULT_FLEXIBILITY)
    balance = find_spec(product, BALANCE_FIELD)
    if balance is not None:
        specs.balance = classify(balance.value, BALANCE_PATTERNS, DEFAULT_BALANCE)
    weight = find_spec(product, WEIGHT_FIELD)
    if weight is not None:
        specs.weight = classify(weight.value, WEIGHT_PATTERNS, DEFAULT_WEIGHT_CLASS)
    return specs


def extract_play_style(product: Product) -> PlayStyle:
    spec = find_spec(product, PLAY_STYLE_FIELD)
    if spec is None:
        return PlayStyle.UNKNOWN
    return classify(spec.value, PLAY_STYLE_PATTERNS, PlayStyle.UNKNOWN)


def extract_attributes(product: Product) -> AttributeBundle:
    """Full attribute bundle; defaults fill in anything not specified."""
    key_specs = extract_key_specs(product)
    specified = [
        name for name, spec_field in SPEC_FIELDS.items()
        if find_spec(product, spec_field) is not None
    ]
    bundle = AttributeBundle(
        brand=extract_brand(product),
        skill_level=extract_skill_level(product),
        flexibility=key_specs.flexibility or DEFAULT_FLEXIBILITY,
        balance=key_specs.balance or DEFAULT_BALANCE,
        weight_class=key_specs.weight or DEFAULT_WEIGHT_CLASS,
        play_style=extract_play_style(product),
        key_specs=key_specs,
        specified=specified,
    )
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("Extracted attributes for %s: %s", product.id, bundle.model_dump())
    return bundle
