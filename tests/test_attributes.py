"""Tests for attribute extraction from categories and specification rows."""

import logging

import pytest

from catalog_recs.attributes import (
    FLEXIBILITY_FIELD, SPEC_FIELDS, UNKNOWN_BRAND, extract_attributes,
    extract_brand, extract_key_specs, extract_play_style, extract_skill_level,
    find_spec, normalize_field_name,
)
from catalog_recs.models import (
    AttributeBundle, Balance, Flexibility, PlayStyle, ProductSpecification, SkillLevel,
    WeightClass,
)

from conftest import RACKETS, YONEX_RACKETS


def test_normalize_field_name_strips_whitespace_and_trailing_colons():
    assert normalize_field_name("  Trọng lượng : ") == "Trọng lượng"
    assert normalize_field_name("Độ cứng đũa:") == "Độ cứng đũa"
    assert normalize_field_name("") == ""


def test_brand_comes_from_level2_category(make_product):
    product = make_product("Astrox 88D", [RACKETS, YONEX_RACKETS])
    assert extract_brand(product) == "Vợt Yonex"


def test_brand_falls_back_to_name_token(make_product):
    product = make_product("Lining Axforce 80", [RACKETS])
    assert extract_brand(product) == "Li-Ning"


def test_brand_unknown_sentinel(make_product):
    product = make_product("Quấn cán", [RACKETS])
    assert extract_brand(product) == UNKNOWN_BRAND


@pytest.mark.parametrize("value, expected", [
    ("Mới chơi", SkillLevel.BEGINNER),
    ("Trung bình", SkillLevel.INTERMEDIATE),
    ("Khá tốt", SkillLevel.ADVANCED),
    ("Advanced players", SkillLevel.ADVANCED),
    ("???", SkillLevel.INTERMEDIATE),
    (None, SkillLevel.INTERMEDIATE),
])
def test_skill_level_always_one_of_three(make_product, value, expected):
    product = make_product("Racket", specs={"Trình độ chơi": value})
    assert extract_skill_level(product) == expected


def test_skill_level_default_without_row(make_product):
    assert extract_skill_level(make_product("Racket")) == SkillLevel.INTERMEDIATE


def test_skill_level_matches_on_spec_category(make_product):
    product = make_product("Racket")
    product.specifications.append(ProductSpecification(
        name="Cấp độ", value="Mới chơi", category="Trình Độ Chơi"))
    assert extract_skill_level(product) == SkillLevel.BEGINNER


def test_skill_level_field_name_is_case_insensitive(make_product):
    product = make_product("Racket", specs={"TRÌNH ĐỘ CHƠI:": "Khá tốt"})
    assert extract_skill_level(product) == SkillLevel.ADVANCED


def test_key_specs_only_present_when_row_exists(make_product):
    product = make_product("Racket", specs={"Độ cứng đũa": "Cứng"})
    specs = extract_key_specs(product)
    assert specs.flexibility == Flexibility.STIFF
    assert specs.balance is None
    assert specs.weight is None


def test_key_specs_unrecognised_value_uses_default(make_product):
    product = make_product("Racket", specs={
        "Độ cứng đũa": "n/a",
        "Điểm cân bằng": "?",
        "Trọng lượng": "83g",
    })
    specs = extract_key_specs(product)
    assert specs.flexibility == Flexibility.MEDIUM
    assert specs.balance == Balance.EVEN_BALANCE
    assert specs.weight == WeightClass.W4U


def test_extra_stiff_is_reachable(make_product):
    product = make_product("Racket", specs={"Độ Cứng Đũa": "Siêu cứng"})
    assert extract_key_specs(product).flexibility == Flexibility.EXTRA_STIFF


def test_key_specs_match_name_fragments(make_product):
    product = make_product("Racket", specs={
        "Shaft stiffness": "Flexible",
        "Balance point (mm)": "Head light",
        "Weight class": "3U",
    })
    specs = extract_key_specs(product)
    assert specs.flexibility == Flexibility.FLEXIBLE
    assert specs.balance == Balance.HEAD_LIGHT
    assert specs.weight == WeightClass.W3U


def test_first_matching_row_wins(make_product):
    product = make_product("Racket", specs={
        "Độ cứng đũa": "Dẻo",
        "Độ cứng đũa (chi tiết)": "Cứng",
    })
    assert find_spec(product, FLEXIBILITY_FIELD).value == "Dẻo"


@pytest.mark.parametrize("value, expected", [
    ("Tấn công", PlayStyle.ATTACK),
    ("Phòng thủ", PlayStyle.DEFENSE),
    ("All-round", PlayStyle.ALLROUND),
    ("Kiểm soát", PlayStyle.CONTROL),
    ("khác", PlayStyle.UNKNOWN),
])
def test_play_style(make_product, value, expected):
    product = make_product("Racket", specs={"Phong cách chơi": value})
    assert extract_play_style(product) == expected


def test_extract_attributes_reports_specified_fields(make_product):
    product = make_product("Racket", [YONEX_RACKETS], {
        "Trình độ chơi": "Khá tốt",
        "Trọng lượng": "4U",
    })
    attrs = extract_attributes(product)

    assert attrs.brand == "Vợt Yonex"
    assert attrs.skill_level == SkillLevel.ADVANCED
    assert attrs.flexibility == Flexibility.MEDIUM
    assert attrs.balance == Balance.EVEN_BALANCE
    assert attrs.weight_class == WeightClass.W4U
    assert attrs.play_style == PlayStyle.UNKNOWN
    assert attrs.specified == ["skill_level", "weight_class"]
    assert attrs.is_specified("weight_class")
    assert not attrs.is_specified("flexibility")


def test_spec_field_dictionary_covers_all_attributes():
    assert set(SPEC_FIELDS) == {
        "skill_level", "flexibility", "balance", "weight_class", "play_style",
    }


def test_bundle_only_dumped_when_debug_logging(make_product, monkeypatch, caplog):
    dumps = []
    monkeypatch.setattr(AttributeBundle, "model_dump", lambda self, **kw: dumps.append(1) or {})
    product = make_product("Astrox 88D", [RACKETS, YONEX_RACKETS])

    caplog.set_level(logging.INFO, logger="catalog_recs.attributes")
    extract_attributes(product)
    assert dumps == []

    caplog.set_level(logging.DEBUG, logger="catalog_recs.attributes")
    extract_attributes(product)
    assert dumps == [1]
    assert "Extracted attributes for" in caplog.text
