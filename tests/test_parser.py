"""
Tests for the OCR text parser.

Usage:
    python -m pytest tests/test_parser.py
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from implantsnap.ocr import ParsedData, TextParser, extract_tooth, normalize_diameter, normalize_length
from implantsnap.ocr.parser import (
    Dimensions,
    dimension_strategy,
    find_mm_values,
    labeled_strategy,
    make_positional_strategy,
    positional_strategy,
)


VALID_TEETH = [f"{q}{p}" for q in "1234" for p in "12345678"]


# ── Tooth number ─────────────────────────────────────────────────────────────

def test_all_fdi_codes_accepted():
    assert len(VALID_TEETH) == 32
    for code in VALID_TEETH:
        assert extract_tooth(f"Implant {code} Selected") == code


def test_non_fdi_codes_rejected():
    valid = set(VALID_TEETH)
    for n in range(100):
        code = f"{n:02d}"
        if code in valid:
            continue
        assert extract_tooth(f"Implant {code} Selected") is None, code


def test_tooth_inside_longer_digit_run_rejected():
    assert extract_tooth("1234") is None
    assert extract_tooth("id 216") is None
    assert extract_tooth("21a") is None


def test_tooth_next_to_cjk_text():
    assert extract_tooth("牙位21") == "21"


def test_first_tooth_wins():
    assert extract_tooth("36 then 47") == "36"


# ── Normalization ─────────────────────────────────────────────────────────────

def test_diameter_dropped_decimal():
    for n in range(10, 100):
        assert normalize_diameter(str(n)) == f"{n / 10:.1f}"
    assert normalize_diameter("40") == "4.0"
    assert normalize_diameter("45") == "4.5"


def test_length_dropped_decimal():
    for n in range(21, 200):
        assert normalize_length(str(n)) == f"{n / 10:.1f}"
    assert normalize_length("130") == "13.0"
    assert normalize_length("85") == "8.5"


def test_normalize_appends_decimal():
    assert normalize_diameter("4") == "4.0"
    assert normalize_length("13") == "13.0"
    assert normalize_length("20") == "20.0"
    assert normalize_length("13.") == "13.0"


def test_normalize_keeps_decimals():
    assert normalize_diameter("3.5") == "3.5"
    assert normalize_length("11.5") == "11.5"


def test_lost_leading_digit_not_repaired():
    # "13.0" misread as "3.0" stays as-is and is left to validation
    assert normalize_length("3.0") == "3.0"


# ── Strategies ────────────────────────────────────────────────────────────────

def test_labeled_strategy():
    dims = labeled_strategy("长度=13.0mm 直径=4.0mm", Dimensions())
    assert dims == Dimensions(length="13.0", diameter="4.0")


def test_labeled_strategy_garbled_labels():
    dims = labeled_strategy("民 度 = 130 mm\n直 人 笃 = 40 mm", Dimensions())
    assert dims == Dimensions(length="13.0", diameter="4.0")


def test_labeled_strategy_skips_known_fields():
    dims = labeled_strategy("长度=13.0mm 直径=4.0mm", Dimensions(length="10.0"))
    assert dims == Dimensions(length=None, diameter="4.0")


def test_find_mm_values_restores_misread_four():
    assert find_mm_values("a =<0 mm b ={5 mm c = (0mm") == ["40", "45", "40"]


def test_positional_two_values():
    dims = positional_strategy("xx = 130 mm\nyy = 40 mm", Dimensions())
    assert dims == Dimensions(length="13.0", diameter="4.0")


def test_positional_single_value_classified_by_size():
    assert positional_strategy("= 115 mm", Dimensions()) == Dimensions(length="11.5")
    assert positional_strategy("= 35 mm", Dimensions()) == Dimensions(diameter="3.5")
    # Diameter already known, so a plausible diameter goes nowhere
    assert positional_strategy("= 35 mm", Dimensions(diameter="4.0")) == Dimensions()


def test_positional_custom_order():
    strategy = make_positional_strategy(("diameter", "length"))
    assert strategy("= 40 mm = 130 mm", Dimensions()) == Dimensions(length="13.0", diameter="4.0")


def test_positional_order_must_name_both_fields():
    with pytest.raises(ValueError):
        make_positional_strategy(("length", "length"))


def test_dimension_strategy():
    assert dimension_strategy("Ø4.0×13.0", Dimensions()) == Dimensions(length="13.0", diameter="4.0")
    assert dimension_strategy("3.5 x 10", Dimensions()) == Dimensions(length="10.0", diameter="3.5")
    assert dimension_strategy("no dims", Dimensions()) == Dimensions()


# ── Full parse ────────────────────────────────────────────────────────────────

def test_parse_labeled_text():
    parsed, errors = TextParser().parse("Implant 21 Selected", "长度=13.0mm 直径=4.0mm")
    assert parsed == ParsedData(tooth="21", diameter="4.0", length="13.0")
    assert errors == []


def test_parse_positional_fallback():
    parsed, errors = TextParser().parse("37", "xx = 130 mm\nyy = 40 mm")
    assert parsed == ParsedData(tooth="37", diameter="4.0", length="13.0")
    assert errors == []


def test_parse_fields_resolved_independently():
    # Length from the label, diameter from the second "= N mm" value
    parsed, errors = TextParser().parse("16", "长度 = 11.5 mm\nØ = 45 mm")
    assert parsed.length == "11.5"
    assert parsed.diameter == "4.5"
    assert errors == []


def test_parse_legacy_fallback():
    parsed, errors = TextParser().parse("13", "TSIII 4.5×10.0")
    assert parsed == ParsedData(tooth="13", diameter="4.5", length="10.0")
    assert errors == []


def test_parse_nothing_recognized():
    parsed, errors = TextParser().parse("", "")
    assert parsed == ParsedData()
    assert len(errors) == 3


def test_parse_reports_only_missing_fields():
    parsed, errors = TextParser().parse("noise", "长度=13.0mm 直径=4.0mm")
    assert parsed == ParsedData(tooth=None, diameter="4.0", length="13.0")
    assert errors == ["tooth: unable to recognize tooth number"]

    parsed, errors = TextParser().parse("46", "")
    assert parsed == ParsedData(tooth="46")
    assert len(errors) == 2
    assert not any(e.startswith("tooth") for e in errors)


def test_lone_labeled_value_also_feeds_positional_fallback():
    # A single "= N mm" is reused for the other field; validation rejects the pair later
    parsed, _ = TextParser().parse("21", "长度=8.5mm")
    assert parsed.length == "8.5"
    assert parsed.diameter == "8.5"


def test_parse_ideographic_and_no_break_spaces():
    parsed, errors = TextParser().parse("21", "长度\u3000=\u300013.0mm 直径\xa0=\xa04.0mm")
    assert parsed == ParsedData(tooth="21", diameter="4.0", length="13.0")
    assert errors == []

    dims = positional_strategy("xx\u3000=\u3000130\xa0mm\nyy = 40 mm", Dimensions())
    assert dims == Dimensions(length="13.0", diameter="4.0")


def test_fullwidth_digits_not_read_as_values():
    assert find_mm_values("长度 = １３.０ mm") == []
