"""
Bag-format codec tests
"""
from datetime import datetime

import pytest

from backoffice.exceptions import ValidationError
from backoffice.services.bag_format import (
    calculate_nea_end_time,
    format_bag_display,
    parse_bag_format,
    validate_and_parse_bag_format,
    validate_daily_food_value,
)


def counts(bag_format):
    parsed = parse_bag_format(bag_format)
    return parsed.non_veg_count, parsed.veg_count, parsed.total_count


@pytest.mark.parametrize("bag_format,expected", [
    ("", (0, 0, 0)),
    ("abc", (0, 0, 0)),
    ("5", (5, 0, 5)),
    ("5,5+7", (10, 7, 17)),
    ("3+5", (3, 5, 8)),
    ("12", (12, 0, 12)),
    ("+4", (0, 4, 4)),
])
def test_parse_boundaries(bag_format, expected):
    assert counts(bag_format) == expected


def test_parse_ignores_whitespace():
    assert counts(" 5 , 5 + 7 ") == (10, 7, 17)


def test_parse_ignores_segments_after_second_plus():
    assert counts("2+3+4") == (2, 3, 5)


def test_parse_unreadable_tokens_count_as_zero():
    assert counts("5,x+y") == (5, 0, 5)
    assert counts("-3+2") == (0, 2, 2)


def test_parse_non_string_never_raises():
    assert counts(None) == (0, 0, 0)
    assert counts(17) == (0, 0, 0)


@pytest.mark.parametrize("non_veg,veg", [(0, 0), (12, 0), (10, 7), (0, 3)])
def test_display_reparses_to_same_counts(non_veg, veg):
    assert counts(format_bag_display(non_veg, veg)) == (non_veg, veg, non_veg + veg)


def test_display_format():
    assert format_bag_display(12, 0) == "12"
    assert format_bag_display(10, 7) == "10+7"


def test_nea_end_time_default_window():
    start = datetime(2024, 1, 8, 10, 30)
    assert calculate_nea_end_time(start) == datetime(2024, 1, 8, 14, 30)
    assert calculate_nea_end_time(start, 2) == datetime(2024, 1, 8, 12, 30)


def test_validation_gate():
    ok = validate_and_parse_bag_format("5,5+7")
    assert ok.is_valid
    assert ok.parsed.total_count == 17

    missing = validate_and_parse_bag_format("")
    assert not missing.is_valid
    assert missing.error == "Bag format is required and must be a string"

    not_a_string = validate_and_parse_bag_format(5)
    assert not not_a_string.is_valid

    empty = validate_and_parse_bag_format("0+0")
    assert not empty.is_valid
    assert empty.error == "Bag format must contain at least one item"


def test_daily_food_value_allows_blank():
    assert validate_daily_food_value("") == ""
    assert validate_daily_food_value("   ") == ""
    assert validate_daily_food_value(None) == ""
    assert validate_daily_food_value(" 5+2 ") == "5+2"


def test_daily_food_value_rejects_garbage():
    with pytest.raises(ValidationError, match="Invalid lunch bag format"):
        validate_daily_food_value("abc", label="lunch bag format")
