"""
Unit tests for amount parsing and formatting (core/units.py)
"""

import pytest

from curvequote.core.errors import InvalidInputError
from curvequote.core.units import format_amount, parse_amount


@pytest.mark.parametrize("value, expected", [
    ("1", 10 ** 18),
    ("0.5", 5 * 10 ** 17),
    ("0.000000000000000001", 1),
    ("1000000000", 10 ** 27),
    (2, 2 * 10 ** 18),
    (0.25, 25 * 10 ** 16),
    (" 3.5 ", 35 * 10 ** 17),
    ("0", 0),
])
def test_parse_amount(value, expected):
    assert parse_amount(value, "ethAmount") == expected


@pytest.mark.parametrize("value", ["-1", "abc", "", "NaN", "Infinity", True, None, [1], "0.0000000000000000001"])
def test_parse_amount_rejects(value):
    with pytest.raises(InvalidInputError):
        parse_amount(value, "ethAmount")


def test_parse_amount_error_names_field():
    with pytest.raises(InvalidInputError, match="tokenAmount"):
        parse_amount("ten", "tokenAmount")


@pytest.mark.parametrize("base_units, expected", [
    (0, "0"),
    (10 ** 18, "1"),
    (15 * 10 ** 17, "1.5"),
    (10 ** 12, "0.000001"),
    (1, "0.000000000000000001"),
    (32_258_064_516_129_032_258_064_517, "32258064.516129032258064517"),
])
def test_format_amount(base_units, expected):
    assert format_amount(base_units) == expected
