import pytest

from finreport.formatting import format_value
from finreport.variance import compute_variance


@pytest.mark.parametrize(
    "value, spec, expected",
    [
        (100000, "currency", "€ 100,000"),
        (-1234.4, "currency", "€ -1,234"),
        (20, "percent", "20.0%"),
        (12345.0, "percent", "12345.0%"),
        (1234.6, "integer", "1,235"),
        (1234.567, "decimal", "1,234.57"),
        (0, "decimal", "0.00"),
        (1234.5, "unknown-type", "1,234.50"),
        (1234.5, None, "1,234.50"),
    ],
)
def test_default_formats(value, spec, expected: str) -> None:
    assert format_value(value, spec) == expected


def test_undefined_value_formats_as_empty_string() -> None:
    assert format_value(None, "currency") == ""
    assert format_value(None, "percent") == ""


def test_item_options_override_type_defaults() -> None:
    assert format_value(1000, {"type": "currency", "decimals": 2}) == "€ 1,000.00"
    assert format_value(1234.5, {"type": "decimal", "thousands": False}) == "1234.50"
    assert format_value(12.3456, {"type": "percent", "decimals": 2}) == "12.35%"


def test_report_rules_supply_defaults() -> None:
    rules = {"currency": {"symbol": "$", "decimals": 1}}

    assert format_value(1000, "currency", rules) == "$ 1,000.0"
    # Row options win over report rules.
    pound = {"type": "currency", "symbol": "£"}
    assert format_value(1000, pound, rules) == "£ 1,000.0"
    # Rules only apply to their own type.
    assert format_value(1000, "decimal", rules) == "1,000.00"


def test_tiny_negative_keeps_its_sign() -> None:
    assert format_value(-0.001, "currency") == "€ -0"


@pytest.mark.parametrize(
    "value, spec, expected",
    [
        (2.5, "currency", "€ 3"),
        (-2.5, "currency", "€ -3"),
        (0.5, "integer", "1"),
        (1.125, {"type": "decimal", "decimals": 2}, "1.13"),
        (-0.25, {"type": "percent", "decimals": 1}, "-0.3%"),
    ],
)
def test_halves_round_away_from_zero(value, spec, expected: str) -> None:
    assert format_value(value, spec) == expected


def test_formatting_does_not_alter_the_number() -> None:
    value = 1234.5678
    format_value(value, "integer")
    assert value == 1234.5678


# ---------------------------------------------------------------------------
# Variance
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "current, prior, amount, percent",
    [
        (120.0, 100.0, 20.0, 20.0),
        (80.0, 100.0, -20.0, -20.0),
        (50.0, 0.0, 50.0, 0.0),
        (-80.0, -100.0, 20.0, 20.0),
        (None, 100.0, -100.0, -100.0),
        (None, None, 0.0, 0.0),
    ],
)
def test_compute_variance(current, prior, amount: float, percent: float) -> None:
    variance = compute_variance(current, prior)
    assert variance.amount == pytest.approx(amount)
    assert variance.percent == pytest.approx(percent)
