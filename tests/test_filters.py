import pandas as pd
import pytest

from finreport.errors import InvalidFilterError
from finreport.filters import (
    apply_filter,
    compile_filter,
    filter_frame,
    validate_filter,
)
from finreport.movements import normalize_movements

ROWS = [
    {"code1": "700", "code2": "701", "account_code": "7010", "movement_amount": 100.0},
    {"code1": "710", "code2": "711", "account_code": "7100", "movement_amount": 50.0},
    {"code1": "600", "code2": "601", "account_code": "6010", "movement_amount": -40.0},
    {"code1": "700", "code2": "702", "account_code": "7020", "movement_amount": 20.0},
]


def _codes(rows) -> list[str]:
    return [r["account_code"] for r in rows]


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------


def test_exact_match() -> None:
    assert _codes(apply_filter(ROWS, {"code1": "700"})) == ["7010", "7020"]


def test_array_values_are_or_combined() -> None:
    matched = apply_filter(ROWS, {"code1": ["700", "710"]})
    assert _codes(matched) == ["7010", "7100", "7020"]


def test_fields_are_and_combined() -> None:
    matched = apply_filter(ROWS, {"code1": "700", "code2": "702"})
    assert _codes(matched) == ["7020"]


def test_range_bounds_are_and_combined() -> None:
    matched = apply_filter(ROWS, {"account_code": {"gte": "7000", "lt": "7100"}})
    assert _codes(matched) == ["7010", "7020"]


@pytest.mark.parametrize(
    "bounds, expected",
    [
        ({"gt": "7010"}, ["7100", "7020"]),
        ({"lte": "7010"}, ["7010", "6010"]),
        ({"gte": "6010", "lte": "6010"}, ["6010"]),
    ],
)
def test_range_operators(bounds, expected) -> None:
    assert _codes(apply_filter(ROWS, {"account_code": bounds})) == expected


def test_range_comparison_is_lexicographic() -> None:
    """Unpadded codes compare as strings: '900' sorts after '1000'."""
    rows = [{"account_code": "900"}, {"account_code": "1000"}]
    matched = apply_filter(rows, {"account_code": {"gte": "1000", "lt": "2000"}})
    assert _codes(matched) == ["1000"]

    matched = apply_filter(rows, {"account_code": {"gte": "5"}})
    assert _codes(matched) == ["900"]


@pytest.mark.parametrize("spec", [None, {}])
def test_empty_filter_matches_everything(spec) -> None:
    assert apply_filter(ROWS, spec) == ROWS


def test_values_are_compared_as_strings() -> None:
    rows = [{"code1": 700}, {"code1": "700"}, {"code1": 710}]
    assert len(apply_filter(rows, {"code1": "700"})) == 2


def test_missing_or_null_field_never_matches() -> None:
    rows = [{"code1": None}, {}, {"code1": float("nan")}]
    assert apply_filter(rows, {"code1": "700"}) == []
    assert apply_filter(rows, {"code1": {"gte": ""}}) == []


def test_integer_codes_with_blank_cells_still_match() -> None:
    df = pd.DataFrame(
        {
            "code3": [123, None, 124],
            "year": [2025, 2025, 2025],
            "movement_amount": [1.0, 2.0, 3.0],
        }
    )
    rows = normalize_movements(df)

    assert len(apply_filter(rows, {"code3": "123"})) == 1
    assert len(apply_filter(rows, {"code3": {"gte": "123"}})) == 2


def test_compiled_predicate_is_reusable() -> None:
    predicate = compile_filter({"code1": ["700"]})
    assert predicate(ROWS[0]) is True
    assert predicate(ROWS[2]) is False


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def test_valid_filters_have_no_errors() -> None:
    assert validate_filter({"code1": "700"}) == []
    assert validate_filter({"code1": ["700", "710"]}) == []
    assert validate_filter({"account_code": {"gte": "6000", "lt": "7000"}}) == []
    assert validate_filter({}) == []
    assert validate_filter(None) == []


@pytest.mark.parametrize(
    "spec, message",
    [
        ({"bogus": "x"}, "Invalid filter field: bogus"),
        ({"code1": []}, "Filter array for code1 cannot be empty"),
        ({"code1": ["700", None]}, "Filter array for code1 contains null values"),
        ({"code1": ["700", 710]}, "Filter array for code1 must only contain strings"),
        ({"code1": None}, "Filter value for code1 cannot be null"),
        ({"code1": 700}, "Filter value for code1 must be a string"),
        ({"account_code": {}}, "Range filter for account_code cannot be empty"),
        ({"account_code": {"between": "1"}}, "Invalid range operators"),
        ({"account_code": {"gte": None}}, "account_code.gte cannot be null"),
        ({"account_code": {"lt": 7000}}, "account_code.lt must be a string"),
        ("code1=700", "Filter specification must be an object"),
    ],
)
def test_invalid_filters(spec, message: str) -> None:
    errors = validate_filter(spec)
    assert any(message in e for e in errors), errors


def test_validation_collects_every_error() -> None:
    errors = validate_filter({"bogus": "x", "code1": [], "code2": 1})
    assert len(errors) == 3


def test_compile_invalid_filter_raises() -> None:
    with pytest.raises(InvalidFilterError) as exc_info:
        compile_filter({"bogus": "x"})

    assert exc_info.value.errors
    assert "bogus" in str(exc_info.value)


# ---------------------------------------------------------------------------
# DataFrame adapter
# ---------------------------------------------------------------------------


def test_filter_frame_keeps_index_and_leaves_input_untouched() -> None:
    df = pd.DataFrame(ROWS)
    before = df.copy()

    out = filter_frame(df, {"code1": "700"})

    assert list(out.index) == [0, 3]
    assert out["movement_amount"].sum() == pytest.approx(120.0)
    pd.testing.assert_frame_equal(df, before)


def test_filter_frame_without_filter_returns_copy() -> None:
    df = pd.DataFrame(ROWS)
    out = filter_frame(df, None)

    assert out is not df
    assert len(out) == len(df)


def test_filter_frame_no_match_is_empty() -> None:
    df = pd.DataFrame(ROWS)
    out = filter_frame(df, {"code1": "999"})
    assert out.empty
    assert list(out.columns) == list(df.columns)
