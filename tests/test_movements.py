import math

import pandas as pd
import pytest

from finreport.movements import available_periods, normalize_movements


def test_records_are_normalized() -> None:
    records = normalize_movements(
        [
            {"code1": "700", "year": "2025", "movement_amount": "120.5"},
            {"code1": "600", "year": 2024, "movement_amount": -40},
        ]
    )

    assert isinstance(records, tuple)
    assert records[0]["year"] == 2025
    assert isinstance(records[0]["year"], int)
    assert records[0]["movement_amount"] == pytest.approx(120.5)
    assert records[1]["movement_amount"] == pytest.approx(-40.0)
    assert records[0]["code1"] == "700"


def test_dataframe_input_is_not_modified() -> None:
    df = pd.DataFrame(
        {
            "code1": ["700", "600"],
            "year": [2024, 2025],
            "amount": [10.0, 20.0],
        }
    )
    before = df.copy()

    records = normalize_movements(df)

    assert [r["movement_amount"] for r in records] == [10.0, 20.0]
    pd.testing.assert_frame_equal(df, before)


def test_amount_column_falls_back_to_amount() -> None:
    records = normalize_movements([{"year": 2025, "amount": 5.0}])
    assert records[0]["movement_amount"] == pytest.approx(5.0)


def test_configured_amount_column_wins_over_fallback() -> None:
    records = normalize_movements(
        [{"year": 2025, "amount": 1.0, "value": 9.0}], amount_column="value"
    )
    assert records[0]["movement_amount"] == pytest.approx(9.0)


def test_custom_period_column_is_exposed_as_year() -> None:
    records = normalize_movements(
        [{"fiscal_year": 2023, "movement_amount": 1.0}], period_column="fiscal_year"
    )
    assert records[0]["year"] == 2023


def test_missing_amount_becomes_none() -> None:
    df = pd.DataFrame({"year": [2025, 2025], "movement_amount": [1.0, math.nan]})
    records = normalize_movements(df)
    assert records[1]["movement_amount"] is None


def test_codes_from_a_float_column_stay_integer_text() -> None:
    df = pd.DataFrame(
        {
            "code1": ["700", "700"],
            "code3": [123, None],
            "year": [2025, 2025],
            "movement_amount": [1.0, 2.0],
        }
    )
    records = normalize_movements(df)

    assert [r["code3"] for r in records] == ["123", None]
    assert records[0]["code1"] == "700"


def test_missing_amount_column_raises() -> None:
    with pytest.raises(ValueError, match="Neither 'movement_amount' nor 'amount'"):
        normalize_movements([{"year": 2025, "value": 1.0}])


def test_non_numeric_amount_raises() -> None:
    with pytest.raises(ValueError, match="Invalid numeric values"):
        normalize_movements([{"year": 2025, "movement_amount": "abc"}])


def test_missing_period_column_raises() -> None:
    with pytest.raises(ValueError, match="Period column 'year' not found"):
        normalize_movements([{"movement_amount": 1.0}])


@pytest.mark.parametrize("year", [None, "FY25", 2024.5])
def test_invalid_period_values_raise(year) -> None:
    with pytest.raises(ValueError, match="Invalid or missing values in 'year'"):
        normalize_movements(
            [
                {"year": 2025, "movement_amount": 1.0},
                {"year": year, "movement_amount": 1.0},
            ]
        )


@pytest.mark.parametrize("data", [[], pd.DataFrame()])
def test_empty_input_gives_no_records(data) -> None:
    assert normalize_movements(data) == ()


def test_available_periods_keep_first_appearance_order() -> None:
    records = normalize_movements(
        [
            {"year": 2025, "movement_amount": 1.0},
            {"year": 2023, "movement_amount": 1.0},
            {"year": 2025, "movement_amount": 1.0},
            {"year": 2024, "movement_amount": 1.0},
        ]
    )
    assert available_periods(records) == [2025, 2023, 2024]
