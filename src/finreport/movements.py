# FinReport - Financial statement calculation engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Movement table adapter for FinReport.

The calculation engine works on plain movement records (one mapping per
posted ledger line). Data-loading collaborators usually hand over a pandas
DataFrame instead; this module converts either form into an immutable
tuple of records with a consistent schema.

Movement schema
---------------
    code1, code2, code3        hierarchical classification codes (str)
    name1, name2, name3        hierarchical classification labels (str)
    account_code               account code (str)
    account_description        account label (str)
    statement_type             statement classifier (str)
    year                       period key used for aggregation (int)
    period                     period within the year (e.g. 'P3')
    movement_amount            signed amount (float, or None when missing)

Amount column
-------------
The name of the amount column is a contract with the data-loading layer.
It defaults to ``movement_amount`` and can be changed through the engine
configuration. When the configured column is absent but a column named
``amount`` exists, ``amount`` is used instead.

Whatever the source names, normalized records always expose the amount
under ``movement_amount`` and the period key under ``year``. Codes and
labels are strings (None for blank cells), so integer codes read into a
float column still compare equal to their filter values.
"""

from collections.abc import Iterable, Mapping
from typing import Any, Optional, Union

import pandas as pd

AMOUNT_COLUMN = "movement_amount"
PERIOD_COLUMN = "year"
FALLBACK_AMOUNT_COLUMN = "amount"

MOVEMENT_FIELDS: tuple[str, ...] = (
    "code1",
    "code2",
    "code3",
    "name1",
    "name2",
    "name3",
    "account_code",
    "account_description",
    "statement_type",
    "year",
    "period",
    AMOUNT_COLUMN,
)

MovementRecord = Mapping[str, Any]
MovementsInput = Union[pd.DataFrame, Iterable[Mapping[str, Any]]]


def _to_frame(data: MovementsInput) -> pd.DataFrame:
    if isinstance(data, pd.DataFrame):
        return data.copy()
    return pd.DataFrame([dict(row) for row in data])


def _resolve_amount_column(columns: set[str], amount_column: str) -> str:
    if amount_column in columns:
        return amount_column
    if FALLBACK_AMOUNT_COLUMN in columns:
        return FALLBACK_AMOUNT_COLUMN
    raise ValueError(
        f"Neither '{amount_column}' nor '{FALLBACK_AMOUNT_COLUMN}' column found "
        f"in movements. Available columns: {', '.join(sorted(columns))}"
    )


# Classification fields carried as text whatever their column dtype.
TEXT_FIELDS: tuple[str, ...] = tuple(
    f for f in MOVEMENT_FIELDS if f not in (PERIOD_COLUMN, AMOUNT_COLUMN)
)


def _clean_amount(value: Any) -> Optional[float]:
    if pd.isna(value):
        return None
    return float(value)


def _clean_text(value: Any) -> Optional[str]:
    """Text form of a code or label; blank cells become None.

    A numeric column with a blank cell is read as float64, so whole
    numbers are written back without their '.0' (123.0 -> '123').
    """
    if value is None:
        return None
    if isinstance(value, float):
        if pd.isna(value):
            return None
        if value.is_integer():
            return str(int(value))
    return str(value)


def normalize_movements(
    data: MovementsInput,
    amount_column: str = AMOUNT_COLUMN,
    period_column: str = PERIOD_COLUMN,
) -> tuple[dict[str, Any], ...]:
    """Normalize a movement table into a tuple of plain records.

    Parameters
    ----------
    data:
        Movements as a DataFrame or as an iterable of mappings. The input
        is never modified.
    amount_column:
        Name of the signed amount column in ``data``.
    period_column:
        Name of the column holding the period key (the year).

    Returns
    -------
    tuple of dict
        One record per input row, in input order, with the amount stored
        under ``movement_amount`` (float or None) and the period key under
        ``year`` (int).

    Raises
    ------
    ValueError
        If the amount or period column is missing, if an amount is not
        numeric, or if a period key is missing or not an integer.
    """
    df = _to_frame(data)
    if df.empty:
        return ()

    df.columns = [str(c).strip() for c in df.columns]
    cols = set(df.columns)

    source_amount = _resolve_amount_column(cols, amount_column)
    if period_column not in cols:
        raise ValueError(
            f"Period column '{period_column}' not found in movements. "
            f"Available columns: {', '.join(sorted(cols))}"
        )

    amounts = pd.to_numeric(df[source_amount], errors="coerce")
    invalid_amounts = amounts.isna() & df[source_amount].notna()
    if invalid_amounts.any():
        raise ValueError(f"Invalid numeric values in '{source_amount}' column.")

    years = pd.to_numeric(df[period_column], errors="coerce")
    if years.isna().any() or (years % 1 != 0).any():
        raise ValueError(f"Invalid or missing values in '{period_column}' column.")

    df[AMOUNT_COLUMN] = amounts
    df[PERIOD_COLUMN] = years.astype(int)

    records: list[dict[str, Any]] = []
    for record in df.to_dict(orient="records"):
        record[AMOUNT_COLUMN] = _clean_amount(record[AMOUNT_COLUMN])
        record[PERIOD_COLUMN] = int(record[PERIOD_COLUMN])
        for name in TEXT_FIELDS:
            if name in record:
                record[name] = _clean_text(record[name])
        records.append(record)

    return tuple(records)


def available_periods(rows: Iterable[MovementRecord]) -> list[int]:
    """Distinct period keys of ``rows``, in first-appearance order."""
    seen: dict[int, None] = {}
    for row in rows:
        seen.setdefault(int(row[PERIOD_COLUMN]), None)
    return list(seen)
