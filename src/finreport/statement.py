# FinReport - Financial statement calculation engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Computed statement structures.

A render produces a Statement: the ordered list of ComputedRow objects plus
a metadata envelope. This is the only contract with downstream rendering
layers (grids, spreadsheets, exports).

Each row carries:
- its display fields (order, label, type, style, indent, format),
- one amount per compared period (None for spacers and undefined cells),
- the variance between the two periods,
- formatted display strings,
- provenance metadata (which variable, expression, filter or range
  produced it).

``statement_to_dataframe()`` flattens a Statement into a pandas DataFrame
with one line per row, for display or CSV export.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

import pandas as pd

from .formatting import FormatSpec


@dataclass(frozen=True)
class RowMetadata:
    """Provenance of a computed row. Only the field matching the row type is set."""

    variable: Optional[str] = None
    expression: Optional[str] = None
    filter: Optional[Mapping[str, Any]] = None
    calculated_from: Optional[tuple[int, int]] = None


@dataclass
class ComputedRow:
    order: int
    label: str
    type: str
    style: str
    indent: int
    format: FormatSpec
    amounts: dict[int, Optional[float]] = field(default_factory=dict)
    variance_amount: Optional[float] = None
    variance_percent: Optional[float] = None
    formatted: dict[str, str] = field(default_factory=dict)
    metadata: RowMetadata = field(default_factory=RowMetadata)

    def amount(self, period: int) -> Optional[float]:
        return self.amounts.get(period)


@dataclass(frozen=True)
class StatementMetadata:
    period_options: Mapping[str, Any]
    variable_count: int
    layout_item_count: int
    row_count: int


@dataclass(frozen=True)
class Statement:
    """A fully computed financial statement.

    Attributes:
        periods: The compared period keys, prior (A) first then current (B).
    """

    report_id: str
    report_name: str
    report_version: str
    statement_type: str
    generated_at: str
    periods: tuple[int, int]
    rows: tuple[ComputedRow, ...]
    metadata: StatementMetadata

    def row(self, order: int) -> ComputedRow:
        """Return the first row with the given order.

        Raises:
            KeyError: if no row has this order.
        """
        for r in self.rows:
            if r.order == order:
                return r
        raise KeyError(f"No row with order {order} in statement '{self.report_id}'")


STATEMENT_COLUMNS_HEAD = ["order", "label", "type", "style", "indent", "format"]
STATEMENT_COLUMNS_TAIL = [
    "variance_amount",
    "variance_percent",
]


def _format_name(spec: FormatSpec) -> str:
    if isinstance(spec, Mapping):
        return str(spec.get("type") or "")
    return str(spec)


def statement_to_dataframe(statement: Statement) -> pd.DataFrame:
    """
    Convert a Statement into a pandas DataFrame.

    The resulting DataFrame has one line per computed row and the columns:
        - order, label, type, style, indent, format
        - amount_<A>, amount_<B>       (NaN where undefined or spacer)
        - variance_amount, variance_percent
        - formatted_<A>, formatted_<B>,
          formatted_variance_amount, formatted_variance_percent

    where <A> and <B> are the prior and current period keys.
    """
    # A statement comparing a period with itself gets a single amount column.
    periods = list(dict.fromkeys(statement.periods))
    amount_cols = [f"amount_{p}" for p in periods]
    formatted_cols = [f"formatted_{p}" for p in periods]
    formatted_cols += ["formatted_variance_amount", "formatted_variance_percent"]

    columns = (
        STATEMENT_COLUMNS_HEAD + amount_cols + STATEMENT_COLUMNS_TAIL + formatted_cols
    )

    if not statement.rows:
        return pd.DataFrame(columns=columns)

    out: list[dict[str, object]] = []
    for r in statement.rows:
        line: dict[str, object] = {
            "order": r.order,
            "label": r.label,
            "type": r.type,
            "style": r.style,
            "indent": r.indent,
            "format": _format_name(r.format),
            "variance_amount": (
                float("nan") if r.variance_amount is None else r.variance_amount
            ),
            "variance_percent": (
                float("nan") if r.variance_percent is None else r.variance_percent
            ),
        }
        for period in periods:
            value = r.amounts.get(period)
            line[f"amount_{period}"] = float("nan") if value is None else value
            line[f"formatted_{period}"] = r.formatted.get(str(period), "")
        line["formatted_variance_amount"] = r.formatted.get("variance_amount", "")
        line["formatted_variance_percent"] = r.formatted.get("variance_percent", "")
        out.append(line)

    return pd.DataFrame(out)[columns]
