# FinReport - Financial statement calculation engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Row processor: turns a report definition and movements into a statement.

This module orchestrates the calculation engine. For one render it:

1. Prepares inputs
   ----------------
   - normalizes the movement table into records (movements.py),
   - determines the two compared periods: prior (A) and current (B)
     (periods.py).

2. Resolves variables
   -------------------
   All declared variables are resolved once, before any row is computed
   (variables.py). A failure aborts the render.

3. Processes the layout
   ---------------------
   Layout items are sorted by ``order`` (stable for equal orders) and
   processed strictly in that order. Each item yields one ComputedRow,
   stored in an order -> row map that only grows:

   - variable   : the resolved variable's value for each period,
   - calculated : the item's expression, evaluated per period against
                  every variable plus '@<order>' of every row already in
                  the map (expressions.py),
   - category   : the item's own filter applied directly to the movements,
                  amounts summed per period (filters.py),
   - subtotal   : the sum of rows already in the map whose order lies in
                  [from, to], skipping spacer and subtotal rows,
   - spacer     : no amounts.

   Because the map only holds earlier rows, a calculated row or subtotal
   can never see a row that sorts after it.

4. Computes variances and formatting
   ----------------------------------
   Every non-spacer row gets ``B - A`` and its percentage of |A|
   (variance.py), then display strings for both amounts and the variance
   (formatting.py). Numeric amounts are never altered by formatting.

Any failure while processing an item is re-raised as LayoutItemError with
the item's order and type: a render either returns a complete statement
or raises.
"""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Union

from .config import EngineConfig, merge_formatting
from .errors import LayoutItemError, SubtotalRangeError, UndefinedVariableError
from .expressions import ExpressionEvaluator
from .filters import apply_filter
from .formatting import format_value
from .layout import (
    CalculatedItem,
    CategoryItem,
    LayoutItem,
    ReportDefinition,
    SpacerItem,
    SubtotalItem,
    VariableItem,
)
from .movements import (
    AMOUNT_COLUMN,
    PERIOD_COLUMN,
    MovementRecord,
    MovementsInput,
    available_periods,
    normalize_movements,
)
from .periods import (
    PeriodOptions,
    PeriodOptionsInput,
    coerce_period_options,
    comparison_periods,
)
from .statement import ComputedRow, RowMetadata, Statement, StatementMetadata
from .variables import ResolvedValues, VariableResolver
from .variance import compute_variance

logger = logging.getLogger(__name__)

# Row types that never contribute to a subtotal range.
SUBTOTAL_EXCLUDED_TYPES = frozenset({"spacer", "subtotal"})


@dataclass
class RenderContext:
    """State shared by the items of one render.

    Attributes:
        variables: Resolved values of every declared variable.
        rows: Order -> computed row, for every item processed so far.
        movements: Normalized movement records.
        periods: Compared period keys (prior, current).
        report_id: Identifier used in error messages.
    """

    variables: dict[str, ResolvedValues]
    rows: dict[int, ComputedRow]
    movements: tuple[MovementRecord, ...]
    periods: tuple[int, int]
    report_id: str = "unknown"

    @property
    def period_keys(self) -> list[int]:
        """Distinct compared periods (a single key when A == B)."""
        return list(dict.fromkeys(self.periods))


# ---------------------------------------------------------------------------
# Row computations
# ---------------------------------------------------------------------------


def sum_by_period(
    rows: Sequence[MovementRecord], periods: Sequence[int]
) -> dict[int, float]:
    """Sum movement amounts per period; periods without rows are 0.0."""
    totals: dict[int, float] = {p: 0.0 for p in periods}
    for row in rows:
        period = int(row[PERIOD_COLUMN])
        if period in totals:
            totals[period] += row.get(AMOUNT_COLUMN) or 0.0
    return totals


def calculate_subtotal(
    start: int,
    end: int,
    rows: Mapping[int, ComputedRow],
    periods: Sequence[int],
) -> dict[int, float]:
    """Sum the rows whose order lies in [start, end].

    Spacer and subtotal rows are skipped so that nested subtotals are not
    counted twice. Orders without a row are ignored; undefined amounts
    count as 0.

    Raises:
        SubtotalRangeError: if ``start > end``.
    """
    if start > end:
        raise SubtotalRangeError(start, end)

    totals: dict[int, float] = {p: 0.0 for p in periods}
    for order, row in rows.items():
        if not start <= order <= end or row.type in SUBTOTAL_EXCLUDED_TYPES:
            continue
        for period in periods:
            totals[period] += row.amount(period) or 0.0
    return totals


def build_evaluation_context(context: RenderContext, period: int) -> dict[str, float]:
    """Flat expression context for one period.

    Contains every resolved variable and '@<order>' for every row already
    rendered. Undefined amounts and spacers contribute 0.
    """
    values: dict[str, float] = {}
    for name, resolved in context.variables.items():
        values[name] = resolved.get(period, 0.0)
    for order, row in context.rows.items():
        values[f"@{order}"] = row.amount(period) or 0.0
    return values


def apply_variance(row: ComputedRow, periods: tuple[int, int]) -> None:
    """Set the variance fields of a non-spacer row (B versus A)."""
    if row.type == "spacer":
        return
    prior, current = periods
    variance = compute_variance(row.amount(current), row.amount(prior))
    row.variance_amount = variance.amount
    row.variance_percent = variance.percent


def apply_row_formatting(
    row: ComputedRow,
    periods: tuple[int, int],
    formatting: Mapping[str, Mapping[str, Any]],
) -> None:
    """Fill ``row.formatted`` with display strings for amounts and variance."""
    for period in dict.fromkeys(periods):
        row.formatted[str(period)] = format_value(
            row.amount(period), row.format, formatting
        )
    row.formatted["variance_amount"] = format_value(
        row.variance_amount, row.format, formatting
    )
    row.formatted["variance_percent"] = format_value(
        row.variance_percent, "percent", formatting
    )


# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------


class ReportRenderer:
    """Generates statements from report definitions.

    The renderer keeps one ExpressionEvaluator (and therefore one AST cache)
    for its whole lifetime; variable resolution state is per call.
    """

    def __init__(
        self,
        evaluator: Optional[ExpressionEvaluator] = None,
        resolver: Optional[VariableResolver] = None,
        config: Optional[EngineConfig] = None,
    ):
        self.evaluator = evaluator or ExpressionEvaluator()
        self.resolver = resolver or VariableResolver()
        self.config = config or EngineConfig()

    def render(
        self,
        report: Union[ReportDefinition, Mapping[str, Any]],
        movements: MovementsInput,
        period_options: PeriodOptionsInput = None,
    ) -> Statement:
        """Render a statement.

        Args:
            report: ReportDefinition or its JSON (mapping) form.
            movements: Movement table as a DataFrame or records.
            period_options: PeriodOptions or mapping such as
                ``{"years": [2024, 2025]}``.

        Returns:
            The computed Statement.

        Raises:
            InvalidReportDefinitionError: if the report cannot be mapped.
            VariableResolutionError: if a variable fails to resolve.
            LayoutItemError: if any layout item fails.
        """
        if not isinstance(report, ReportDefinition):
            report = ReportDefinition.from_dict(report)

        records = normalize_movements(
            movements,
            amount_column=self.config.amount_column,
            period_column=self.config.period_column,
        )
        options = coerce_period_options(period_options)
        if not options.years and self.config.years:
            options = PeriodOptions(years=self.config.years, extra=options.extra)
        periods = comparison_periods(options, available_periods(records))

        variables = self.resolver.resolve_variables(report.variables, records, options)

        context = RenderContext(
            variables=variables,
            rows={},
            movements=records,
            periods=periods,
            report_id=report.report_id,
        )
        rows = self.process_layout(report.sorted_layout(), context)

        formatting = merge_formatting(self.config.formatting, report.formatting)
        for row in rows:
            apply_variance(row, periods)
            apply_row_formatting(row, periods, formatting)

        logger.info(
            "Rendered report '%s': %d row(s), periods %s vs %s",
            report.report_id,
            len(rows),
            periods[0],
            periods[1],
        )

        return Statement(
            report_id=report.report_id,
            report_name=report.name,
            report_version=report.version,
            statement_type=report.statement_type,
            generated_at=datetime.now(timezone.utc).isoformat(timespec="seconds"),
            periods=periods,
            rows=tuple(rows),
            metadata=StatementMetadata(
                period_options=options.as_dict(),
                variable_count=len(report.variables),
                layout_item_count=len(report.layout),
                row_count=len(rows),
            ),
        )

    def process_layout(
        self, items: Sequence[LayoutItem], context: RenderContext
    ) -> list[ComputedRow]:
        """Process already sorted layout items, growing ``context.rows``."""
        rows: list[ComputedRow] = []
        for item in items:
            try:
                row = self.process_item(item, context)
            except LayoutItemError:
                raise
            except Exception as exc:
                raise LayoutItemError(item.order, item.type, exc) from exc

            context.rows[item.order] = row
            rows.append(row)
        return rows

    def process_item(self, item: LayoutItem, context: RenderContext) -> ComputedRow:
        """Compute the row of a single layout item."""
        logger.debug("Processing layout item %s (%s)", item.order, item.type)

        row = ComputedRow(
            order=item.order,
            label=item.label,
            type=item.type,
            style=item.style,
            indent=item.indent,
            format=item.format,
        )
        periods = context.period_keys

        if isinstance(item, VariableItem):
            resolved = context.variables.get(item.variable)
            if resolved is None:
                raise UndefinedVariableError(item.variable, context.report_id)
            row.amounts = {p: resolved.get(p, 0.0) for p in periods}
            row.metadata = RowMetadata(variable=item.variable)

        elif isinstance(item, CalculatedItem):
            row.amounts = {
                p: self.evaluator.evaluate(
                    item.expression, build_evaluation_context(context, p)
                )
                for p in periods
            }
            row.metadata = RowMetadata(expression=item.expression)

        elif isinstance(item, CategoryItem):
            matches = apply_filter(context.movements, item.filter)
            row.amounts = dict(sum_by_period(matches, periods))
            row.metadata = RowMetadata(filter=item.filter)

        elif isinstance(item, SubtotalItem):
            row.amounts = dict(
                calculate_subtotal(item.start, item.end, context.rows, periods)
            )
            row.metadata = RowMetadata(calculated_from=(item.start, item.end))

        elif isinstance(item, SpacerItem):
            row.amounts = {p: None for p in periods}

        else:
            raise TypeError(f"Unsupported layout item: {type(item).__name__}")

        return row


def render_statement(
    report: Union[ReportDefinition, Mapping[str, Any]],
    movements: MovementsInput,
    period_options: PeriodOptionsInput = None,
    config: Optional[EngineConfig] = None,
) -> Statement:
    """Render a statement with a fresh ReportRenderer."""
    return ReportRenderer(config=config).render(report, movements, period_options)
