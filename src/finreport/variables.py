# FinReport - Financial statement calculation engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Variable resolution for FinReport.

A report declares named variables, each made of a filter specification and
an aggregate function:

    "revenue": {"filter": {"code1": ["700", "710"]}, "aggregate": "sum"}

Resolving a variable means:

1. validating its definition (filter shape, aggregate name),
2. compiling its filter and applying it to the movement records,
3. reducing the matching amounts with the aggregate, once per period of
   the *unfiltered* movement table.

Every period present in the movements therefore appears in the result,
including periods where nothing matched (valued 0).

Aggregates
----------
    sum      arithmetic sum (missing amounts count as 0)
    average  arithmetic mean ('avg' is accepted as an alias)
    count    number of matching rows
    min/max  smallest/largest matching amount
    first    amount of the first matching row, in input order
    last     amount of the last matching row, in input order

With no matching row, every aggregate yields 0.

Batch resolution and cycles
---------------------------
``VariableResolver.resolve_variables()`` resolves a whole set of
definitions. Its cache and resolution stack are created for each call and
passed along explicitly, so a single resolver can serve concurrent calls.
Variables may declare dependencies on other variables through
``variable_dependencies()``; today's definitions have none, but the stack
check still guarantees that a variable requested while it is already
being resolved fails with CircularDependencyError instead of recursing.
"""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional

from .errors import (
    CircularDependencyError,
    InvalidVariableDefinitionError,
    VariableResolutionError,
)
from .filters import apply_filter, validate_filter
from .movements import AMOUNT_COLUMN, PERIOD_COLUMN, MovementRecord, available_periods
from .periods import PeriodOptionsInput

logger = logging.getLogger(__name__)

AGGREGATE_FUNCTIONS: tuple[str, ...] = (
    "sum",
    "average",
    "count",
    "min",
    "max",
    "first",
    "last",
)

AGGREGATE_ALIASES: dict[str, str] = {"avg": "average"}

ResolvedValues = dict[int, float]


def normalize_aggregate(name: str) -> Optional[str]:
    """Return the canonical aggregate name, or None if it is unknown."""
    key = name.strip().lower()
    key = AGGREGATE_ALIASES.get(key, key)
    return key if key in AGGREGATE_FUNCTIONS else None


@dataclass(frozen=True)
class VariableDefinition:
    """A named scalar derived from movements, once per period."""

    filter: Mapping[str, Any]
    aggregate: str
    description: str = ""

    @staticmethod
    def from_mapping(raw: Any) -> "VariableDefinition":
        """Validate and build a definition from its report JSON form.

        Raises:
            InvalidVariableDefinitionError: if the definition is invalid.
        """
        if isinstance(raw, VariableDefinition):
            errors = validate_variable(
                {"filter": raw.filter, "aggregate": raw.aggregate}
            )
            if errors:
                raise InvalidVariableDefinitionError(errors)
            return raw

        errors = validate_variable(raw)
        if errors:
            raise InvalidVariableDefinitionError(errors)

        return VariableDefinition(
            filter=dict(raw.get("filter") or {}),
            aggregate=str(raw["aggregate"]),
            description=str(raw.get("description") or ""),
        )


def validate_variable(raw: Any) -> list[str]:
    """Validate a variable definition mapping.

    Returns:
        A list of error messages (empty when the definition is valid).
    """
    if not isinstance(raw, Mapping):
        return ["Variable definition must be an object"]

    errors: list[str] = []

    if "filter" not in raw:
        errors.append("Missing required field: filter")
    elif not isinstance(raw["filter"], Mapping):
        errors.append("Filter must be an object")
    else:
        errors.extend(validate_filter(raw["filter"]))

    if "aggregate" not in raw:
        errors.append("Missing required field: aggregate")
    elif not isinstance(raw["aggregate"], str):
        errors.append("Aggregate must be a string")
    elif normalize_aggregate(raw["aggregate"]) is None:
        errors.append(
            f"Invalid aggregate function: {raw['aggregate']}. "
            f"Valid functions are: {', '.join(AGGREGATE_FUNCTIONS)}"
        )

    return errors


def variable_dependencies(definition: VariableDefinition) -> list[str]:
    """Names of other variables ``definition`` depends on.

    Filters cannot reference variables yet, so this is always empty.
    """
    return []


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def aggregate_amounts(amounts: Sequence[Optional[float]], aggregate: str) -> float:
    """Reduce a list of amounts with a named aggregate.

    Args:
        amounts: Matching amounts, in movement order. None means missing.
        aggregate: Aggregate name (case-insensitive, aliases accepted).

    Returns:
        The aggregated value; 0.0 when ``amounts`` is empty.

    Raises:
        InvalidVariableDefinitionError: if the aggregate name is unknown.
    """
    name = normalize_aggregate(aggregate)
    if name is None:
        raise InvalidVariableDefinitionError(
            [f"Unsupported aggregate function: {aggregate}"]
        )

    if not amounts:
        return 0.0

    if name == "count":
        return float(len(amounts))

    values = [0.0 if a is None else float(a) for a in amounts]

    if name == "sum":
        return float(sum(values))
    if name == "average":
        return float(sum(values)) / len(values)
    if name == "min":
        return min(values)
    if name == "max":
        return max(values)
    if name == "first":
        return values[0]
    return values[-1]


def resolve_variable(
    definition: Any,
    rows: Sequence[MovementRecord],
    period_options: PeriodOptionsInput = None,
) -> ResolvedValues:
    """Resolve one variable definition against normalized movement records.

    Args:
        definition: VariableDefinition or its mapping form.
        rows: Normalized movement records (see movements.normalize_movements).
        period_options: Accepted for interface symmetry with the renderer;
            values always cover every period of ``rows``.

    Returns:
        Mapping period key -> aggregated value, one entry per period present
        in ``rows`` (zero-match periods are 0.0).

    Raises:
        InvalidVariableDefinitionError: if the definition is invalid.
        InvalidFilterError: if the filter cannot be compiled.
    """
    var_def = VariableDefinition.from_mapping(definition)
    matches = apply_filter(rows, var_def.filter)

    if rows and not matches:
        logger.warning(
            "No movements match filter %s; variable will have zero values.",
            dict(var_def.filter),
        )

    by_period: dict[int, list[Optional[float]]] = {
        period: [] for period in available_periods(rows)
    }
    for row in matches:
        by_period[int(row[PERIOD_COLUMN])].append(row.get(AMOUNT_COLUMN))

    return {
        period: aggregate_amounts(amounts, var_def.aggregate)
        for period, amounts in by_period.items()
    }


# ---------------------------------------------------------------------------
# Batch resolution
# ---------------------------------------------------------------------------


@dataclass
class ResolutionState:
    """Call-local cache and resolution stack for one batch."""

    cache: dict[str, ResolvedValues] = field(default_factory=dict)
    stack: list[str] = field(default_factory=list)


class VariableResolver:
    """Resolves the variables declared by a report.

    The resolver holds no per-call state: every ``resolve_variables`` call
    builds its own ResolutionState.
    """

    def resolve_variables(
        self,
        definitions: Mapping[str, Any],
        rows: Sequence[MovementRecord],
        period_options: PeriodOptionsInput = None,
    ) -> dict[str, ResolvedValues]:
        """Resolve every definition, or fail as a whole.

        Args:
            definitions: Mapping variable name -> definition.
            rows: Normalized movement records.
            period_options: Forwarded to ``resolve_variable``.

        Returns:
            Mapping variable name -> resolved values, in declaration order.

        Raises:
            VariableResolutionError: wrapping the first failure, with the
                name of the variable that failed. No partial result is
                returned.
        """
        if not isinstance(definitions, Mapping):
            raise InvalidVariableDefinitionError(["Variables must be an object"])

        state = ResolutionState()
        resolved: dict[str, ResolvedValues] = {}

        for name in definitions:
            try:
                resolved[name] = self.resolve_named(
                    name, definitions, rows, period_options, state
                )
            except VariableResolutionError:
                raise
            except Exception as exc:
                raise VariableResolutionError(name, exc) from exc

        logger.debug("Resolved %d variable(s)", len(resolved))
        return resolved

    def resolve_named(
        self,
        name: str,
        definitions: Mapping[str, Any],
        rows: Sequence[MovementRecord],
        period_options: PeriodOptionsInput,
        state: ResolutionState,
    ) -> ResolvedValues:
        """Resolve one named variable against an explicit resolution state.

        Raises:
            CircularDependencyError: if ``name`` is already on the stack.
            InvalidVariableDefinitionError: if ``name`` is not declared or
                its definition is invalid.
        """
        if name in state.cache:
            return state.cache[name]

        if name in state.stack:
            raise CircularDependencyError([*state.stack, name])

        if name not in definitions:
            raise InvalidVariableDefinitionError([f"Unknown variable: {name}"])

        state.stack.append(name)
        try:
            var_def = VariableDefinition.from_mapping(definitions[name])
            for dependency in variable_dependencies(var_def):
                self.resolve_named(
                    dependency, definitions, rows, period_options, state
                )
            value = resolve_variable(var_def, rows, period_options)
        finally:
            state.stack.pop()

        state.cache[name] = value
        return value
