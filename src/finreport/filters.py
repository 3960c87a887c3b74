# FinReport - Financial statement calculation engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Filter predicate compiler.

A filter specification selects movement rows declaratively. It maps a
whitelisted movement field to one of:

- an exact string:          {"code1": "700"}
- a list of strings (OR):   {"code1": ["700", "710"]}
- a range object (AND):     {"account_code": {"gte": "7000", "lt": "8000"}}

Several fields combine with AND. An empty (or missing) specification
selects every row.

The filter specification is compiled into a plain Python closure over one
movement record, so the predicate logic does not depend on any table
engine. ``filter_frame()`` is the thin pandas adapter used when movements
are held in a DataFrame.

Comparisons are done on the string form of the row value. Range bounds
are therefore lexicographic: with unpadded numeric codes of different
lengths, '900' sorts after '1000'. Report definitions are expected to use
codes of uniform width.
"""

from collections.abc import Iterable, Mapping
from typing import Any, Callable, Optional

import pandas as pd

from .errors import InvalidFilterError

FILTER_FIELDS: tuple[str, ...] = (
    "code1",
    "code2",
    "code3",
    "name1",
    "name2",
    "name3",
    "statement_type",
    "account_code",
)

RANGE_OPERATORS: tuple[str, ...] = ("gte", "lte", "gt", "lt")

Predicate = Callable[[Mapping[str, Any]], bool]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _validate_value(field: str, value: Any) -> list[str]:
    """Return validation errors for the value attached to one field."""
    if value is None:
        return [f"Filter value for {field} cannot be null"]

    if isinstance(value, (list, tuple)):
        errors: list[str] = []
        if len(value) == 0:
            errors.append(f"Filter array for {field} cannot be empty")
        if any(v is None for v in value):
            errors.append(f"Filter array for {field} contains null values")
        elif any(not isinstance(v, str) for v in value):
            errors.append(f"Filter array for {field} must only contain strings")
        return errors

    if isinstance(value, Mapping):
        if len(value) == 0:
            return [f"Range filter for {field} cannot be empty"]

        errors = []
        invalid = [str(k) for k in value if k not in RANGE_OPERATORS]
        if invalid:
            errors.append(
                f"Invalid range operators for {field}: {', '.join(invalid)}. "
                f"Valid operators are: {', '.join(RANGE_OPERATORS)}"
            )
        for op, bound in value.items():
            if bound is None:
                errors.append(f"Range value for {field}.{op} cannot be null")
            elif not isinstance(bound, str):
                errors.append(f"Range value for {field}.{op} must be a string")
        return errors

    if not isinstance(value, str):
        return [
            f"Filter value for {field} must be a string, a list of strings "
            f"or a range object (got {type(value).__name__})"
        ]

    return []


def validate_filter(spec: Any) -> list[str]:
    """Validate a filter specification.

    Args:
        spec: Candidate filter specification.

    Returns:
        A list of human-readable error messages. An empty list means the
        specification is valid. An empty mapping is valid.
    """
    if spec is None:
        return []
    if not isinstance(spec, Mapping):
        return ["Filter specification must be an object"]

    errors: list[str] = []
    for field, value in spec.items():
        if field not in FILTER_FIELDS:
            errors.append(
                f"Invalid filter field: {field}. "
                f"Valid fields are: {', '.join(FILTER_FIELDS)}"
            )
            continue
        errors.extend(_validate_value(field, value))
    return errors


def ensure_valid_filter(spec: Any) -> None:
    """Raise InvalidFilterError if ``spec`` is not a valid filter."""
    errors = validate_filter(spec)
    if errors:
        raise InvalidFilterError(errors)


# ---------------------------------------------------------------------------
# Compilation
# ---------------------------------------------------------------------------


def _field_text(row: Mapping[str, Any], field: str) -> Optional[str]:
    value = row.get(field)
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return str(value)


def _exact(field: str, expected: str) -> Predicate:
    def predicate(row: Mapping[str, Any]) -> bool:
        return _field_text(row, field) == expected

    return predicate


def _one_of(field: str, expected: Iterable[str]) -> Predicate:
    choices = frozenset(expected)

    def predicate(row: Mapping[str, Any]) -> bool:
        return _field_text(row, field) in choices

    return predicate


_RANGE_CHECKS: dict[str, Callable[[str, str], bool]] = {
    "gte": lambda actual, bound: actual >= bound,
    "lte": lambda actual, bound: actual <= bound,
    "gt": lambda actual, bound: actual > bound,
    "lt": lambda actual, bound: actual < bound,
}


def _in_range(field: str, bounds: Mapping[str, str]) -> Predicate:
    checks = [(_RANGE_CHECKS[op], bound) for op, bound in bounds.items()]

    def predicate(row: Mapping[str, Any]) -> bool:
        actual = _field_text(row, field)
        if actual is None:
            return False
        return all(check(actual, bound) for check, bound in checks)

    return predicate


def compile_filter(spec: Optional[Mapping[str, Any]]) -> Predicate:
    """Compile a filter specification into a predicate over one movement.

    Args:
        spec: Filter specification (validated here).

    Returns:
        A callable returning True when a movement record matches every
        field condition. An empty or None specification accepts all rows.

    Raises:
        InvalidFilterError: if the filter is invalid.
    """
    ensure_valid_filter(spec)
    if not spec:
        return lambda row: True

    conditions: list[Predicate] = []
    for field, value in spec.items():
        if isinstance(value, (list, tuple)):
            conditions.append(_one_of(field, value))
        elif isinstance(value, Mapping):
            conditions.append(_in_range(field, value))
        else:
            conditions.append(_exact(field, value))

    def predicate(row: Mapping[str, Any]) -> bool:
        return all(condition(row) for condition in conditions)

    return predicate


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


def apply_filter(
    rows: Iterable[Mapping[str, Any]], spec: Optional[Mapping[str, Any]]
) -> list[Mapping[str, Any]]:
    """Return the rows matching ``spec``, in their original order."""
    predicate = compile_filter(spec)
    return [row for row in rows if predicate(row)]


def filter_frame(df: pd.DataFrame, spec: Optional[Mapping[str, Any]]) -> pd.DataFrame:
    """Apply a filter specification to a movements DataFrame.

    The same compiled predicate as ``apply_filter`` is evaluated row by row
    and used as a boolean mask. The input DataFrame is not modified.
    """
    predicate = compile_filter(spec)
    if not spec or df.empty:
        return df.copy()

    mask = [predicate(record) for record in df.to_dict(orient="records")]
    return df.loc[pd.Series(mask, index=df.index)].copy()
