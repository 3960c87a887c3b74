# FinReport - Financial statement calculation engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Display formatting for computed statement values.

Formatting only produces display strings; numeric amounts are never
rounded or otherwise modified.

Format types and their defaults
-------------------------------
    currency : 0 decimals, thousands separator, symbol '€' -> "€ 100,000"
    percent  : 1 decimal, no separator, suffix '%'         -> "20.0%"
    integer  : 0 decimals, thousands separator             -> "1,235"
    decimal  : 2 decimals, thousands separator             -> "1,234.57"

A row's format is either a type name ("currency") or a mapping with a
``type`` key and option overrides ({"type": "currency", "decimals": 2}).
Report-level formatting rules (``{"currency": {"symbol": "$"}}``) supply
the defaults for each type; row options win over them.

Percent values are already expressed in percent (25 means 25%).
"""

import math
from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional, Union

FORMAT_TYPES: tuple[str, ...] = ("currency", "percent", "integer", "decimal")

DEFAULT_FORMAT = "decimal"

FormatSpec = Union[str, Mapping[str, Any]]


def _format_number(value: float, decimals: int, thousands: bool) -> str:
    """Format ``value`` with a fixed number of decimals.

    Halves round away from zero (2.5 -> 3, -2.5 -> -3). The sign is applied
    to the rounded absolute value, so a tiny negative number rounded to zero
    keeps its '-' sign.
    """
    negative = value < 0
    places = max(int(decimals), 0)
    rounded: Union[float, Decimal] = float(value)
    if math.isfinite(rounded):
        rounded = Decimal(repr(rounded)).quantize(
            Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP
        )
    pattern = f"{{:{',' if thousands else ''}.{places}f}}"
    text = pattern.format(abs(rounded))
    return f"-{text}" if negative else text


def _option(options: Mapping[str, Any], key: str, default: Any) -> Any:
    value = options.get(key)
    return default if value is None else value


def _split_spec(format_spec: Optional[FormatSpec]) -> tuple[str, dict[str, Any]]:
    if format_spec is None:
        return DEFAULT_FORMAT, {}
    if isinstance(format_spec, Mapping):
        fmt_type = str(format_spec.get("type") or DEFAULT_FORMAT)
        options = {k: v for k, v in format_spec.items() if k != "type"}
        return fmt_type, options
    return str(format_spec), {}


def format_value(
    value: Optional[float],
    format_spec: Optional[FormatSpec],
    defaults: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> str:
    """Format one value for display.

    Args:
        value: Numeric value; None (undefined) formats as an empty string.
        format_spec: Format type name or mapping with ``type`` and options.
        defaults: Report-level formatting rules keyed by format type.

    Returns:
        The display string. The same inputs always give the same output.
    """
    if value is None:
        return ""

    fmt_type, item_options = _split_spec(format_spec)
    type_defaults = (defaults or {}).get(fmt_type) or {}
    options: dict[str, Any] = {**type_defaults, **item_options}

    if fmt_type == "currency":
        decimals = _option(options, "decimals", 0)
        thousands = _option(options, "thousands", True)
        symbol = options.get("symbol") or "€"
        return f"{symbol} {_format_number(value, decimals, thousands)}"

    if fmt_type == "percent":
        decimals = _option(options, "decimals", 1)
        symbol = options.get("symbol") or "%"
        return f"{_format_number(value, decimals, False)}{symbol}"

    if fmt_type == "integer":
        thousands = _option(options, "thousands", True)
        return _format_number(value, 0, thousands)

    if fmt_type == "decimal":
        decimals = _option(options, "decimals", 2)
        thousands = _option(options, "thousands", True)
        return _format_number(value, decimals, thousands)

    # Unknown format types fall back to a plain two-decimal number.
    return _format_number(value, 2, True)
