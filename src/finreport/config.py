# FinReport - Financial statement calculation engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Configuration helpers for FinReport.

This module is responsible for:
- loading the engine configuration from a TOML file,
- exposing the typed EngineConfig dataclass used by the renderer,
- merging configuration-level formatting defaults with the formatting
  block of a report definition.

Example configuration file (finreport.toml)
-------------------------------------------
    [engine]
    amount_column = "movement_amount"
    period_column = "year"
    years = [2024, 2025]

    [formatting.currency]
    symbol = "€"
    decimals = 0
    thousands = true

    [formatting.percent]
    decimals = 1
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import tomllib  # Python 3.11+

from .formatting import FORMAT_TYPES
from .movements import AMOUNT_COLUMN, PERIOD_COLUMN

DEFAULT_CONFIG_FILE = "finreport.toml"

_FORMAT_OPTION_TYPES: dict[str, type] = {
    "decimals": int,
    "thousands": bool,
    "symbol": str,
}


@dataclass(frozen=True)
class EngineConfig:
    """
    Engine-wide configuration.

    Attributes:
        amount_column: Name of the signed amount column in movement tables.
        period_column: Name of the column holding the period key (year).
        years: Default compared periods (prior first) when a render does not
            request any. Empty means "the two most recent in the data".
        formatting: Default formatting options per format type. A report's
            own ``formatting`` block overrides these per option.
    """

    amount_column: str = AMOUNT_COLUMN
    period_column: str = PERIOD_COLUMN
    years: tuple[int, ...] = ()
    formatting: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)


def _load_toml(path: Path) -> dict[str, Any]:
    """
    Load a TOML file and return its content as a dictionary.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the TOML content cannot be parsed or is not a table.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Failed to parse TOML config file: {path}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Invalid TOML root type in {path}, expected a table.")

    return data


def _parse_formatting(section: Any) -> dict[str, dict[str, Any]]:
    """Extract per-type formatting options, ignoring unknown types."""
    if not isinstance(section, Mapping):
        return {}

    formatting: dict[str, dict[str, Any]] = {}
    for fmt_type, options in section.items():
        if fmt_type not in FORMAT_TYPES or not isinstance(options, Mapping):
            continue

        parsed: dict[str, Any] = {}
        for key, expected in _FORMAT_OPTION_TYPES.items():
            if key not in options:
                continue
            value = options[key]
            if not isinstance(value, expected) or (
                expected is int and isinstance(value, bool)
            ):
                raise ValueError(
                    f"Invalid value for 'formatting.{fmt_type}.{key}' in the "
                    f"configuration. Expected {expected.__name__}."
                )
            parsed[key] = value
        formatting[str(fmt_type)] = parsed

    return formatting


def load_engine_config(config_path: Optional[str] = None) -> EngineConfig:
    """
    Load the FinReport engine configuration from a TOML file.

    Parameters
    ----------
    config_path :
        Path to the TOML file. When omitted, ``finreport.toml`` in the
        current directory is used if it exists; otherwise the built-in
        defaults are returned.

    Returns
    -------
    EngineConfig
        Parsed configuration.

    Raises
    ------
    FileNotFoundError
        If an explicit ``config_path`` does not exist.
    ValueError
        If the file cannot be parsed or holds invalid values.
    """
    if config_path is None:
        config_file = Path(DEFAULT_CONFIG_FILE).resolve()
        if not config_file.is_file():
            return EngineConfig()
    else:
        config_file = Path(config_path).resolve()

    raw = _load_toml(config_file)

    engine_section = raw.get("engine") or {}
    if not isinstance(engine_section, Mapping):
        engine_section = {}

    amount_column = str(engine_section.get("amount_column") or AMOUNT_COLUMN)
    period_column = str(engine_section.get("period_column") or PERIOD_COLUMN)

    raw_years = engine_section.get("years") or []
    try:
        years = tuple(int(y) for y in raw_years)
    except (TypeError, ValueError) as exc:
        raise ValueError(
            "Invalid value for 'engine.years' in the configuration. "
            "Expected a list of integers."
        ) from exc

    return EngineConfig(
        amount_column=amount_column,
        period_column=period_column,
        years=years,
        formatting=_parse_formatting(raw.get("formatting")),
    )


def merge_formatting(
    defaults: Mapping[str, Mapping[str, Any]],
    overrides: Optional[Mapping[str, Any]],
) -> dict[str, dict[str, Any]]:
    """Merge report-level formatting rules over configuration defaults.

    Options are merged per format type; report values win.
    """
    merged: dict[str, dict[str, Any]] = {k: dict(v) for k, v in defaults.items()}
    for fmt_type, options in (overrides or {}).items():
        if not isinstance(options, Mapping):
            continue
        merged.setdefault(str(fmt_type), {}).update(options)
    return merged
