# FinReport - Financial statement calculation engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Period options for FinReport.

A statement compares two periods: period A (prior) and period B
(current). Both are period keys (years) present in the movement table.
Calendar and fiscal-period arithmetic (YTD, LTM, ...) is done upstream;
this module only decides which two keys a render compares.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional, Union


@dataclass(frozen=True)
class PeriodOptions:
    """Period selection for one render.

    Attributes:
        years: The compared period keys, prior first. When empty, the two
            most recent periods present in the movements are used.
        extra: Any other options supplied by the caller, carried through
            to the statement metadata untouched.
    """

    years: tuple[int, ...] = ()
    extra: Mapping[str, Any] = field(default_factory=dict)

    @staticmethod
    def from_mapping(raw: Optional[Mapping[str, Any]]) -> "PeriodOptions":
        """Build options from a plain mapping such as ``{"years": [2024, 2025]}``."""
        if not raw:
            return PeriodOptions()

        raw_years = raw.get("years") or ()
        if isinstance(raw_years, (str, int)):
            raw_years = [raw_years]
        try:
            years = tuple(int(y) for y in raw_years)
        except (TypeError, ValueError) as exc:
            raise ValueError(
                f"Invalid 'years' in period options: {raw_years!r}"
            ) from exc

        extra = {str(k): v for k, v in raw.items() if k != "years"}
        return PeriodOptions(years=years, extra=extra)

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = dict(self.extra)
        out["years"] = list(self.years)
        return out


PeriodOptionsInput = Union[PeriodOptions, Mapping[str, Any], None]


def coerce_period_options(options: PeriodOptionsInput) -> PeriodOptions:
    """Accept PeriodOptions, a plain mapping or None."""
    if isinstance(options, PeriodOptions):
        return options
    return PeriodOptions.from_mapping(options)


def comparison_periods(
    options: PeriodOptions, available: Sequence[int]
) -> tuple[int, int]:
    """
    Determine the (prior, current) period keys compared by a statement.

    Priority (highest to lowest):

        1. options.years: first entry is the prior period, last entry the
           current period (a single entry is compared with itself),
        2. the two most recent keys in ``available``,
        3. a single available key compared with itself.

    Raises:
        ValueError: if no period can be determined.
    """
    if options.years:
        return options.years[0], options.years[-1]

    ordered = sorted(set(available))
    if not ordered:
        raise ValueError(
            "Cannot determine the compared periods: no years were requested "
            "and the movements contain no period."
        )
    if len(ordered) == 1:
        return ordered[0], ordered[0]
    return ordered[-2], ordered[-1]
