# FinReport - Financial statement calculation engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""Variance between the prior (A) and current (B) period of a row."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Variance:
    amount: float
    percent: float


def variance_amount(current: float, prior: float) -> float:
    return current - prior


def variance_percent(current: float, prior: float) -> float:
    """(current - prior) / |prior| * 100, or 0 when prior is 0."""
    if prior == 0:
        return 0.0
    return (current - prior) / abs(prior) * 100


def compute_variance(current: Optional[float], prior: Optional[float]) -> Variance:
    """Variance of a row; undefined amounts count as 0."""
    cur = current or 0.0
    pri = prior or 0.0
    return Variance(
        amount=variance_amount(cur, pri),
        percent=variance_percent(cur, pri),
    )
