# FinReport - Financial statement calculation engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
FinReport
---------

A calculation engine turning declarative report definitions and ledger
movements into computed financial statements (income statement, balance
sheet, cash flow) comparing two periods.

Main capabilities:
- named variables built from filters over movements and an aggregate,
- an arithmetic expression language for calculated rows, with '@order'
  references to earlier rows and cached parsing,
- category rows filtering movements directly,
- subtotals over order ranges that never double-count nested subtotals,
- period-over-period variance (amount and percent),
- display formatting (currency, percent, integer, decimal),
- a flat pandas export of computed statements.

FinReport separates computation (engine), configuration (TOML), and
presentation (callers), so statements can be rendered by grids,
spreadsheets or exports downstream.


Version: 0.1.0

Usage:
    from finreport import render_statement
    statement = render_statement(report_json, movements_df)
"""

from .renderer import ReportRenderer, render_statement
from .statement import statement_to_dataframe

__all__ = [
    "ReportRenderer",
    "render_statement",
    "statement_to_dataframe",
    "config",
    "errors",
    "expressions",
    "filters",
    "layout",
    "movements",
    "periods",
    "variables",
]

__version__ = "0.1.0"
