# FinReport - Financial statement calculation engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Exception hierarchy for FinReport.

Every error raised by the calculation engine derives from FinReportError,
which itself is a ValueError: all failures here are caused by the input
(report definition, expression text, filter specification), never by the
environment.

    FinReportError (ValueError)
    |
    +-- ExpressionError
    |   +-- ExpressionSyntaxError
    |   +-- UndefinedReferenceError
    |
    +-- InvalidFilterError
    +-- InvalidVariableDefinitionError
    +-- CircularDependencyError
    +-- VariableResolutionError
    +-- UndefinedVariableError
    +-- InvalidReportDefinitionError
    +-- SubtotalRangeError
    +-- LayoutItemError

Division by zero inside an expression is not part of this
hierarchy: the evaluator returns None ("undefined") so that one ratio
against a zero base only blanks its own cell.
"""

from collections.abc import Sequence
from typing import Optional


class FinReportError(ValueError):
    """Base class for all calculation engine errors."""


# ---------------------------------------------------------------------------
# Expression language
# ---------------------------------------------------------------------------


class ExpressionError(FinReportError):
    """Base class for expression tokenizing, parsing and evaluation errors."""


class ExpressionSyntaxError(ExpressionError):
    """Malformed expression text.

    Attributes:
        position: Zero-based character offset of the offending token, or
            None when the error is at end of input.
        token: Offending token text, when there is one.
    """

    def __init__(
        self,
        message: str,
        position: Optional[int] = None,
        token: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.position = position
        self.token = token


class UndefinedReferenceError(ExpressionError):
    """An expression references a variable or order token absent from context."""

    def __init__(self, name: str) -> None:
        kind = "order reference" if name.startswith("@") else "variable"
        super().__init__(f"Undefined {kind}: {name}")
        self.name = name


# ---------------------------------------------------------------------------
# Filters and variables
# ---------------------------------------------------------------------------


class InvalidFilterError(FinReportError):
    """A filter specification failed validation."""

    def __init__(self, errors: Sequence[str]) -> None:
        self.errors = list(errors)
        super().__init__("Invalid filter specification: " + "; ".join(self.errors))


class InvalidVariableDefinitionError(FinReportError):
    """A variable definition is missing fields or names an unknown aggregate."""

    def __init__(self, errors: Sequence[str]) -> None:
        self.errors = list(errors)
        super().__init__("Invalid variable definition: " + "; ".join(self.errors))


class CircularDependencyError(FinReportError):
    """A variable was requested while already being resolved.

    Attributes:
        path: Full resolution path, ending with the repeated name
            (e.g. ['A', 'B', 'A']).
    """

    def __init__(self, path: Sequence[str]) -> None:
        self.path = list(path)
        super().__init__(
            "Circular dependency detected: " + " -> ".join(self.path)
        )


class VariableResolutionError(FinReportError):
    """Wraps any failure raised while resolving one named variable."""

    def __init__(self, variable: str, cause: BaseException) -> None:
        super().__init__(f"Failed to resolve variable '{variable}': {cause}")
        self.variable = variable
        self.cause = cause


# ---------------------------------------------------------------------------
# Report definition and layout processing
# ---------------------------------------------------------------------------


class UndefinedVariableError(FinReportError):
    """A 'variable' layout item names a variable the report does not declare."""

    def __init__(self, name: str, report_id: str = "unknown") -> None:
        super().__init__(f"Variable '{name}' not found in report '{report_id}'")
        self.name = name
        self.report_id = report_id


class InvalidReportDefinitionError(FinReportError):
    """The report definition cannot be mapped onto the layout model."""

    def __init__(self, report_id: str, reason: str) -> None:
        super().__init__(f"Invalid report definition '{report_id}': {reason}")
        self.report_id = report_id
        self.reason = reason


class SubtotalRangeError(FinReportError):
    """A subtotal range has its lower bound above its upper bound."""

    def __init__(self, start: int, end: int) -> None:
        super().__init__(
            f"Invalid subtotal range {start}-{end}: 'from' must be <= 'to'"
        )
        self.start = start
        self.end = end


class LayoutItemError(FinReportError):
    """Wraps any failure raised while processing one layout item."""

    def __init__(self, order: int, item_type: str, cause: BaseException) -> None:
        super().__init__(
            f"Failed to process layout item at order {order} "
            f"(type '{item_type}'): {cause}"
        )
        self.order = order
        self.item_type = item_type
        self.cause = cause
