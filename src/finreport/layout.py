# FinReport - Financial statement calculation engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Report definition and layout model for FinReport.

A report definition is the declarative description of one statement:

    {
      "reportId": "income_simple",
      "name": "Simple income statement",
      "version": "1.0.0",
      "statementType": "income",
      "variables": {
        "revenue": {"filter": {"code1": "700"}, "aggregate": "sum"}
      },
      "layout": [
        {"order": 10, "type": "variable", "variable": "revenue",
         "label": "Revenue", "format": "currency"},
        {"order": 20, "type": "calculated", "expression": "@10 * 0.2",
         "label": "Tax estimate"},
        {"order": 30, "type": "subtotal", "from": 10, "to": 20,
         "label": "Total", "style": "total"}
      ],
      "formatting": {"currency": {"decimals": 0, "symbol": "€"}}
    }

Each layout entry becomes one of five item classes. Every class carries
the common display fields (order, label, format, style, indent) plus only
the fields its type needs:

- VariableItem   → ``variable``   (name of a declared variable),
- CalculatedItem → ``expression`` (see expressions.py),
- CategoryItem   → ``filter``     (applied directly to the movements),
- SubtotalItem   → ``start``/``end`` (the JSON ``from``/``to`` range),
- SpacerItem     → nothing.

``order`` is both the sort key and the identity used by '@N' references
and subtotal ranges. Schema validation of report JSON happens upstream;
this module only refuses entries it cannot map onto an item class.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from .errors import InvalidReportDefinitionError
from .formatting import DEFAULT_FORMAT, FormatSpec

LAYOUT_TYPES: tuple[str, ...] = (
    "variable",
    "calculated",
    "category",
    "subtotal",
    "spacer",
)


@dataclass(frozen=True)
class VariableItem:
    order: int
    variable: str
    label: str = ""
    format: FormatSpec = DEFAULT_FORMAT
    style: str = "normal"
    indent: int = 0
    type: str = field(default="variable", init=False)


@dataclass(frozen=True)
class CalculatedItem:
    order: int
    expression: str
    label: str = ""
    format: FormatSpec = DEFAULT_FORMAT
    style: str = "normal"
    indent: int = 0
    type: str = field(default="calculated", init=False)


@dataclass(frozen=True)
class CategoryItem:
    order: int
    filter: Mapping[str, Any]
    label: str = ""
    format: FormatSpec = DEFAULT_FORMAT
    style: str = "normal"
    indent: int = 0
    type: str = field(default="category", init=False)


@dataclass(frozen=True)
class SubtotalItem:
    order: int
    start: int
    end: int
    label: str = ""
    format: FormatSpec = DEFAULT_FORMAT
    style: str = "normal"
    indent: int = 0
    type: str = field(default="subtotal", init=False)


@dataclass(frozen=True)
class SpacerItem:
    order: int
    label: str = ""
    format: FormatSpec = DEFAULT_FORMAT
    style: str = "spacer"
    indent: int = 0
    type: str = field(default="spacer", init=False)


LayoutItem = Union[VariableItem, CalculatedItem, CategoryItem, SubtotalItem, SpacerItem]


def _as_int(raw: Mapping[str, Any], key: str, report_id: str) -> int:
    try:
        return int(raw[key])
    except KeyError as exc:
        raise InvalidReportDefinitionError(
            report_id, f"layout item is missing '{key}'"
        ) from exc
    except (TypeError, ValueError) as exc:
        raise InvalidReportDefinitionError(
            report_id, f"layout item has a non-integer '{key}': {raw[key]!r}"
        ) from exc


def _require(raw: Mapping[str, Any], key: str, order: int, report_id: str) -> Any:
    value = raw.get(key)
    if value is None or value == "":
        raise InvalidReportDefinitionError(
            report_id,
            f"{raw.get('type')} layout item (order {order}) is missing '{key}'",
        )
    return value


def parse_layout_item(raw: Mapping[str, Any], report_id: str = "unknown") -> LayoutItem:
    """Map one layout entry of the report JSON onto its item class.

    Raises:
        InvalidReportDefinitionError: if the type is unknown or a required
            type-specific field is missing.
    """
    if not isinstance(raw, Mapping):
        raise InvalidReportDefinitionError(
            report_id, f"layout item must be an object, got {type(raw).__name__}"
        )

    order = _as_int(raw, "order", report_id)
    item_type = raw.get("type")

    common: dict[str, Any] = {
        "order": order,
        "label": str(raw.get("label") or ""),
        "format": raw.get("format") or DEFAULT_FORMAT,
        "indent": int(raw.get("indent") or 0),
    }
    if raw.get("style"):
        common["style"] = str(raw["style"])

    if item_type == "variable":
        return VariableItem(
            variable=str(_require(raw, "variable", order, report_id)), **common
        )
    if item_type == "calculated":
        return CalculatedItem(
            expression=str(_require(raw, "expression", order, report_id)), **common
        )
    if item_type == "category":
        return CategoryItem(filter=_require(raw, "filter", order, report_id), **common)
    if item_type == "subtotal":
        if "from" not in raw or "to" not in raw:
            raise InvalidReportDefinitionError(
                report_id, f"subtotal layout item (order {order}) is missing 'from/to'"
            )
        return SubtotalItem(
            start=_as_int(raw, "from", report_id),
            end=_as_int(raw, "to", report_id),
            **common,
        )
    if item_type == "spacer":
        return SpacerItem(**common)

    raise InvalidReportDefinitionError(
        report_id,
        f"unknown layout type {item_type!r} at order {order}; "
        f"expected one of: {', '.join(LAYOUT_TYPES)}",
    )


@dataclass(frozen=True)
class ReportDefinition:
    """In-memory representation of a report definition."""

    report_id: str
    name: str
    version: str
    statement_type: str
    variables: Mapping[str, Any]
    layout: tuple[LayoutItem, ...]
    formatting: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)

    @staticmethod
    def from_dict(raw: Mapping[str, Any]) -> "ReportDefinition":
        """Build a ReportDefinition from its JSON form.

        Variable definitions are kept as declared; they are validated when
        resolved. Layout entries are mapped with ``parse_layout_item``.
        """
        if not isinstance(raw, Mapping):
            raise InvalidReportDefinitionError(
                "unknown", "report definition must be an object"
            )

        report_id = str(raw.get("reportId") or "unknown")
        for key in ("reportId", "name", "version", "statementType"):
            if key not in raw:
                raise InvalidReportDefinitionError(
                    report_id, f"missing required field '{key}'"
                )

        layout_raw = raw.get("layout")
        if not isinstance(layout_raw, (list, tuple)):
            raise InvalidReportDefinitionError(
                report_id, "report definition must have a layout array"
            )

        variables = raw.get("variables") or {}
        if not isinstance(variables, Mapping):
            raise InvalidReportDefinitionError(report_id, "variables must be an object")

        formatting = raw.get("formatting") or {}
        if not isinstance(formatting, Mapping):
            formatting = {}

        return ReportDefinition(
            report_id=report_id,
            name=str(raw["name"]),
            version=str(raw["version"]),
            statement_type=str(raw["statementType"]),
            variables=dict(variables),
            layout=tuple(parse_layout_item(item, report_id) for item in layout_raw),
            formatting=dict(formatting),
        )

    def sorted_layout(self) -> list[LayoutItem]:
        """Layout items by ascending order; equal orders keep input order."""
        return sorted(self.layout, key=lambda item: item.order)

    def item(self, order: int) -> Optional[LayoutItem]:
        for candidate in self.layout:
            if candidate.order == order:
                return candidate
        return None
