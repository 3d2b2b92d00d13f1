# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Filter trees and their OData string form.

A filter is a :class:`FilterPredicate`, or a :class:`FilterPipeline` holding
predicates and nested pipelines separated by :class:`FilterLogicalOperator`
segments::

    flt = FilterPipeline.all(
        FilterPredicate("FirstName", ComparisonOperator.EQ, "Russell"),
        FilterPredicate("Age", ComparisonOperator.GT, 30),
    )
    ODataFilterFormatter().get_filter_string(flt)
    # "FirstName eq 'Russell' and Age gt 30"
"""

from __future__ import annotations

import datetime as _dt
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional, Union


class ComparisonOperator(str, Enum):
    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GE = "ge"
    LT = "lt"
    LE = "le"


class LogicalOperator(str, Enum):
    AND = "and"
    OR = "or"


@dataclass(frozen=True)
class FilterPredicate:
    """Comparison of the field with wire name ``field`` against ``value``."""

    field: str
    operator: ComparisonOperator
    value: Any


@dataclass(frozen=True)
class FilterLogicalOperator:
    operator: LogicalOperator


@dataclass
class FilterPipeline:
    filters: List["FilterSegment"] = field(default_factory=list)

    @classmethod
    def join(cls, operator: LogicalOperator, *filters: "Filter") -> "FilterPipeline":
        segments: List[FilterSegment] = []
        for f in filters:
            if segments:
                segments.append(FilterLogicalOperator(operator))
            segments.append(f)
        return cls(segments)

    @classmethod
    def all(cls, *filters: "Filter") -> "FilterPipeline":
        return cls.join(LogicalOperator.AND, *filters)

    @classmethod
    def any(cls, *filters: "Filter") -> "FilterPipeline":
        return cls.join(LogicalOperator.OR, *filters)


Filter = Union[FilterPredicate, FilterPipeline]
FilterSegment = Union[FilterPredicate, FilterPipeline, FilterLogicalOperator]


class ODataFilterFormatter:
    """Renders filter trees and values in OData ``$filter`` syntax."""

    def get_filter_string(self, flt: Optional[Filter]) -> str:
        if flt is None:
            return ""
        if isinstance(flt, FilterPredicate):
            return f"{flt.field} {ComparisonOperator(flt.operator).value} {self.get_filter_value_string(flt.value)}"
        if isinstance(flt, FilterPipeline):
            parts: List[str] = []
            for segment in flt.filters:
                if isinstance(segment, FilterLogicalOperator):
                    parts.append(LogicalOperator(segment.operator).value)
                elif isinstance(segment, FilterPipeline):
                    inner = self.get_filter_string(segment)
                    if inner:
                        parts.append(f"({inner})")
                else:
                    parts.append(self.get_filter_string(segment))
            return " ".join(parts)
        raise TypeError(f"Unsupported filter segment: {type(flt).__name__}")

    def get_filter_value_string(self, value: Any) -> str:
        if value is None:
            return "null"
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, Enum):
            return self.get_filter_value_string(value.value)
        if isinstance(value, str):
            escaped = value.replace("'", "''")
            return f"'{escaped}'"
        if isinstance(value, uuid.UUID):
            return str(value)
        if isinstance(value, _dt.datetime):
            if value.tzinfo is None:
                return value.isoformat() + "Z"
            return value.isoformat().replace("+00:00", "Z")
        if isinstance(value, _dt.date):
            return value.isoformat()
        if isinstance(value, (int, float, Decimal)):
            return str(value)
        raise TypeError(f"Cannot render filter value of type {type(value).__name__}")


__all__ = [
    "ComparisonOperator",
    "LogicalOperator",
    "FilterPredicate",
    "FilterLogicalOperator",
    "FilterPipeline",
    "Filter",
    "FilterSegment",
    "ODataFilterFormatter",
]
