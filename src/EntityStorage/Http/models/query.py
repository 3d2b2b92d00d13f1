# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Queries, commands and operation results."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar

from ..core._error_codes import VALIDATION_QUERY_PARAMETERS
from ..core.errors import ValidationError
from .filters import ComparisonOperator, Filter, FilterPipeline, FilterPredicate

T = TypeVar("T")


class OperationKind(str, Enum):
    """Operation half of the handler dispatch key."""

    RECORD_QUERY = "record_query"
    ENUMERABLE_QUERY = "enumerable_query"
    SAVE = "save"
    SAVE_RELATION = "save_relation"
    BLOB_QUERY = "blob_query"
    BLOB_DATA_QUERY = "blob_data_query"
    ACTION = "action"


class RecordQuery:
    """
    Query returning at most one entity.

    Subclass and override :meth:`get_filter`, or pass ``flt`` directly::

        class PersonByUserNameQuery(RecordQuery):
            def __init__(self, user_name):
                super().__init__(Person)
                self.user_name = user_name

            def get_filter(self):
                return FilterPredicate("UserName", ComparisonOperator.EQ, self.user_name)
    """

    def __init__(self, entity_type: type, flt: Optional[Filter] = None) -> None:
        self.entity_type = entity_type
        self._filter = flt

    def get_filter(self) -> Optional[Filter]:
        return self._filter


class EnumerableQuery(RecordQuery):
    """Query returning any number of entities."""


class KeyQuery(RecordQuery):
    """Record query selecting an entity by its key values (wire field name -> value)."""

    def __init__(self, entity_type: type, keys: Dict[str, Any]) -> None:
        super().__init__(entity_type)
        self.keys = dict(keys)

    def get_filter(self) -> Optional[Filter]:
        predicates = [FilterPredicate(name, ComparisonOperator.EQ, value) for name, value in self.keys.items()]
        if not predicates:
            return None
        if len(predicates) == 1:
            return predicates[0]
        return FilterPipeline.all(*predicates)


@dataclass(frozen=True)
class QueryParameters:
    """
    Offset pagination parameters.

    :param top: Page size (``$top``).
    :type top: int or None
    :param skip: Number of entities to skip (``$skip``).
    :type skip: int or None
    :raises ~EntityStorage.Http.core.errors.ValidationError: If either value is not an int, ``skip``
        is negative, or ``top`` is not positive.
    """

    top: Optional[int] = None
    skip: Optional[int] = None

    def __post_init__(self) -> None:
        for name in ("top", "skip"):
            value = getattr(self, name)
            if value is None:
                continue
            minimum = 1 if name == "top" else 0
            if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
                raise ValidationError(
                    f"{name} must be an integer >= {minimum}, got {value!r}",
                    subcode=VALIDATION_QUERY_PARAMETERS,
                    details={name: value},
                )

    def next_page(self) -> "QueryParameters":
        return replace(self, skip=(self.skip or 0) + (self.top or 0))


@dataclass(frozen=True)
class BlobDataQuery:
    """Fetch the body of the blob at ``blob_path`` as ``entity_type``."""

    entity_type: type
    blob_path: str


class ActionCommandType(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    UPSERT = "upsert"


@dataclass
class ActionCommand:
    """
    Invoke a service action.

    The wire name of ``parameters``' entity type is the action's URL template;
    ``{FieldName}`` placeholders are replaced by the matching key values.
    """

    parameters: Any
    action_type: ActionCommandType = ActionCommandType.CREATE
    response_type: Optional[type] = None


@dataclass
class SaveResult(Generic[T]):
    is_successful: bool
    entity: T


@dataclass
class RelationSaveResult:
    is_successful: bool


@dataclass
class ActionResult(Generic[T]):
    is_successful: bool
    result: Optional[T] = None


__all__ = [
    "OperationKind",
    "RecordQuery",
    "EnumerableQuery",
    "KeyQuery",
    "QueryParameters",
    "BlobDataQuery",
    "ActionCommandType",
    "ActionCommand",
    "SaveResult",
    "RelationSaveResult",
    "ActionResult",
]
