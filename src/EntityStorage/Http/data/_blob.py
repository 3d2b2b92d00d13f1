# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Azure blob storage handler.

Entities are stored as blobs addressed by their key path: the entity name
followed by each key value in ordinal order, for example
``Products/3f2c.../2024``. Listing queries are limited to prefix filters, so a
filter may only constrain a contiguous run of key fields starting at ordinal 1,
joined with AND.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from ..core._error_codes import (
    UNSUPPORTED_BLOB_COMPARISON,
    UNSUPPORTED_BLOB_LOGICAL_OPERATOR,
    UNSUPPORTED_BLOB_NESTED_FILTER,
    UNSUPPORTED_BLOB_NON_KEY_FILTER,
    UNSUPPORTED_BLOB_ORDINAL_GAP,
    VALIDATION_KEY_PATH,
)
from ..core.errors import UnsupportedOperationError, ValidationError
from ..core.registry import ServiceReference
from ..models.connectors import BlobConnector, SerializationLanguage
from ..models.entity import (
    Entity,
    format_key_segment,
    get_entity_field,
    get_entity_key_values,
    get_entity_name,
    parse_key_segment,
)
from ..models.filters import (
    ComparisonOperator,
    Filter,
    FilterLogicalOperator,
    FilterPipeline,
    FilterPredicate,
    LogicalOperator,
)
from ..models.messages import BlobReference
from ..models.query import BlobDataQuery, RecordQuery, SaveResult
from ..models.references import EntityReference
from ._base import _BlobDataResolver, _StorageHandlerBase
from ._serializer import SerializerOptions, _parse_xml

logger = logging.getLogger(__name__)


def _segment(value: Any) -> str:
    try:
        return format_key_segment(value)
    except ValueError as exc:
        raise ValidationError(str(exc), subcode=VALIDATION_KEY_PATH) from exc


def get_key_path(entity_obj: Entity) -> List[str]:
    """Key path segments of ``entity_obj``: its entity name, then key values by ordinal."""
    return [get_entity_name(entity_obj)] + [_segment(v) for v in get_entity_key_values(entity_obj).values()]


def get_keys_from_key_path(entity_type: type, key_path: List[str]) -> dict:
    """
    Parse key path segments (without the entity name) into key values.

    :return: Key values keyed by wire field name, in ordinal order.
    :raises ~EntityStorage.Http.core.errors.ValidationError: If there are more
        segments than key fields.
    """
    keys = {}
    for position, segment in enumerate(key_path, start=1):
        key = get_entity_field(entity_type, position)
        if key is None:
            raise ValidationError(
                f"No key at ordinal position {position} on '{entity_type.__name__}'",
                subcode=VALIDATION_KEY_PATH,
                details={"key_path": list(key_path)},
            )
        try:
            keys[key.name] = parse_key_segment(key.field_type, segment)
        except ValueError as exc:
            raise ValidationError(
                f"Key path segment {segment!r} is not a valid {getattr(key.field_type, '__name__', key.field_type)}",
                subcode=VALIDATION_KEY_PATH,
            ) from exc
    return keys


def get_prefix_segments(entity_type: type, flt: Optional[Filter]) -> List[str]:
    """
    Validate a listing filter and return the key path segments it fixes.

    :raises ~EntityStorage.Http.core.errors.UnsupportedOperationError: For
        nested pipelines, OR operators, non-equality comparisons, non-key
        fields, or key ordinals that are not contiguous from 1.
    :raises ~EntityStorage.Http.core.errors.ValidationError: If a predicate
        names an unknown field.
    """
    if flt is None:
        return []

    predicates: List[FilterPredicate] = []
    operators: List[FilterLogicalOperator] = []
    if isinstance(flt, FilterPipeline):
        for segment in flt.filters:
            if isinstance(segment, FilterPipeline):
                raise UnsupportedOperationError(
                    "Nested filter pipelines are not supported by blob storage",
                    subcode=UNSUPPORTED_BLOB_NESTED_FILTER,
                )
            if isinstance(segment, FilterPredicate):
                predicates.append(segment)
            elif isinstance(segment, FilterLogicalOperator):
                operators.append(segment)
            else:
                raise TypeError(f"Unsupported filter segment: {type(segment).__name__}")
    elif isinstance(flt, FilterPredicate):
        predicates.append(flt)
    else:
        raise TypeError(f"Unsupported filter: {type(flt).__name__}")

    if any(LogicalOperator(o.operator) is not LogicalOperator.AND for o in operators):
        raise UnsupportedOperationError(
            "Only AND logical operators are supported by blob storage",
            subcode=UNSUPPORTED_BLOB_LOGICAL_OPERATOR,
        )

    keyed = []
    for predicate in predicates:
        field = get_entity_field(entity_type, predicate.field)
        if field is None:
            raise ValidationError(f"Entity field '{predicate.field}' not found on '{entity_type.__name__}'")
        if not field.is_key:
            raise UnsupportedOperationError(
                f"Blob queries may only filter on key fields; '{predicate.field}' is not a key",
                subcode=UNSUPPORTED_BLOB_NON_KEY_FILTER,
            )
        if ComparisonOperator(predicate.operator) is not ComparisonOperator.EQ:
            raise UnsupportedOperationError(
                f"Blob queries only support equality predicates; got '{ComparisonOperator(predicate.operator).value}'",
                subcode=UNSUPPORTED_BLOB_COMPARISON,
            )
        keyed.append((field.ordinal, predicate.value))

    keyed.sort(key=lambda item: item[0])
    ordinals = [ordinal for ordinal, _ in keyed]
    if ordinals != list(range(1, len(keyed) + 1)):
        raise UnsupportedOperationError(
            "Blob queries must filter on contiguous key ordinals starting at 1",
            subcode=UNSUPPORTED_BLOB_ORDINAL_GAP,
            details={"ordinals": ordinals},
        )
    return [_segment(value) for _, value in keyed]


def _next_marker(data: bytes) -> Optional[str]:
    """Continuation marker of a container listing, or ``None`` on the last page."""
    marker = _parse_xml(data).findtext("NextMarker")
    return marker.strip() if marker and marker.strip() else None


class _BlobStorageHandler(_StorageHandlerBase):
    """Lists, reads and writes entities stored as blobs."""

    connector_type = BlobConnector

    def _list_references(self, service_ref: ServiceReference, query: RecordQuery) -> List[EntityReference]:
        """
        List blobs matching the query's key prefix as unresolved references.

        The listing is requested page by page, passing each ``NextMarker`` back
        as ``marker`` until the service returns an empty one. A prefix also
        matches longer key values (``SKU-1`` matches ``SKU-10``), so listed
        blobs whose leading key segments differ from the filtered values are
        dropped. Each reference resolves by fetching its blob body.
        """
        self._connector(service_ref)
        client = self._client(service_ref)
        entity_type = query.entity_type
        label = get_entity_name(entity_type)
        segments = get_prefix_segments(entity_type, query.get_filter())
        prefix = "/".join([label] + segments) if segments else f"{label}/"
        xml_options = SerializerOptions(language=SerializationLanguage.XML)

        references = []
        params = {"resType": "container", "comp": "list", "prefix": prefix}
        while True:
            r = client.request("get", params=params)
            blobs = self._serializer.deserialize_enumerable(BlobReference, r.content, xml_options)
            logger.debug("Prefix %s listed %d blobs", prefix, len(blobs))
            for blob in blobs:
                path = blob.name.split("/")
                if path[1 : len(segments) + 1] != segments:
                    continue
                keys = get_keys_from_key_path(entity_type, path[1:])
                resolver = _BlobDataResolver(self._context.dispatch, service_ref, blob.name)
                references.append(EntityReference(entity_type, keys, resolver=resolver))

            marker = _next_marker(r.content)
            if not marker:
                return references
            params = dict(params, marker=marker)

    def _get_data(self, service_ref: ServiceReference, query: BlobDataQuery) -> Optional[Entity]:
        """Fetch and deserialize the JSON body of one blob."""
        self._connector(service_ref)
        client = self._client(service_ref)
        r = client.request("get", query.blob_path)
        if not r.content:
            return None
        result = self._serializer.deserialize(
            query.entity_type, r.content, SerializerOptions(language=SerializationLanguage.JSON)
        )
        if result is not None:
            result.is_retrieved_from_storage = True
        return result

    def _save(self, service_ref: ServiceReference, entity_obj: Entity) -> SaveResult:
        """Write the JSON-serialized entity to its key path with PUT."""
        self._connector(service_ref)
        client = self._client(service_ref)
        path = "/".join(get_key_path(entity_obj))
        payload = self._serializer.serialize(entity_obj, SerializerOptions(language=SerializationLanguage.JSON))
        client.request("put", path, data=payload)
        entity_obj.is_retrieved_from_storage = True
        return SaveResult(is_successful=True, entity=entity_obj)
