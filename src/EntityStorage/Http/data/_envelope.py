# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
OData JSON response envelopes.

Record envelope::

    {"@odata.context": "...", "value": {...}}      # or "value": [{...}]

Collection envelope::

    {"@odata.context": "...", "@odata.nextLink": "...", "value": [{...}, ...]}

The converters plug into :class:`~EntityStorage.Http.data._serializer.SerializerOptions`
so ``RecordEnvelope[Person]`` and ``CollectionEnvelope[Person]`` can be
passed to the serializer like any entity type.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, TypeVar, get_args, get_origin

from ..core._error_codes import PROTOCOL_MALFORMED_ENVELOPE, PROTOCOL_RECORD_MULTIPLE
from ..core.errors import ProtocolViolationError
from ._serializer import EntityConverter

T = TypeVar("T")

ODATA_CONTEXT = "@odata.context"
ODATA_NEXT_LINK = "@odata.nextLink"
ODATA_VALUE = "value"


@dataclass
class RecordEnvelope(Generic[T]):
    value: Optional[T] = None
    context: Optional[str] = None


@dataclass
class CollectionEnvelope(Generic[T]):
    value: List[T] = field(default_factory=list)
    context: Optional[str] = None
    next_link: Optional[str] = None


def _item_type(target: Any) -> Any:
    args = get_args(target)
    if not args:
        raise TypeError(f"Envelope target must be parametrised, e.g. RecordEnvelope[Person]; got {target!r}")
    return args[0]


def _envelope_object(payload: Any) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise ProtocolViolationError(
            f"Expected an OData envelope object, got {type(payload).__name__}",
            subcode=PROTOCOL_MALFORMED_ENVELOPE,
        )
    return payload


def _optional_str(payload: Dict[str, Any], name: str) -> Optional[str]:
    value = payload.get(name)
    if value is not None and not isinstance(value, str):
        raise ProtocolViolationError(
            f"Envelope property '{name}' must be a string",
            subcode=PROTOCOL_MALFORMED_ENVELOPE,
        )
    return value


class RecordEnvelopeConverter(EntityConverter):
    """Reads a bare or single-element ``value``; more than one element is a protocol violation."""

    def can_convert(self, target: Any) -> bool:
        return target is RecordEnvelope or get_origin(target) is RecordEnvelope

    def read(self, serializer, target, payload, options):
        envelope = _envelope_object(payload)
        item_type = _item_type(target)
        raw = envelope.get(ODATA_VALUE)
        if isinstance(raw, list):
            if len(raw) > 1:
                raise ProtocolViolationError(
                    f"Record response contained {len(raw)} values; expected at most one",
                    subcode=PROTOCOL_RECORD_MULTIPLE,
                    details={"count": len(raw)},
                )
            raw = raw[0] if raw else None
        value = serializer.from_object(item_type, raw, options) if raw is not None else None
        return RecordEnvelope(value=value, context=_optional_str(envelope, ODATA_CONTEXT))

    def write(self, serializer, value, options):
        return {
            ODATA_CONTEXT: value.context,
            ODATA_VALUE: serializer.to_object(value.value, options),
        }


class CollectionEnvelopeConverter(EntityConverter):
    def can_convert(self, target: Any) -> bool:
        return target is CollectionEnvelope or get_origin(target) is CollectionEnvelope

    def read(self, serializer, target, payload, options):
        envelope = _envelope_object(payload)
        item_type = _item_type(target)
        raw = envelope.get(ODATA_VALUE)
        if raw is None:
            raw = []
        if not isinstance(raw, list):
            raise ProtocolViolationError(
                "Collection response 'value' must be an array",
                subcode=PROTOCOL_MALFORMED_ENVELOPE,
            )
        return CollectionEnvelope(
            value=[serializer.from_object(item_type, item, options) for item in raw],
            context=_optional_str(envelope, ODATA_CONTEXT),
            next_link=_optional_str(envelope, ODATA_NEXT_LINK),
        )

    def write(self, serializer, value, options):
        return {
            ODATA_CONTEXT: value.context,
            ODATA_NEXT_LINK: value.next_link,
            ODATA_VALUE: [serializer.to_object(item, options) for item in value.value],
        }


ENVELOPE_CONVERTERS = (RecordEnvelopeConverter(), CollectionEnvelopeConverter())
