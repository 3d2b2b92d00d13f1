# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Entity serialization to and from JSON and XML payloads.

Entities are written field by field using their registered descriptors.
Targets that are not entity classes, such as envelope generics, are handled
by pluggable :class:`EntityConverter` instances supplied through
:class:`SerializerOptions`.
"""

from __future__ import annotations

import base64
import binascii
import datetime as _dt
import json
import uuid
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from decimal import Decimal
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from ..core._error_codes import PROTOCOL_MALFORMED_PAYLOAD
from ..core.errors import ProtocolViolationError
from ..models.connectors import SerializationLanguage
from ..models.entity import (
    Entity,
    get_entity_descriptor,
    get_entity_subtypes,
    is_entity_abstract,
    is_registered_entity,
)
from ..models.references import EntityReference, EntityReferenceList

ODATA_TYPE = "@odata.type"


class FieldSerialization(str, Enum):
    ALL = "all"
    FIELDS_ONLY = "fields_only"


class EntityConverter(ABC):
    """Reads and writes a non-entity target in JSON payloads."""

    @abstractmethod
    def can_convert(self, target: Any) -> bool: ...

    @abstractmethod
    def read(self, serializer: "EntitySerializer", target: Any, payload: Any, options: "SerializerOptions") -> Any: ...

    @abstractmethod
    def write(self, serializer: "EntitySerializer", value: Any, options: "SerializerOptions") -> Any: ...


@dataclass
class SerializerOptions:
    """
    :param language: Payload language.
    :param field_serialization: ``FIELDS_ONLY`` omits key fields from written payloads.
    :param serialize_relationships: Whether relations are read from and written to payloads.
    :param converters: Converters consulted for non-entity targets.
    """

    language: SerializationLanguage = SerializationLanguage.JSON
    field_serialization: FieldSerialization = FieldSerialization.ALL
    serialize_relationships: bool = False
    converters: List[EntityConverter] = field(default_factory=list)

    def with_(self, **changes: Any) -> "SerializerOptions":
        changes.setdefault("converters", list(self.converters))
        return replace(self, **changes)

    def converter_for(self, target: Any) -> Optional[EntityConverter]:
        return next((c for c in self.converters if c.can_convert(target)), None)


def _malformed(message: str, exc: Optional[Exception] = None) -> ProtocolViolationError:
    details = {"error": str(exc)} if exc is not None else None
    return ProtocolViolationError(message, subcode=PROTOCOL_MALFORMED_PAYLOAD, details=details)


def _parse_datetime(text: str) -> _dt.datetime:
    try:
        return _dt.datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        # RFC 1123, as used by Azure storage
        return parsedate_to_datetime(text)


def read_value(field_type: Any, raw: Any) -> Any:
    """Convert a decoded JSON value or XML text to ``field_type``."""
    if raw is None:
        return None
    try:
        if field_type is bool:
            if isinstance(raw, bool):
                return raw
            return str(raw).strip().lower() == "true"
        if field_type is str:
            return raw if isinstance(raw, str) else str(raw)
        if field_type is int:
            return int(raw)
        if field_type is float:
            return float(raw)
        if field_type is Decimal:
            return Decimal(str(raw))
        if field_type is uuid.UUID:
            return raw if isinstance(raw, uuid.UUID) else uuid.UUID(str(raw))
        if field_type is _dt.datetime:
            return raw if isinstance(raw, _dt.datetime) else _parse_datetime(str(raw))
        if field_type is _dt.date:
            return raw if isinstance(raw, _dt.date) else _dt.date.fromisoformat(str(raw))
        if field_type is bytes:
            return raw if isinstance(raw, bytes) else base64.b64decode(str(raw), validate=True)
        if isinstance(field_type, type) and issubclass(field_type, Enum):
            return field_type(raw)
    except (ValueError, TypeError, binascii.Error) as exc:
        raise _malformed(f"Cannot read {raw!r} as {getattr(field_type, '__name__', field_type)}", exc) from exc
    return raw


def write_value(value: Any) -> Any:
    """Convert a field value to its JSON-compatible form."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Enum):
        return write_value(value.value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, _dt.datetime):
        text = value.isoformat()
        return text.replace("+00:00", "Z") if value.tzinfo is not None else text
    if isinstance(value, _dt.date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, bytes):
        return base64.b64encode(value).decode("ascii")
    if isinstance(value, Mapping):
        return {k: write_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [write_value(v) for v in value]
    return str(value)


class EntitySerializer:
    """Serializer for registered entity types in JSON or XML."""

    # ---------------------------- write ----------------------------

    def serialize(self, value: Any, options: SerializerOptions, extra_fields: Optional[Mapping[str, Any]] = None) -> bytes:
        """
        Serialize an entity, a converter-handled value, or a plain mapping.

        ``extra_fields`` are appended after the entity's own fields.
        """
        if options.language is SerializationLanguage.XML:
            return self._serialize_xml(value, options, extra_fields)
        return json.dumps(self.to_object(value, options, extra_fields)).encode("utf-8")

    def to_object(self, value: Any, options: SerializerOptions, extra_fields: Optional[Mapping[str, Any]] = None) -> Any:
        if value is None:
            return None
        if isinstance(value, Entity):
            result = self._entity_to_object(value, options)
        elif isinstance(value, Mapping):
            result = {k: write_value(v) for k, v in value.items()}
        else:
            converter = options.converter_for(type(value))
            if converter is None:
                return write_value(value)
            result = converter.write(self, value, options)
        if extra_fields:
            result.update({k: write_value(v) for k, v in extra_fields.items()})
        return result

    def _entity_to_object(self, value: Entity, options: SerializerOptions) -> Dict[str, Any]:
        descriptor = get_entity_descriptor(value)
        result: Dict[str, Any] = {}
        for f in descriptor.fields:
            if f.is_key and options.field_serialization is FieldSerialization.FIELDS_ONLY:
                continue
            result[f.name] = write_value(getattr(value, f.attribute, None))
        if options.serialize_relationships:
            for relation in descriptor.relations:
                current = getattr(value, relation.attribute, None)
                if isinstance(current, EntityReferenceList):
                    result[relation.name] = [_keys_object(r) for r in current]
                elif isinstance(current, EntityReference):
                    result[relation.name] = _keys_object(current) if current.has_value() else None
        return result

    def _serialize_xml(self, value: Any, options: SerializerOptions, extra_fields: Optional[Mapping[str, Any]]) -> bytes:
        if isinstance(value, Entity):
            descriptor = get_entity_descriptor(value)
            root = ET.Element(descriptor.name)
            for f in descriptor.fields:
                if f.is_key and options.field_serialization is FieldSerialization.FIELDS_ONLY:
                    continue
                _append_xml(root, f.name, getattr(value, f.attribute, None))
        else:
            root = ET.Element("Data")
            for name, item in dict(value or {}).items():
                _append_xml(root, name, item)
        for name, item in (extra_fields or {}).items():
            _append_xml(root, name, item)
        return ET.tostring(root, encoding="utf-8", xml_declaration=True)

    # ---------------------------- read -----------------------------

    def deserialize(self, target: Any, data: bytes, options: SerializerOptions) -> Any:
        """
        Deserialize one ``target`` value from ``data``.

        :raises ~EntityStorage.Http.core.errors.ProtocolViolationError: If the payload is malformed.
        """
        if options.language is SerializationLanguage.XML:
            root = _parse_xml(data)
            return self._entity_from_xml(target, root)
        return self.from_object(target, _parse_json(data), options)

    def deserialize_enumerable(self, target: type, data: bytes, options: SerializerOptions) -> List[Any]:
        """
        Deserialize a sequence of ``target`` entities.

        JSON payloads must be arrays. In XML every element named after the
        target's wire name is read, wherever it appears below the root.
        """
        if options.language is SerializationLanguage.XML:
            root = _parse_xml(data)
            name = get_entity_descriptor(target).name
            return [self._entity_from_xml(target, element) for element in root.iter(name)]
        payload = _parse_json(data)
        if not isinstance(payload, list):
            raise _malformed(f"Expected a JSON array of '{getattr(target, '__name__', target)}'")
        return [self.from_object(target, item, options) for item in payload]

    def from_object(self, target: Any, payload: Any, options: SerializerOptions) -> Any:
        converter = options.converter_for(target)
        if converter is not None:
            return converter.read(self, target, payload, options)
        if payload is None:
            return None
        if not (isinstance(target, type) and is_registered_entity(target)):
            return payload
        if not isinstance(payload, dict):
            raise _malformed(f"Expected a JSON object for '{target.__name__}', got {type(payload).__name__}")

        cls = self._concrete_type(target, payload)
        descriptor = get_entity_descriptor(cls)
        result = cls()
        for f in descriptor.fields:
            if f.name in payload:
                setattr(result, f.attribute, read_value(f.field_type, payload[f.name]))
        if options.serialize_relationships:
            for relation in descriptor.relations:
                if relation.name not in payload:
                    continue
                related = relation.target_type()
                raw = payload[relation.name]
                if relation.is_enumerable:
                    items = raw if isinstance(raw, list) else []
                    references = [_reference_from_object(related, item) for item in items if isinstance(item, dict)]
                    setattr(result, relation.attribute, EntityReferenceList(related, committed=references))
                elif isinstance(raw, dict):
                    setattr(result, relation.attribute, _reference_from_object(related, raw))
                else:
                    setattr(result, relation.attribute, EntityReference.null(related))
        return result

    @staticmethod
    def _concrete_type(target: type, payload: Dict[str, Any]) -> type:
        if not is_entity_abstract(target):
            return target
        type_name = payload.get(ODATA_TYPE)
        if not isinstance(type_name, str):
            return target
        short = type_name.lstrip("#").rsplit(".", 1)[-1].lower()
        for candidate in get_entity_subtypes(target):
            if candidate.__name__.lower() == short or get_entity_descriptor(candidate).name.lower() == short:
                return candidate
        return target

    @staticmethod
    def _entity_from_xml(target: type, element: ET.Element) -> Entity:
        descriptor = get_entity_descriptor(target)
        result = target()
        for f in descriptor.fields:
            child = element.find(f.name)
            if child is not None and child.text is not None:
                setattr(result, f.attribute, read_value(f.field_type, child.text))
        return result


def _keys_object(reference: EntityReference) -> Dict[str, Any]:
    return {name: write_value(value) for name, value in reference.keys.items()}


def _reference_from_object(target: type, payload: Dict[str, Any]) -> EntityReference:
    keys = {k.name: read_value(k.field_type, payload.get(k.name)) for k in get_entity_descriptor(target).keys}
    return EntityReference(target, keys)


def _append_xml(parent: ET.Element, name: str, value: Any) -> None:
    written = write_value(value)
    if written is None:
        return
    child = ET.SubElement(parent, name)
    if isinstance(written, bool):
        child.text = "true" if written else "false"
    else:
        child.text = str(written)


def _parse_json(data: bytes) -> Any:
    try:
        return json.loads(data)
    except ValueError as exc:
        raise _malformed("Response body is not valid JSON", exc) from exc


def _parse_xml(data: bytes) -> ET.Element:
    try:
        return ET.fromstring(data)
    except ET.ParseError as exc:
        raise _malformed("Response body is not valid XML", exc) from exc


__all__ = [
    "FieldSerialization",
    "EntityConverter",
    "SerializerOptions",
    "EntitySerializer",
    "read_value",
    "write_value",
]
