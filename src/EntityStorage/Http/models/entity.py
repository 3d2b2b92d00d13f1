# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Entity metadata descriptors and lookups.

Entity types are described by a statically registered
:class:`EntityDescriptor` holding their wire name, fields, relations and
partitioning. Descriptors are attached with the :func:`entity` class decorator
(or :func:`register_entity`) and validated at registration time.

Example::

    @entity(
        "People",
        EntityField("UserName", "user_name", is_key=True),
        EntityField("FirstName", "first_name"),
        EntityRelation("Friends", "friends", "Person", is_enumerable=True),
    )
    class Person(Entity):
        pass

    person = Person(user_name="russellwhyte", first_name="Russell")
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Type, Union

from ..core._error_codes import CONFIG_ENTITY_INVALID, CONFIG_ENTITY_NOT_REGISTERED
from ..core.errors import ConfigurationError


class EntityFieldKind(str, Enum):
    """Which fields :func:`get_entity_fields` returns."""

    ALL = "all"
    KEYS = "keys"
    FIELDS = "fields"


@dataclass(frozen=True)
class EntityField:
    """
    A single serialized field of an entity.

    :param name: Wire name of the field.
    :type name: str
    :param attribute: Python attribute holding the value.
    :type attribute: str
    :param field_type: Declared value type used when reading payloads and key paths.
    :param is_key: Whether the field is part of the entity key.
    :type is_key: bool
    :param ordinal: 1-based key position. Assigned in declaration order when omitted.
    :type ordinal: int or None
    """

    name: str
    attribute: str
    field_type: Any = str
    is_key: bool = False
    ordinal: Optional[int] = None


@dataclass(frozen=True)
class EntityRelation:
    """
    A relation from one entity type to another.

    ``target`` may be the related class or its class name, for self and
    forward references. Record relations hold an
    :class:`~EntityStorage.Http.models.references.EntityReference`;
    enumerable relations hold an
    :class:`~EntityStorage.Http.models.references.EntityReferenceList`.
    """

    name: str
    attribute: str
    target: Union[type, str]
    is_enumerable: bool = False

    def target_type(self) -> type:
        if isinstance(self.target, str):
            return get_entity_type(self.target)
        return self.target


@dataclass(frozen=True)
class EntityDescriptor:
    name: str
    fields: Tuple[EntityField, ...] = ()
    relations: Tuple[EntityRelation, ...] = ()
    abstract: bool = False
    partition_attribute: Optional[str] = None

    @property
    def keys(self) -> List[EntityField]:
        return sorted((f for f in self.fields if f.is_key), key=lambda f: f.ordinal or 0)


class Entity:
    """
    Base class for storage entities.

    Field attributes default to ``None``; record relations default to a null
    reference and enumerable relations to an empty reference list. Entities
    compare equal when they are of the same type and all field values match.
    """

    def __init__(self, **values: Any) -> None:
        from .references import EntityReference, EntityReferenceList

        descriptor = get_entity_descriptor(type(self))
        self.is_retrieved_from_storage = False
        for f in descriptor.fields:
            setattr(self, f.attribute, values.pop(f.attribute, None))
        for relation in descriptor.relations:
            default: Any
            if relation.is_enumerable:
                default = EntityReferenceList.empty(relation.target_type())
            else:
                default = EntityReference.null(relation.target_type())
            setattr(self, relation.attribute, values.pop(relation.attribute, default))
        if descriptor.partition_attribute and not hasattr(self, descriptor.partition_attribute):
            setattr(self, descriptor.partition_attribute, values.pop(descriptor.partition_attribute, None))
        if values:
            raise TypeError(f"{type(self).__name__} got unexpected fields: {', '.join(sorted(values))}")

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        fields = get_entity_descriptor(type(self)).fields
        return all(getattr(self, f.attribute) == getattr(other, f.attribute) for f in fields)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        fields = get_entity_descriptor(type(self)).fields
        body = ", ".join(f"{f.attribute}={getattr(self, f.attribute, None)!r}" for f in fields)
        return f"{type(self).__name__}({body})"


_LOCK = threading.Lock()
_DESCRIPTORS: Dict[type, EntityDescriptor] = {}
_TYPES_BY_NAME: Dict[str, type] = {}


def _finalize(descriptor: EntityDescriptor, owner: str) -> EntityDescriptor:
    fields: List[EntityField] = []
    next_ordinal = 1
    for f in descriptor.fields:
        if f.is_key and f.ordinal is None:
            f = replace(f, ordinal=next_ordinal)
        if f.is_key:
            next_ordinal = f.ordinal + 1
        fields.append(f)

    names = [f.name for f in fields] + [r.name for r in descriptor.relations]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ConfigurationError(
            f"Entity '{owner}' declares duplicate members: {', '.join(duplicates)}",
            subcode=CONFIG_ENTITY_INVALID,
        )

    ordinals = sorted(f.ordinal for f in fields if f.is_key)
    if ordinals != list(range(1, len(ordinals) + 1)):
        raise ConfigurationError(
            f"Entity '{owner}' key ordinals must be unique, 1-based and dense; got {ordinals}",
            subcode=CONFIG_ENTITY_INVALID,
            details={"ordinals": ordinals},
        )
    return replace(descriptor, fields=tuple(fields))


def register_entity(cls: type, descriptor: EntityDescriptor) -> type:
    """
    Attach a descriptor to an entity class.

    Members of a registered base class are inherited ahead of the class's own
    members.

    :raises ~EntityStorage.Http.core.errors.ConfigurationError: If key
        ordinals are not unique and dense, or member names repeat.
    """
    parent = next((_DESCRIPTORS[b] for b in cls.__mro__[1:] if b in _DESCRIPTORS), None)
    if parent is not None:
        own = {f.name for f in descriptor.fields} | {r.name for r in descriptor.relations}
        descriptor = replace(
            descriptor,
            fields=tuple(f for f in parent.fields if f.name not in own) + tuple(descriptor.fields),
            relations=tuple(r for r in parent.relations if r.name not in own) + tuple(descriptor.relations),
            partition_attribute=descriptor.partition_attribute or parent.partition_attribute,
        )
    descriptor = _finalize(descriptor, cls.__name__)
    with _LOCK:
        _DESCRIPTORS[cls] = descriptor
        _TYPES_BY_NAME[cls.__name__] = cls
    return cls


def entity(
    name: str,
    *members: Union[EntityField, EntityRelation],
    abstract: bool = False,
    partition_attribute: Optional[str] = None,
):
    """Class decorator registering an entity type under its wire ``name``."""

    def decorator(cls: type) -> type:
        descriptor = EntityDescriptor(
            name=name,
            fields=tuple(m for m in members if isinstance(m, EntityField)),
            relations=tuple(m for m in members if isinstance(m, EntityRelation)),
            abstract=abstract,
            partition_attribute=partition_attribute,
        )
        return register_entity(cls, descriptor)

    return decorator


def _as_type(cls_or_entity: Any) -> type:
    return cls_or_entity if isinstance(cls_or_entity, type) else type(cls_or_entity)


def get_entity_descriptor(cls_or_entity: Any) -> EntityDescriptor:
    cls = _as_type(cls_or_entity)
    for candidate in cls.__mro__:
        descriptor = _DESCRIPTORS.get(candidate)
        if descriptor is not None:
            return descriptor
    raise ConfigurationError(
        f"Type '{cls.__name__}' is not a registered entity",
        subcode=CONFIG_ENTITY_NOT_REGISTERED,
    )


def is_registered_entity(cls_or_entity: Any) -> bool:
    cls = _as_type(cls_or_entity)
    return any(c in _DESCRIPTORS for c in cls.__mro__)


def get_entity_type(class_name: str) -> type:
    cls = _TYPES_BY_NAME.get(class_name)
    if cls is None:
        raise ConfigurationError(
            f"No entity class named '{class_name}' is registered",
            subcode=CONFIG_ENTITY_NOT_REGISTERED,
        )
    return cls


def get_entity_subtypes(cls: type) -> List[type]:
    """Registered entity classes deriving from ``cls``, including ``cls`` itself."""
    with _LOCK:
        return [c for c in _DESCRIPTORS if issubclass(c, cls)]


def get_entity_name(cls_or_entity: Any) -> str:
    return get_entity_descriptor(cls_or_entity).name


def get_entity_fields(cls_or_entity: Any, kind: EntityFieldKind = EntityFieldKind.ALL) -> List[EntityField]:
    descriptor = get_entity_descriptor(cls_or_entity)
    if kind is EntityFieldKind.KEYS:
        return descriptor.keys
    if kind is EntityFieldKind.FIELDS:
        return [f for f in descriptor.fields if not f.is_key]
    return list(descriptor.fields)


def get_entity_field(cls_or_entity: Any, name_or_ordinal: Union[str, int]) -> Optional[EntityField]:
    """
    Look up a field by wire name, attribute name, or key ordinal.

    Integer lookups only match key fields.
    """
    descriptor = get_entity_descriptor(cls_or_entity)
    if isinstance(name_or_ordinal, int):
        return next((f for f in descriptor.fields if f.is_key and f.ordinal == name_or_ordinal), None)
    for f in descriptor.fields:
        if f.name == name_or_ordinal:
            return f
    return next((f for f in descriptor.fields if f.attribute == name_or_ordinal), None)


def get_entity_key_values(entity_obj: Any) -> Dict[EntityField, Any]:
    """Key fields of ``entity_obj`` mapped to their values, in ordinal order."""
    return {f: getattr(entity_obj, f.attribute, None) for f in get_entity_descriptor(entity_obj).keys}


def get_entity_relations(cls_or_entity: Any) -> List[EntityRelation]:
    return list(get_entity_descriptor(cls_or_entity).relations)


def get_entity_relation(cls_or_entity: Any, name: str) -> Optional[EntityRelation]:
    for relation in get_entity_descriptor(cls_or_entity).relations:
        if relation.name == name or relation.attribute == name:
            return relation
    return None


def get_partition_value(entity_obj: Any) -> Any:
    attribute = get_entity_descriptor(entity_obj).partition_attribute
    if attribute is None:
        return None
    return getattr(entity_obj, attribute, None)


def is_entity_abstract(cls_or_entity: Any) -> bool:
    return get_entity_descriptor(cls_or_entity).abstract


def format_key_segment(value: Any) -> str:
    """Render a key value for use inside a URL path."""
    if value is None:
        raise ValueError("Key values used in a path cannot be None.")
    if isinstance(value, str):
        return value
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, Enum):
        return format_key_segment(value.value)
    return str(value)


def parse_key_segment(field_type: Any, segment: str) -> Any:
    """Inverse of :func:`format_key_segment` for the declared field type."""
    if field_type is uuid.UUID:
        return uuid.UUID(segment)
    if field_type is int:
        return int(segment)
    return segment


EntityType = Type[Entity]

__all__ = [
    "EntityFieldKind",
    "EntityField",
    "EntityRelation",
    "EntityDescriptor",
    "Entity",
    "entity",
    "register_entity",
    "get_entity_descriptor",
    "is_registered_entity",
    "get_entity_type",
    "get_entity_subtypes",
    "get_entity_name",
    "get_entity_fields",
    "get_entity_field",
    "get_entity_key_values",
    "get_entity_relations",
    "get_entity_relation",
    "get_partition_value",
    "is_entity_abstract",
    "format_key_segment",
    "parse_key_segment",
]
