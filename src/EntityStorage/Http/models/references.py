# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Lazy relation references.

An :class:`EntityReference` identifies a related entity by its key values and
resolves it on demand through an explicit :class:`ReferenceResolver`.
An :class:`EntityReferenceList` tracks the members of an enumerable relation
as a committed snapshot plus pending additions and removals; :meth:`~EntityReferenceList.commit`
produces a new committed list instead of mutating the receiver.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from .entity import Entity, get_entity_key_values


class RelationAction(str, Enum):
    """Pending change carried by a reference until the owning entity is saved."""

    NONE = "none"
    SET = "set"
    CLEAR = "clear"
    ADDED = "added"
    REMOVED = "removed"


class ReferenceResolver(ABC):
    """Resolution context bound to references returned from storage."""

    @abstractmethod
    def resolve(self, reference: "EntityReference") -> Optional[Entity]:
        """Fetch the entity identified by ``reference``."""


class EntityReference:
    """
    Handle to a related entity.

    :param target: Related entity class.
    :type target: type
    :param keys: Key values keyed by wire field name, in ordinal order.
    :type keys: dict[str, Any] or None
    :param resolver: Context used by :meth:`get` to fetch the entity.
    :type resolver: ~EntityStorage.Http.models.references.ReferenceResolver or None
    :param action: Pending change.
    :type action: ~EntityStorage.Http.models.references.RelationAction
    """

    def __init__(
        self,
        target: type,
        keys: Optional[Dict[str, Any]] = None,
        resolver: Optional[ReferenceResolver] = None,
        action: RelationAction = RelationAction.NONE,
    ) -> None:
        self.target = target
        self.keys: Dict[str, Any] = dict(keys or {})
        self.resolver = resolver
        self.action = action
        self._cache_key: Optional[Tuple[Tuple[str, Any], ...]] = None
        self._cached: Optional[Entity] = None

    @classmethod
    def null(cls, target: type) -> "EntityReference":
        return cls(target)

    @classmethod
    def from_entity(cls, value: Entity, action: RelationAction = RelationAction.NONE) -> "EntityReference":
        reference = cls(type(value), _keys_of(value), action=action)
        reference._remember(value)
        return reference

    def identity(self) -> Tuple[Tuple[str, Any], ...]:
        return tuple(self.keys.items())

    def has_value(self) -> bool:
        return bool(self.keys) and all(v is not None for v in self.keys.values())

    def bind(self, resolver: ReferenceResolver) -> "EntityReference":
        self.resolver = resolver
        return self

    def get(self, refresh: bool = False) -> Optional[Entity]:
        """
        Resolve the referenced entity.

        The resolver is invoked at most once per distinct key set unless
        ``refresh`` is set.

        :raises RuntimeError: If the reference has keys but no resolver.
        """
        if not self.has_value():
            return None
        if not refresh and self._cache_key == self.identity():
            return self._cached
        if self.resolver is None:
            raise RuntimeError(f"Reference to '{self.target.__name__}' has no resolver bound.")
        self._remember(self.resolver.resolve(self))
        return self._cached

    def set(self, value: Entity) -> None:
        """Point the reference at ``value`` and mark it for saving."""
        self.keys = _keys_of(value)
        self._remember(value)
        self.action = RelationAction.SET

    def clear(self) -> None:
        self.keys = {}
        self._cache_key = None
        self._cached = None
        self.action = RelationAction.CLEAR

    def committed(self) -> "EntityReference":
        """Copy of this reference with no pending action."""
        copy = EntityReference(self.target, self.keys, self.resolver, RelationAction.NONE)
        copy._cache_key, copy._cached = self._cache_key, self._cached
        return copy

    def _with_action(self, action: RelationAction) -> "EntityReference":
        copy = self.committed()
        copy.action = action
        return copy

    def _remember(self, value: Optional[Entity]) -> None:
        self._cache_key = self.identity()
        self._cached = value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EntityReference):
            return NotImplemented
        return self.target is other.target and self.identity() == other.identity() and self.action == other.action

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"EntityReference({self.target.__name__}, keys={self.keys!r}, action={self.action.value})"


def _keys_of(value: Entity) -> Dict[str, Any]:
    return {f.name: v for f, v in get_entity_key_values(value).items()}


def _as_reference(target: type, item: Any) -> EntityReference:
    if isinstance(item, EntityReference):
        return item
    if isinstance(item, Entity):
        return EntityReference.from_entity(item)
    raise TypeError(f"Expected an EntityReference or {target.__name__}, got {type(item).__name__}")


class EntityReferenceList:
    """
    Members of an enumerable relation with a pending diff.

    Iteration yields current members: committed entries that have not been
    removed, followed by added entries.
    """

    def __init__(
        self,
        target: type,
        committed: Iterable[EntityReference] = (),
        added: Iterable[EntityReference] = (),
        removed: Iterable[EntityReference] = (),
    ) -> None:
        self.target = target
        self._committed: Tuple[EntityReference, ...] = tuple(committed)
        self._added: List[EntityReference] = list(added)
        self._removed: List[EntityReference] = list(removed)

    @classmethod
    def empty(cls, target: type) -> "EntityReferenceList":
        return cls(target)

    def add(self, item: Any) -> EntityReference:
        reference = _as_reference(self.target, item)
        identity = reference.identity()
        for pending in self._removed:
            if pending.identity() == identity:
                self._removed.remove(pending)
                return next(r for r in self._committed if r.identity() == identity)
        added = reference._with_action(RelationAction.ADDED)
        self._added.append(added)
        return added

    def remove(self, item: Any) -> None:
        """
        Remove a member.

        :raises ValueError: If ``item`` is not a current member.
        """
        identity = _as_reference(self.target, item).identity()
        for pending in self._added:
            if pending.identity() == identity:
                self._added.remove(pending)
                return
        removed_ids = {r.identity() for r in self._removed}
        for member in self._committed:
            if member.identity() == identity and identity not in removed_ids:
                self._removed.append(member._with_action(RelationAction.REMOVED))
                return
        raise ValueError(f"Reference {dict(identity)!r} is not a member of the list.")

    @property
    def removed_references(self) -> Tuple[EntityReference, ...]:
        return tuple(self._removed)

    def pending(self) -> List[EntityReference]:
        return [r for r in self if r.action is not RelationAction.NONE]

    def has_changes(self) -> bool:
        return bool(self._added or self._removed)

    def commit(self) -> "EntityReferenceList":
        """Return a committed list holding the net survivors, all with no pending action."""
        return EntityReferenceList(self.target, committed=[r.committed() for r in self])

    def bind(self, resolver: ReferenceResolver) -> "EntityReferenceList":
        for reference in (*self._committed, *self._added, *self._removed):
            reference.bind(resolver)
        return self

    def _current(self) -> List[EntityReference]:
        removed_ids = {r.identity() for r in self._removed}
        return [r for r in self._committed if r.identity() not in removed_ids] + self._added

    def __iter__(self) -> Iterator[EntityReference]:
        return iter(self._current())

    def __len__(self) -> int:
        return len(self._current())

    def __getitem__(self, index: int) -> EntityReference:
        return self._current()[index]

    def __repr__(self) -> str:
        return (
            f"EntityReferenceList({self.target.__name__}, members={len(self)}, "
            f"added={len(self._added)}, removed={len(self._removed)})"
        )


__all__ = [
    "RelationAction",
    "ReferenceResolver",
    "EntityReference",
    "EntityReferenceList",
]
