# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Record query, save and relation operations namespace."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional, Union

from ..core.registry import ServiceReference
from ..models.entity import Entity, EntityRelation, get_entity_relation
from ..models.query import OperationKind, RecordQuery, RelationSaveResult, SaveResult
from ..models.references import EntityReference

if TYPE_CHECKING:
    from ..client import StorageClient


class RecordOperations:
    """
    Single-entity operations.

    Accessed via ``client.records``.

    Example::

        person = client.records.get(people, PersonByUserNameQuery("russellwhyte"))
        person.first_name = "Russell"
        client.records.save(people, person)
    """

    def __init__(self, client: "StorageClient") -> None:
        self._client = client

    def get(self, service_ref: ServiceReference, query: RecordQuery) -> Optional[Entity]:
        """
        Execute a record query.

        :param service_ref: Target service.
        :type service_ref: ~EntityStorage.Http.core.registry.ServiceReference
        :param query: Query selecting at most one entity.
        :type query: ~EntityStorage.Http.models.query.RecordQuery
        :return: The entity, marked as retrieved from storage, or ``None``.

        :raises TypeError: If ``query`` is not a RecordQuery.
        :raises ~EntityStorage.Http.core.errors.ProtocolViolationError: If the service returns more than one entity.
        """
        if not isinstance(query, RecordQuery):
            raise TypeError("query must be a RecordQuery")
        with self._client._scoped("records.get"):
            return self._client._dispatch(service_ref, OperationKind.RECORD_QUERY, query)

    def save(self, service_ref: ServiceReference, entity: Entity) -> SaveResult:
        """
        Insert or update an entity.

        Entities not retrieved from storage are created; others are updated.
        Pending relation changes are saved alongside, sharing one correlation id.

        :param service_ref: Target service.
        :type service_ref: ~EntityStorage.Http.core.registry.ServiceReference
        :param entity: Entity to save.
        :return: Save result holding the saved entity.
        :rtype: ~EntityStorage.Http.models.query.SaveResult

        :raises TypeError: If ``entity`` is not an Entity.
        """
        if not isinstance(entity, Entity):
            raise TypeError("entity must be an Entity")
        with self._client._scoped("records.save"):
            return self._client._dispatch(service_ref, OperationKind.SAVE, entity)

    def save_relation(
        self,
        service_ref: ServiceReference,
        relation: Union[EntityRelation, str],
        parent: Entity,
        reference: Any,
        is_deleted: bool = False,
    ) -> RelationSaveResult:
        """
        Add or remove a single relation link on a persisted parent.

        :param relation: Relation descriptor, or its wire or attribute name.
        :param parent: Entity owning the relation.
        :param reference: Related entity or reference to it.
        :param is_deleted: Remove the link instead of adding it.
        :type is_deleted: bool

        :raises ValueError: If ``relation`` names no relation of ``parent``.
        :raises ~EntityStorage.Http.core.errors.UnsupportedOperationError: If ``parent`` was not retrieved from storage.
        """
        if isinstance(relation, str):
            resolved = get_entity_relation(parent, relation)
            if resolved is None:
                raise ValueError(f"{type(parent).__name__} has no relation named '{relation}'")
            relation = resolved
        if isinstance(reference, Entity):
            reference = EntityReference.from_entity(reference)
        with self._client._scoped("records.save_relation"):
            return self._client._dispatch(service_ref, OperationKind.SAVE_RELATION, relation, parent, reference, is_deleted)
