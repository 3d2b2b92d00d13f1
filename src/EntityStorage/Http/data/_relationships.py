# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Relation link operations for OData-style APIs.

This module provides mixin functionality for adding and removing relation
links through ``$ref`` navigation requests.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from ..core._error_codes import UNSUPPORTED_RELATION_UNSAVED_PARENT
from ..core.errors import UnsupportedOperationError
from ..core.registry import ServiceReference
from ..models.entity import (
    Entity,
    EntityField,
    EntityRelation,
    entity,
    get_entity_key_values,
    get_entity_name,
    get_partition_value,
)
from ..models.query import RelationSaveResult
from ..models.references import EntityReference, RelationAction
from ._serializer import FieldSerialization

logger = logging.getLogger(__name__)


@entity("RelationLink", EntityField("@odata.id", "related_entity_id"))
class _RelationLinkRequest(Entity):
    pass


class _RelationshipOperationsMixin:
    """
    Mixin providing relation link operations.

    This mixin is designed to be used with _ODataStorageHandler and depends on:
    - self._connector(): Resolve the connector for a service reference
    - self._client(): Resolve the service client for a service reference
    - self._options(): Serializer options for a connector
    - self._key_predicate(): Render ``field = value`` pairs
    - self._serializer: The entity serializer
    """

    def _save_relation(
        self,
        service_ref: ServiceReference,
        relation: EntityRelation,
        parent: Entity,
        reference: EntityReference,
        is_deleted: bool = False,
    ) -> RelationSaveResult:
        """
        Add or remove one relation link.

        Posts ``{"@odata.id": "<base>/<Related>(<keys>)"}`` to
        ``<Parent>(<keys>)/<relation>/$ref``, or sends DELETE when the
        reference is empty or deleted. Deleting from an enumerable relation
        addresses the member: ``<Parent>(<keys>)/<relation>(<keys>)/$ref``.

        :param service_ref: Service holding the parent entity.
        :type service_ref: ~EntityStorage.Http.core.registry.ServiceReference
        :param relation: Relation being changed.
        :type relation: ~EntityStorage.Http.models.entity.EntityRelation
        :param parent: Owning entity; must have been retrieved from storage.
        :param reference: Related entity reference.
        :type reference: ~EntityStorage.Http.models.references.EntityReference
        :param is_deleted: Remove the link regardless of the reference's action.
        :type is_deleted: bool

        :return: Result of the link request.
        :rtype: ~EntityStorage.Http.models.query.RelationSaveResult

        :raises ~EntityStorage.Http.core.errors.UnsupportedOperationError: If ``parent`` is not persisted.
        :raises ~EntityStorage.Http.core.errors.RemoteRequestError: If the request fails.
        """
        if not parent.is_retrieved_from_storage:
            raise UnsupportedOperationError(
                f"Cannot save relation '{relation.name}' against a {type(parent).__name__} not retrieved from storage",
                subcode=UNSUPPORTED_RELATION_UNSAVED_PARENT,
            )

        connector = self._connector(service_ref)
        client = self._client(service_ref)
        options = self._options(connector).with_(field_serialization=FieldSerialization.ALL)

        extra_fields: Dict[str, Any] = {}
        partition_value = get_partition_value(parent)
        if partition_value is not None and connector.partition_key_field_name:
            extra_fields[connector.partition_key_field_name] = partition_value

        is_deleted = is_deleted or reference.action in (RelationAction.CLEAR, RelationAction.REMOVED)
        parent_predicate = self._key_predicate((f.name, v) for f, v in get_entity_key_values(parent).items())
        related_predicate = self._key_predicate(reference.keys.items())

        path = f"{get_entity_name(parent)}({parent_predicate})/{relation.name}"
        if relation.is_enumerable and is_deleted:
            path += f"({related_predicate})"
        path += "/$ref"

        if is_deleted or not reference.has_value():
            method = "delete"
            body = self._serializer.serialize(extra_fields, options) if extra_fields else None
        else:
            method = "post"
            link = _RelationLinkRequest(
                related_entity_id=f"{client.base_url}/{get_entity_name(reference.target)}({related_predicate})"
            )
            body = self._serializer.serialize(link, options, extra_fields)

        logger.debug("%s relation link %s", method.upper(), path)
        client.request(method, path, data=body)
        return RelationSaveResult(is_successful=True)
