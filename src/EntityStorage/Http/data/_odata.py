# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
OData-style storage handler: record and collection queries, entity saves and
action commands. Azure table storage shares this handler through
:class:`~EntityStorage.Http.models.connectors.TableConnector`.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Optional

from ..core._error_codes import (
    CONFIG_RELATION_NO_KEYS,
    UNSUPPORTED_ACTION_PARTITION,
    UNSUPPORTED_ACTION_RELATIONS,
    UNSUPPORTED_NEXT_LINK,
    VALIDATION_RELATION_REFERENCE_MISSING,
)
from ..core.errors import ConfigurationError, UnsupportedOperationError, ValidationError
from ..core.registry import ServiceReference
from ..models.connectors import ODataConnector
from ..models.entity import (
    Entity,
    EntityFieldKind,
    format_key_segment,
    get_entity_fields,
    get_entity_key_values,
    get_entity_name,
    get_entity_relations,
    get_partition_value,
    is_entity_abstract,
)
from ..models.query import (
    ActionCommand,
    ActionCommandType,
    ActionResult,
    QueryParameters,
    RecordQuery,
    SaveResult,
)
from ..models.references import EntityReference, EntityReferenceList, RelationAction
from ._base import _StorageHandlerBase
from ._envelope import ENVELOPE_CONVERTERS, CollectionEnvelope, RecordEnvelope
from ._relationships import _RelationshipOperationsMixin
from ._serializer import FieldSerialization, SerializerOptions

logger = logging.getLogger(__name__)

_ACTION_METHODS = {
    ActionCommandType.CREATE: "post",
    ActionCommandType.READ: "get",
    ActionCommandType.UPDATE: "patch",
    ActionCommandType.UPSERT: "put",
}


class _ODataStorageHandler(_StorageHandlerBase, _RelationshipOperationsMixin):
    """Executes queries and commands against OData-style services."""

    connector_type = ODataConnector

    # --------------------------- queries ---------------------------

    def _query_params(
        self,
        entity_type: type,
        query: RecordQuery,
        parameters: Optional[QueryParameters] = None,
    ) -> Dict[str, Any]:
        """
        Build ``$select``, ``$filter``, ``$top``, ``$skip`` and ``$expand``.

        ``$select`` is omitted for abstract entity types since their concrete
        fields are unknown; ``$filter`` is omitted when empty.
        """
        expand: List[str] = []
        for relation in get_entity_relations(entity_type):
            keys = get_entity_fields(relation.target_type(), EntityFieldKind.KEYS)
            if not keys:
                raise ConfigurationError(
                    f"Relation '{relation.name}' on '{entity_type.__name__}' targets an entity without key fields",
                    subcode=CONFIG_RELATION_NO_KEYS,
                )
            expand.append(f"{relation.name}($select={','.join(k.name for k in keys)})")

        params: Dict[str, Any] = {}
        if not is_entity_abstract(entity_type):
            params["$select"] = ",".join(f.name for f in get_entity_fields(entity_type))
        filter_string = self._filters.get_filter_string(query.get_filter())
        if filter_string:
            params["$filter"] = filter_string
        if parameters is not None and parameters.top is not None:
            params["$top"] = parameters.top
        if parameters is not None and parameters.skip is not None:
            params["$skip"] = parameters.skip
        if expand:
            params["$expand"] = ",".join(expand)
        return params

    def _read_options(self, connector: ODataConnector) -> SerializerOptions:
        return self._options(connector).with_(serialize_relationships=True, converters=list(ENVELOPE_CONVERTERS))

    def _get_record(self, service_ref: ServiceReference, query: RecordQuery) -> Optional[Entity]:
        """
        Execute a record query with a single GET.

        :return: The matching entity, or ``None`` when the response holds no value.
        :raises ~EntityStorage.Http.core.errors.ProtocolViolationError: If more than one entity is returned.
        """
        connector = self._connector(service_ref)
        client = self._client(service_ref)
        entity_type = query.entity_type
        params = self._query_params(entity_type, query)

        r = client.request("get", get_entity_name(entity_type), params=params)
        envelope = self._serializer.deserialize(RecordEnvelope[entity_type], r.content, self._read_options(connector))
        if envelope.value is None:
            return None
        result = self._bind_references(service_ref, envelope.value)
        result.is_retrieved_from_storage = True
        return result

    def _get_multiple(
        self,
        service_ref: ServiceReference,
        query: RecordQuery,
        parameters: Optional[QueryParameters] = None,
    ) -> Iterator[Entity]:
        """
        Execute a collection query, yielding entities page by page.

        Pages are fetched sequentially. ``@odata.nextLink`` continuations are
        followed when ``follow_next_link`` is configured. With ``top`` set, a
        ``$top`` window may arrive over several next-link pages; once the
        window is exhausted and held ``top`` entities, the next window is
        requested with ``skip`` advanced by ``top``.

        :raises ~EntityStorage.Http.core.errors.UnsupportedOperationError: On a
            next link when ``follow_next_link`` is disabled.
        """
        connector = self._connector(service_ref)
        client = self._client(service_ref)
        entity_type = query.entity_type
        label = get_entity_name(entity_type)
        options = self._read_options(connector)
        target = CollectionEnvelope[entity_type]

        r = client.request("get", label, params=self._query_params(entity_type, query, parameters))
        window = 0
        while True:
            envelope = self._serializer.deserialize(target, r.content, options)
            for item in envelope.value:
                self._bind_references(service_ref, item)
                item.is_retrieved_from_storage = True
                yield item
            window += len(envelope.value)

            if envelope.next_link:
                if not self._context.config.follow_next_link:
                    raise UnsupportedOperationError(
                        "Response carried @odata.nextLink but next link pagination is disabled",
                        subcode=UNSUPPORTED_NEXT_LINK,
                        details={"next_link": envelope.next_link},
                    )
                logger.debug("Following next link for %s", label)
                r = client.request("get", envelope.next_link)
                continue

            if parameters is None or parameters.top is None or not window or window < parameters.top:
                return
            parameters = parameters.next_page()
            window = 0
            logger.debug("Requesting %s page top=%s skip=%s", label, parameters.top, parameters.skip)
            r = client.request("get", label, params=self._query_params(entity_type, query, parameters))

    # ---------------------------- saves ----------------------------

    def _save(self, service_ref: ServiceReference, entity_obj: Entity) -> SaveResult:
        """
        Insert or update an entity and synchronize its relations.

        Entities not retrieved from storage are inserted with POST; others
        are updated with PATCH addressed by their key predicate. Pending
        record relations are saved before the primary write and enumerable
        relations after it. A failure stops the sequence; relation links
        already saved are not rolled back.
        """
        connector = self._connector(service_ref)
        client = self._client(service_ref)
        label = get_entity_name(entity_obj)
        options = self._options(connector)
        partition_value = get_partition_value(entity_obj)
        partition_field = connector.partition_key_field_name
        extra_fields: Dict[str, Any] = {}

        if entity_obj.is_retrieved_from_storage:
            method = "patch"
            options = options.with_(field_serialization=FieldSerialization.FIELDS_ONLY)
            pairs = [(f.name, v) for f, v in get_entity_key_values(entity_obj).items()]
            if partition_value is not None and partition_field:
                pairs.append((partition_field, partition_value))
            path = f"{label}({self._key_predicate(pairs)})"
        else:
            method = "post"
            path = label
            if partition_value is not None and partition_field:
                extra_fields[partition_field] = partition_value
        logger.debug("Saving %s with %s", label, method.upper())

        relations = get_entity_relations(entity_obj)
        saved_records: Dict[str, EntityReference] = {}
        for relation in relations:
            if relation.is_enumerable:
                continue
            reference = getattr(entity_obj, relation.attribute, None)
            if not isinstance(reference, EntityReference):
                raise ValidationError(
                    f"Relation '{relation.name}' on {type(entity_obj).__name__} has no reference; "
                    "assign EntityReference.null() to clear it",
                    subcode=VALIDATION_RELATION_REFERENCE_MISSING,
                )
            if reference.action is RelationAction.NONE:
                continue
            self._save_relation(service_ref, relation, entity_obj, reference)
            saved_records[relation.attribute] = reference.committed()

        payload = self._serializer.serialize(entity_obj, options, extra_fields)
        client.request(method, path, data=payload)
        entity_obj.is_retrieved_from_storage = True

        committed_lists: Dict[str, EntityReferenceList] = {}
        for relation in relations:
            if not relation.is_enumerable:
                continue
            references = getattr(entity_obj, relation.attribute, None)
            if not isinstance(references, EntityReferenceList):
                raise ValidationError(
                    f"Relation '{relation.name}' on {type(entity_obj).__name__} has no reference list; "
                    "assign EntityReferenceList.empty() for no members",
                    subcode=VALIDATION_RELATION_REFERENCE_MISSING,
                )
            for reference in references.pending():
                self._save_relation(service_ref, relation, entity_obj, reference)
            for reference in references.removed_references:
                self._save_relation(service_ref, relation, entity_obj, reference, is_deleted=True)
            committed_lists[relation.attribute] = references.commit()

        for attribute, reference in saved_records.items():
            setattr(entity_obj, attribute, reference)
        for attribute, references in committed_lists.items():
            setattr(entity_obj, attribute, references)
        return SaveResult(is_successful=True, entity=entity_obj)

    # --------------------------- actions ---------------------------

    def _execute_action(self, service_ref: ServiceReference, command: ActionCommand) -> ActionResult:
        """
        Invoke an action whose URL template is the parameters' entity name.

        :raises ~EntityStorage.Http.core.errors.UnsupportedOperationError: If
            the parameters carry a partition value or declare relations.
        """
        parameters = command.parameters
        label = get_entity_name(parameters)
        for f, value in get_entity_key_values(parameters).items():
            placeholder = "{" + f.name + "}"
            if placeholder in label:
                label = label.replace(placeholder, format_key_segment(value))

        partition_value = get_partition_value(parameters)
        if partition_value is not None and partition_value != "":
            raise UnsupportedOperationError(
                "Partitioned action parameters are not supported",
                subcode=UNSUPPORTED_ACTION_PARTITION,
            )
        if get_entity_relations(parameters):
            raise UnsupportedOperationError(
                "Action parameters with relations are not supported",
                subcode=UNSUPPORTED_ACTION_RELATIONS,
            )

        connector = self._connector(service_ref)
        client = self._client(service_ref)
        options = self._options(connector)
        method = _ACTION_METHODS[ActionCommandType(command.action_type)]
        payload = self._serializer.serialize(parameters, options)

        r = client.request(method, label, data=payload)
        result = None
        if command.response_type is not None and r.content:
            result = self._serializer.deserialize(command.response_type, r.content, options)
        return ActionResult(is_successful=True, result=result)
