# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Shared state and helpers for the protocol handlers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Tuple

from ..core._error_codes import CONFIG_CONNECTOR_KIND
from ..core._provider import _ClientProvider, _ServiceClient
from ..core.config import StorageConfig
from ..core.errors import ConfigurationError
from ..core.registry import ServiceReference
from ..models.connectors import StorageConnector
from ..models.entity import Entity, get_entity_relations
from ..models.filters import ODataFilterFormatter
from ..models.query import BlobDataQuery, KeyQuery, OperationKind
from ..models.references import EntityReference, EntityReferenceList, ReferenceResolver
from ._serializer import EntitySerializer, SerializerOptions


Dispatch = Callable[..., Any]


@dataclass
class _HandlerContext:
    """Collaborators shared by every handler of one client."""

    provider: _ClientProvider
    serializer: EntitySerializer
    filters: ODataFilterFormatter
    config: StorageConfig
    dispatch: Dispatch


class _RecordReferenceResolver(ReferenceResolver):
    """Resolves a reference with a key query against the service it was read from."""

    def __init__(self, dispatch: Dispatch, service_ref: ServiceReference) -> None:
        self._dispatch = dispatch
        self._service_ref = service_ref

    def resolve(self, reference: EntityReference) -> Optional[Entity]:
        query = KeyQuery(reference.target, reference.keys)
        return self._dispatch(self._service_ref, OperationKind.RECORD_QUERY, query)


class _BlobDataResolver(ReferenceResolver):
    """Resolves a blob reference by fetching the blob body at a fixed path."""

    def __init__(self, dispatch: Dispatch, service_ref: ServiceReference, blob_path: str) -> None:
        self._dispatch = dispatch
        self._service_ref = service_ref
        self.blob_path = blob_path

    def resolve(self, reference: EntityReference) -> Optional[Entity]:
        query = BlobDataQuery(reference.target, self.blob_path)
        return self._dispatch(self._service_ref, OperationKind.BLOB_DATA_QUERY, query)


class _StorageHandlerBase:
    """
    Base for protocol handlers.

    Subclasses set ``connector_type`` to the connector class they accept.
    """

    connector_type: type = StorageConnector

    def __init__(self, context: _HandlerContext) -> None:
        self._context = context
        self._serializer = context.serializer
        self._filters = context.filters

    def _connector(self, service_ref: ServiceReference) -> Any:
        connector = self._context.provider.get_connector(service_ref)
        if not isinstance(connector, self.connector_type):
            raise ConfigurationError(
                f"Service '{service_ref.name}' is configured with {type(connector).__name__}; "
                f"{type(self).__name__} requires {self.connector_type.__name__}",
                subcode=CONFIG_CONNECTOR_KIND,
            )
        return connector

    def _client(self, service_ref: ServiceReference) -> _ServiceClient:
        return self._context.provider.get_client(service_ref)

    @staticmethod
    def _options(connector: StorageConnector) -> SerializerOptions:
        return SerializerOptions(language=connector.serialization_language)

    def _key_predicate(self, pairs: Iterable[Tuple[str, Any]]) -> str:
        return ",".join(f"{name} = {self._filters.get_filter_value_string(value)}" for name, value in pairs)

    def _bind_references(self, service_ref: ServiceReference, entity_obj: Entity) -> Entity:
        resolver = _RecordReferenceResolver(self._context.dispatch, service_ref)
        for relation in get_entity_relations(entity_obj):
            current = getattr(entity_obj, relation.attribute, None)
            if isinstance(current, (EntityReference, EntityReferenceList)):
                current.bind(resolver)
        return entity_obj
