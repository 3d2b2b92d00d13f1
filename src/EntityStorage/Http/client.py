# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

import requests

from .core._auth import Authenticator, NoAuthenticator
from .core._error_codes import CONFIG_HANDLER_MISSING
from .core._http import _call_scope, _HttpClient
from .core._provider import _ClientProvider
from .core.config import StorageConfig
from .core.errors import ConfigurationError
from .core.registry import InMemoryServiceRegistry, ServiceReference
from .core.telemetry import create_telemetry_manager
from .data._base import _HandlerContext
from .data._blob import _BlobStorageHandler
from .data._odata import _ODataStorageHandler
from .data._queue import _QueueStorageHandler
from .data._serializer import EntitySerializer
from .models.connectors import ConnectorKind
from .models.filters import ODataFilterFormatter
from .models.query import OperationKind
from .operations.actions import ActionOperations
from .operations.query import QueryOperations
from .operations.records import RecordOperations

Handler = Callable[..., Any]


class StorageClient:
    """
    High-level client for entity storage over HTTP.

    The client resolves each :class:`~EntityStorage.Http.core.registry.ServiceReference`
    to exactly one connector through the registry, then routes the operation to
    the handler for that connector kind: OData and table services support
    queries, saves, relation links and actions; blob services support prefix
    listings, blob reads and saves; queue services support message saves.

    **Context Manager Support (Recommended)**:
        Using the client as a context manager enables connection pooling and
        releases resources on exit::

            with StorageClient(registry, TokenCredentialAuthenticator(credential)) as client:
                result = client.records.save(people, person)

    Operations are organized under namespaces:

        - ``client.records``: record queries, saves and relation links
        - ``client.query``: collection queries, blob listings and blob reads
        - ``client.actions``: action commands

    :param registry: Registry resolving service references to connectors.
    :type registry: ~EntityStorage.Http.core.registry.InMemoryServiceRegistry
    :param authenticator: Attaches credentials to requests. Defaults to no authentication.
    :type authenticator: ~EntityStorage.Http.core._auth.Authenticator or None
    :param config: Optional configuration for timeouts, pagination and logging.
        If not provided, defaults are loaded from :meth:`~EntityStorage.Http.core.config.StorageConfig.from_env`.
    :type config: ~EntityStorage.Http.core.config.StorageConfig or None
    :param serializer: Entity serializer. Defaults to :class:`~EntityStorage.Http.data._serializer.EntitySerializer`.
    :param filter_formatter: Filter collaborator. Defaults to :class:`~EntityStorage.Http.models.filters.ODataFilterFormatter`.

    Example::

        registry = InMemoryServiceRegistry()
        people = ServiceReference("trippin")
        registry.register(people, ODataConnector("services.odata.org/TripPinRESTierService"))

        with StorageClient(registry) as client:
            person = client.records.get(people, PersonByUserNameQuery("russellwhyte"))
            for friend in person.friends:
                print(friend.get().first_name)
    """

    def __init__(
        self,
        registry: InMemoryServiceRegistry,
        authenticator: Optional[Authenticator] = None,
        config: Optional[StorageConfig] = None,
        serializer: Optional[EntitySerializer] = None,
        filter_formatter: Optional[ODataFilterFormatter] = None,
    ) -> None:
        if registry is None:
            raise ValueError("registry is required.")
        self._registry = registry
        self.auth = authenticator or NoAuthenticator()
        self._config = config or StorageConfig.from_env()
        self._serializer = serializer or EntitySerializer()
        self._filters = filter_formatter or ODataFilterFormatter()
        self._provider: Optional[_ClientProvider] = None
        self._handlers: Optional[Dict[Tuple[ConnectorKind, OperationKind], Handler]] = None
        self._session: Optional[requests.Session] = None
        self._owns_session: bool = False

        # Initialize operation namespaces
        self.records = RecordOperations(self)
        self.query = QueryOperations(self)
        self.actions = ActionOperations(self)

    def __enter__(self) -> "StorageClient":
        """
        Enter the context manager.

        Creates an HTTP session for connection pooling. All operations within
        the context will reuse this session.

        :return: The client instance.
        :rtype: StorageClient
        """
        if self._session is None:
            self._session = requests.Session()
            self._owns_session = True
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """
        Explicitly close the client and release resources.

        Closes the HTTP session (if owned) and drops cached service clients.
        Safe to call multiple times.
        """
        if self._provider is not None:
            self._provider.close()
            self._provider = None
        self._handlers = None
        if self._session is not None and self._owns_session:
            self._session.close()
            self._session = None
            self._owns_session = False

    def _get_logger(self) -> Optional[logging.Logger]:
        if not self._config.enable_logging:
            return None
        logger = logging.getLogger(self._config.logger_name)
        logger.setLevel(getattr(logging, self._config.log_level.upper(), logging.WARNING))
        return logger

    def _get_provider(self) -> _ClientProvider:
        """Get or create the client provider, sharing the pooled session when one exists."""
        if self._provider is None:
            http = _HttpClient(
                self._config.http_timeout,
                session=self._session,
                logger=self._get_logger(),
                telemetry=create_telemetry_manager(self._config.telemetry),
            )
            self._provider = _ClientProvider(self._registry, self.auth, http)
        return self._provider

    def _get_handlers(self) -> Dict[Tuple[ConnectorKind, OperationKind], Handler]:
        if self._handlers is None:
            context = _HandlerContext(
                provider=self._get_provider(),
                serializer=self._serializer,
                filters=self._filters,
                config=self._config,
                dispatch=self._dispatch,
            )
            odata = _ODataStorageHandler(context)
            blob = _BlobStorageHandler(context)
            queue = _QueueStorageHandler(context)
            handlers: Dict[Tuple[ConnectorKind, OperationKind], Handler] = {}
            for kind in (ConnectorKind.ODATA, ConnectorKind.TABLE):
                handlers[(kind, OperationKind.RECORD_QUERY)] = odata._get_record
                handlers[(kind, OperationKind.ENUMERABLE_QUERY)] = odata._get_multiple
                handlers[(kind, OperationKind.SAVE)] = odata._save
                handlers[(kind, OperationKind.SAVE_RELATION)] = odata._save_relation
                handlers[(kind, OperationKind.ACTION)] = odata._execute_action
            handlers[(ConnectorKind.BLOB, OperationKind.BLOB_QUERY)] = blob._list_references
            handlers[(ConnectorKind.BLOB, OperationKind.BLOB_DATA_QUERY)] = blob._get_data
            handlers[(ConnectorKind.BLOB, OperationKind.SAVE)] = blob._save
            handlers[(ConnectorKind.QUEUE, OperationKind.SAVE)] = queue._save
            self._handlers = handlers
        return self._handlers

    def _dispatch(self, service_ref: ServiceReference, operation: OperationKind, *args: Any) -> Any:
        """
        Route an operation to the handler registered for the service's connector kind.

        :raises ~EntityStorage.Http.core.errors.ConfigurationError: If the
            service is not uniquely configured or its connector kind does not
            support ``operation``.
        """
        connector = self._get_provider().get_connector(service_ref)
        handler = self._get_handlers().get((connector.kind, operation))
        if handler is None:
            raise ConfigurationError(
                f"{type(connector).__name__} does not support {operation.value} operations",
                subcode=CONFIG_HANDLER_MISSING,
                details={"connector": connector.kind.value, "operation": operation.value},
            )
        return handler(service_ref, *args)

    @contextmanager
    def _scoped(self, operation: str) -> Iterator["StorageClient"]:
        """Run the enclosed requests under one correlation id, attributed to ``operation``."""
        with _call_scope(operation):
            yield self


__all__ = ["StorageClient"]
