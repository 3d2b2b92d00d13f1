# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

import logging
import unittest
from unittest.mock import MagicMock, patch

import requests

from EntityStorage.Http import StorageClient
from EntityStorage.Http.core._auth import NoAuthenticator
from EntityStorage.Http.core._error_codes import CONFIG_CONNECTOR_MISSING, CONFIG_HANDLER_MISSING
from EntityStorage.Http.core.config import StorageConfig
from EntityStorage.Http.core.errors import ConfigurationError
from EntityStorage.Http.core.registry import InMemoryServiceRegistry, ServiceReference
from EntityStorage.Http.models.connectors import ConnectorKind, ODataConnector, QueueConnector
from EntityStorage.Http.models.query import EnumerableQuery, OperationKind, QueryParameters, RecordQuery

from fixtures.fake_http import FakeResponse
from fixtures.storage_models import Person
from fixtures.test_data import people_page


class TestStorageClient(unittest.TestCase):
    def setUp(self):
        """Set up a registry with one OData and one queue service."""
        self.registry = InMemoryServiceRegistry()
        self.people = ServiceReference("people")
        self.orders = ServiceReference("orders")
        self.registry.register(self.people, ODataConnector("https://svc.example.com/odata"))
        self.registry.register(self.orders, QueueConnector("https://acct.queue.core.windows.net/orders"))

    def test_registry_required(self):
        with self.assertRaises(ValueError):
            StorageClient(None)

    def test_defaults(self):
        client = StorageClient(self.registry)
        self.assertIsInstance(client.auth, NoAuthenticator)
        self.assertEqual(client._config, StorageConfig.from_env())

    def test_namespaces(self):
        client = StorageClient(self.registry)
        self.assertIs(client.records._client, client)
        self.assertIs(client.query._client, client)
        self.assertIs(client.actions._client, client)

    def test_dispatch_table(self):
        """OData and table services share one handler; blob and queue expose only their operations."""
        handlers = StorageClient(self.registry)._get_handlers()
        self.assertEqual(
            handlers[(ConnectorKind.ODATA, OperationKind.SAVE)], handlers[(ConnectorKind.TABLE, OperationKind.SAVE)]
        )
        self.assertNotIn((ConnectorKind.QUEUE, OperationKind.RECORD_QUERY), handlers)
        self.assertNotIn((ConnectorKind.BLOB, OperationKind.ACTION), handlers)
        self.assertEqual(len(handlers), 14)

    def test_unsupported_operation_for_connector(self):
        client = StorageClient(self.registry)
        with self.assertRaises(ConfigurationError) as ctx:
            client.records.get(self.orders, RecordQuery(Person))
        self.assertEqual(ctx.exception.subcode, CONFIG_HANDLER_MISSING)
        self.assertEqual(ctx.exception.details, {"connector": "queue", "operation": "record_query"})

    def test_unknown_service(self):
        client = StorageClient(self.registry)
        with self.assertRaises(ConfigurationError) as ctx:
            client.records.get(ServiceReference("missing"), RecordQuery(Person))
        self.assertEqual(ctx.exception.subcode, CONFIG_CONNECTOR_MISSING)

    @patch("EntityStorage.Http.core._http.requests.request")
    def test_one_correlation_id_per_call(self, mock_request):
        """Every page of one query shares a correlation id; each request has its own client request id."""
        mock_request.side_effect = [
            FakeResponse(200, people_page("a", "b")),
            FakeResponse(200, people_page("c")),
            FakeResponse(200, people_page("d")),
        ]
        client = StorageClient(self.registry)
        list(client.query.get(self.people, EnumerableQuery(Person), QueryParameters(top=2)))
        list(client.query.get(self.people, EnumerableQuery(Person)))

        headers = [c.kwargs["headers"] for c in mock_request.call_args_list]
        self.assertEqual(headers[0]["x-ms-correlation-id"], headers[1]["x-ms-correlation-id"])
        self.assertNotEqual(headers[1]["x-ms-correlation-id"], headers[2]["x-ms-correlation-id"])
        self.assertEqual(len({h["x-ms-client-request-id"] for h in headers}), 3)
        self.assertEqual(headers[0]["Content-Type"], "application/json")

    @patch("EntityStorage.Http.core._http.requests.request")
    def test_transport_logging(self, mock_request):
        mock_request.return_value = FakeResponse(200, people_page("a"))
        config = StorageConfig(enable_logging=True, log_level="DEBUG", logger_name="EntityStorage.Http.clienttest")
        client = StorageClient(self.registry, config=config)
        with self.assertLogs("EntityStorage.Http.clienttest", level=logging.DEBUG) as logs:
            list(client.query.get(self.people, EnumerableQuery(Person)))
        self.assertTrue(logs.output[0].startswith("DEBUG:EntityStorage.Http.clienttest:GET https://svc.example.com/odata/People 200"))


class TestContextManager(unittest.TestCase):
    """Test context manager support on StorageClient."""

    def setUp(self):
        self.registry = InMemoryServiceRegistry()

    def test_enter_creates_session(self):
        client = StorageClient(self.registry)
        self.assertIsNone(client._session)

        result = client.__enter__()

        self.assertIsInstance(client._session, requests.Session)
        self.assertTrue(client._owns_session)
        self.assertIs(result, client)
        client.close()

    def test_exit_closes_session(self):
        client = StorageClient(self.registry)
        client.__enter__()
        mock_session = MagicMock(spec=requests.Session)
        client._session = mock_session

        client.__exit__(None, None, None)

        mock_session.close.assert_called_once()
        self.assertIsNone(client._session)
        self.assertFalse(client._owns_session)

    def test_session_shared_with_transport(self):
        with StorageClient(self.registry) as client:
            self.assertIs(client._get_provider()._http._session, client._session)

    def test_close_resets_cached_state(self):
        client = StorageClient(self.registry)
        client._get_handlers()
        client.close()
        client.close()
        self.assertIsNone(client._provider)
        self.assertIsNone(client._handlers)

    def test_reusable_after_close(self):
        client = StorageClient(self.registry)
        with client:
            pass
        with client:
            self.assertIsNotNone(client._session)

    def test_close_releases_transport(self):
        with StorageClient(self.registry) as client:
            http = client._get_provider()._http
            self.assertIsNotNone(http._session)
        self.assertIsNone(http._session)
