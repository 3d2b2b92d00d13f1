# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Client provider resolving service references to HTTP clients.

Clients are cached per normalized base URL and reused across calls. Every
lookup hands out a copy of the cached client: the authenticator attaches
credentials to the copy, then the connector's headers are applied over it. The
cached client itself is never mutated after creation.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Optional

import requests

from ._auth import Authenticator
from ._error_codes import CONFIG_CONNECTOR_AMBIGUOUS, CONFIG_CONNECTOR_MISSING
from ._http import _HttpClient
from .errors import ConfigurationError
from .registry import InMemoryServiceRegistry, ServiceReference
from ..models.connectors import StorageConnector

logger = logging.getLogger(__name__)


def _normalize_base_url(service_uri: str) -> str:
    uri = (service_uri or "").strip().rstrip("/")
    if "://" not in uri:
        uri = f"https://{uri}"
    return uri


class _ServiceClient:
    """HTTP client bound to one base URL with its own default headers."""

    def __init__(self, base_url: str, http: _HttpClient, headers: Optional[Dict[str, str]] = None) -> None:
        self.base_url = base_url
        self.headers: Dict[str, str] = dict(headers or {})
        self._http = http

    def copy(self) -> "_ServiceClient":
        return _ServiceClient(self.base_url, self._http, self.headers)

    def url(self, path: str = "") -> str:
        if not path:
            return self.base_url
        if "://" in path:
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(self, method: str, path: str = "", **kwargs: Any) -> requests.Response:
        headers = dict(self.headers)
        headers.update(kwargs.pop("headers", None) or {})
        return self._http._request(method, self.url(path), headers=headers, **kwargs)


class _ClientProvider:
    def __init__(self, registry: InMemoryServiceRegistry, authenticator: Authenticator, http: _HttpClient) -> None:
        self._registry = registry
        self._authenticator = authenticator
        self._http = http
        self._lock = threading.Lock()
        self._clients: Dict[str, _ServiceClient] = {}

    def get_connector(self, service_ref: ServiceReference) -> StorageConnector:
        """
        Resolve the single connector registered for ``service_ref``.

        :raises ~EntityStorage.Http.core.errors.ConfigurationError: If zero or several connectors are registered.
        """
        connectors = self._registry.get_connectors(service_ref)
        if not connectors:
            raise ConfigurationError(
                f"No connector registered for service '{service_ref.name}'",
                subcode=CONFIG_CONNECTOR_MISSING,
            )
        if len(connectors) > 1:
            raise ConfigurationError(
                f"Service '{service_ref.name}' resolves to {len(connectors)} connectors; expected exactly one",
                subcode=CONFIG_CONNECTOR_AMBIGUOUS,
                details={"count": len(connectors)},
            )
        return connectors[0]

    def get_client(self, service_ref: ServiceReference) -> _ServiceClient:
        connector = self.get_connector(service_ref)
        base_url = _normalize_base_url(connector.service_uri)
        with self._lock:
            client = self._clients.get(base_url)
            if client is None:
                logger.debug("Creating service client for %s", base_url)
                client = _ServiceClient(base_url, self._http)
                self._clients[base_url] = client
        client = self._authenticator.authenticate_client(service_ref, client.copy())
        client.headers.update(connector.request_headers)
        return client

    def close(self) -> None:
        """Drop cached clients and close the transport."""
        with self._lock:
            self._clients.clear()
        self._http.close()
