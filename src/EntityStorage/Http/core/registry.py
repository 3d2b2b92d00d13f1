# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Service references and the connector registry."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Dict, List

from ..models.connectors import StorageConnector


@dataclass(frozen=True)
class ServiceReference:
    """Logical name of a storage service, resolved to a connector through a registry."""

    name: str


class InMemoryServiceRegistry:
    """
    Registry mapping service references to connectors.

    Every registration is kept, so a reference registered more than once
    resolves to several connectors and is reported as ambiguous by the client.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._connectors: Dict[ServiceReference, List[StorageConnector]] = {}

    def register(self, reference: ServiceReference, connector: StorageConnector) -> None:
        with self._lock:
            self._connectors.setdefault(reference, []).append(connector)

    def get_connectors(self, reference: ServiceReference) -> List[StorageConnector]:
        with self._lock:
            return list(self._connectors.get(reference, ()))


__all__ = ["ServiceReference", "InMemoryServiceRegistry"]
