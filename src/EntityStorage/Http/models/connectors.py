# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Connector configuration for the supported storage services.

Each connector describes how to reach one endpoint: its base URI, the headers
sent with every request, the serialization language, and the optional
partition key field name. Caller-supplied headers are merged over the
connector's defaults at construction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Dict, Optional

AZURE_STORAGE_VERSION = "2017-11-09"


class ConnectorKind(str, Enum):
    """Service kind used to select the protocol handler."""

    ODATA = "odata"
    TABLE = "table"
    BLOB = "blob"
    QUEUE = "queue"


class SerializationLanguage(str, Enum):
    JSON = "json"
    XML = "xml"


@dataclass
class StorageConnector:
    """
    Base connector configuration.

    :param service_uri: Base URI of the service. ``https://`` is assumed when no scheme is given.
    :type service_uri: str
    :param request_headers: Headers merged over the connector defaults.
    :type request_headers: dict[str, str]
    :param serialization_language: Language used for entity payloads.
    :type serialization_language: ~EntityStorage.Http.models.connectors.SerializationLanguage
    :param partition_key_field_name: Wire name of the partition key field, if the service is partitioned.
    :type partition_key_field_name: str or None
    """

    kind: ClassVar[ConnectorKind]
    DEFAULT_HEADERS: ClassVar[Dict[str, str]] = {}

    service_uri: str
    request_headers: Dict[str, str] = field(default_factory=dict)
    serialization_language: SerializationLanguage = SerializationLanguage.JSON
    partition_key_field_name: Optional[str] = None

    def __post_init__(self) -> None:
        if not (self.service_uri or "").strip():
            raise ValueError("service_uri is required.")
        merged: Dict[str, str] = dict(self.DEFAULT_HEADERS)
        merged.update(self.request_headers or {})
        self.request_headers = merged


@dataclass
class ODataConnector(StorageConnector):
    """Connector for OData-style REST APIs."""

    kind: ClassVar[ConnectorKind] = ConnectorKind.ODATA
    DEFAULT_HEADERS: ClassVar[Dict[str, str]] = {
        "Content-Type": "application/json",
    }


@dataclass
class TableConnector(ODataConnector):
    """Connector for Azure table storage, which speaks OData with JSON payloads."""

    kind: ClassVar[ConnectorKind] = ConnectorKind.TABLE
    DEFAULT_HEADERS: ClassVar[Dict[str, str]] = {
        "Content-Type": "application/json",
        "x-ms-version": AZURE_STORAGE_VERSION,
        "Accept": "application/json",
    }


@dataclass
class BlobConnector(StorageConnector):
    """Connector for Azure blob storage. ``service_uri`` addresses the container."""

    kind: ClassVar[ConnectorKind] = ConnectorKind.BLOB
    DEFAULT_HEADERS: ClassVar[Dict[str, str]] = {
        "x-ms-version": AZURE_STORAGE_VERSION,
        "x-ms-blob-type": "BlockBlob",
    }


@dataclass
class QueueConnector(StorageConnector):
    """Connector for Azure queue storage. ``service_uri`` addresses the queue."""

    kind: ClassVar[ConnectorKind] = ConnectorKind.QUEUE
    DEFAULT_HEADERS: ClassVar[Dict[str, str]] = {
        "Content-Type": "application/xml",
        "x-ms-version": AZURE_STORAGE_VERSION,
    }


__all__ = [
    "AZURE_STORAGE_VERSION",
    "ConnectorKind",
    "SerializationLanguage",
    "StorageConnector",
    "ODataConnector",
    "TableConnector",
    "BlobConnector",
    "QueueConnector",
]
