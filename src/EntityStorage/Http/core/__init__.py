# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Core infrastructure components for the storage adapter.

This module contains the foundational components including authentication,
configuration, the service registry, HTTP transport, telemetry and error handling.
"""

from ._auth import Authenticator, NoAuthenticator, TokenCredentialAuthenticator
from .config import StorageConfig
from .errors import (
    ConfigurationError,
    ProtocolViolationError,
    RemoteRequestError,
    StorageError,
    UnsupportedOperationError,
    ValidationError,
)
from .registry import InMemoryServiceRegistry, ServiceReference
from .telemetry import TelemetryConfig, TelemetryHook

__all__ = [
    "Authenticator",
    "NoAuthenticator",
    "TokenCredentialAuthenticator",
    "StorageConfig",
    "StorageError",
    "ConfigurationError",
    "UnsupportedOperationError",
    "ProtocolViolationError",
    "ValidationError",
    "RemoteRequestError",
    "ServiceReference",
    "InMemoryServiceRegistry",
    "TelemetryConfig",
    "TelemetryHook",
]
