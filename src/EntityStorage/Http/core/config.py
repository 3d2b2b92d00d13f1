# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .telemetry import TelemetryConfig


@dataclass(frozen=True)
class StorageConfig:
    """
    Configuration settings for storage client operations.

    :param http_timeout: Request timeout in seconds (default: method-dependent).
    :type http_timeout: float or None
    :param follow_next_link: Whether collection queries follow ``@odata.nextLink``
        continuations. When ``False`` a continuation raises
        :class:`~EntityStorage.Http.core.errors.UnsupportedOperationError` instead.
    :type follow_next_link: bool
    :param enable_logging: Whether the transport logs each request.
    :type enable_logging: bool
    :param log_level: Level applied to the transport logger when logging is enabled.
    :type log_level: str
    :param logger_name: Name of the transport logger.
    :type logger_name: str
    :param telemetry: Opt-in OpenTelemetry tracing, metrics and hooks. ``None`` disables telemetry.
    :type telemetry: ~EntityStorage.Http.core.telemetry.TelemetryConfig or None
    """

    http_timeout: Optional[float] = None
    follow_next_link: bool = True

    # Logging configuration
    enable_logging: bool = False
    log_level: str = "WARNING"
    logger_name: str = "EntityStorage.Http"

    telemetry: Optional[TelemetryConfig] = None

    @classmethod
    def from_env(cls) -> "StorageConfig":
        """
        Create a configuration instance with default settings.

        :return: Configuration instance with default values.
        :rtype: ~EntityStorage.Http.core.config.StorageConfig
        """
        # Environment-free defaults
        return cls(
            http_timeout=None,  # Will use method-dependent defaults in _HttpClient
            follow_next_link=True,
            enable_logging=False,
        )
