# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Telemetry infrastructure for the storage client.

Provides opt-in OpenTelemetry tracing and metrics around every HTTP request,
plus a hook protocol for custom telemetry providers.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Generator, List, Optional, Protocol, Union, runtime_checkable

from opentelemetry import metrics, trace
from opentelemetry.trace import Status, StatusCode

from ..__version__ import __version__

logger = logging.getLogger(__name__)

_INSTRUMENTATION_NAME = "EntityStorage.Http"
_SCHEMA_URL = "https://opentelemetry.io/schemas/1.21.0"

ATTR_HTTP_METHOD = "http.request.method"
ATTR_HTTP_URL = "url.full"
ATTR_HTTP_STATUS_CODE = "http.response.status_code"
ATTR_OPERATION = "entitystorage.operation"
ATTR_CLIENT_REQUEST_ID = "entitystorage.client_request_id"
ATTR_CORRELATION_ID = "entitystorage.correlation_id"
ATTR_SERVICE_REQUEST_ID = "entitystorage.service_request_id"


@dataclass(frozen=True)
class TelemetryConfig:
    """Configuration for client telemetry.

    Telemetry is opt-in. When enabled, every request produces an
    OpenTelemetry client span and request metrics, exported through whatever
    tracer and meter providers the application has installed.

    Example:
        Tracing only::

            config = StorageConfig(telemetry=TelemetryConfig(enable_tracing=True))

        Custom hook::

            config = StorageConfig(telemetry=TelemetryConfig(hooks=[MyTelemetryHook()]))
    """

    enable_tracing: bool = False
    enable_metrics: bool = False
    hooks: List["TelemetryHook"] = field(default_factory=list)


@dataclass
class RequestContext:
    """Context passed to telemetry hooks for each HTTP request."""

    client_request_id: str
    correlation_id: Optional[str]
    method: str
    url: str
    operation: str
    start_time: float = field(default_factory=time.perf_counter)

    # Custom data bag for hooks to share state
    custom_data: Dict[str, Any] = field(default_factory=dict)

    _span: Any = field(default=None, repr=False)


@dataclass
class ResponseContext:
    """Response information passed to telemetry hooks."""

    status_code: int
    duration_ms: float
    service_request_id: Optional[str] = None
    response_size: Optional[int] = None


@runtime_checkable
class TelemetryHook(Protocol):
    """Protocol for custom telemetry hooks.

    All methods are optional; implement only what you need.
    """

    def on_request_start(self, context: RequestContext) -> None:
        """Called before each HTTP request is sent."""
        ...

    def on_request_end(self, request: RequestContext, response: ResponseContext) -> None:
        """Called after each HTTP response is received, whatever its status."""
        ...

    def on_request_error(self, request: RequestContext, error: Exception) -> None:
        """Called when a request raises, including for non-success statuses."""
        ...

    def get_additional_headers(self) -> Dict[str, str]:
        """Return additional headers to include in requests."""
        ...


class TelemetryManager:
    """Manages telemetry instrumentation for the storage client.

    This class is internal and not part of the public API.
    """

    def __init__(self, config: Optional[TelemetryConfig] = None) -> None:
        self._config = config or TelemetryConfig()
        self._tracer: Optional[Any] = None
        self._meter: Optional[Any] = None
        self._hooks = list(self._config.hooks)

        self._request_duration: Optional[Any] = None
        self._request_count: Optional[Any] = None
        self._error_count: Optional[Any] = None

        if self._config.enable_tracing:
            self._tracer = trace.get_tracer(_INSTRUMENTATION_NAME, __version__, schema_url=_SCHEMA_URL)
        if self._config.enable_metrics:
            self._meter = metrics.get_meter(_INSTRUMENTATION_NAME, __version__, schema_url=_SCHEMA_URL)
            self._setup_metrics()

    @property
    def is_tracing_enabled(self) -> bool:
        return self._tracer is not None

    @property
    def is_metrics_enabled(self) -> bool:
        return self._meter is not None

    def _setup_metrics(self) -> None:
        self._request_duration = self._meter.create_histogram(
            name="entitystorage.client.request.duration",
            description="Duration of storage service requests",
            unit="ms",
        )
        self._request_count = self._meter.create_counter(
            name="entitystorage.client.request.count",
            description="Number of storage service requests",
            unit="1",
        )
        self._error_count = self._meter.create_counter(
            name="entitystorage.client.error.count",
            description="Number of storage service requests with an error status",
            unit="1",
        )

    @contextmanager
    def trace_request(
        self,
        operation: str,
        method: str,
        url: str,
        client_request_id: str,
        correlation_id: Optional[str],
    ) -> Generator[RequestContext, None, None]:
        """Create a traced request context.

        Usage::

            with telemetry.trace_request("query.get", "GET", url, req_id, corr_id) as ctx:
                response = send()
                telemetry.record_response(ctx, response.status_code)
        """
        ctx = RequestContext(
            client_request_id=client_request_id,
            correlation_id=correlation_id,
            method=method,
            url=url,
            operation=operation,
        )
        self._dispatch("on_request_start", ctx)

        span = None
        if self._tracer is not None:
            attributes = {
                ATTR_OPERATION: operation,
                ATTR_HTTP_METHOD: method,
                ATTR_HTTP_URL: url,
                ATTR_CLIENT_REQUEST_ID: client_request_id,
            }
            if correlation_id:
                attributes[ATTR_CORRELATION_ID] = correlation_id
            span = self._tracer.start_span(
                f"EntityStorage {operation}",
                kind=trace.SpanKind.CLIENT,
                attributes=attributes,
            )
            ctx._span = span

        try:
            yield ctx
        except Exception as e:
            if span is not None:
                span.set_status(Status(StatusCode.ERROR, str(e)))
                span.record_exception(e)
            self._dispatch("on_request_error", ctx, e)
            raise
        finally:
            if span is not None:
                span.end()

    def record_response(
        self,
        ctx: RequestContext,
        status_code: int,
        service_request_id: Optional[str] = None,
        response_size: Optional[int] = None,
    ) -> None:
        """Record response attributes and metrics, then dispatch to hooks."""
        duration_ms = (time.perf_counter() - ctx.start_time) * 1000
        response = ResponseContext(
            status_code=status_code,
            duration_ms=duration_ms,
            service_request_id=service_request_id,
            response_size=response_size,
        )

        if ctx._span is not None:
            ctx._span.set_attribute(ATTR_HTTP_STATUS_CODE, status_code)
            if service_request_id:
                ctx._span.set_attribute(ATTR_SERVICE_REQUEST_ID, service_request_id)

        if self._request_duration is not None:
            attributes = {"operation": ctx.operation, "method": ctx.method, "status_code": status_code}
            self._request_duration.record(duration_ms, attributes)
            self._request_count.add(1, attributes)
            if status_code >= 400:
                self._error_count.add(1, attributes)

        self._dispatch("on_request_end", ctx, response)

    def get_additional_headers(self) -> Dict[str, str]:
        """Collect additional headers from all hooks."""
        headers: Dict[str, str] = {}
        for hook in self._hooks:
            if not hasattr(hook, "get_additional_headers"):
                continue
            try:
                hook_headers = hook.get_additional_headers()
            except Exception:
                logger.warning("Telemetry hook %r failed in get_additional_headers", hook, exc_info=True)
                continue
            if hook_headers:
                headers.update(hook_headers)
        return headers

    def _dispatch(self, method: str, *args: Any) -> None:
        # Hooks never break requests
        for hook in self._hooks:
            callback = getattr(hook, method, None)
            if callback is None:
                continue
            try:
                callback(*args)
            except Exception:
                logger.warning("Telemetry hook %r failed in %s", hook, method, exc_info=True)


class NoOpTelemetryManager:
    """No-op telemetry manager when telemetry is disabled."""

    @contextmanager
    def trace_request(
        self,
        operation: str,
        method: str,
        url: str,
        client_request_id: str,
        correlation_id: Optional[str],
    ) -> Generator[RequestContext, None, None]:
        yield RequestContext(
            client_request_id=client_request_id,
            correlation_id=correlation_id,
            method=method,
            url=url,
            operation=operation,
        )

    def record_response(self, *args: Any, **kwargs: Any) -> None:
        pass

    def get_additional_headers(self) -> Dict[str, str]:
        return {}


def create_telemetry_manager(
    config: Optional[TelemetryConfig],
) -> Union[TelemetryManager, NoOpTelemetryManager]:
    """Factory to create the appropriate telemetry manager."""
    if config is None:
        return NoOpTelemetryManager()
    if not (config.enable_tracing or config.enable_metrics or config.hooks):
        return NoOpTelemetryManager()
    return TelemetryManager(config)


__all__ = [
    "TelemetryConfig",
    "TelemetryHook",
    "TelemetryManager",
    "NoOpTelemetryManager",
    "RequestContext",
    "ResponseContext",
    "create_telemetry_manager",
]
