# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
HTTP transport with timeout handling, request identity and optional session support.

This module provides :class:`~EntityStorage.Http.core._http._HttpClient`, a wrapper
around the requests library that applies per-method default timeouts, stamps every
request with client request and correlation identifiers, maps non-success
responses to :class:`~EntityStorage.Http.core.errors.RemoteRequestError`, and
optionally reuses a pooled session. Requests are never retried.
"""

from __future__ import annotations

import json
import logging
import re
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Iterator, Optional, Union

import requests

from ._error_codes import _http_subcode, _is_transient_status
from .errors import RemoteRequestError
from .telemetry import NoOpTelemetryManager, RequestContext, TelemetryManager

_CORRELATION_ID: ContextVar[Optional[str]] = ContextVar("entity_storage_correlation_id", default=None)
_OPERATION: ContextVar[Optional[str]] = ContextVar("entity_storage_operation", default=None)

_XML_ERROR_CODE_RE = re.compile(r"<Code>([^<]+)</Code>")


@contextmanager
def _call_scope(operation: Optional[str] = None) -> Iterator[str]:
    """
    Share one correlation id across every request issued inside the block.

    ``operation`` names the public call for telemetry. Nested scopes keep the
    outer correlation id and operation.
    """
    existing = _CORRELATION_ID.get()
    if existing is not None:
        yield existing
        return
    token = _CORRELATION_ID.set(str(uuid.uuid4()))
    op_token = _OPERATION.set(operation)
    try:
        yield _CORRELATION_ID.get()
    finally:
        _OPERATION.reset(op_token)
        _CORRELATION_ID.reset(token)


class _HttpClient:
    """
    HTTP client with timeout handling and optional session support.

    :param timeout: Default request timeout in seconds. If None, uses per-method defaults.
    :type timeout: :class:`float` | None
    :param session: Optional requests.Session for connection pooling. If provided,
        all requests use this session for efficient connection reuse.
    :type session: :class:`requests.Session` | None
    :param logger: Optional logger receiving one record per request.
    :type logger: :class:`logging.Logger` | None
    :param telemetry: Telemetry manager wrapping each request. Defaults to a no-op manager.
    :type telemetry: :class:`~EntityStorage.Http.core.telemetry.TelemetryManager` | None
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
        telemetry: Optional[Union[TelemetryManager, NoOpTelemetryManager]] = None,
    ) -> None:
        self.default_timeout: Optional[float] = timeout
        self._session = session
        self._logger = logger
        self._telemetry = telemetry or NoOpTelemetryManager()

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        """
        Execute an HTTP request and raise on a non-success status.

        Applies default timeouts based on HTTP method (120s for writes, 10s for reads).
        When a session is configured, uses the session for connection pooling;
        otherwise uses standalone requests.

        :param method: HTTP method (GET, POST, PUT, PATCH, DELETE).
        :type method: :class:`str`
        :param url: Target URL for the request.
        :type url: :class:`str`
        :param kwargs: Additional arguments passed to ``requests.request()`` or
            ``session.request()``, including headers, params, data.
        :return: HTTP response object.
        :rtype: :class:`requests.Response`
        :raises RemoteRequestError: If the response status is not 2xx.
        :raises requests.exceptions.RequestException: On network failure.
        """
        if "timeout" not in kwargs:
            if self.default_timeout is not None:
                kwargs["timeout"] = self.default_timeout
            else:
                m = (method or "").lower()
                kwargs["timeout"] = 120 if m in ("post", "put", "patch", "delete") else 10

        headers: Dict[str, str] = self._telemetry.get_additional_headers()
        headers.update(kwargs.pop("headers", None) or {})
        client_request_id = str(uuid.uuid4())
        headers["x-ms-client-request-id"] = client_request_id
        correlation_id = _CORRELATION_ID.get()
        if correlation_id is not None:
            headers["x-ms-correlation-id"] = correlation_id

        operation = _OPERATION.get() or "request"
        with self._telemetry.trace_request(operation, method.upper(), url, client_request_id, correlation_id) as ctx:
            return self._send(method, url, headers, ctx, **kwargs)

    def _send(
        self, method: str, url: str, headers: Dict[str, str], ctx: RequestContext, **kwargs: Any
    ) -> requests.Response:
        started = time.perf_counter()
        if self._session is not None:
            response = self._session.request(method, url, headers=headers, **kwargs)
        else:
            response = requests.request(method, url, headers=headers, **kwargs)
        duration_ms = (time.perf_counter() - started) * 1000.0

        status = response.status_code
        self._telemetry.record_response(
            ctx,
            status,
            service_request_id=(response.headers or {}).get("x-ms-request-id"),
            response_size=len(response.content or b""),
        )
        if self._logger:
            level = logging.WARNING if status >= 400 else logging.DEBUG
            self._logger.log(
                level,
                f"{method.upper()} {url} {status} {duration_ms:.1f}ms",
                extra={
                    "client_request_id": ctx.client_request_id,
                    "correlation_id": ctx.correlation_id,
                },
            )

        if not 200 <= status < 300:
            raise self._error_from_response(method, url, response)
        return response

    @staticmethod
    def _error_from_response(method: str, url: str, response: requests.Response) -> RemoteRequestError:
        status = response.status_code
        headers = response.headers or {}
        text = ""
        try:
            text = response.text or ""
        except (AttributeError, UnicodeDecodeError):
            text = ""

        service_code: Optional[str] = None
        message: Optional[str] = None
        try:
            body = json.loads(text) if text else None
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            service_code = body["error"].get("code")
            message = body["error"].get("message")
        elif text:
            m = _XML_ERROR_CODE_RE.search(text)
            if m:
                service_code = m.group(1)

        retry_after: Optional[int] = None
        raw_retry = headers.get("Retry-After")
        if raw_retry is not None:
            try:
                retry_after = int(raw_retry)
            except (TypeError, ValueError):
                retry_after = None

        summary = message or f"{method.upper()} {url} failed"
        return RemoteRequestError(
            f"{summary} (status={status})",
            status_code=status,
            is_transient=_is_transient_status(status),
            subcode=_http_subcode(status),
            service_error_code=service_code,
            correlation_id=headers.get("x-ms-correlation-request-id") or headers.get("x-ms-correlation-id"),
            request_id=headers.get("x-ms-request-id") or headers.get("x-ms-service-request-id"),
            body_excerpt=text[:200] if text else None,
            retry_after=retry_after,
        )

    def close(self) -> None:
        """
        Close the HTTP client and release resources.

        If a session was provided, this method closes it. Safe to call multiple times.
        """
        if self._session is not None:
            self._session.close()
            self._session = None
