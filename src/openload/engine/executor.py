"""Instrumented HTTP request executor with transport error classification."""

from __future__ import annotations

import asyncio
import socket
import ssl
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

import aiohttp

from openload._internal.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from openload.dsl.scenario import Request

logger = get_logger("engine.executor")


class TransportErrorKind(Enum):
    """Why a request produced no response."""

    CONNECT_TIMEOUT = "connect_timeout"
    READ_TIMEOUT = "read_timeout"
    CONNECTION_REFUSED = "connection_refused"
    TLS_ERROR = "tls_error"
    DNS_FAILURE = "dns_failure"
    PROTOCOL_ERROR = "protocol_error"


@dataclass(frozen=True)
class Response:
    """An HTTP response as seen by checks.

    Attributes:
        status: HTTP status code.
        headers: Response headers with lower-cased names. Values of a
            repeated header are joined with ", ".
        body: Response body decoded as text (undecodable bytes replaced).
        elapsed_ms: Time from sending the request to reading the full body.
    """

    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: str = ""
    elapsed_ms: float = 0.0


@dataclass(frozen=True)
class TransportError:
    """A request that failed before a full response arrived.

    Attributes:
        kind: Classified failure reason.
        message: Underlying exception type and text.
        elapsed_ms: Time spent before the failure.
    """

    kind: TransportErrorKind
    message: str
    elapsed_ms: float = 0.0


@dataclass
class RequestMetric:
    """Raw metric emitted for every request attempt.

    Attributes:
        timestamp: Monotonic timestamp when the request started.
        name: Logical name for metric grouping (e.g., "Get README.md").
        method: HTTP method (GET, POST, etc.).
        url: Full request URL.
        status_code: HTTP response status code (0 if the request failed).
        latency_ms: Response time in milliseconds.
        content_length: Response body size in bytes.
        error: Error description if the request failed, None otherwise.
        error_kind: Transport error kind if the request failed.
    """

    timestamp: float
    name: str
    method: str
    url: str
    status_code: int
    latency_ms: float
    content_length: int
    error: str | None = None
    error_kind: TransportErrorKind | None = None


def _noop_callback(metric: RequestMetric) -> None:
    """Default no-op metric callback."""


def _decode(raw: bytes, charset: str | None) -> str:
    try:
        return raw.decode(charset or "utf-8", errors="replace")
    except LookupError:
        return raw.decode("utf-8", errors="replace")


def _merge_headers(items: Iterable[tuple[str, str]]) -> dict[str, str]:
    """Lower-case header names, joining repeated headers with ", "."""
    merged: dict[str, str] = {}
    for name, value in items:
        key = name.lower()
        merged[key] = f"{merged[key]}, {value}" if key in merged else value
    return merged


def classify_exception(exc: BaseException) -> TransportErrorKind:
    """Map an aiohttp or asyncio exception to a :class:`TransportErrorKind`.

    Args:
        exc: The exception raised while sending a request.

    Returns:
        The transport error kind that best describes *exc*.
    """
    if isinstance(exc, aiohttp.ConnectionTimeoutError):
        return TransportErrorKind.CONNECT_TIMEOUT
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return TransportErrorKind.READ_TIMEOUT
    if isinstance(exc, (aiohttp.ClientSSLError, ssl.SSLError)):
        return TransportErrorKind.TLS_ERROR
    if isinstance(exc, aiohttp.ClientConnectorError):
        if isinstance(exc.os_error, socket.gaierror):
            return TransportErrorKind.DNS_FAILURE
        return TransportErrorKind.CONNECTION_REFUSED
    if isinstance(exc, socket.gaierror):
        return TransportErrorKind.DNS_FAILURE
    if isinstance(exc, ConnectionRefusedError):
        return TransportErrorKind.CONNECTION_REFUSED
    return TransportErrorKind.PROTOCOL_ERROR


class RequestExecutor:
    """Sends one request at a time for a single virtual user.

    Wraps an ``aiohttp.ClientSession`` that lives for the duration of the
    ``async with`` block. Every attempt is timed and reported through
    ``metric_callback``. Transport failures are returned as
    :class:`TransportError` values rather than raised; there are no
    retries at this layer. Cancellation is never swallowed, so an engine
    stop aborts the in-flight request.

    Attributes:
        default_headers: Headers applied to every request, below the
            request's own headers.
    """

    def __init__(
        self,
        *,
        default_headers: Mapping[str, str] | None = None,
        metric_callback: Callable[[RequestMetric], None] | None = None,
        timeout: float = 30.0,
        pool_size: int = 100,
    ) -> None:
        """Initialize the executor.

        Args:
            default_headers: Headers applied to every request.
            metric_callback: Callback invoked with a ``RequestMetric``
                after each attempt. Defaults to a no-op.
            timeout: Default request timeout in seconds.
            pool_size: Maximum open connections for this executor.
        """
        self.default_headers: dict[str, str] = dict(default_headers or {})
        self._metric_callback = metric_callback or _noop_callback
        self._timeout = timeout
        self._pool_size = pool_size
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> RequestExecutor:
        """Open the underlying aiohttp session."""
        self._session = aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(limit=self._pool_size),
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        """Close the underlying aiohttp session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def execute(
        self,
        request: Request,
        timeout: float | None = None,
    ) -> Response | TransportError:
        """Send *request* once and return its response or transport error.

        Args:
            request: The request step to send.
            timeout: Timeout in seconds for connect plus full body read.
                Defaults to the request's own timeout, then to the
                executor default.

        Returns:
            A ``Response`` for any HTTP status, or a ``TransportError`` if
            no complete response arrived. Errors that are not network
            failures, such as a malformed header value, are reported as
            ``PROTOCOL_ERROR``.

        Raises:
            RuntimeError: If the executor is used outside of an async
                context manager.
            asyncio.CancelledError: If the calling task is cancelled.
        """
        if self._session is None:
            msg = "RequestExecutor must be used as an async context manager"
            raise RuntimeError(msg)

        effective_timeout = timeout or request.timeout or self._timeout
        client_timeout = aiohttp.ClientTimeout(
            total=effective_timeout,
            sock_connect=effective_timeout,
        )
        headers = {**self.default_headers, **request.headers}

        start = time.monotonic()
        outcome: Response | TransportError
        status_code = 0
        content_length = 0

        try:
            async with self._session.request(
                request.method,
                request.url,
                headers=headers,
                data=request.body,
                timeout=client_timeout,
            ) as resp:
                raw = await resp.read()
                status_code = resp.status
                content_length = len(raw)
                elapsed_ms = (time.monotonic() - start) * 1000
                outcome = Response(
                    status=resp.status,
                    headers=_merge_headers(resp.headers.items()),
                    body=_decode(raw, resp.charset),
                    elapsed_ms=elapsed_ms,
                )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            # aiohttp raises plain ValueError for malformed request headers
            elapsed_ms = (time.monotonic() - start) * 1000
            kind = classify_exception(exc)
            outcome = TransportError(
                kind=kind,
                message=f"{type(exc).__name__}: {exc}",
                elapsed_ms=elapsed_ms,
            )
            logger.debug("%s %s failed: %s", request.method, request.url, outcome.message)

        self._metric_callback(
            RequestMetric(
                timestamp=start,
                name=request.name,
                method=request.method,
                url=request.url,
                status_code=status_code,
                latency_ms=outcome.elapsed_ms,
                content_length=content_length,
                error=outcome.message if isinstance(outcome, TransportError) else None,
                error_kind=outcome.kind if isinstance(outcome, TransportError) else None,
            )
        )
        return outcome
