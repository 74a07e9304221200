"""Integration tests for RequestExecutor against a local server."""

from __future__ import annotations

import json

import pytest

from openload.dsl.requests import get, post
from openload.engine.executor import (
    RequestExecutor,
    RequestMetric,
    Response,
    TransportError,
    TransportErrorKind,
)


@pytest.mark.timeout(30)
class TestRequestExecutor:
    async def test_get_request(self, echo_server: str):
        """A GET returns a Response and emits one metric."""
        metrics: list[RequestMetric] = []

        async with RequestExecutor(metric_callback=metrics.append) as executor:
            outcome = await executor.execute(get(f"{echo_server}/echo/hello", name="Echo"))

        assert isinstance(outcome, Response)
        assert outcome.status == 200
        assert json.loads(outcome.body)["path"] == "/echo/hello"
        assert len(metrics) == 1
        assert metrics[0].name == "Echo"
        assert metrics[0].method == "GET"
        assert metrics[0].status_code == 200
        assert metrics[0].latency_ms > 0
        assert metrics[0].error_kind is None

    async def test_header_names_are_lower_cased(self, echo_server: str):
        async with RequestExecutor() as executor:
            outcome = await executor.execute(get(f"{echo_server}/README.md"))

        assert isinstance(outcome, Response)
        assert outcome.headers["x-served-by"] == "echo"
        assert outcome.headers["content-type"].startswith("text/markdown")

    async def test_repeated_headers_are_joined(self, echo_server: str):
        async with RequestExecutor() as executor:
            outcome = await executor.execute(get(f"{echo_server}/multi-header"))

        assert isinstance(outcome, Response)
        assert outcome.headers["x-multi"] == "first, second"

    async def test_error_status_is_a_response(self, echo_server: str):
        """HTTP error statuses are responses, not transport errors."""
        metrics: list[RequestMetric] = []
        async with RequestExecutor(metric_callback=metrics.append) as executor:
            outcome = await executor.execute(get(f"{echo_server}/error?status=404"))

        assert isinstance(outcome, Response)
        assert outcome.status == 404
        assert metrics[0].status_code == 404
        assert metrics[0].error is None

    async def test_post_body_and_headers(self, echo_server: str):
        request = post(
            f"{echo_server}/echo/items",
            headers={"X-Request": "per-request"},
            body='{"name": "widget"}',
        )
        async with RequestExecutor(
            default_headers={"X-Default": "engine", "X-Request": "engine"},
        ) as executor:
            outcome = await executor.execute(request)

        assert isinstance(outcome, Response)
        echoed = json.loads(outcome.body)
        assert echoed["method"] == "POST"
        assert echoed["body"] == '{"name": "widget"}'
        assert echoed["headers"]["X-Default"] == "engine"
        assert echoed["headers"]["X-Request"] == "per-request"

    async def test_connection_refused(self, unused_url: str):
        metrics: list[RequestMetric] = []
        async with RequestExecutor(metric_callback=metrics.append, timeout=5.0) as executor:
            outcome = await executor.execute(get(f"{unused_url}/health"))

        assert isinstance(outcome, TransportError)
        assert outcome.kind is TransportErrorKind.CONNECTION_REFUSED
        assert metrics[0].status_code == 0
        assert metrics[0].error_kind is TransportErrorKind.CONNECTION_REFUSED
        assert metrics[0].error

    async def test_malformed_header_is_a_protocol_error(self, echo_server: str):
        """A header value aiohttp refuses to send still yields a metric."""
        metrics: list[RequestMetric] = []
        request = get(f"{echo_server}/health", headers={"X-Bad": "line\r\nInjected: yes"})
        async with RequestExecutor(metric_callback=metrics.append) as executor:
            outcome = await executor.execute(request)
            follow_up = await executor.execute(get(f"{echo_server}/health"))

        assert isinstance(outcome, TransportError)
        assert outcome.kind is TransportErrorKind.PROTOCOL_ERROR
        assert isinstance(follow_up, Response)
        assert follow_up.status == 200
        assert len(metrics) == 2
        assert metrics[0].error_kind is TransportErrorKind.PROTOCOL_ERROR
        assert metrics[1].error is None

    async def test_read_timeout(self, echo_server: str):
        async with RequestExecutor() as executor:
            outcome = await executor.execute(get(f"{echo_server}/delay?delay=2.0"), timeout=0.2)

        assert isinstance(outcome, TransportError)
        assert outcome.kind is TransportErrorKind.READ_TIMEOUT
        assert outcome.elapsed_ms < 2000

    async def test_request_timeout_used_when_no_override(self, echo_server: str):
        async with RequestExecutor(timeout=30.0) as executor:
            outcome = await executor.execute(get(f"{echo_server}/delay?delay=2.0", timeout=0.2))

        assert isinstance(outcome, TransportError)
        assert outcome.kind is TransportErrorKind.READ_TIMEOUT

    async def test_outside_context_manager(self, echo_server: str):
        executor = RequestExecutor()
        with pytest.raises(RuntimeError, match="context manager"):
            await executor.execute(get(f"{echo_server}/health"))
