"""Shorthand constructors for :class:`~openload.dsl.scenario.Request` steps."""

from __future__ import annotations

from typing import TYPE_CHECKING

from openload.dsl.scenario import Request

if TYPE_CHECKING:
    from collections.abc import Mapping


def request(
    method: str,
    url: str,
    *,
    name: str | None = None,
    headers: Mapping[str, str] | None = None,
    body: str | bytes | None = None,
    timeout: float | None = None,
) -> Request:
    """Build a request step.

    Args:
        method: HTTP method (GET, POST, etc.).
        url: Absolute URL, or a path resolved against the scenario's
            ``base_url``.
        name: Logical name for metric grouping. Defaults to the URL.
        headers: Headers for this request only.
        body: Optional request body.
        timeout: Per-request timeout in seconds.

    Returns:
        The Request step.
    """
    return Request(
        method=method,
        url=url,
        name=name or "",
        headers=headers or {},
        body=body,
        timeout=timeout,
    )


def get(
    url: str,
    *,
    name: str | None = None,
    headers: Mapping[str, str] | None = None,
    timeout: float | None = None,
) -> Request:
    """Build a GET request step."""
    return request("GET", url, name=name, headers=headers, timeout=timeout)


def post(
    url: str,
    *,
    name: str | None = None,
    headers: Mapping[str, str] | None = None,
    body: str | bytes | None = None,
    timeout: float | None = None,
) -> Request:
    """Build a POST request step."""
    return request("POST", url, name=name, headers=headers, body=body, timeout=timeout)


def put(
    url: str,
    *,
    name: str | None = None,
    headers: Mapping[str, str] | None = None,
    body: str | bytes | None = None,
    timeout: float | None = None,
) -> Request:
    """Build a PUT request step."""
    return request("PUT", url, name=name, headers=headers, body=body, timeout=timeout)


def patch(
    url: str,
    *,
    name: str | None = None,
    headers: Mapping[str, str] | None = None,
    body: str | bytes | None = None,
    timeout: float | None = None,
) -> Request:
    """Build a PATCH request step."""
    return request("PATCH", url, name=name, headers=headers, body=body, timeout=timeout)


def delete(
    url: str,
    *,
    name: str | None = None,
    headers: Mapping[str, str] | None = None,
    timeout: float | None = None,
) -> Request:
    """Build a DELETE request step."""
    return request("DELETE", url, name=name, headers=headers, timeout=timeout)
