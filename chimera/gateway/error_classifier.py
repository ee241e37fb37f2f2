"""
Error classification for generation attempts.

Providers report failures in ad hoc shapes: a nested ``{"error": {...}}``
object, a bare string, sometimes an HTML page. This module is the only place
that looks at those shapes; everything downstream branches on ``ErrorKind``.

The classification is pure and deterministic: it depends only on the HTTP
status, the raw body and (for requests that never got a response) the
transport exception.
"""

import asyncio
import json
import socket
from typing import Any, Iterator, Optional

import httpx

from .exceptions import ErrorKind

# Provider error codes meaning "the API key was not accepted".
INVALID_KEY_CODES = frozenset({"invalid_api_key"})

_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "temporary failure in name resolution",
    "getaddrinfo",
    "enotfound",
    "no address associated with hostname",
)

_REFUSED_MARKERS = (
    "connection refused",
    "econnrefused",
    "connect call failed",
    "fetch failed",
)


def _exception_chain(error: BaseException) -> Iterator[BaseException]:
    seen = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def _parse_body(raw_body: Any) -> Any:
    if isinstance(raw_body, (bytes, bytearray)):
        raw_body = raw_body.decode("utf-8", errors="replace")
    if isinstance(raw_body, str):
        try:
            return json.loads(raw_body)
        except ValueError:
            return raw_body
    return raw_body


def _error_codes(body: Any) -> Iterator[str]:
    """Yield every error code a provider body carries, whatever its shape."""
    if isinstance(body, str):
        yield body.strip()
        return
    if not isinstance(body, dict):
        return

    error = body.get("error")
    if isinstance(error, str):
        yield error
    elif isinstance(error, dict):
        for key in ("code", "type"):
            if isinstance(error.get(key), str):
                yield error[key]

    if isinstance(body.get("code"), str):
        yield body["code"]


def classify_transport_error(error: BaseException) -> ErrorKind:
    """
    Classify a request that never produced an HTTP response.

    Args:
        error: Exception raised by the HTTP client or the attempt deadline

    Returns:
        TIMEOUT, DNS_FAILURE, CONNECTION_REFUSED or UPSTREAM_OTHER
    """
    if isinstance(error, (asyncio.TimeoutError, httpx.TimeoutException)):
        return ErrorKind.TIMEOUT

    for link in _exception_chain(error):
        if isinstance(link, socket.gaierror):
            return ErrorKind.DNS_FAILURE
        if isinstance(link, ConnectionRefusedError):
            return ErrorKind.CONNECTION_REFUSED

    message = " ".join(str(link) for link in _exception_chain(error)).lower()
    if any(marker in message for marker in _DNS_MARKERS):
        return ErrorKind.DNS_FAILURE
    if any(marker in message for marker in _REFUSED_MARKERS):
        return ErrorKind.CONNECTION_REFUSED

    # The host could not be reached at all
    if isinstance(error, httpx.ConnectError):
        return ErrorKind.CONNECTION_REFUSED

    return ErrorKind.UPSTREAM_OTHER


def classify(
    http_status: Optional[int],
    raw_body: Any,
    transport_error: Optional[BaseException] = None,
) -> ErrorKind:
    """
    Map the outcome of a failed attempt to an ErrorKind.

    Args:
        http_status: Response status, or None when no response arrived
        raw_body: Response body as dict, str, bytes or None
        transport_error: Exception raised instead of a response, if any

    Returns:
        The ErrorKind describing the failure
    """
    if transport_error is not None:
        return classify_transport_error(transport_error)

    body = _parse_body(raw_body)
    if any(code in INVALID_KEY_CODES for code in _error_codes(body)):
        return ErrorKind.INVALID_CREDENTIALS

    if http_status == 429:
        return ErrorKind.RATE_LIMITED

    return ErrorKind.UPSTREAM_OTHER
