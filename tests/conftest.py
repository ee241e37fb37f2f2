"""
Pytest configuration and fixtures for testing.
"""

from typing import Any, Callable, Dict, List

import httpx
import pytest

from chimera.gateway.models import ClientCredentials, ProviderEndpoint


class RecordingHandler:
    """
    MockTransport handler that replays scripted responses per URL.

    ``routes`` maps a URL (without query string) to a list of responders; each
    responder is an httpx.Response, an exception to raise, or a coroutine
    function taking the request. Responders are consumed in order and the last
    one repeats.
    """

    def __init__(self, routes: Dict[str, List[Any]]):
        self.routes = {url: list(responders) for url, responders in routes.items()}
        self.requests: List[httpx.Request] = []

    def urls(self) -> List[str]:
        return [str(request.url.copy_with(query=None)) for request in self.requests]

    def count(self, url: str) -> int:
        return self.urls().count(url)

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url.copy_with(query=None))
        responders = self.routes.get(url)
        if not responders:
            return httpx.Response(404, json={"error": {"message": "not found"}})

        responder = responders.pop(0) if len(responders) > 1 else responders[0]
        if isinstance(responder, BaseException):
            raise responder
        if isinstance(responder, httpx.Response):
            # Scripted responses may repeat; hand out a fresh copy each time
            return httpx.Response(
                responder.status_code,
                headers=responder.headers,
                content=responder.content,
            )
        return await responder(request)


@pytest.fixture
def recording_handler() -> Callable[[Dict[str, List[Any]]], RecordingHandler]:
    """Factory for scripted MockTransport handlers."""
    return RecordingHandler


@pytest.fixture
def make_http_client() -> Callable[[RecordingHandler], httpx.AsyncClient]:
    """Build an AsyncClient whose requests go to a RecordingHandler."""

    def factory(handler: RecordingHandler) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return factory


@pytest.fixture
def credentials() -> ClientCredentials:
    return ClientCredentials(client_id="test-ak", client_secret="test-sk")


@pytest.fixture
def provider_a() -> ProviderEndpoint:
    return ProviderEndpoint(
        provider_id="A",
        base_host="https://a.example.com",
        paths=("/v1/images/generations",),
        model_id="gpt-image-1",
        api_key="sk-test-a",
    )


@pytest.fixture
def provider_b() -> ProviderEndpoint:
    return ProviderEndpoint(
        provider_id="B",
        base_host="https://b.example.com",
        paths=("/v1/images/generations", "/images/generations"),
        model_id="openai.gpt-image-1",
        api_key="sk-test-b",
    )
