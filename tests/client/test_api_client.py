from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from studytrack.client.api_client import ProgressApiClient
from studytrack.core.errors import (
    AuthError,
    NetworkError,
    NotFoundError,
    ProgressError,
    RequestTimeoutError,
    StoreError,
    ValidationError,
)


def _client(handler) -> ProgressApiClient:
    return ProgressApiClient("http://test", "tok", transport=httpx.MockTransport(handler))


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (400, ValidationError),
        (401, AuthError),
        (404, NotFoundError),
        (500, StoreError),
        (503, NetworkError),
    ],
)
def test_error_statuses_map_to_error_classes(status: int, expected: type[ProgressError]) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json={"success": False, "message": "nope", "data": None})

    async def scenario() -> None:
        async with _client(handler) as api:
            await api.calculate("u", "c")

    with pytest.raises(expected) as exc_info:
        asyncio.run(scenario())
    assert exc_info.value.message == "nope"


def test_non_json_error_body_uses_default_message() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="Bad Gateway")

    with pytest.raises(StoreError) as exc_info:
        asyncio.run(_client(handler).get_subject("s"))
    assert exc_info.value.message == StoreError.default_message


def test_timeout_maps_to_request_timeout() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(RequestTimeoutError):
        asyncio.run(_client(handler).get_progress("u"))


def test_connect_error_maps_to_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(NetworkError):
        asyncio.run(_client(handler).get_progress("u"))


def test_bearer_token_and_dropped_none_fields() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"success": True, "data": {"type": "unit"}})

    asyncio.run(_client(handler).mark_congratulations("unit", unit_id="u1"))

    [request] = seen
    assert request.headers["authorization"] == "Bearer tok"
    assert json.loads(request.content) == {"type": "unit", "unitId": "u1"}


def test_get_progress_without_document_is_none() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["unitId"] == "u1"
        return httpx.Response(200, json={"success": True, "data": []})

    assert asyncio.run(_client(handler).get_progress("u1")) is None


def test_unauthenticated_client_sends_no_header() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"success": True, "data": []})

    api = ProgressApiClient("http://test", transport=httpx.MockTransport(handler))
    assert api.authenticated is False
    asyncio.run(api.get_tree("e1"))
    assert "authorization" not in seen[0].headers
