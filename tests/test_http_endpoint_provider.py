from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from automodel.errors import EndpointNotFoundError, EndpointRequestError
from automodel.intelligence.models import ChatMessage
from automodel.services.http_endpoint_provider import HttpEndpointProvider

_CATALOG = {
    "data": [
        {
            "id": "gpt-4o",
            "name": "GPT-4o",
            "capabilities": {
                "family": "gpt-4o",
                "limits": {"max_prompt_tokens": 64000, "max_output_tokens": 4096},
                "supports": {"vision": True, "tool_calls": True},
            },
        },
        {
            "model": "copilot-claude-sonnet-4",
            "name": "Claude Sonnet 4",
            "supports_vision": False,
            "model_max_prompt_tokens": 128000,
        },
        {"name": "missing id is skipped"},
    ]
}


def _provider(handler) -> HttpEndpointProvider:  # type: ignore[no-untyped-def]
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpEndpointProvider(base_url="http://catalog.local/v1/", token="tok_1", client=client)


def test_http_provider_parses_catalog() -> None:
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_CATALOG)

    endpoints = asyncio.run(_provider(_handler).get_all_chat_endpoints())

    assert [item.model for item in endpoints] == ["gpt-4o", "copilot-claude-sonnet-4"]
    assert endpoints[0].descriptor.supports_vision is True
    assert endpoints[0].descriptor.supports_tool_calls is True
    assert endpoints[0].descriptor.model_max_prompt_tokens == 64000
    assert endpoints[1].name == "Claude Sonnet 4"
    assert endpoints[1].descriptor.model_max_prompt_tokens == 128000
    assert str(seen[0].url) == "http://catalog.local/v1/models"
    assert seen[0].headers["authorization"] == "Bearer tok_1"


def test_http_provider_get_chat_endpoint_not_found() -> None:
    provider = _provider(lambda request: httpx.Response(200, json=_CATALOG))

    with pytest.raises(EndpointNotFoundError):
        asyncio.run(provider.get_chat_endpoint("copilot-base"))


def test_http_provider_catalog_error_is_raised() -> None:
    provider = _provider(lambda request: httpx.Response(500, json={"error": "boom"}))

    with pytest.raises(EndpointRequestError) as exc_info:
        asyncio.run(provider.get_all_chat_endpoints())

    assert exc_info.value.status_code == 500


def test_http_provider_transport_error_is_raised() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(EndpointRequestError):
        asyncio.run(_provider(_handler).get_all_chat_endpoints())


def test_http_endpoint_forwards_chat_request() -> None:
    captured: dict[str, object] = {}

    def _handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/models"):
            return httpx.Response(200, json=_CATALOG)
        captured["url"] = str(request.url)
        captured["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "model": "gpt-4o-2024",
                "choices": [{"message": {"role": "assistant", "content": "hi there"}}],
                "usage": {"total_tokens": 12},
            },
        )

    async def _run():  # type: ignore[no-untyped-def]
        endpoint = await _provider(_handler).get_chat_endpoint("gpt-4o")
        return await endpoint.make_chat_request(
            [ChatMessage(role="user", content="hello")],
            request_options={"n": 3, "temperature": 0.2},
        )

    result = asyncio.run(_run())

    assert result.ok is True
    assert result.reply == "hi there"
    assert result.model == "gpt-4o-2024"
    assert result.usage == {"total_tokens": 12}
    assert captured["url"] == "http://catalog.local/v1/chat/completions"
    body = captured["body"]
    assert isinstance(body, dict)
    assert body["model"] == "gpt-4o"
    assert body["messages"] == [{"role": "user", "content": "hello"}]
    assert body["temperature"] == 0.2
    assert body["max_tokens"] == 4096
    assert "n" not in body


def test_http_endpoint_chat_http_error() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/models"):
            return httpx.Response(200, json=_CATALOG)
        return httpx.Response(429, json={"error": "rate limited"})

    async def _run():  # type: ignore[no-untyped-def]
        endpoint = await _provider(_handler).get_chat_endpoint("gpt-4o")
        return await endpoint.make_chat_request([ChatMessage(role="user", content="hello")])

    with pytest.raises(EndpointRequestError) as exc_info:
        asyncio.run(_run())

    assert exc_info.value.status_code == 429


def test_http_endpoint_process_response_handles_error_payload() -> None:
    async def _run():  # type: ignore[no-untyped-def]
        return await _provider(lambda request: httpx.Response(200, json=_CATALOG)).get_chat_endpoint("gpt-4o")

    endpoint = asyncio.run(_run())

    failed = endpoint.process_response({"error": {"message": "model overloaded"}})
    empty = endpoint.process_response({"choices": []})

    assert failed.ok is False
    assert failed.error == "model overloaded"
    assert empty.error == "chat_no_choices"


def test_http_endpoint_clone_with_token_override() -> None:
    async def _run():  # type: ignore[no-untyped-def]
        return await _provider(lambda request: httpx.Response(200, json=_CATALOG)).get_chat_endpoint("gpt-4o")

    endpoint = asyncio.run(_run())
    clone = endpoint.clone_with_token_override(16000)

    assert clone.descriptor.model_max_prompt_tokens == 16000
    assert endpoint.descriptor.model_max_prompt_tokens == 64000
    assert clone.model == "gpt-4o"


def test_http_endpoint_accept_chat_policy_posts_enabled_state() -> None:
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/models"):
            return httpx.Response(200, json=_CATALOG)
        seen.append(request)
        return httpx.Response(200, json={"state": "enabled"})

    async def _run():  # type: ignore[no-untyped-def]
        endpoint = await _provider(_handler).get_chat_endpoint("gpt-4o")
        return await endpoint.accept_chat_policy(), await endpoint.accept_chat_policy()

    first, second = asyncio.run(_run())

    assert first is True
    assert second is True
    assert len(seen) == 1
    assert str(seen[0].url) == "http://catalog.local/v1/models/gpt-4o/policy"
    assert json.loads(seen[0].content) == {"state": "enabled"}


def test_http_endpoint_accept_chat_policy_transport_error_is_raised() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/models"):
            return httpx.Response(200, json=_CATALOG)
        raise httpx.ConnectError("connection refused", request=request)

    async def _run():  # type: ignore[no-untyped-def]
        endpoint = await _provider(_handler).get_chat_endpoint("gpt-4o")
        return await endpoint.accept_chat_policy()

    with pytest.raises(EndpointRequestError) as exc_info:
        asyncio.run(_run())

    assert str(exc_info.value).startswith("policy_transport_error:")
    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
