import asyncio
import json

import pytest

from automodel.errors import EndpointNotFoundError, UnsupportedOperationError
from automodel.intelligence.models import ChatMessage, model_id_matches
from automodel.services.endpoint_provider import (
    StaticChatEndpoint,
    StaticEndpointProvider,
    parse_descriptors,
)


def test_model_id_matches_bare_and_prefixed_forms() -> None:
    assert model_id_matches("gpt-4o", "gpt-4o") is True
    assert model_id_matches("copilot-gpt-4o", "gpt-4o") is True
    assert model_id_matches("gpt-4o-mini", "gpt-4o") is False
    assert model_id_matches("copilot-gpt-4o", "gpt-4o", vendor_prefix="") is False
    assert model_id_matches("acme/gpt-4o", "gpt-4o", vendor_prefix="acme/") is True


def test_parse_descriptors_accepts_list_and_wrapped_payloads() -> None:
    items = [{"model": "gpt-4o", "name": "GPT-4o", "supports_vision": True}, "junk"]

    assert [item.model for item in parse_descriptors(items)] == ["gpt-4o"]
    assert [item.model for item in parse_descriptors({"endpoints": items})] == ["gpt-4o"]
    assert parse_descriptors({"data": "oops"}) == []
    assert parse_descriptors(None) == []


def test_parse_descriptor_defaults_name_to_model() -> None:
    descriptor = parse_descriptors([{"model": "o1", "model_max_prompt_tokens": "not-a-number"}])[0]

    assert descriptor.name == "o1"
    assert descriptor.model_max_prompt_tokens == 0
    assert descriptor.max_output_tokens == 4096


def test_static_provider_from_env(monkeypatch) -> None:  # type: ignore[no-untyped-def]
    monkeypatch.delenv("AUTOMODEL_ENDPOINTS_FILE", raising=False)
    monkeypatch.setenv(
        "AUTOMODEL_ENDPOINTS_JSON",
        json.dumps([{"model": "gpt-4o", "name": "GPT-4o"}, {"model": "copilot-base", "name": "Base"}]),
    )
    provider = StaticEndpointProvider.from_env()

    endpoints = asyncio.run(provider.get_all_chat_endpoints())
    baseline = asyncio.run(provider.get_chat_endpoint("copilot-base"))

    assert [item.model for item in endpoints] == ["gpt-4o", "copilot-base"]
    assert baseline.name == "Base"
    with pytest.raises(EndpointNotFoundError):
        asyncio.run(provider.get_chat_endpoint("gpt-5"))


def test_static_provider_from_file(tmp_path, monkeypatch) -> None:  # type: ignore[no-untyped-def]
    catalog = tmp_path / "endpoints.json"
    catalog.write_text(json.dumps({"data": [{"id": "gpt-4.1", "name": "GPT-4.1"}]}), encoding="utf-8")
    monkeypatch.setenv("AUTOMODEL_ENDPOINTS_FILE", str(catalog))

    endpoints = asyncio.run(StaticEndpointProvider.from_env().get_all_chat_endpoints())

    assert [item.name for item in endpoints] == ["GPT-4.1"]


def test_static_provider_from_env_tolerates_bad_json(monkeypatch) -> None:  # type: ignore[no-untyped-def]
    monkeypatch.delenv("AUTOMODEL_ENDPOINTS_FILE", raising=False)
    monkeypatch.setenv("AUTOMODEL_ENDPOINTS_JSON", "[{broken")

    assert asyncio.run(StaticEndpointProvider.from_env().get_all_chat_endpoints()) == []


def test_static_endpoint_without_transport() -> None:
    static = StaticChatEndpoint(parse_descriptors([{"model": "gpt-4o"}])[0])

    result = asyncio.run(static.make_chat_request([ChatMessage(role="user", content="hi")]))

    assert result.ok is False
    assert result.error == "endpoint_has_no_transport"
    assert asyncio.run(static.accept_chat_policy()) is True
    assert static.clone_with_token_override(1234).descriptor.model_max_prompt_tokens == 1234
    with pytest.raises(UnsupportedOperationError):
        static.process_response({})
