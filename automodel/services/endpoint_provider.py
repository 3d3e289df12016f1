from __future__ import annotations

import json
import logging
import os
from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path
from typing import Any, Protocol

from automodel.errors import EndpointNotFoundError, UnsupportedOperationError
from automodel.intelligence.models import (
    ChatEndpoint,
    ChatMessage,
    ChatResponse,
    EndpointDescriptor,
    TokenizerType,
)

logger = logging.getLogger(__name__)


class EndpointProvider(Protocol):
    async def get_all_chat_endpoints(self) -> list[ChatEndpoint]: ...

    async def get_chat_endpoint(self, model_id: str) -> ChatEndpoint: ...


class CharTokenizer:
    """Rough token estimate used where no real tokenizer is wired in."""

    def __init__(self, name: str = TokenizerType.O200K, chars_per_token: int = 4) -> None:
        self.name = name
        self._chars_per_token = max(chars_per_token, 1)

    def count_tokens(self, text: str) -> int:
        if not text:
            return 0
        return (len(text) + self._chars_per_token - 1) // self._chars_per_token


class StaticChatEndpoint:
    """Catalog entry without a transport; replies with an error instead of a completion."""

    def __init__(self, descriptor: EndpointDescriptor) -> None:
        self.descriptor = descriptor

    @property
    def model(self) -> str:
        return self.descriptor.model

    @property
    def name(self) -> str:
        return self.descriptor.name

    def acquire_tokenizer(self) -> CharTokenizer:
        return CharTokenizer(name=self.descriptor.tokenizer)

    async def make_chat_request(
        self,
        messages: Sequence[ChatMessage],
        *,
        debug_name: str = "",
        request_options: dict[str, Any] | None = None,
    ) -> ChatResponse:
        _ = (messages, request_options)
        logger.info("static_endpoint_chat model=%s debug_name=%s", self.model, debug_name)
        return ChatResponse(ok=False, model=self.model, error="endpoint_has_no_transport")

    def process_response(self, payload: dict[str, Any]) -> ChatResponse:
        _ = payload
        raise UnsupportedOperationError("process_response")

    async def accept_chat_policy(self) -> bool:
        return True

    def clone_with_token_override(self, model_max_prompt_tokens: int) -> StaticChatEndpoint:
        return StaticChatEndpoint(
            replace(self.descriptor, model_max_prompt_tokens=model_max_prompt_tokens)
        )


class StaticEndpointProvider:
    """In-memory catalog, usually loaded from AUTOMODEL_ENDPOINTS_JSON/FILE."""

    def __init__(self, endpoints: Sequence[ChatEndpoint] | None = None) -> None:
        self._endpoints = list(endpoints or [])

    async def get_all_chat_endpoints(self) -> list[ChatEndpoint]:
        return list(self._endpoints)

    async def get_chat_endpoint(self, model_id: str) -> ChatEndpoint:
        for endpoint in self._endpoints:
            if endpoint.model == model_id:
                return endpoint
        raise EndpointNotFoundError(model_id)

    @classmethod
    def from_env(cls) -> StaticEndpointProvider:
        file_path = os.getenv("AUTOMODEL_ENDPOINTS_FILE", "").strip()
        json_text = os.getenv("AUTOMODEL_ENDPOINTS_JSON", "").strip()
        payload: Any = []

        if file_path:
            try:
                payload = json.loads(Path(file_path).read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as exc:
                logger.warning("static_endpoints_load_failed source=file path=%s error=%s", file_path, exc)
                payload = []
        elif json_text:
            try:
                payload = json.loads(json_text)
            except json.JSONDecodeError as exc:
                logger.warning("static_endpoints_load_failed source=env error=%s", exc)
                payload = []

        endpoints = [StaticChatEndpoint(item) for item in parse_descriptors(payload)]
        logger.info("static_endpoints_loaded total=%s", len(endpoints))
        return cls(endpoints)


def parse_descriptors(payload: Any) -> list[EndpointDescriptor]:
    """Accept a list of descriptor dicts or ``{"data"|"endpoints": [...]}``."""
    if isinstance(payload, dict):
        payload = payload.get("data", payload.get("endpoints", []))
    if not isinstance(payload, list):
        return []

    descriptors: list[EndpointDescriptor] = []
    for item in payload:
        if not isinstance(item, dict):
            continue
        descriptor = parse_descriptor(item)
        if descriptor is not None:
            descriptors.append(descriptor)
    return descriptors


def parse_descriptor(item: dict[str, Any]) -> EndpointDescriptor | None:
    model = str(item.get("model") or item.get("id") or "").strip()
    if not model:
        return None
    capabilities = item.get("capabilities")
    if not isinstance(capabilities, dict):
        capabilities = {}
    limits = capabilities.get("limits")
    if not isinstance(limits, dict):
        limits = {}
    supports = capabilities.get("supports")
    if not isinstance(supports, dict):
        supports = {}

    def _flag(*keys: str) -> bool:
        for key in keys:
            if key in item:
                return bool(item[key])
            if key in supports:
                return bool(supports[key])
        return False

    multiplier = item.get("multiplier")
    return EndpointDescriptor(
        model=model,
        name=str(item.get("name") or model).strip() or model,
        supports_vision=_flag("supports_vision", "vision"),
        supports_tool_calls=_flag("supports_tool_calls", "tool_calls"),
        supports_prediction=_flag("supports_prediction", "prediction"),
        model_max_prompt_tokens=_safe_int(
            item.get("model_max_prompt_tokens", limits.get("max_prompt_tokens")),
            default=0,
        ),
        max_output_tokens=_safe_int(
            item.get("max_output_tokens", limits.get("max_output_tokens")),
            default=4096,
        ),
        family=str(item.get("family") or capabilities.get("family") or ""),
        version=str(item.get("version") or ""),
        tokenizer=str(item.get("tokenizer") or capabilities.get("tokenizer") or TokenizerType.O200K),
        is_premium=bool(item.get("is_premium", False)),
        multiplier=float(multiplier) if isinstance(multiplier, (int, float)) else None,
        show_in_model_picker=bool(item.get("show_in_model_picker", True)),
        url=str(item.get("url") or ""),
    )


def _safe_int(value: Any, *, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default
