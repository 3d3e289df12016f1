from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from typing import Any

from automodel.errors import RequestCancelledError, UnsupportedOperationError
from automodel.intelligence.models import (
    ChatEndpoint,
    ChatMessage,
    ChatResponse,
    EndpointDescriptor,
    Tokenizer,
    TokenizerType,
    last_user_prompt,
)
from automodel.intelligence.selection_state import SelectionState
from automodel.services.endpoint_resolver import EndpointResolver

logger = logging.getLogger(__name__)

AUTO_MODEL_ID = "auto"


@dataclass(frozen=True)
class AutoEndpointCapabilities:
    model: str = AUTO_MODEL_ID
    family: str = AUTO_MODEL_ID
    version: str = AUTO_MODEL_ID
    supports_tool_calls: bool = True
    supports_vision: bool = True
    supports_prediction: bool = True
    max_output_tokens: int = 4096
    model_max_prompt_tokens: int = 64000
    tokenizer: str = TokenizerType.O200K
    show_in_model_picker: bool = True
    is_premium: bool = False
    multiplier: float | None = None
    policy: str = "enabled"
    restricted_to_skus: tuple[str, ...] | None = None
    is_default: bool = False
    is_fallback: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class AutoChatEndpoint:
    """Stable "Auto" entry for model pickers.

    Static metadata comes from ``capabilities`` without resolving anything.
    ``name`` follows the shared selection state. Tokenizer and chat requests
    resolve a concrete endpoint on every call and delegate to it.
    Because of that, ``acquire_tokenizer`` is a coroutine here, unlike the
    synchronous method on concrete endpoints.
    """

    def __init__(
        self,
        *,
        resolver: EndpointResolver,
        state: SelectionState,
        capabilities: AutoEndpointCapabilities | None = None,
    ) -> None:
        self.capabilities = capabilities or AutoEndpointCapabilities()
        self._resolver = resolver
        self._state = state

    def __getattr__(self, item: str) -> Any:
        # Only reached for attributes not defined on the facade itself.
        capabilities = self.__dict__.get("capabilities")
        if capabilities is not None and hasattr(capabilities, item):
            return getattr(capabilities, item)
        raise AttributeError(item)

    @property
    def name(self) -> str:
        return self._state.current_display_name()

    @property
    def descriptor(self) -> EndpointDescriptor:
        capabilities = self.capabilities
        return EndpointDescriptor(
            model=capabilities.model,
            name=self.name,
            supports_vision=capabilities.supports_vision,
            supports_tool_calls=capabilities.supports_tool_calls,
            supports_prediction=capabilities.supports_prediction,
            model_max_prompt_tokens=capabilities.model_max_prompt_tokens,
            max_output_tokens=capabilities.max_output_tokens,
            family=capabilities.family,
            version=capabilities.version,
            tokenizer=capabilities.tokenizer,
            is_premium=capabilities.is_premium,
            multiplier=capabilities.multiplier,
            show_in_model_picker=capabilities.show_in_model_picker,
        )

    async def acquire_tokenizer(self, prompt: str | None = None) -> Tokenizer:
        endpoint = await self._resolver.resolve(prompt)
        return endpoint.acquire_tokenizer()

    async def make_chat_request(
        self,
        messages: Sequence[ChatMessage],
        *,
        debug_name: str = "",
        request_options: dict[str, Any] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> ChatResponse:
        endpoint = await self.resolve_for(messages)
        if cancel_event is not None and cancel_event.is_set():
            logger.info("auto_chat_cancelled model=%s debug_name=%s", endpoint.model, debug_name)
            raise RequestCancelledError(f"request cancelled before forwarding to {endpoint.model}")
        return await endpoint.make_chat_request(
            messages,
            debug_name=debug_name,
            request_options=request_options,
        )

    async def resolve_for(self, messages: Sequence[ChatMessage]) -> ChatEndpoint:
        return await self._resolver.resolve(last_user_prompt(messages))

    def process_response(self, payload: dict[str, Any]) -> ChatResponse:
        _ = payload
        raise UnsupportedOperationError("process_response")

    async def accept_chat_policy(self) -> bool:
        raise UnsupportedOperationError("accept_chat_policy")

    def clone_with_token_override(self, model_max_prompt_tokens: int) -> ChatEndpoint:
        _ = model_max_prompt_tokens
        raise UnsupportedOperationError("clone_with_token_override")

    def describe(self) -> dict[str, Any]:
        payload = self.capabilities.to_dict()
        payload["name"] = self.name
        return payload

