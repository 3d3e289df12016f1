from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Protocol

DEFAULT_VENDOR_PREFIX = "copilot-"


class TaskSignal(StrEnum):
    COMPLEX_REASONING = "complex_reasoning"
    CODE_GENERATION = "code_generation"
    CODE_REVIEW = "code_review"
    CREATIVE_WRITING = "creative_writing"
    VISION_TASK = "vision_task"
    LONG_CONTEXT = "long_context"
    DEFAULT = "default"


class TokenizerType(StrEnum):
    O200K = "o200k_base"
    CL100K = "cl100k_base"


@dataclass(frozen=True)
class EndpointDescriptor:
    model: str
    name: str
    supports_vision: bool = False
    supports_tool_calls: bool = False
    supports_prediction: bool = False
    model_max_prompt_tokens: int = 0
    max_output_tokens: int = 4096
    family: str = ""
    version: str = ""
    tokenizer: str = TokenizerType.O200K
    is_premium: bool = False
    multiplier: float | None = None
    show_in_model_picker: bool = True
    url: str = ""


@dataclass(frozen=True)
class ChatMessage:
    role: str
    content: str


@dataclass
class ChatResponse:
    ok: bool
    model: str
    reply: str | None = None
    error: str | None = None
    usage: dict[str, Any] = field(default_factory=dict)


class Tokenizer(Protocol):
    name: str

    def count_tokens(self, text: str) -> int: ...


class ChatEndpoint(Protocol):
    """A concrete, addressable backing model handed out by an endpoint provider."""

    descriptor: EndpointDescriptor

    @property
    def model(self) -> str: ...

    @property
    def name(self) -> str: ...

    # The auto facade implements this as a coroutine because it resolves first.
    def acquire_tokenizer(self) -> Tokenizer: ...

    async def make_chat_request(
        self,
        messages: Sequence[ChatMessage],
        *,
        debug_name: str = "",
        request_options: dict[str, Any] | None = None,
    ) -> ChatResponse: ...

    def process_response(self, payload: dict[str, Any]) -> ChatResponse: ...

    async def accept_chat_policy(self) -> bool: ...

    def clone_with_token_override(self, model_max_prompt_tokens: int) -> ChatEndpoint: ...


def model_id_matches(
    candidate_id: str,
    wanted_id: str,
    *,
    vendor_prefix: str = DEFAULT_VENDOR_PREFIX,
) -> bool:
    """True when ``candidate_id`` is ``wanted_id`` or its vendor-prefixed alias."""
    if candidate_id == wanted_id:
        return True
    return bool(vendor_prefix) and candidate_id == f"{vendor_prefix}{wanted_id}"


def last_user_prompt(messages: Sequence[ChatMessage]) -> str | None:
    for message in reversed(messages):
        if message.role == "user":
            return message.content
    return None
