from typing import Literal

from pydantic import BaseModel, Field


class SelectionStateResponse(BaseModel):
    display_name: str
    last_actual_model_name: str
    selected: bool


class ResolveRequest(BaseModel):
    prompt: str | None = Field(default=None, max_length=200_000)


class ResolveResponse(BaseModel):
    ok: bool
    model: str
    name: str
    display_name: str
    reason: str
    signals: list[str] = Field(default_factory=list)
    rule: str | None = None
    dynamic: bool = False
    preferred_models: list[str] = Field(default_factory=list)
    prompt_length: int = 0


class ChatMessageItem(BaseModel):
    role: Literal["system", "user", "assistant", "tool"]
    content: str = Field(max_length=200_000)


class ChatRequest(BaseModel):
    model: str = Field(default="auto", min_length=1, max_length=128)
    messages: list[ChatMessageItem] = Field(min_length=1)
    max_tokens: int | None = Field(default=None, ge=1, le=128_000)
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)


class ChatResponse(BaseModel):
    ok: bool
    model: str
    reply: str | None = None
    error: str | None = None
    trace_id: str
    auto_display_name: str | None = None


class ModelListItem(BaseModel):
    model: str
    name: str
    family: str = ""
    supports_vision: bool = False
    supports_tool_calls: bool = False
    model_max_prompt_tokens: int = 0
    max_output_tokens: int = 0
    is_auto: bool = False


class ModelListResponse(BaseModel):
    ok: bool
    total: int
    items: list[ModelListItem] = Field(default_factory=list)
