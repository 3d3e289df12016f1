from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import replace
from typing import Any

import httpx

from automodel.errors import EndpointNotFoundError, EndpointRequestError
from automodel.intelligence.models import (
    ChatMessage,
    ChatResponse,
    EndpointDescriptor,
)
from automodel.services.endpoint_provider import CharTokenizer, parse_descriptors

logger = logging.getLogger(__name__)


class HttpChatEndpoint:
    """Forwards chat requests to an OpenAI-compatible ``/chat/completions`` route."""

    def __init__(
        self,
        *,
        descriptor: EndpointDescriptor,
        client: httpx.AsyncClient,
        base_url: str,
        token: str | None = None,
    ) -> None:
        self.descriptor = descriptor
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._policy_accepted = False

    @property
    def model(self) -> str:
        return self.descriptor.model

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def chat_url(self) -> str:
        return self.descriptor.url or f"{self._base_url}/chat/completions"

    def acquire_tokenizer(self) -> CharTokenizer:
        return CharTokenizer(name=self.descriptor.tokenizer)

    async def make_chat_request(
        self,
        messages: Sequence[ChatMessage],
        *,
        debug_name: str = "",
        request_options: dict[str, Any] | None = None,
    ) -> ChatResponse:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": item.role, "content": item.content} for item in messages],
        }
        options = dict(request_options or {})
        options.pop("n", None)
        options.setdefault("max_tokens", self.descriptor.max_output_tokens)
        payload.update(options)

        logger.info(
            "http_endpoint_chat model=%s debug_name=%s messages=%s",
            self.model,
            debug_name,
            len(payload["messages"]),
        )
        try:
            response = await self._client.post(
                self.chat_url,
                json=payload,
                headers=_auth_headers(self._token),
            )
        except httpx.HTTPError as exc:
            raise EndpointRequestError(f"chat_transport_error:{exc}") from exc
        if response.status_code >= 400:
            raise EndpointRequestError(
                f"chat_http_status:{response.status_code}",
                status_code=response.status_code,
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise EndpointRequestError("chat_invalid_json") from exc
        return self.process_response(body)

    def process_response(self, payload: dict[str, Any]) -> ChatResponse:
        if not isinstance(payload, dict):
            return ChatResponse(ok=False, model=self.model, error="chat_invalid_payload")
        error = payload.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else error
            return ChatResponse(ok=False, model=self.model, error=str(message))

        choices = payload.get("choices")
        if not isinstance(choices, list) or not choices:
            return ChatResponse(ok=False, model=self.model, error="chat_no_choices")
        first = choices[0] if isinstance(choices[0], dict) else {}
        message = first.get("message") if isinstance(first.get("message"), dict) else {}
        content = message.get("content")
        usage = payload.get("usage") if isinstance(payload.get("usage"), dict) else {}
        return ChatResponse(
            ok=content is not None,
            model=str(payload.get("model") or self.model),
            reply=str(content) if content is not None else None,
            error=None if content is not None else "chat_empty_reply",
            usage=usage,
        )

    async def accept_chat_policy(self) -> bool:
        if self._policy_accepted:
            return True
        try:
            response = await self._client.post(
                f"{self._base_url}/models/{self.model}/policy",
                json={"state": "enabled"},
                headers=_auth_headers(self._token),
            )
        except httpx.HTTPError as exc:
            logger.warning("http_endpoint_policy_failed model=%s error=%s", self.model, exc)
            raise EndpointRequestError(f"policy_transport_error:{exc}") from exc
        self._policy_accepted = response.status_code < 400
        return self._policy_accepted

    def clone_with_token_override(self, model_max_prompt_tokens: int) -> HttpChatEndpoint:
        return HttpChatEndpoint(
            descriptor=replace(self.descriptor, model_max_prompt_tokens=model_max_prompt_tokens),
            client=self._client,
            base_url=self._base_url,
            token=self._token,
        )


class HttpEndpointProvider:
    """Reads the endpoint catalog from ``GET {base_url}/models`` on every call."""

    def __init__(
        self,
        *,
        base_url: str,
        token: str | None = None,
        timeout_sec: float = 20.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout=timeout_sec))

    @property
    def base_url(self) -> str:
        return self._base_url

    async def get_all_chat_endpoints(self) -> list[HttpChatEndpoint]:
        try:
            response = await self._client.get(
                f"{self._base_url}/models",
                headers=_auth_headers(self._token),
            )
        except httpx.HTTPError as exc:
            raise EndpointRequestError(f"catalog_transport_error:{exc}") from exc
        if response.status_code >= 400:
            raise EndpointRequestError(
                f"catalog_http_status:{response.status_code}",
                status_code=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise EndpointRequestError("catalog_invalid_json") from exc

        endpoints = [self._wrap(item) for item in parse_descriptors(payload)]
        logger.info("http_catalog_fetched base_url=%s total=%s", self._base_url, len(endpoints))
        return endpoints

    async def get_chat_endpoint(self, model_id: str) -> HttpChatEndpoint:
        for endpoint in await self.get_all_chat_endpoints():
            if endpoint.model == model_id:
                return endpoint
        raise EndpointNotFoundError(model_id)

    async def aclose(self) -> None:
        await self._client.aclose()

    def _wrap(self, descriptor: EndpointDescriptor) -> HttpChatEndpoint:
        return HttpChatEndpoint(
            descriptor=descriptor,
            client=self._client,
            base_url=self._base_url,
            token=self._token,
        )


def _auth_headers(token: str | None) -> dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers
