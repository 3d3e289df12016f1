from __future__ import annotations

from dataclasses import dataclass
from os import getenv

from automodel.intelligence.prompt_classifier import LONG_CONTEXT_CHARS
from automodel.intelligence.selection_policy import HIGH_CONTEXT_TOKENS, SelectionPolicy
from automodel.intelligence.selection_state import SelectionState
from automodel.services.auto_endpoint import AutoChatEndpoint
from automodel.services.endpoint_provider import EndpointProvider, StaticEndpointProvider
from automodel.services.endpoint_resolver import (
    DEFAULT_BASELINE_MODEL,
    DEFAULT_FALLBACK_MODELS,
    EndpointResolver,
)
from automodel.services.http_endpoint_provider import HttpEndpointProvider


@dataclass
class ServiceContainer:
    provider: EndpointProvider
    selection_state: SelectionState
    selection_policy: SelectionPolicy
    endpoint_resolver: EndpointResolver
    auto_endpoint: AutoChatEndpoint
    auto_mode_enabled: bool

    async def aclose(self) -> None:
        if isinstance(self.provider, HttpEndpointProvider):
            await self.provider.aclose()


def build_container(*, provider: EndpointProvider | None = None) -> ServiceContainer:
    if provider is None:
        provider = _build_provider()
    selection_state = SelectionState()
    selection_policy = SelectionPolicy.from_env(
        high_context_tokens=_parse_int(
            getenv("AUTOMODEL_HIGH_CONTEXT_TOKENS"),
            default=HIGH_CONTEXT_TOKENS,
        ),
    )
    endpoint_resolver = EndpointResolver(
        provider=provider,
        state=selection_state,
        policy=selection_policy,
        fallback_models=_parse_list(
            getenv("AUTOMODEL_FALLBACK_MODELS"),
            default=DEFAULT_FALLBACK_MODELS,
        ),
        baseline_model=(getenv("AUTOMODEL_BASELINE_MODEL") or "").strip() or DEFAULT_BASELINE_MODEL,
        vendor_prefix=getenv("AUTOMODEL_VENDOR_PREFIX", "copilot-").strip(),
        long_context_chars=_parse_int(
            getenv("AUTOMODEL_LONG_CONTEXT_CHARS"),
            default=LONG_CONTEXT_CHARS,
        ),
    )
    return ServiceContainer(
        provider=provider,
        selection_state=selection_state,
        selection_policy=selection_policy,
        endpoint_resolver=endpoint_resolver,
        auto_endpoint=AutoChatEndpoint(resolver=endpoint_resolver, state=selection_state),
        auto_mode_enabled=_parse_bool(getenv("AUTOMODEL_AUTO_ENABLED"), default=True),
    )


def _build_provider() -> EndpointProvider:
    catalog_url = (getenv("AUTOMODEL_CATALOG_URL") or "").strip()
    if catalog_url:
        return HttpEndpointProvider(
            base_url=catalog_url,
            token=getenv("AUTOMODEL_CATALOG_TOKEN"),
            timeout_sec=_parse_float(getenv("AUTOMODEL_CATALOG_TIMEOUT_SEC"), default=20.0),
        )
    return StaticEndpointProvider.from_env()


def _parse_int(value: str | None, *, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _parse_float(value: str | None, *, default: float) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _parse_bool(value: str | None, *, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_list(value: str | None, *, default: tuple[str, ...]) -> tuple[str, ...]:
    if value is None:
        return default
    items = tuple(item.strip() for item in value.split(",") if item.strip())
    return items or default
