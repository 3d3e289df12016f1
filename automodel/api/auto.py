from __future__ import annotations

import logging
from uuid import uuid4

from fastapi import APIRouter, HTTPException, Request, status

from automodel.container import ServiceContainer
from automodel.errors import (
    EndpointNotFoundError,
    EndpointRequestError,
    NoCandidatesError,
    UnsupportedOperationError,
)
from automodel.intelligence.models import ChatMessage
from automodel.schemas import (
    ChatRequest,
    ChatResponse,
    ModelListItem,
    ModelListResponse,
    ResolveRequest,
    ResolveResponse,
    SelectionStateResponse,
)
from automodel.services.auto_endpoint import AUTO_MODEL_ID

router = APIRouter(prefix="/api/v1", tags=["auto"])
logger = logging.getLogger(__name__)


def _get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


@router.get("/auto/selection", response_model=SelectionStateResponse)
def get_selection(request: Request) -> SelectionStateResponse:
    snapshot = _get_container(request).selection_state.snapshot()
    return SelectionStateResponse(**snapshot)


@router.get("/auto/capabilities")
def get_capabilities(request: Request) -> dict[str, object]:
    container = _get_container(request)
    payload = container.auto_endpoint.describe()
    payload["enabled"] = container.auto_mode_enabled
    return payload


@router.post("/auto/resolve", response_model=ResolveResponse)
async def resolve_endpoint(req: ResolveRequest, request: Request) -> ResolveResponse:
    container = _get_container(request)
    trace_id = getattr(request.state, "trace_id", str(uuid4()))
    try:
        selection = await container.endpoint_resolver.resolve_with_trace(req.prompt)
    except NoCandidatesError as exc:
        logger.warning("auto_resolve_failed trace_id=%s error=%s", trace_id, exc)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except EndpointRequestError as exc:
        logger.warning("auto_resolve_failed trace_id=%s error=%s", trace_id, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    classification = selection.classification
    decision = selection.decision
    return ResolveResponse(
        ok=True,
        model=selection.endpoint.model,
        name=selection.endpoint.name,
        display_name=container.selection_state.current_display_name(),
        reason=selection.reason,
        signals=[str(item) for item in classification.matched_signals()] if classification else [],
        rule=str(decision.signal) if decision else None,
        dynamic=decision.dynamic if decision else False,
        preferred_models=list(decision.models) if decision else [],
        prompt_length=classification.prompt_length if classification else 0,
    )


@router.get("/models", response_model=ModelListResponse)
async def list_models(request: Request) -> ModelListResponse:
    container = _get_container(request)
    try:
        endpoints = await container.provider.get_all_chat_endpoints()
    except EndpointRequestError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    items: list[ModelListItem] = []
    if container.auto_mode_enabled:
        auto = container.auto_endpoint
        items.append(
            ModelListItem(
                model=auto.capabilities.model,
                name=auto.name,
                family=auto.capabilities.family,
                supports_vision=auto.capabilities.supports_vision,
                supports_tool_calls=auto.capabilities.supports_tool_calls,
                model_max_prompt_tokens=auto.capabilities.model_max_prompt_tokens,
                max_output_tokens=auto.capabilities.max_output_tokens,
                is_auto=True,
            )
        )
    for endpoint in endpoints:
        descriptor = endpoint.descriptor
        if not descriptor.show_in_model_picker:
            continue
        items.append(
            ModelListItem(
                model=descriptor.model,
                name=descriptor.name,
                family=descriptor.family,
                supports_vision=descriptor.supports_vision,
                supports_tool_calls=descriptor.supports_tool_calls,
                model_max_prompt_tokens=descriptor.model_max_prompt_tokens,
                max_output_tokens=descriptor.max_output_tokens,
            )
        )
    return ModelListResponse(ok=True, total=len(items), items=items)


@router.post("/chat", response_model=ChatResponse)
async def chat(req: ChatRequest, request: Request) -> ChatResponse:
    container = _get_container(request)
    trace_id = getattr(request.state, "trace_id", str(uuid4()))
    messages = [ChatMessage(role=item.role, content=item.content) for item in req.messages]
    options: dict[str, object] = {}
    if req.max_tokens is not None:
        options["max_tokens"] = req.max_tokens
    if req.temperature is not None:
        options["temperature"] = req.temperature

    is_auto = req.model.strip().lower() == AUTO_MODEL_ID
    if is_auto and not container.auto_mode_enabled:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="auto mode is disabled")

    try:
        if is_auto:
            result = await container.auto_endpoint.make_chat_request(
                messages,
                debug_name=f"api_chat:{trace_id}",
                request_options=options,
            )
        else:
            endpoint = await container.provider.get_chat_endpoint(req.model.strip())
            result = await endpoint.make_chat_request(
                messages,
                debug_name=f"api_chat:{trace_id}",
                request_options=options,
            )
    except EndpointNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except NoCandidatesError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except UnsupportedOperationError as exc:
        raise HTTPException(status_code=status.HTTP_501_NOT_IMPLEMENTED, detail=str(exc)) from exc
    except EndpointRequestError as exc:
        logger.warning("chat_forward_failed trace_id=%s error=%s", trace_id, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    logger.info(
        "chat_completed trace_id=%s requested=%s model=%s ok=%s",
        trace_id,
        req.model,
        result.model,
        result.ok,
    )
    return ChatResponse(
        ok=result.ok,
        model=result.model,
        reply=result.reply,
        error=result.error,
        trace_id=trace_id,
        auto_display_name=container.selection_state.current_display_name() if is_auto else None,
    )
