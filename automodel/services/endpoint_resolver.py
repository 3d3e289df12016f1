from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from automodel.errors import EndpointNotFoundError, NoCandidatesError
from automodel.intelligence.models import DEFAULT_VENDOR_PREFIX, ChatEndpoint, model_id_matches
from automodel.intelligence.prompt_classifier import (
    LONG_CONTEXT_CHARS,
    ClassificationResult,
    classify_prompt,
)
from automodel.intelligence.selection_policy import PreferenceDecision, SelectionPolicy
from automodel.intelligence.selection_state import SelectionState
from automodel.services.endpoint_provider import EndpointProvider

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_MODELS: tuple[str, ...] = ("gpt-4o", "gpt-4.1", "gpt-4")
DEFAULT_BASELINE_MODEL = "copilot-base"


@dataclass(frozen=True)
class ResolvedSelection:
    endpoint: ChatEndpoint
    reason: str
    classification: ClassificationResult | None = None
    decision: PreferenceDecision | None = None


class EndpointResolver:
    """Pick one backing chat endpoint for a prompt.

    The preference list from the policy is scanned in order and the first
    candidate matching an entry wins, even if a later entry would also match.
    A missing prompt goes through the same default list as a prompt with no
    signal. When nothing matches, the fixed fallback chain is tried and
    finally the baseline endpoint is requested from the provider.
    """

    def __init__(
        self,
        *,
        provider: EndpointProvider,
        state: SelectionState,
        policy: SelectionPolicy | None = None,
        fallback_models: Sequence[str] = DEFAULT_FALLBACK_MODELS,
        baseline_model: str = DEFAULT_BASELINE_MODEL,
        vendor_prefix: str = DEFAULT_VENDOR_PREFIX,
        long_context_chars: int = LONG_CONTEXT_CHARS,
    ) -> None:
        self._provider = provider
        self._state = state
        self._policy = policy or SelectionPolicy()
        self._fallback_models = tuple(fallback_models)
        self._baseline_model = baseline_model
        self._vendor_prefix = vendor_prefix
        self._long_context_chars = long_context_chars

    @property
    def fallback_models(self) -> tuple[str, ...]:
        return self._fallback_models

    @property
    def baseline_model(self) -> str:
        return self._baseline_model

    async def resolve(self, prompt: str | None) -> ChatEndpoint:
        selection = await self.resolve_with_trace(prompt)
        return selection.endpoint

    async def resolve_with_trace(self, prompt: str | None) -> ResolvedSelection:
        candidates = await self._provider.get_all_chat_endpoints()

        classification: ClassificationResult | None = None
        if not prompt or not prompt.strip():
            decision = self._policy.default_decision()
        else:
            classification = classify_prompt(prompt, long_context_chars=self._long_context_chars)
            decision = self._policy.decide(classification, candidates)
            logger.info(
                "auto_prompt_analysis length=%s signals=%s rule=%s dynamic=%s preferred=%s",
                classification.prompt_length,
                ",".join(classification.matched_signals()) or "none",
                decision.signal,
                decision.dynamic,
                ",".join(decision.models),
            )

        endpoint = self.find_candidate(candidates, decision.models)
        if endpoint is not None:
            selection = ResolvedSelection(
                endpoint=endpoint,
                reason="preferred",
                classification=classification,
                decision=decision,
            )
        else:
            logger.info("auto_no_preferred_match candidates=%s", len(candidates))
            fallback = await self._fallback(candidates)
            selection = ResolvedSelection(
                endpoint=fallback.endpoint,
                reason=fallback.reason,
                classification=classification,
                decision=decision,
            )

        logger.info(
            "auto_endpoint_resolved model=%s name=%s reason=%s",
            selection.endpoint.model,
            selection.endpoint.name,
            selection.reason,
        )
        self._state.update(selection.endpoint.name)
        return selection

    def find_candidate(
        self,
        candidates: Sequence[ChatEndpoint],
        preferred_models: Sequence[str],
    ) -> ChatEndpoint | None:
        for model_id in preferred_models:
            for endpoint in candidates:
                if model_id_matches(endpoint.model, model_id, vendor_prefix=self._vendor_prefix):
                    return endpoint
        return None

    async def _fallback(self, candidates: Sequence[ChatEndpoint]) -> ResolvedSelection:
        for idx, model_id in enumerate(self._fallback_models):
            endpoint = self.find_candidate(candidates, (model_id,))
            if endpoint is not None:
                return ResolvedSelection(endpoint=endpoint, reason=f"fallback[{idx}]")

        try:
            endpoint = await self._provider.get_chat_endpoint(self._baseline_model)
        except EndpointNotFoundError as exc:
            logger.warning(
                "auto_no_candidates candidates=%s baseline=%s",
                len(candidates),
                self._baseline_model,
            )
            raise NoCandidatesError(
                candidates_total=len(candidates),
                baseline_model=self._baseline_model,
            ) from exc
        return ResolvedSelection(endpoint=endpoint, reason="baseline")
