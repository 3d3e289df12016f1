from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from automodel.intelligence.models import ChatEndpoint, TaskSignal
from automodel.intelligence.prompt_classifier import ClassificationResult

logger = logging.getLogger(__name__)

HIGH_CONTEXT_TOKENS = 32000

DEFAULT_STATIC_LISTS: dict[TaskSignal, tuple[str, ...]] = {
    TaskSignal.COMPLEX_REASONING: ("o1", "o1-mini", "gpt-4", "gpt-4o", "claude-sonnet-4"),
    TaskSignal.CODE_GENERATION: ("claude-sonnet-4", "claude-sonnet-3.7", "gpt-4o", "gpt-4"),
    TaskSignal.CODE_REVIEW: ("gpt-4", "gpt-4o", "claude-sonnet-4"),
    TaskSignal.CREATIVE_WRITING: ("claude-sonnet-4", "claude-sonnet-3.7", "claude-sonnet-3.5"),
    TaskSignal.VISION_TASK: ("gpt-4o", "claude-sonnet-4"),
    TaskSignal.LONG_CONTEXT: ("gpt-4o", "claude-sonnet-4"),
    TaskSignal.DEFAULT: ("gpt-4o", "gpt-4.1", "gpt-4"),
}

CandidateFilter = Callable[[ChatEndpoint], bool]


@dataclass(frozen=True)
class PolicyRule:
    signal: TaskSignal
    static_models: tuple[str, ...]
    candidate_filter: CandidateFilter | None = None


@dataclass(frozen=True)
class PreferenceDecision:
    signal: TaskSignal
    models: tuple[str, ...]
    dynamic: bool


class SelectionPolicy:
    """Turn classifier signals into a ranked list of model ids.

    Rules are checked in order and the first rule whose signal is set decides
    the whole list. Rules with a candidate filter derive their list from the
    live catalog and only use the static list when no candidate qualifies.
    The default rule always applies last.
    """

    def __init__(
        self,
        *,
        static_lists: Mapping[TaskSignal, Sequence[str]] | None = None,
        high_context_tokens: int = HIGH_CONTEXT_TOKENS,
    ) -> None:
        lists = dict(DEFAULT_STATIC_LISTS)
        for signal, models in (static_lists or {}).items():
            lists[signal] = tuple(models)
        self._high_context_tokens = high_context_tokens
        self._rules: tuple[PolicyRule, ...] = (
            PolicyRule(TaskSignal.COMPLEX_REASONING, lists[TaskSignal.COMPLEX_REASONING]),
            PolicyRule(TaskSignal.CODE_GENERATION, lists[TaskSignal.CODE_GENERATION]),
            PolicyRule(TaskSignal.CODE_REVIEW, lists[TaskSignal.CODE_REVIEW]),
            PolicyRule(TaskSignal.CREATIVE_WRITING, lists[TaskSignal.CREATIVE_WRITING]),
            PolicyRule(
                TaskSignal.VISION_TASK,
                lists[TaskSignal.VISION_TASK],
                candidate_filter=lambda endpoint: bool(endpoint.descriptor.supports_vision),
            ),
            PolicyRule(
                TaskSignal.LONG_CONTEXT,
                lists[TaskSignal.LONG_CONTEXT],
                candidate_filter=self._is_high_context,
            ),
        )
        self._default_models = lists[TaskSignal.DEFAULT]

    @property
    def rules(self) -> tuple[PolicyRule, ...]:
        return self._rules

    @property
    def default_models(self) -> tuple[str, ...]:
        return self._default_models

    def preference_list(
        self,
        classification: ClassificationResult,
        candidates: Sequence[ChatEndpoint],
    ) -> tuple[str, ...]:
        return self.decide(classification, candidates).models

    def decide(
        self,
        classification: ClassificationResult,
        candidates: Sequence[ChatEndpoint],
    ) -> PreferenceDecision:
        for rule in self._rules:
            if not classification.is_set(rule.signal):
                continue
            if rule.candidate_filter is None:
                return PreferenceDecision(signal=rule.signal, models=rule.static_models, dynamic=False)
            derived = tuple(item.model for item in candidates if rule.candidate_filter(item))
            if derived:
                return PreferenceDecision(signal=rule.signal, models=derived, dynamic=True)
            return PreferenceDecision(signal=rule.signal, models=rule.static_models, dynamic=False)
        return self.default_decision()

    def default_decision(self) -> PreferenceDecision:
        return PreferenceDecision(signal=TaskSignal.DEFAULT, models=self._default_models, dynamic=False)

    def _is_high_context(self, endpoint: ChatEndpoint) -> bool:
        return endpoint.descriptor.model_max_prompt_tokens > self._high_context_tokens

    @classmethod
    def from_env(cls, *, high_context_tokens: int = HIGH_CONTEXT_TOKENS) -> SelectionPolicy:
        file_path = os.getenv("AUTOMODEL_POLICY_FILE", "").strip()
        json_text = os.getenv("AUTOMODEL_POLICY_JSON", "").strip()
        payload: Any = {}

        if file_path:
            try:
                payload = json.loads(Path(file_path).read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as exc:
                logger.warning("selection_policy_load_failed source=file path=%s error=%s", file_path, exc)
                payload = {}
        elif json_text:
            try:
                payload = json.loads(json_text)
            except json.JSONDecodeError as exc:
                logger.warning("selection_policy_load_failed source=env error=%s", exc)
                payload = {}

        if not isinstance(payload, dict):
            payload = {}

        static_lists: dict[TaskSignal, tuple[str, ...]] = {}
        for key, value in payload.items():
            try:
                signal = TaskSignal(str(key).strip().lower())
            except ValueError:
                logger.warning("selection_policy_unknown_signal signal=%s", key)
                continue
            if not isinstance(value, list):
                continue
            models = tuple(str(item).strip() for item in value if str(item).strip())
            if models:
                static_lists[signal] = models
        return cls(static_lists=static_lists, high_context_tokens=high_context_tokens)
