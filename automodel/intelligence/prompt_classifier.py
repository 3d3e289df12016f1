from __future__ import annotations

import re
from dataclasses import dataclass

from automodel.intelligence.models import TaskSignal

LONG_CONTEXT_CHARS = 8000

_COMPLEX_REASONING_PATTERN = re.compile(
    r"\b(analy[sz]e|reasoning|logic|problem[\s-]solving|strategy|architecture|design pattern"
    r"|trade[\s-]off|pros and cons|compare|evaluate|assessment|complex|difficult|challenging)\b"
)
# Whole words only: "generat" never matches "generate" and "implement" never
# matches "implementation".
_CODE_GENERATION_PATTERN = re.compile(
    r"\b(generat|creat|writ|build|implement|develop|code|function|class|component|api"
    r"|endpoint|algorithm|snippet|example)\b"
)
_CODE_REVIEW_PATTERN = re.compile(
    r"\b(review|check|improv|optimi[sz]e|refactor|fix|debug|error|bug|issue|problem"
    r"|suggestion|feedback|critique)\b"
)
_CREATIVE_WRITING_PATTERN = re.compile(
    r"\b(story|creative|poem|article|blog|content|marketing|writing|narrative|fiction"
    r"|essay|novel)\b"
)
_VISION_TASK_PATTERN = re.compile(
    r"\b(image|photo|picture|visual|diagram|chart|screenshot|analysis)\b"
)


@dataclass(frozen=True)
class ClassificationResult:
    complex_reasoning: bool = False
    code_generation: bool = False
    code_review: bool = False
    creative_writing: bool = False
    vision_task: bool = False
    long_context: bool = False
    prompt_length: int = 0

    def is_set(self, signal: TaskSignal) -> bool:
        if signal == TaskSignal.DEFAULT:
            return False
        return bool(getattr(self, signal.value))

    def matched_signals(self) -> list[TaskSignal]:
        return [signal for signal in TaskSignal if self.is_set(signal)]


def classify_prompt(
    prompt: str | None,
    *,
    long_context_chars: int = LONG_CONTEXT_CHARS,
) -> ClassificationResult:
    if not prompt or not prompt.strip():
        return ClassificationResult()

    normalized = prompt.lower()
    return ClassificationResult(
        complex_reasoning=_COMPLEX_REASONING_PATTERN.search(normalized) is not None,
        code_generation=_CODE_GENERATION_PATTERN.search(normalized) is not None,
        code_review=_CODE_REVIEW_PATTERN.search(normalized) is not None,
        creative_writing=_CREATIVE_WRITING_PATTERN.search(normalized) is not None,
        vision_task=_VISION_TASK_PATTERN.search(normalized) is not None,
        long_context=len(prompt) > long_context_chars,
        prompt_length=len(prompt),
    )
