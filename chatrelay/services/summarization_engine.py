"""
Token-budget summarization of conversation history.

One invocation moves through IDLE -> EVALUATING -> NO_OP, or through
SUMMARIZING -> SUMMARIZED / FAILED. It summarizes at most once. A FAILED
outcome carries the untouched history; summarization is an optimization
and never blocks a chat turn.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from chatrelay.config import Settings
from chatrelay.constants.prompts import SummaryPrompt
from chatrelay.core.errors import SummarizationError
from chatrelay.core.summary_models import select_summary_models
from chatrelay.infra.logging_config import get_logger
from chatrelay.schemas.chat import GenerationParams, PromptMessage
from chatrelay.schemas.user_context import Turn
from chatrelay.services.token_estimator import TokenEstimator
from chatrelay.workers.llm import ChatCompletionClient

logger = get_logger(__name__)

MIN_TURNS_TO_SUMMARIZE = 4
SUMMARY_TEMPERATURE = 0.3
SUMMARY_PENALTY = 0.5


class SummarizationState(str, Enum):
    IDLE = "idle"
    EVALUATING = "evaluating"
    NO_OP = "no_op"
    SUMMARIZING = "summarizing"
    SUMMARIZED = "summarized"
    FAILED = "failed"


@dataclass
class SummarizationConfig:
    max_tokens_before_summary: int = 24000
    min_messages_for_summary: int = 10
    min_retain_tokens: int = 6000
    max_retain_tokens: int = 15000
    summary_max_tokens: int = 800
    timeout_seconds: float = 20.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "SummarizationConfig":
        return cls(
            max_tokens_before_summary=settings.summary_threshold_tokens,
            min_messages_for_summary=settings.summary_min_messages,
            min_retain_tokens=settings.summary_min_retain_tokens,
            max_retain_tokens=settings.summary_max_retain_tokens,
            summary_max_tokens=settings.summary_max_tokens,
            timeout_seconds=settings.summary_timeout_seconds,
        )


@dataclass
class SummarizationOutcome:
    state: SummarizationState
    summary: Optional[str]
    retained: List[Turn]
    estimated_tokens: int
    tokens_after: int
    summarized_count: int = 0
    error: Optional[str] = None
    model: Optional[str] = None
    transitions: List[SummarizationState] = field(default_factory=list)

    @property
    def summarized(self) -> bool:
        return self.state == SummarizationState.SUMMARIZED


class SummarizationEngine:
    """Decides when to compress history, where to split it, and compresses it."""

    def __init__(
        self,
        client: ChatCompletionClient,
        config: Optional[SummarizationConfig] = None,
        estimator: Optional[TokenEstimator] = None,
        summary_models: Sequence[str] = (),
    ) -> None:
        self._client = client
        self.config = config or SummarizationConfig()
        self._estimator = estimator or TokenEstimator()
        self._summary_models = list(summary_models)

    def should_summarize(self, history: Sequence[Turn]) -> bool:
        """Threshold check over the history, which already ends with the new turn."""
        if len(history) < self.config.min_messages_for_summary:
            return False
        return self._estimator.estimate(history) > self.config.max_tokens_before_summary

    def find_split(self, history: Sequence[Turn]) -> int:
        """
        Return k such that history[:k] is summarized and history[k:] retained.

        Walks back from the end two turns at a time and stops at the first tail
        whose estimate lies within [min_retain_tokens, max_retain_tokens]. If
        the tail overshoots the maximum first, the largest tail that fit is
        used, and two turns when none did. The result is then nudged by one
        position so the tail does not open with an assistant reply.
        """
        n = len(history)
        if n < MIN_TURNS_TO_SUMMARIZE:
            return 0

        chosen: Optional[int] = None
        fallback: Optional[int] = None
        k = n - 2
        while k > 0:
            tail_tokens = self._estimator.estimate(history[k:])
            if self.config.min_retain_tokens <= tail_tokens <= self.config.max_retain_tokens:
                chosen = k
                break
            if tail_tokens > self.config.max_retain_tokens:
                break
            fallback = k
            k -= 2

        if chosen is None:
            chosen = fallback if fallback is not None else n - 2
        return self._align_to_pair_boundary(history, chosen)

    def _align_to_pair_boundary(self, history: Sequence[Turn], k: int) -> int:
        n = len(history)
        if k <= 0 or k >= n or history[k].role == "user":
            return k
        # history[k] is an assistant reply; keep it with its prompt if the budget allows.
        if history[k - 1].role == "user":
            if self._estimator.estimate(history[k - 1 :]) <= self.config.max_retain_tokens:
                return k - 1
        if k + 1 < n:
            return k + 1
        return k - 1 if history[k - 1].role == "user" else k

    async def maybe_summarize(
        self,
        history: Sequence[Turn],
        summary: Optional[str],
        fallback_model: Optional[str] = None,
    ) -> SummarizationOutcome:
        transitions = [SummarizationState.IDLE, SummarizationState.EVALUATING]
        history = list(history)
        estimated = self._estimator.estimate(history)

        def finish(state: SummarizationState, **kwargs) -> SummarizationOutcome:
            transitions.append(state)
            defaults = dict(
                summary=summary,
                retained=history,
                estimated_tokens=estimated,
                tokens_after=estimated + self._estimator.estimate_text(summary or ""),
            )
            defaults.update(kwargs)
            return SummarizationOutcome(state=state, transitions=transitions, **defaults)

        if not self.should_summarize(history):
            return finish(SummarizationState.NO_OP)

        k = self.find_split(history)
        if k < MIN_TURNS_TO_SUMMARIZE:
            logger.info("Summarization skipped: only %d turns before the split", k)
            return finish(SummarizationState.NO_OP)

        to_summarize, retained = history[:k], history[k:]
        transitions.append(SummarizationState.SUMMARIZING)
        try:
            new_summary, model = await self.summarize_turns(
                to_summarize, summary, fallback_model
            )
        except SummarizationError as e:
            logger.warning("Auto-summary failed, proceeding without summary: %s", e)
            return finish(SummarizationState.FAILED, error=str(e))

        retained_tokens = self._estimator.estimate(retained)
        logger.info(
            "Summarized %d turns with %s (%d -> %d estimated tokens)",
            len(to_summarize),
            model,
            estimated,
            retained_tokens,
        )
        return finish(
            SummarizationState.SUMMARIZED,
            summary=new_summary,
            retained=retained,
            tokens_after=retained_tokens + self._estimator.estimate_text(new_summary),
            summarized_count=len(to_summarize),
            model=model,
        )

    async def summarize_turns(
        self,
        turns: Sequence[Turn],
        previous_summary: Optional[str] = None,
        fallback_model: Optional[str] = None,
    ) -> tuple[str, str]:
        """
        Summarize turns, folding in the previous summary; returns (summary, model).

        Tries the ranked summary models in order. Raises SummarizationError
        when every candidate fails or returns nothing.
        """
        models = select_summary_models(self._summary_models, fallback_model)
        if not models:
            raise SummarizationError(
                "No summary models available and no fallback model provided",
                code="NO_MODELS_AVAILABLE",
            )

        messages = [
            PromptMessage(role="system", content=SummaryPrompt.SYSTEM),
            PromptMessage(
                role="user", content=build_summary_request(turns, previous_summary)
            ),
        ]
        params = GenerationParams(
            max_tokens=self.config.summary_max_tokens,
            temperature=SUMMARY_TEMPERATURE,
            frequency_penalty=SUMMARY_PENALTY,
            presence_penalty=SUMMARY_PENALTY,
            timeout_seconds=self.config.timeout_seconds,
        )

        last_error: Optional[str] = None
        for model in models:
            logger.info("Attempting summarization with model: %s", model)
            try:
                completion = await asyncio.wait_for(
                    self._client.complete(model, messages, params),
                    timeout=self.config.timeout_seconds,
                )
            except asyncio.TimeoutError:
                last_error = f"{model}: timed out"
                logger.warning("Summary model %s timed out", model)
                continue
            except Exception as e:
                last_error = f"{model}: {e}"
                logger.warning("Error with summary model %s: %s", model, e)
                continue
            text = (completion.text or "").strip()
            if text:
                return text, model
            last_error = f"{model}: empty summary"
            logger.warning("Summary model %s returned an empty summary", model)

        raise SummarizationError(
            f"All summary models failed. Last error: {last_error}",
            code="ALL_MODELS_FAILED",
        )


def render_turns(turns: Sequence[Turn]) -> str:
    return "\n\n".join(f"{t.role.upper()}: {t.content}" for t in turns)


def build_summary_request(
    turns: Sequence[Turn], previous_summary: Optional[str] = None
) -> str:
    """User message for the summarizer; an earlier summary is folded in, not dropped."""
    conversation = render_turns(turns)
    if not previous_summary:
        return conversation
    return "\n\n".join(
        [
            SummaryPrompt.PREVIOUS_SUMMARY_HEADER,
            previous_summary,
            SummaryPrompt.FOLD_INSTRUCTION,
            SummaryPrompt.NEW_TURNS_HEADER,
            conversation,
        ]
    )
