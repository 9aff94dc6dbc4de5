"""ConversationPipeline: one chat turn end to end, plus context status operations."""

from __future__ import annotations

import asyncio
import weakref
from typing import List, Optional, Sequence, Tuple

from chatrelay.constants.prompts import SummaryPrompt
from chatrelay.core.errors import EmptyMessageError, UpstreamError
from chatrelay.infra.logging_config import get_logger
from chatrelay.schemas.chat import ChatResult, GenerationParams, PromptMessage
from chatrelay.schemas.user_context import ContextSnapshot, ContextStats, Turn
from chatrelay.services.context_cache import ContextCache
from chatrelay.services.summarization_engine import SummarizationEngine
from chatrelay.services.token_estimator import TokenEstimator
from chatrelay.workers.llm import ChatCompletionClient

logger = get_logger(__name__)

SYSTEM_PROMPT_PREVIEW_LENGTH = 100


def drop_trailing_duplicate(
    history: Sequence[Turn], message: str
) -> Tuple[List[Turn], Optional[Turn]]:
    """
    Split off the trailing run of user turns equal to ``message``.

    A retried turn leaves an unanswered copy behind the new one; the whole
    run collapses to the newest copy, which is returned.
    """
    turns = list(history)
    newest: Optional[Turn] = None
    while turns and turns[-1].role == "user" and turns[-1].content == message:
        popped = turns.pop()
        if newest is None:
            newest = popped
    return turns, newest


def build_prompt_messages(
    system_prompt: Optional[str],
    summary: Optional[str],
    history: Sequence[Turn],
    message: str,
) -> List[PromptMessage]:
    """System prompt, summary note, history, then the incoming message."""
    messages: List[PromptMessage] = []
    if system_prompt:
        messages.append(PromptMessage(role="system", content=system_prompt))
    if summary:
        messages.append(
            PromptMessage(
                role="system", content=SummaryPrompt.CONTEXT_NOTE_PREFIX + summary
            )
        )
    messages.extend(PromptMessage(role=t.role, content=t.content) for t in history)
    messages.append(PromptMessage(role="user", content=message))
    return messages


def system_prompt_preview(system_prompt: Optional[str]) -> str:
    if not system_prompt:
        return "No system prompt"
    if len(system_prompt) > SYSTEM_PROMPT_PREVIEW_LENGTH:
        return system_prompt[:SYSTEM_PROMPT_PREVIEW_LENGTH] + "..."
    return system_prompt


class ConversationPipeline:
    """
    Orchestrates a chat turn: append, summarize if needed, call the model, persist.

    Turns, clears and deletes for the same user are serialized with a per-user
    asyncio.Lock, so a double submit cannot interleave two read-modify-write
    cycles.
    """

    def __init__(
        self,
        cache: ContextCache,
        engine: SummarizationEngine,
        client: ChatCompletionClient,
        estimator: Optional[TokenEstimator] = None,
    ) -> None:
        self._cache = cache
        self._engine = engine
        self._client = client
        self._estimator = estimator or TokenEstimator()
        self._user_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._user_locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._user_locks[user_id] = lock
        return lock

    async def process_turn(
        self,
        user_id: str,
        message: str,
        model_id: str,
        system_prompt: Optional[str],
        params: Optional[GenerationParams] = None,
    ) -> ChatResult:
        """
        Process one user message and return the assistant reply.

        Raises:
            EmptyMessageError: the message is blank.
            InvalidCredentialsError: the provider rejected the API key.
            UpstreamError: the chat call failed; the user turn stays in the
                context so the turn can be retried.
        """
        if not message or not message.strip():
            raise EmptyMessageError("Message content is required")
        message = message.strip()
        params = params or GenerationParams()

        lock = self._lock_for(user_id)
        async with lock:
            return await self._process_turn(
                user_id, message, model_id, system_prompt, params
            )

    async def _process_turn(
        self,
        user_id: str,
        message: str,
        model_id: str,
        system_prompt: Optional[str],
        params: GenerationParams,
    ) -> ChatResult:
        self._cache.append_turn(user_id, "user", message)
        context = self._cache.get_or_create(user_id)

        outcome = await self._engine.maybe_summarize(
            context.conversation_history, context.summary, fallback_model=model_id
        )
        retained, user_turn = drop_trailing_duplicate(outcome.retained, message)
        if user_turn is None:
            user_turn = context.conversation_history[-1]

        messages = build_prompt_messages(
            system_prompt, outcome.summary, retained, message
        )
        logger.debug(
            "Chat request: user=%s model=%s messages=%d summarized=%s system=%s",
            user_id,
            model_id,
            len(messages),
            outcome.summarized,
            system_prompt_preview(system_prompt),
        )

        try:
            completion = await self._client.complete(model_id, messages, params)
        except UpstreamError as e:
            logger.warning("Chat call failed for %s (%s): %s", user_id, e.code, e)
            raise

        self._cache.append_turn(user_id, "assistant", completion.text)
        assistant_turn = self._cache.get_or_create(user_id).conversation_history[-1]

        history = retained + [user_turn, assistant_turn]
        if completion.usage is not None and completion.usage.total_tokens > 0:
            token_usage = completion.usage.total_tokens
        else:
            token_usage = self._estimator.estimate(
                messages + [PromptMessage(role="assistant", content=completion.text)]
            )
        self._cache.update(
            user_id,
            summary=outcome.summary,
            conversation_history=history,
            token_usage=token_usage,
        )

        return ChatResult(
            reply=assistant_turn.content,
            model=model_id,
            usage=completion.usage,
            tokens_used=token_usage,
            message_count=len(history),
            summarized=outcome.summarized,
        )

    async def clear_context(self, user_id: str) -> None:
        """Waits for an in-flight turn so its final update cannot undo the clear."""
        async with self._lock_for(user_id):
            self._cache.clear(user_id)

    async def delete_context(self, user_id: str) -> bool:
        async with self._lock_for(user_id):
            return self._cache.delete(user_id)

    def get_context_snapshot(self, user_id: str) -> ContextSnapshot:
        return ContextSnapshot.from_context(self._cache.get_or_create(user_id))

    def get_cache_stats(self) -> ContextStats:
        return self._cache.stats()
