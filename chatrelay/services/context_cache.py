"""
In-process memoized layer over UserContextStore.

The cache is the source of truth for the lifetime of the process: writes go
to memory first and are then persisted best-effort. A failed load or save is
logged and the in-memory copy keeps serving. Expired entries are swept
opportunistically, checked on every public call instead of by a timer.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict

from chatrelay.core.errors import EmptyContentError, PersistenceError
from chatrelay.infra.logging_config import get_logger
from chatrelay.schemas.user_context import (
    ContextStats,
    Turn,
    TurnRole,
    UserContext,
)
from chatrelay.services.user_context_store import UserContextStore

logger = get_logger(__name__)

DEFAULT_MAX_AGE_MS = 24 * 60 * 60 * 1000
DEFAULT_CLEANUP_INTERVAL_MS = 30 * 60 * 1000
DEFAULT_MAX_ENTRIES = 1000

UPDATABLE_FIELDS = frozenset({"conversation_history", "summary", "token_usage"})


def now_ms() -> int:
    return int(time.time() * 1000)


class ContextCache:
    """Get-or-create, mutate and expire per-user contexts."""

    def __init__(
        self,
        store: UserContextStore,
        max_age_ms: int = DEFAULT_MAX_AGE_MS,
        cleanup_interval_ms: int = DEFAULT_CLEANUP_INTERVAL_MS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._store = store
        self._max_age_ms = max_age_ms
        self._cleanup_interval_ms = cleanup_interval_ms
        self._max_entries = max_entries
        self._clock = clock
        self._contexts: Dict[str, UserContext] = {}
        self._lock = threading.RLock()
        self._last_sweep = clock()

    @property
    def max_age_ms(self) -> int:
        return self._max_age_ms

    def get_or_create(self, user_id: str) -> UserContext:
        """Return a copy of the user's context, creating it when missing."""
        self.maybe_sweep()
        with self._lock:
            context = self._resolve(user_id)
            return context.model_copy(deep=True)

    def update(self, user_id: str, **fields: Any) -> None:
        """Merge the given fields; fields not passed are left untouched."""
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update context fields: {sorted(unknown)}")
        self.maybe_sweep()
        with self._lock:
            current = self._resolve(user_id)
            merged = UserContext.model_validate({**current.model_dump(), **fields})
            self._touch(merged)
            self._contexts[user_id] = merged
            self._persist(merged)

    def append_turn(self, user_id: str, role: TurnRole, content: str) -> None:
        if not content or not content.strip():
            raise EmptyContentError("Message content cannot be empty")
        self.maybe_sweep()
        with self._lock:
            context = self._resolve(user_id)
            context.conversation_history.append(
                Turn(role=role, content=content.strip(), timestamp=self._clock())
            )
            self._touch(context)
            self._persist(context)

    def clear(self, user_id: str) -> None:
        """Reset history, summary and token usage; created_at is kept."""
        self.maybe_sweep()
        with self._lock:
            context = self._resolve(user_id)
            previous_count = len(context.conversation_history)
            context.conversation_history = []
            context.summary = None
            context.token_usage = 0
            self._touch(context)
            self._persist(context)
        logger.info("Cleared context %s (%d turns dropped)", user_id, previous_count)

    def delete(self, user_id: str) -> bool:
        """Remove from cache and store; True iff either held the context."""
        with self._lock:
            cached = self._contexts.pop(user_id, None) is not None
            try:
                stored = self._store.delete(user_id)
            except PersistenceError as e:
                logger.warning("Context delete not persisted: %s", e)
                stored = False
        return cached or stored

    def stats(self) -> ContextStats:
        with self._lock:
            contexts = list(self._contexts.values())
        try:
            total = self._store.count()
        except PersistenceError as e:
            logger.warning("Context count unavailable, using cache size: %s", e)
            total = len(contexts)
        timestamps = [c.updated_at for c in contexts]
        return ContextStats(
            total_contexts=total,
            cache_size=len(contexts),
            oldest_updated_at=min(timestamps) if timestamps else None,
            newest_updated_at=max(timestamps) if timestamps else None,
        )

    def maybe_sweep(self) -> int:
        """Sweep at most once per cleanup interval."""
        if self._clock() - self._last_sweep < self._cleanup_interval_ms:
            return 0
        return self.sweep_expired()

    def sweep_expired(self) -> int:
        """Drop expired contexts from memory and store; returns rows removed."""
        now = self._clock()
        with self._lock:
            self._last_sweep = now
            expired = [
                user_id
                for user_id, context in self._contexts.items()
                if self._is_expired(context, now)
            ]
            for user_id in expired:
                del self._contexts[user_id]
        try:
            swept = self._store.sweep_expired(self._max_age_ms, now)
        except PersistenceError as e:
            logger.warning("Persisted context sweep failed: %s", e)
            swept = 0
        if expired:
            logger.info("Cleaned up %d expired cached contexts", len(expired))
        return max(swept, len(expired))

    def evict_oldest(self, max_contexts: int) -> int:
        """Evict least recently active cached contexts; persisted rows stay."""
        with self._lock:
            excess = len(self._contexts) - max_contexts
            if excess <= 0:
                return 0
            by_activity = sorted(
                self._contexts.values(), key=lambda c: c.last_activity
            )
            for context in by_activity[:excess]:
                del self._contexts[context.user_id]
        logger.info(
            "Force evicted %d contexts (kept %d most recent)", excess, max_contexts
        )
        return excess

    def _resolve(self, user_id: str) -> UserContext:
        """Cached context, else stored, else a fresh one. Caller holds the lock."""
        now = self._clock()
        context = self._contexts.get(user_id)
        if context is not None and self._is_expired(context, now):
            del self._contexts[user_id]
            context = None
        if context is not None:
            context.last_activity = now
            return context

        load_failed = False
        try:
            context = self._store.load(user_id)
        except PersistenceError as e:
            logger.warning("Context load failed, serving fresh context: %s", e)
            load_failed = True

        if context is not None and self._is_expired(context, now):
            self._discard_stored(user_id)
            context = None

        if context is None:
            context = UserContext.new(user_id, now)
            self._contexts[user_id] = context
            # Never overwrite a row we could not read.
            if not load_failed:
                self._persist(context)
        else:
            context.last_activity = now
            self._contexts[user_id] = context

        if len(self._contexts) > self._max_entries:
            self.evict_oldest(self._max_entries)
        return context

    def _discard_stored(self, user_id: str) -> None:
        try:
            self._store.delete(user_id)
        except PersistenceError as e:
            logger.warning("Expired context %s not removed from store: %s", user_id, e)

    def _is_expired(self, context: UserContext, now: int) -> bool:
        return now - context.last_activity > self._max_age_ms

    def _touch(self, context: UserContext) -> None:
        now = self._clock()
        context.updated_at = now
        context.last_activity = now

    def _persist(self, context: UserContext) -> None:
        context.version += 1
        try:
            self._store.save(context)
        except PersistenceError as e:
            logger.warning("Context %s kept in memory only: %s", context.user_id, e)
