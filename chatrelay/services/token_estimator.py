"""
Approximate token counting for conversation turns.

The estimate gates a soft summarization threshold, never billing, so it uses
a word-count heuristic instead of a provider tokenizer: one token per 0.75
words, rounded up. Tests assert thresholds against this exact rule.
"""

from __future__ import annotations

import math
from collections import OrderedDict
from typing import Any, Sequence, Tuple

TOKENS_PER_WORD_RATIO = 0.75
CACHE_MAX_SIZE = 1000
CACHE_CLEANUP_SIZE = 50


def count_words(text: str) -> int:
    return len(text.split())


def tokens_for_words(word_count: int) -> int:
    if word_count <= 0:
        return 0
    return math.ceil(word_count / TOKENS_PER_WORD_RATIO)


class TokenEstimator:
    """Word-count estimator with a small fingerprint memo."""

    def __init__(self, cache_max_size: int = CACHE_MAX_SIZE) -> None:
        self._cache: "OrderedDict[Tuple, int]" = OrderedDict()
        self._cache_max_size = cache_max_size

    def estimate(self, turns: Sequence[Any]) -> int:
        """Estimate tokens for turns (anything with ``content``, optionally ``role``)."""
        if not turns:
            return 0
        key = self._fingerprint(turns)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        words = sum(count_words(_content_of(t)) for t in turns)
        estimated = tokens_for_words(words)

        if len(self._cache) >= self._cache_max_size:
            for _ in range(min(CACHE_CLEANUP_SIZE, len(self._cache))):
                self._cache.popitem(last=False)
        self._cache[key] = estimated
        return estimated

    def estimate_text(self, text: str) -> int:
        return tokens_for_words(count_words(text or ""))

    def clear_cache(self) -> None:
        self._cache.clear()

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    @staticmethod
    def _fingerprint(turns: Sequence[Any]) -> Tuple:
        return tuple(
            (
                _role_of(t),
                len(_content_of(t)),
                hash(_content_of(t)),
            )
            for t in turns
        )


def _content_of(turn: Any) -> str:
    if isinstance(turn, dict):
        return turn.get("content") or ""
    return getattr(turn, "content", "") or ""


def _role_of(turn: Any) -> str:
    if isinstance(turn, dict):
        return turn.get("role") or ""
    return getattr(turn, "role", "") or ""


