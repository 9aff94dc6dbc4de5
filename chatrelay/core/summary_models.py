"""Static priority order for picking summarization models."""

from __future__ import annotations

from typing import Iterable, List, Optional

FREE_TIER_MARKER = ":free"
MAX_SUMMARY_MODEL_ATTEMPTS = 3

PRIORITY_GOOGLE_FLASH_FREE = 1
PRIORITY_GEMMA_3_FREE = 2
PRIORITY_GOOGLE_FREE = 3
PRIORITY_FREE = 4
PRIORITY_DEFAULT = 5


def summary_model_priority(model_id: str) -> int:
    """Lower is better: small fast free-tier models first."""
    if "google" in model_id and "flash" in model_id and "free" in model_id:
        return PRIORITY_GOOGLE_FLASH_FREE
    if "gemma-3" in model_id and "free" in model_id:
        return PRIORITY_GEMMA_3_FREE
    if "google" in model_id and "free" in model_id:
        return PRIORITY_GOOGLE_FREE
    if "free" in model_id:
        return PRIORITY_FREE
    return PRIORITY_DEFAULT


def rank_summary_models(model_ids: Iterable[str]) -> List[str]:
    """Keep free-tier ids and order them by priority, then id."""
    free = {m for m in model_ids if FREE_TIER_MARKER in m}
    return sorted(free, key=lambda m: (summary_model_priority(m), m))


def select_summary_models(
    configured: Iterable[str],
    fallback_model: Optional[str] = None,
    limit: int = MAX_SUMMARY_MODEL_ATTEMPTS,
) -> List[str]:
    """
    Candidate models for one summarization, best first.

    Falls back to the user's current model when no configured model is usable.
    """
    ranked = rank_summary_models(configured)
    if not ranked and fallback_model:
        ranked = [fallback_model]
    return ranked[:limit]
