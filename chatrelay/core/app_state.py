from __future__ import annotations

from typing import Optional

from chatrelay.config import Settings, get_settings
from chatrelay.services.context_cache import ContextCache
from chatrelay.services.conversation_pipeline import ConversationPipeline
from chatrelay.services.summarization_engine import (
    SummarizationConfig,
    SummarizationEngine,
)
from chatrelay.services.token_estimator import TokenEstimator
from chatrelay.services.user_context_store import UserContextStore
from chatrelay.services.user_role_service import UserRoleService
from chatrelay.workers.llm import ChatCompletionClient, build_chat_client_from_env


def build_pipeline(
    settings: Settings,
    client: ChatCompletionClient,
    store: Optional[UserContextStore] = None,
) -> ConversationPipeline:
    """Wire store, cache, engine and pipeline from settings."""
    estimator = TokenEstimator()
    cache = ContextCache(
        store or UserContextStore(),
        max_age_ms=settings.context_max_age_ms,
        cleanup_interval_ms=settings.context_cleanup_interval_ms,
        max_entries=settings.context_cache_max_entries,
    )
    engine = SummarizationEngine(
        client,
        config=SummarizationConfig.from_settings(settings),
        estimator=estimator,
        summary_models=settings.summary_model_list,
    )
    return ConversationPipeline(cache, engine, client, estimator=estimator)


class AppState:
    """Process-wide pipeline and role selections; both live as long as the process."""

    def __init__(self) -> None:
        self._pipeline: Optional[ConversationPipeline] = None
        self.roles = UserRoleService()

    @property
    def pipeline(self) -> ConversationPipeline:
        if self._pipeline is None:
            self._pipeline = build_pipeline(get_settings(), build_chat_client_from_env())
        return self._pipeline

    def reset(self) -> None:
        self._pipeline = None
        self.roles = UserRoleService()


state = AppState()
