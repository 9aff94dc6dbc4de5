"""Pydantic schemas for per-user conversation context."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

# -----------------------------------------------------------------------------
# Turn
# -----------------------------------------------------------------------------

TurnRole = Literal["user", "assistant"]


class Turn(BaseModel):
    """One stored message. System turns are injected at prompt-build time only."""

    role: TurnRole
    content: str
    timestamp: int  # ms epoch

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("turn content must not be empty")
        return value


# -----------------------------------------------------------------------------
# UserContext
# -----------------------------------------------------------------------------


class UserContext(BaseModel):
    """Conversation state for one user key."""

    user_id: str
    conversation_history: list[Turn] = Field(default_factory=list)
    summary: Optional[str] = None
    token_usage: int = Field(default=0, ge=0)
    created_at: int
    updated_at: int
    last_activity: int
    version: int = Field(default=0, ge=0)

    @classmethod
    def new(cls, user_id: str, now_ms: int) -> "UserContext":
        return cls(
            user_id=user_id,
            created_at=now_ms,
            updated_at=now_ms,
            last_activity=now_ms,
        )

    @property
    def message_count(self) -> int:
        return len(self.conversation_history)


class ContextStats(BaseModel):
    """Read-only introspection of the context cache."""

    total_contexts: int
    cache_size: int
    oldest_updated_at: Optional[int] = None
    newest_updated_at: Optional[int] = None


class ContextSnapshot(BaseModel):
    """Context as shown to status displays."""

    user_id: str
    conversation_history: list[Turn]
    summary: Optional[str] = None
    token_usage: int
    message_count: int
    created_at: int
    updated_at: int
    last_activity: int

    @classmethod
    def from_context(cls, context: UserContext) -> "ContextSnapshot":
        return cls(
            user_id=context.user_id,
            conversation_history=list(context.conversation_history),
            summary=context.summary,
            token_usage=context.token_usage,
            message_count=context.message_count,
            created_at=context.created_at,
            updated_at=context.updated_at,
            last_activity=context.last_activity,
        )
