"""Schemas for chat turns and the chat-completion collaborator."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 1500
DEFAULT_TOP_P = 0.9
DEFAULT_FREQUENCY_PENALTY = 0.1
DEFAULT_PRESENCE_PENALTY = 0.1

PromptRole = Literal["system", "user", "assistant"]


class PromptMessage(BaseModel):
    """One entry of the message list sent to the model."""

    role: PromptRole
    content: str


class GenerationParams(BaseModel):
    """Sampling parameters forwarded to the chat-completion call."""

    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0, le=2)
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, ge=1)
    top_p: float = Field(default=DEFAULT_TOP_P, gt=0, le=1)
    frequency_penalty: float = Field(default=DEFAULT_FREQUENCY_PENALTY, ge=-2, le=2)
    presence_penalty: float = Field(default=DEFAULT_PRESENCE_PENALTY, ge=-2, le=2)
    timeout_seconds: Optional[float] = Field(default=None, gt=0)


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatCompletion(BaseModel):
    """Reply text plus provider-reported usage, when available."""

    text: str
    usage: Optional[TokenUsage] = None


class ChatResult(BaseModel):
    """Outcome of one processed chat turn."""

    reply: str
    model: str
    usage: Optional[TokenUsage] = None
    tokens_used: int
    message_count: int
    summarized: bool = False


# -----------------------------------------------------------------------------
# HTTP request bodies
# -----------------------------------------------------------------------------


class ChatRequest(BaseModel):
    message: str
    model: Optional[str] = None
    system_prompt: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0, le=2)
    max_tokens: Optional[int] = Field(default=None, ge=1)
    top_p: Optional[float] = Field(default=None, gt=0, le=1)
    frequency_penalty: Optional[float] = Field(default=None, ge=-2, le=2)
    presence_penalty: Optional[float] = Field(default=None, ge=-2, le=2)

    def generation_params(self) -> GenerationParams:
        overrides = self.model_dump(
            include={
                "temperature",
                "max_tokens",
                "top_p",
                "frequency_penalty",
                "presence_penalty",
            },
            exclude_none=True,
        )
        return GenerationParams(**overrides)
