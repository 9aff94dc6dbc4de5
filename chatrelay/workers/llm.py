from __future__ import annotations

import asyncio
from typing import Any, List, Optional, Protocol

from pydantic_ai import Agent
from pydantic_ai.exceptions import ModelHTTPError, UnexpectedModelBehavior
from pydantic_ai.messages import (
    ModelRequest,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    UserPromptPart,
)
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.litellm import LiteLLMProvider
from pydantic_ai.settings import ModelSettings

from chatrelay.config import get_settings
from chatrelay.core.errors import (
    InvalidCredentialsError,
    UpstreamError,
    UpstreamTimeoutError,
)
from chatrelay.infra.logging_config import get_logger
from chatrelay.schemas.chat import (
    ChatCompletion,
    GenerationParams,
    PromptMessage,
    TokenUsage,
)

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15.0


class ChatCompletionClient(Protocol):
    """Chat-completion collaborator: messages in, reply text and usage out."""

    async def complete(
        self,
        model: str,
        messages: List[PromptMessage],
        params: GenerationParams,
    ) -> ChatCompletion: ...


def _to_model_messages(messages: List[PromptMessage]) -> List[Any]:
    """Convert role/content messages to a pydantic_ai message_history list."""
    out: List[Any] = []
    for item in messages:
        content = item.content.strip()
        if not content:
            continue
        if item.role == "user":
            out.append(ModelRequest(parts=[UserPromptPart(content=content)]))
        elif item.role == "assistant":
            out.append(ModelResponse(parts=[TextPart(content=content)]))
        elif item.role == "system":
            out.append(ModelRequest(parts=[SystemPromptPart(content=content)]))
    return out


def _usage_from_result(result: Any) -> Optional[TokenUsage]:
    try:
        usage = result.usage()
    except AttributeError:
        return None
    prompt_tokens = getattr(usage, "input_tokens", None)
    if prompt_tokens is None:
        prompt_tokens = getattr(usage, "request_tokens", None) or 0
    completion_tokens = getattr(usage, "output_tokens", None)
    if completion_tokens is None:
        completion_tokens = getattr(usage, "response_tokens", None) or 0
    total_tokens = getattr(usage, "total_tokens", None) or (
        prompt_tokens + completion_tokens
    )
    return TokenUsage(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=total_tokens,
    )


class LiteLLMChatClient:
    """ChatCompletionClient backed by pydantic_ai over a LiteLLM endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
        default_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._provider = LiteLLMProvider(api_key=api_key, api_base=api_base)
        self._default_timeout_seconds = default_timeout_seconds

    async def complete(
        self,
        model: str,
        messages: List[PromptMessage],
        params: GenerationParams,
    ) -> ChatCompletion:
        if not messages or messages[-1].role != "user":
            raise UpstreamError(
                "Messages must end with a user turn", code="EMPTY_MESSAGES"
            )
        if not model:
            raise UpstreamError("Model selection is required", code="MISSING_MODEL")

        prompt = messages[-1].content
        history = _to_model_messages(messages[:-1])
        timeout = params.timeout_seconds or self._default_timeout_seconds
        settings = ModelSettings(
            max_tokens=params.max_tokens,
            temperature=params.temperature,
            top_p=params.top_p,
            frequency_penalty=params.frequency_penalty,
            presence_penalty=params.presence_penalty,
            timeout=timeout,
        )
        agent = Agent(OpenAIChatModel(model, provider=self._provider))

        try:
            result = await asyncio.wait_for(
                agent.run(prompt, message_history=history, model_settings=settings),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            raise UpstreamTimeoutError("Request timeout") from e
        except ModelHTTPError as e:
            logger.error(
                "Chat API error: status=%s model=%s body=%s",
                e.status_code,
                model,
                e.body,
            )
            if e.status_code == 401:
                raise InvalidCredentialsError(
                    "Invalid API key. Please check your API key."
                ) from e
            raise UpstreamError(
                f"Chat API error: {e.status_code}",
                code="API_ERROR",
                status_code=e.status_code,
            ) from e
        except UnexpectedModelBehavior as e:
            raise UpstreamError(
                f"Invalid response from API: {e}", code="INVALID_RESPONSE"
            ) from e
        except Exception as e:
            raise UpstreamError(f"Network error: {e}", code="NETWORK_ERROR") from e

        text = str(result.output or "").strip()
        if not text:
            raise UpstreamError(
                "Invalid response structure from API", code="INVALID_RESPONSE"
            )
        return ChatCompletion(text=text, usage=_usage_from_result(result))


def build_chat_client_from_env() -> LiteLLMChatClient:
    settings = get_settings()
    logger.info(
        "Chat client config: api_key=%s, api_base=%s",
        "set" if settings.litellm_api_key else "not set",
        settings.litellm_api_base or "(default)",
    )
    if not settings.litellm_api_key:
        logger.warning(
            "LITELLM_API_KEY is not set; set it to a valid OpenAI or LiteLLM API key to avoid 401 errors."
        )
    return LiteLLMChatClient(
        api_key=settings.litellm_api_key,
        api_base=settings.litellm_api_base,
        default_timeout_seconds=settings.chat_timeout_seconds,
    )
