"""Fake chat-completion collaborator and pipeline fixtures."""

from typing import Callable, List, Optional, Union

import pytest

from chatrelay.constants.prompts import SummaryPrompt
from chatrelay.schemas.chat import ChatCompletion, GenerationParams, PromptMessage
from chatrelay.services.conversation_pipeline import ConversationPipeline
from chatrelay.services.summarization_engine import (
    SummarizationConfig,
    SummarizationEngine,
)
from chatrelay.services.token_estimator import TokenEstimator

SUMMARY_MODELS = ["google/gemini-2.0-flash-exp:free", "google/gemma-3-27b-it:free"]


class FakeChatClient:
    """Records calls; summarization requests are told apart by their system prompt."""

    def __init__(self) -> None:
        self.chat_calls: List[dict] = []
        self.summary_calls: List[dict] = []
        self.reply: str = "Assistant reply."
        self.usage = None
        self.chat_error: Optional[Exception] = None
        self.summary_reply: Union[str, Callable[[List[PromptMessage]], str]] = (
            "Short summary of the earlier conversation."
        )
        self.summary_error: Optional[Exception] = None

    async def complete(
        self, model: str, messages: List[PromptMessage], params: GenerationParams
    ) -> ChatCompletion:
        call = {"model": model, "messages": list(messages), "params": params}
        if messages and messages[0].content == SummaryPrompt.SYSTEM:
            self.summary_calls.append(call)
            if self.summary_error is not None:
                raise self.summary_error
            reply = self.summary_reply
            text = reply(messages) if callable(reply) else reply
            return ChatCompletion(text=text)
        self.chat_calls.append(call)
        if self.chat_error is not None:
            raise self.chat_error
        return ChatCompletion(text=self.reply, usage=self.usage)


@pytest.fixture(scope="function")
def chat_client():
    return FakeChatClient()


@pytest.fixture(scope="function")
def engine(chat_client):
    return SummarizationEngine(
        chat_client,
        config=SummarizationConfig(),
        estimator=TokenEstimator(),
        summary_models=SUMMARY_MODELS,
    )


@pytest.fixture(scope="function")
def pipeline(cache, engine, chat_client):
    return ConversationPipeline(cache, engine, chat_client)
