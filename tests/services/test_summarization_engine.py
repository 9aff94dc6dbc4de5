"""Tests for SummarizationEngine."""

import asyncio

import pytest

from chatrelay.constants.prompts import SummaryPrompt
from chatrelay.core.errors import SummarizationError, UpstreamError
from chatrelay.schemas.user_context import Turn
from chatrelay.services.summarization_engine import (
    SummarizationConfig,
    SummarizationEngine,
    SummarizationState,
    build_summary_request,
    render_turns,
)
from chatrelay.services.token_estimator import TokenEstimator
from tests.fixtures.chat_client_fixtures import SUMMARY_MODELS
from tests.fixtures.context_fixtures import make_history


def test_should_summarize_below_threshold(engine):
    """25 turns of ~571 tokens stay under the 24000-token trigger."""
    assert engine.should_summarize(make_history(25)) is False


def test_should_summarize_above_threshold(engine):
    """45 turns (~25680 tokens) cross the trigger."""
    assert engine.should_summarize(make_history(45)) is True


def test_should_summarize_needs_min_messages(chat_client):
    """Few long turns never trigger, whatever their size."""
    engine = SummarizationEngine(
        chat_client, config=SummarizationConfig(max_tokens_before_summary=100)
    )
    assert engine.should_summarize(make_history(9)) is False
    assert engine.should_summarize(make_history(10)) is True


def test_find_split_concrete_scenario(engine):
    """Retained tail starts on a user turn and fits the retain window."""
    history = make_history(45)
    k = engine.find_split(history)

    assert k == 32
    assert history[k].role == "user"
    tail_tokens = TokenEstimator().estimate(history[k:])
    assert 6000 <= tail_tokens <= 15000
    assert tail_tokens == 7419


@pytest.mark.parametrize("count", [45, 46, 60, 81])
def test_find_split_never_retains_leading_assistant(engine, count):
    """The first retained turn is not an assistant reply."""
    history = make_history(count)
    k = engine.find_split(history)
    assert 0 < k < count
    assert history[k].role == "user"


def test_find_split_huge_last_turns_fall_back_to_last_pair(chat_client):
    """When even the final pair exceeds the maximum, keep two turns."""
    engine = SummarizationEngine(
        chat_client,
        config=SummarizationConfig(min_retain_tokens=10, max_retain_tokens=20),
    )
    history = make_history(12, words=50)
    assert engine.find_split(history) == 10


def test_find_split_short_history(engine):
    assert engine.find_split(make_history(3)) == 0


@pytest.mark.asyncio
async def test_maybe_summarize_no_op_below_threshold(engine, chat_client):
    history = make_history(25)
    outcome = await engine.maybe_summarize(history, None)

    assert outcome.state == SummarizationState.NO_OP
    assert outcome.retained == history
    assert outcome.summary is None
    assert outcome.estimated_tokens == 14267
    assert chat_client.summary_calls == []
    assert outcome.transitions == [
        SummarizationState.IDLE,
        SummarizationState.EVALUATING,
        SummarizationState.NO_OP,
    ]


@pytest.mark.asyncio
async def test_maybe_summarize_compresses_prefix(engine, chat_client):
    """The prefix before the split becomes the summary; the tail is kept verbatim."""
    history = make_history(45)
    outcome = await engine.maybe_summarize(history, None)

    assert outcome.summarized
    assert outcome.summary == "Short summary of the earlier conversation."
    assert outcome.retained == history[32:]
    assert outcome.summarized_count == 32
    assert outcome.model == SUMMARY_MODELS[0]
    assert outcome.tokens_after < outcome.estimated_tokens
    assert outcome.transitions[-2:] == [
        SummarizationState.SUMMARIZING,
        SummarizationState.SUMMARIZED,
    ]

    assert len(chat_client.summary_calls) == 1
    call = chat_client.summary_calls[0]
    request = call["messages"][1].content
    assert "USER: fact0 " in request
    assert "ASSISTANT: fact31 " in request
    assert "fact32 " not in request
    assert call["params"].temperature == 0.3
    assert call["params"].max_tokens == 800


@pytest.mark.asyncio
async def test_maybe_summarize_failure_keeps_history(engine, chat_client):
    """A failed summarization is non-fatal and changes nothing."""
    chat_client.summary_error = UpstreamError("boom")
    history = make_history(45)

    outcome = await engine.maybe_summarize(history, "Prior summary.")

    assert outcome.state == SummarizationState.FAILED
    assert outcome.retained == history
    assert outcome.summary == "Prior summary."
    assert "boom" in outcome.error
    assert len(chat_client.summary_calls) == len(SUMMARY_MODELS)


@pytest.mark.asyncio
async def test_summarize_turns_falls_through_models(chat_client):
    """The next model is tried when one errors or returns nothing."""
    replies = iter([None, "", "Third time lucky."])

    def summary_reply(messages):
        reply = next(replies)
        if reply is None:
            raise UpstreamError("first model down")
        return reply

    chat_client.summary_reply = summary_reply
    engine = SummarizationEngine(
        chat_client,
        summary_models=SUMMARY_MODELS + ["meta-llama/llama-3.3-70b-instruct:free"],
    )

    text, model = await engine.summarize_turns(make_history(6, words=5))

    assert text == "Third time lucky."
    assert model == "meta-llama/llama-3.3-70b-instruct:free"
    assert [c["model"] for c in chat_client.summary_calls] == [
        "google/gemini-2.0-flash-exp:free",
        "google/gemma-3-27b-it:free",
        "meta-llama/llama-3.3-70b-instruct:free",
    ]


@pytest.mark.asyncio
async def test_summarize_turns_times_out():
    """Slow summary models count as failures."""

    class SlowClient:
        async def complete(self, model, messages, params):
            await asyncio.sleep(1)

    engine = SummarizationEngine(
        SlowClient(),
        config=SummarizationConfig(timeout_seconds=0.01),
        summary_models=["a:free"],
    )
    with pytest.raises(SummarizationError) as exc_info:
        await engine.summarize_turns(make_history(4, words=5))
    assert exc_info.value.code == "ALL_MODELS_FAILED"


@pytest.mark.asyncio
async def test_summarize_turns_uses_fallback_model(chat_client):
    """Without free-tier models the user's own model summarizes."""
    engine = SummarizationEngine(chat_client, summary_models=["openai/gpt-4o"])
    _, model = await engine.summarize_turns(make_history(4, words=5), fallback_model="my-model")
    assert model == "my-model"


@pytest.mark.asyncio
async def test_summarize_turns_without_any_model(chat_client):
    engine = SummarizationEngine(chat_client)
    with pytest.raises(SummarizationError) as exc_info:
        await engine.summarize_turns(make_history(4, words=5))
    assert exc_info.value.code == "NO_MODELS_AVAILABLE"


@pytest.mark.asyncio
async def test_previous_summary_is_folded_in(engine, chat_client):
    """Facts from an earlier summary reach the next summarization request."""
    history = make_history(45)
    outcome = await engine.maybe_summarize(history, "The user's dog is named Biscuit.")

    assert outcome.summarized
    request = chat_client.summary_calls[0]["messages"][1].content
    assert "The user's dog is named Biscuit." in request
    assert SummaryPrompt.PREVIOUS_SUMMARY_HEADER in request
    assert request.index("Biscuit") < request.index("USER: fact0 ")


def test_build_summary_request_without_previous_summary():
    turns = [
        Turn(role="user", content="Where is Lisbon?", timestamp=1),
        Turn(role="assistant", content="In Portugal.", timestamp=2),
    ]
    assert build_summary_request(turns) == render_turns(turns)
    assert render_turns(turns) == "USER: Where is Lisbon?\n\nASSISTANT: In Portugal."
