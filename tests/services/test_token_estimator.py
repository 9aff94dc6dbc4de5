"""Tests for TokenEstimator."""

from chatrelay.schemas.user_context import Turn
from chatrelay.services.token_estimator import (
    CACHE_CLEANUP_SIZE,
    TokenEstimator,
    count_words,
    tokens_for_words,
)
from tests.fixtures.context_fixtures import make_history


def test_tokens_for_words_rounds_up():
    """One token per 0.75 words, rounded up."""
    assert tokens_for_words(0) == 0
    assert tokens_for_words(3) == 4
    assert tokens_for_words(4) == 6
    assert tokens_for_words(428) == 571


def test_count_words_splits_on_whitespace():
    assert count_words("  one two\nthree\tfour ") == 4
    assert count_words("") == 0


def test_estimate_empty_is_zero():
    assert TokenEstimator().estimate([]) == 0


def test_estimate_sums_words_before_rounding():
    """Words are summed over all turns, then converted once."""
    estimator = TokenEstimator()
    assert estimator.estimate(make_history(25)) == 14267
    assert estimator.estimate(make_history(45)) == 25680


def test_estimate_accepts_dicts_and_models():
    """Plain dicts and Turn models give the same result."""
    estimator = TokenEstimator()
    turn = Turn(role="user", content="hello there friend", timestamp=1)
    assert estimator.estimate([turn]) == 4
    estimator.clear_cache()
    assert estimator.estimate([{"role": "user", "content": "hello there friend"}]) == 4


def test_estimate_is_memoized():
    estimator = TokenEstimator()
    history = make_history(4)
    first = estimator.estimate(history)
    assert estimator.cache_size == 1
    assert estimator.estimate(history) == first
    assert estimator.cache_size == 1


def test_cache_evicts_oldest_batch_when_full():
    """A full memo drops its oldest entries in one batch."""
    estimator = TokenEstimator(cache_max_size=CACHE_CLEANUP_SIZE + 10)
    for i in range(CACHE_CLEANUP_SIZE + 10):
        estimator.estimate([{"role": "user", "content": f"{i} message"}])
    assert estimator.cache_size == CACHE_CLEANUP_SIZE + 10

    estimator.estimate([{"role": "user", "content": "one more message"}])
    assert estimator.cache_size == 11


def test_estimate_text():
    estimator = TokenEstimator()
    assert estimator.estimate_text("a b c") == 4
    assert estimator.estimate_text("") == 0


def test_same_length_and_prefix_do_not_share_an_estimate():
    """Turns alike in length and opening still get their own word counts."""
    estimator = TokenEstimator()
    four_words = [{"role": "user", "content": "aaaaaaaaaa b c d"}]
    three_words = [{"role": "user", "content": "aaaaaaaaaa bb cc"}]

    assert estimator.estimate(four_words) == 6
    assert estimator.estimate(three_words) == 4
