"""Tests for UserContextStore."""

import pytest
from sqlalchemy.exc import OperationalError

from chatrelay.core.errors import PersistenceError
from chatrelay.models.user_context import UserContextRow
from chatrelay.schemas.user_context import UserContext
from chatrelay.services.user_context_store import UserContextStore
from tests.fixtures.context_fixtures import HOUR_MS, START_MS, make_history


def _context(user_id, last_activity=START_MS, turns=0):
    ctx = UserContext.new(user_id, last_activity)
    ctx.conversation_history = make_history(turns, words=5)
    return ctx


def test_load_missing_returns_none(store, user_id):
    assert store.load(user_id) is None


def test_save_then_load(store, user_id):
    """Saved contexts come back with history, summary and counters intact."""
    ctx = _context(user_id, turns=3)
    ctx.summary = "Earlier the user asked about trains."
    ctx.token_usage = 42
    ctx.version = 2
    store.save(ctx)

    loaded = store.load(user_id)
    assert loaded is not None
    assert loaded == ctx
    assert [t.role for t in loaded.conversation_history] == ["user", "assistant", "user"]


def test_save_is_upsert(store, user_id, db):
    """A second save updates the existing row."""
    ctx = _context(user_id, turns=1)
    store.save(ctx)
    ctx.conversation_history = make_history(4, words=5)
    ctx.token_usage = 7
    store.save(ctx)

    assert db.query(UserContextRow).count() == 1
    assert store.load(user_id).message_count == 4
    assert store.load(user_id).token_usage == 7


def test_delete(store, user_id):
    store.save(_context(user_id))
    assert store.delete(user_id) is True
    assert store.load(user_id) is None
    assert store.delete(user_id) is False


def test_sweep_expired_removes_only_stale_rows(store, faker):
    """Rows idle longer than max age are deleted; recent ones stay."""
    now = START_MS + 48 * HOUR_MS
    stale = [_context(f"apikey:{faker.pystr()}", last_activity=START_MS) for _ in range(2)]
    fresh = _context("session:fresh", last_activity=now - HOUR_MS)
    for ctx in stale + [fresh]:
        store.save(ctx)

    assert store.sweep_expired(24 * HOUR_MS, now) == 2
    assert store.count() == 1
    assert store.load("session:fresh") is not None


def test_count(store):
    assert store.count() == 0
    store.save(_context("a"))
    store.save(_context("b"))
    assert store.count() == 2


def test_corrupt_history_raises_persistence_error(store, user_id, db):
    """Unreadable history JSON surfaces as PersistenceError."""
    db.add(
        UserContextRow(
            user_id=user_id,
            conversation_history="{not json",
            token_usage=0,
            version=1,
            created_at=START_MS,
            updated_at=START_MS,
            last_activity=START_MS,
        )
    )
    db.commit()

    with pytest.raises(PersistenceError):
        store.load(user_id)


def test_database_errors_raise_persistence_error(user_id):
    """SQLAlchemy failures are wrapped."""

    def broken_factory():
        raise OperationalError("SELECT 1", {}, Exception("database is gone"))

    broken = UserContextStore(broken_factory)
    with pytest.raises(PersistenceError):
        broken.load(user_id)
    with pytest.raises(PersistenceError):
        broken.save(_context(user_id))
    with pytest.raises(PersistenceError):
        broken.count()
