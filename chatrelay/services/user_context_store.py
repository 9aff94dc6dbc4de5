"""Durable CRUD over user context rows."""

from __future__ import annotations

import json
from typing import Callable, Optional

from pydantic import TypeAdapter
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chatrelay.core.errors import PersistenceError
from chatrelay.infra.logging_config import get_logger
from chatrelay.models.user_context import UserContextRow
from chatrelay.schemas.user_context import Turn, UserContext
from chatrelay.utils.db.db_session_helper import db_session

logger = get_logger(__name__)

_turn_list = TypeAdapter(list[Turn])


def row_to_context(row: UserContextRow) -> UserContext:
    """Deserialize a row; history is stored as JSON text."""
    history = _turn_list.validate_json(row.conversation_history or "[]")
    return UserContext(
        user_id=row.user_id,
        conversation_history=history,
        summary=row.summary,
        token_usage=row.token_usage or 0,
        created_at=row.created_at,
        updated_at=row.updated_at,
        last_activity=row.last_activity,
        version=row.version or 0,
    )


def serialize_history(context: UserContext) -> str:
    return json.dumps(
        [turn.model_dump() for turn in context.conversation_history],
        ensure_ascii=False,
    )


class UserContextStore:
    """
    Persists UserContext rows keyed by user_id.

    Each call opens its own DB session from ``session_factory`` since the
    store is shared by a process-wide cache rather than a single request.
    Database failures surface as PersistenceError.
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None) -> None:
        self._session_factory = session_factory

    def load(self, user_id: str) -> Optional[UserContext]:
        try:
            with db_session(self._session_factory) as db:
                row = db.get(UserContextRow, user_id)
                if row is None:
                    return None
                return row_to_context(row)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load context {user_id}: {e}") from e
        except ValueError as e:
            # Corrupt history JSON; treat the row as unusable.
            raise PersistenceError(f"Corrupt context row {user_id}: {e}") from e

    def save(self, context: UserContext) -> None:
        """Upsert the full row."""
        try:
            with db_session(self._session_factory) as db:
                row = db.get(UserContextRow, context.user_id)
                if row is None:
                    row = UserContextRow(user_id=context.user_id)
                    db.add(row)
                row.conversation_history = serialize_history(context)
                row.summary = context.summary
                row.token_usage = context.token_usage
                row.version = context.version
                row.created_at = context.created_at
                row.updated_at = context.updated_at
                row.last_activity = context.last_activity
                db.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to save context {context.user_id}: {e}"
            ) from e

    def delete(self, user_id: str) -> bool:
        """Delete a row; True iff one existed."""
        try:
            with db_session(self._session_factory) as db:
                deleted = (
                    db.query(UserContextRow)
                    .filter(UserContextRow.user_id == user_id)
                    .delete()
                )
                db.commit()
                return deleted > 0
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to delete context {user_id}: {e}") from e

    def sweep_expired(self, max_age_ms: int, now_ms: int) -> int:
        """Delete rows whose last_activity is older than max_age_ms; returns count."""
        cutoff = now_ms - max_age_ms
        try:
            with db_session(self._session_factory) as db:
                deleted = (
                    db.query(UserContextRow)
                    .filter(UserContextRow.last_activity < cutoff)
                    .delete(synchronize_session=False)
                )
                db.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to sweep expired contexts: {e}") from e
        if deleted:
            logger.info("Swept %d expired context rows", deleted)
        return deleted

    def count(self) -> int:
        try:
            with db_session(self._session_factory) as db:
                return db.query(UserContextRow).count()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to count contexts: {e}") from e
