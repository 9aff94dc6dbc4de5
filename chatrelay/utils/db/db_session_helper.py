"""Context manager for short-lived DB sessions outside of a request."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from sqlalchemy.orm import Session

from chatrelay.db import SessionLocal


@contextmanager
def db_session(
    session_factory: Optional[Callable[[], Session]] = None,
) -> Iterator[Session]:
    """Yield a session, rolling back on error and always closing it."""
    db = (session_factory or SessionLocal)()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
