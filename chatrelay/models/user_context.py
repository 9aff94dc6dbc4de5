"""UserContext row: one per user key, history stored as serialized JSON text."""

from __future__ import annotations

from sqlalchemy import BigInteger, Column, Integer, String, Text

from chatrelay.db import Base


class UserContextRow(Base):
    """Durable copy of a user's conversation context."""

    __tablename__ = "user_contexts"

    user_id = Column(String(128), primary_key=True)
    conversation_history = Column(Text, nullable=False, default="[]")
    summary = Column(Text, nullable=True)
    token_usage = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=0)
    # ms epoch timestamps
    created_at = Column(BigInteger, nullable=False)
    updated_at = Column(BigInteger, nullable=False)
    last_activity = Column(BigInteger, nullable=False, index=True)
