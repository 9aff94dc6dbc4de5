"""add user_contexts table

Revision ID: 5b1e0c7d2a91
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "5b1e0c7d2a91"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create user_contexts table."""
    op.create_table(
        "user_contexts",
        sa.Column("user_id", sa.String(length=128), primary_key=True),
        sa.Column(
            "conversation_history",
            sa.Text(),
            nullable=False,
            server_default=sa.text("'[]'"),
        ),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column(
            "token_usage", sa.Integer(), nullable=False, server_default=sa.text("0")
        ),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("updated_at", sa.BigInteger(), nullable=False),
        sa.Column("last_activity", sa.BigInteger(), nullable=False),
    )
    op.create_index(
        "ix_user_contexts_last_activity",
        "user_contexts",
        ["last_activity"],
        unique=False,
    )


def downgrade() -> None:
    """Drop user_contexts table."""
    op.drop_index("ix_user_contexts_last_activity", table_name="user_contexts")
    op.drop_table("user_contexts")
