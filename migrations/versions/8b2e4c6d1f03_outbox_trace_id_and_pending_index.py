"""outbox trace id and pending index

Revision ID: 8b2e4c6d1f03
Revises: 3f1c2a9d7b10
Create Date: 2026-10-19 16:40:02.517933

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "8b2e4c6d1f03"
down_revision: Union[str, Sequence[str], None] = "3f1c2a9d7b10"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Carry the request trace id on outbox rows and index the relay scan."""
    with op.batch_alter_table("outbox") as batch_op:
        batch_op.add_column(sa.Column("trace_id", sa.Text(), nullable=True))
    op.create_index(
        "ix_outbox_pending",
        "outbox",
        ["published_at", "created_at", "id"],
    )


def downgrade() -> None:
    """Drop the relay index and the trace id column."""
    op.drop_index("ix_outbox_pending", table_name="outbox")
    with op.batch_alter_table("outbox") as batch_op:
        batch_op.drop_column("trace_id")
