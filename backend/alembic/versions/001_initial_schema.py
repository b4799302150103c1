"""Initial schema — users, exchanges.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "exchanges",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("book_id", sa.String(64), nullable=False),
        sa.Column("borrower_id", sa.String(64), nullable=False),
        sa.Column("lender_id", sa.String(64), nullable=False),
        sa.Column("state", sa.String(32), nullable=False, server_default="pending-validation"),
        sa.Column("validation_status_user", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("validation_status_book", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        "ix_exchanges_state_requested_at", "exchanges", ["state", "requested_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_exchanges_state_requested_at", table_name="exchanges")
    op.drop_table("exchanges")
    op.drop_table("users")
