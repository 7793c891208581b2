"""Calendar items — single table for themes, ownership links, and entries.

Revision ID: 001_calendar_items
Revises: None
Create Date: 2026-10-16

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_calendar_items"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Bytewise ordering on PostgreSQL so sentinel-terminated range bounds hold
KeyString = sa.String(512).with_variant(sa.String(512, collation="C"), "postgresql")


def upgrade() -> None:
    op.create_table(
        "calendar_items",
        sa.Column("pk", KeyString, primary_key=True),
        sa.Column("sk", KeyString, primary_key=True),
        sa.Column("gsi1pk", KeyString, nullable=True),
        sa.Column("gsi1sk", KeyString, nullable=True),
        sa.Column("attributes", sa.JSON, nullable=False),
    )
    op.create_index("ix_calendar_items_gsi1", "calendar_items", ["gsi1pk", "gsi1sk"])


def downgrade() -> None:
    op.drop_index("ix_calendar_items_gsi1", table_name="calendar_items")
    op.drop_table("calendar_items")
