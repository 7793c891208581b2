"""CalendarItem ORM — the one physical table behind themes, links, and entries.

Invariants:
    - (pk, sk) is the primary key; every logical item is exactly one row
    - gsi1pk/gsi1sk are NULL for items outside the secondary index (themes, links)
    - attributes holds every non-key attribute of the item as JSON

Design Decisions:
    - Key columns use "C" collation on PostgreSQL: range bounds such as
      ENTRY_DATE#2024-01-31\\uffff must compare bytewise, as in an ordered
      key store; SQLite's default BINARY collation already does
    - Composite index (gsi1pk, gsi1sk) plays the role of the secondary index
"""

from sqlalchemy import Index, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from axicalendar.db.base import Base

KeyString = String(512).with_variant(String(512, collation="C"), "postgresql")


class CalendarItem(Base):
    """Single-table row: key columns plus a JSON attribute bag."""
    __tablename__ = "calendar_items"
    __table_args__ = (
        Index("ix_calendar_items_gsi1", "gsi1pk", "gsi1sk"),
    )

    pk: Mapped[str] = mapped_column(KeyString, primary_key=True)
    sk: Mapped[str] = mapped_column(KeyString, primary_key=True)
    gsi1pk: Mapped[str | None] = mapped_column(KeyString, nullable=True)
    gsi1sk: Mapped[str | None] = mapped_column(KeyString, nullable=True)
    attributes: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
