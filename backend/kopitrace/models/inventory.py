"""InventoryEntry: one quantity movement of a named product.

Entries form the batch lineage graph: ``parent_batch_id`` is a weak
back-reference onto any other entry's ``batch_id`` (a string lookup, not a
foreign key).  Several rows may share a ``batch_id`` when the same physical
batch moves more than once.  Nothing prevents cycles at write time.

``source_activity_id`` is set only on entries created by the harvest
pipeline; its unique index is the pipeline's idempotency key.
"""

import enum
from datetime import date, datetime

from sqlalchemy import CheckConstraint, Date, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kopitrace.database import Base


class InventoryDirection(str, enum.Enum):
    IN = "MASUK"
    OUT = "KELUAR"


class InventoryEntry(Base):
    __tablename__ = "inventory_entries"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_inventory_entries_quantity_positive"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    cooperative_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("cooperatives.id"), nullable=False, index=True
    )
    item_name: Mapped[str] = mapped_column(String(255), nullable=False)
    # MASUK | KELUAR
    direction: Mapped[str] = mapped_column(String(10), nullable=False)
    entry_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    unit: Mapped[str] = mapped_column(String(20), nullable=False)

    # ── Lineage ──────────────────────────────────────────────
    batch_id: Mapped[str | None] = mapped_column(String(100), index=True)
    parent_batch_id: Mapped[str | None] = mapped_column(String(100), index=True)
    source_activity_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("activities.id", ondelete="SET NULL"), unique=True
    )

    note: Mapped[str | None] = mapped_column(Text)
    external_marketplace_ref: Mapped[str | None] = mapped_column(String(100))
    created_by: Mapped[int | None] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    cooperative = relationship("Cooperative")
    source_activity = relationship("Activity")
