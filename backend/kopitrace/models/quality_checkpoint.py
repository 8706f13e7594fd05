"""QualityCheckpoint: an inspection result recorded against an inventory
entry (and therefore against that entry's batch)."""

import enum
from datetime import date, datetime

from sqlalchemy import Date, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kopitrace.database import Base


class CheckpointType(str, enum.Enum):
    HARVEST = "HARVEST"
    PROCESSING = "PROCESSING"
    STORAGE = "STORAGE"
    TRANSPORT = "TRANSPORT"
    DELIVERY = "DELIVERY"


class CheckpointStatus(str, enum.Enum):
    PASSED = "PASSED"
    FAILED = "FAILED"
    PENDING = "PENDING"


class QualityCheckpoint(Base):
    __tablename__ = "quality_checkpoints"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    inventory_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("inventory_entries.id"), nullable=False, index=True
    )
    checkpoint_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    checkpoint_name: Mapped[str] = mapped_column(String(255), nullable=False)
    checkpoint_date: Mapped[date] = mapped_column(Date, nullable=False)
    quality_score: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[str] = mapped_column(String(10), nullable=False)

    test_results: Mapped[str | None] = mapped_column(Text)
    defects_found: Mapped[str | None] = mapped_column(Text)
    recommendations: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)

    inspector_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id"))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    inventory = relationship("InventoryEntry")
    inspector = relationship("User")
