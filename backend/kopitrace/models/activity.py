"""Activity: one farming event on a land plot.

Kinds:     TANAM (planting) | PANEN (harvest) | ESTIMASI_PANEN (harvest estimate)
Status:    TERJADWAL → SELESAI, or PENDING → SELESAI

A harvest that transitions into SELESAI with an actual weight drives the
harvest integration pipeline (see ``kopitrace.services.harvest``).  The
forward estimate it produces is itself an Activity with origin SYSTEM.
"""

import enum
from datetime import date, datetime

from sqlalchemy import Date, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kopitrace.database import Base


class ActivityKind(str, enum.Enum):
    PLANT = "TANAM"
    HARVEST = "PANEN"
    HARVEST_ESTIMATE = "ESTIMASI_PANEN"


class ActivityStatus(str, enum.Enum):
    SCHEDULED = "TERJADWAL"
    DONE = "SELESAI"
    PENDING = "PENDING"


class ActivityOrigin(str, enum.Enum):
    MANUAL = "MANUAL"
    SYSTEM = "SYSTEM"


class Activity(Base):
    __tablename__ = "activities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    land_plot_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("land_plots.id"), nullable=False, index=True
    )

    # ── Event ────────────────────────────────────────────────
    kind: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    activity_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    estimate_date: Mapped[date | None] = mapped_column(Date)

    # ── Quantities ───────────────────────────────────────────
    estimated_kg: Mapped[float | None] = mapped_column(Float)
    actual_kg: Mapped[float | None] = mapped_column(Float)
    seed_variety: Mapped[str | None] = mapped_column(String(100))

    # TERJADWAL | SELESAI | PENDING
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    note: Mapped[str | None] = mapped_column(Text)
    # MANUAL | SYSTEM
    origin: Mapped[str | None] = mapped_column(String(20), default=ActivityOrigin.MANUAL.value)

    created_by: Mapped[int | None] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    land_plot = relationship("LandPlot")
