"""LandPlot (lahan): a coffee field worked by one farmer."""

import enum
from datetime import date, datetime

from sqlalchemy import Date, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kopitrace.database import Base


class LandPlotStatus(str, enum.Enum):
    NEWLY_PLANTED = "Baru Ditanam"
    PRODUCTIVE = "Produktif"
    INACTIVE = "Tidak Aktif"


class LandPlot(Base):
    __tablename__ = "land_plots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    cooperative_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("cooperatives.id"), nullable=False, index=True
    )
    farmer_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("farmers.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    area_hectares: Mapped[float] = mapped_column(Float, nullable=False)
    estimated_tree_count: Mapped[int] = mapped_column(Integer, nullable=False)
    dominant_coffee_variety: Mapped[str] = mapped_column(String(100), nullable=False)
    # Baru Ditanam | Produktif | Tidak Aktif
    status: Mapped[str] = mapped_column(String(30), default=LandPlotStatus.PRODUCTIVE.value)
    first_harvest_estimate: Mapped[date | None] = mapped_column(Date)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Both lazy="select"; load explicitly with selectinload() where needed
    cooperative = relationship("Cooperative")
    farmer = relationship("Farmer")
