"""InventoryTransaction: a business event (purchase, harvest intake,
distribution, sale, processing) recorded against one inventory entry."""

import enum
from datetime import date, datetime

from sqlalchemy import Date, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kopitrace.database import Base


class TransactionType(str, enum.Enum):
    IN = "MASUK"
    OUT = "KELUAR"
    PROCESS = "PROSES"
    SALE = "JUAL"


class TransactionOperation(str, enum.Enum):
    PURCHASE = "PEMBELIAN"
    HARVEST = "PANEN"
    DISTRIBUTION = "DISTRIBUSI"
    SELLING = "PENJUALAN"
    TRANSFORMATION = "TRANSFORMASI"


class InventoryTransaction(Base):
    __tablename__ = "inventory_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    inventory_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("inventory_entries.id"), nullable=False, index=True
    )
    cooperative_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("cooperatives.id"), nullable=False
    )
    transaction_type: Mapped[str] = mapped_column(String(10), nullable=False)
    operation: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    quantity: Mapped[float] = mapped_column(Float, nullable=False)

    # ── Origin / counterparty ────────────────────────────────
    farmer_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("farmers.id"))
    land_plot_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("land_plots.id"))
    buyer: Mapped[str | None] = mapped_column(String(255))
    total_price: Mapped[float | None] = mapped_column(Float)

    note: Mapped[str | None] = mapped_column(Text)
    external_marketplace_ref: Mapped[str | None] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    inventory = relationship("InventoryEntry")
    cooperative = relationship("Cooperative")
    farmer = relationship("Farmer")
    land_plot = relationship("LandPlot")
