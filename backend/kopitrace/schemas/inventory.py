"""Pydantic schemas for inventory entries and inventory transactions."""

from datetime import date, datetime

from pydantic import Field, field_validator

from kopitrace.models.inventory import InventoryDirection
from kopitrace.models.inventory_transaction import TransactionOperation, TransactionType
from kopitrace.schemas.common import WireModel
from kopitrace.schemas.validators import require_text, validate_batch_id


# ── Inventory entry ──────────────────────────────────────────

class InventoryWrite(WireModel):
    """Payload for POST /api/inventory and PUT /api/inventory/{id}."""
    cooperative_id: int = Field(..., alias="koperasi_id")
    item_name: str = Field(..., alias="nama_item")
    direction: InventoryDirection = Field(..., alias="tipe_transaksi")
    entry_date: date = Field(..., alias="tanggal")
    quantity: float = Field(..., gt=0, alias="jumlah")
    unit: str = Field(..., alias="satuan")

    batch_id: str | None = None
    parent_batch_id: str | None = None
    note: str | None = Field(None, alias="keterangan")
    external_marketplace_ref: str | None = Field(
        None, max_length=100, alias="referensi_pasarmikro"
    )

    @field_validator("item_name", "unit")
    @classmethod
    def _required_text(cls, v: str) -> str:
        return require_text(v, max_length=255)

    @field_validator("batch_id", "parent_batch_id")
    @classmethod
    def _batch_ids(cls, v: str | None) -> str | None:
        return validate_batch_id(v)


class InventoryOut(WireModel):
    id: int = Field(..., alias="inventory_id")
    cooperative_id: int = Field(..., alias="koperasi_id")
    item_name: str = Field(..., alias="nama_item")
    direction: str = Field(..., alias="tipe_transaksi")
    entry_date: date = Field(..., alias="tanggal")
    quantity: float = Field(..., alias="jumlah")
    unit: str = Field(..., alias="satuan")
    batch_id: str | None = None
    parent_batch_id: str | None = None
    source_activity_id: int | None = None
    note: str | None = Field(None, alias="keterangan")
    external_marketplace_ref: str | None = Field(None, alias="referensi_pasarmikro")
    created_by: int | None = None
    created_at: datetime | None = None


# ── Inventory transaction ────────────────────────────────────

class TransactionWrite(WireModel):
    """Payload for POST /api/transaksi-inventory and PUT .../{id}."""
    inventory_id: int
    cooperative_id: int = Field(..., alias="koperasi_id")
    transaction_type: TransactionType = Field(..., alias="tipe_transaksi")
    operation: TransactionOperation = Field(..., alias="jenis_operasi")
    transaction_date: date = Field(..., alias="tanggal")
    quantity: float = Field(..., gt=0, alias="jumlah")

    farmer_id: int | None = Field(None, alias="petani_id")
    land_plot_id: int | None = Field(None, alias="lahan_id")
    buyer: str | None = Field(None, max_length=255)
    total_price: float | None = Field(None, ge=0, alias="harga_total")
    note: str | None = Field(None, alias="keterangan")
    external_marketplace_ref: str | None = Field(
        None, max_length=100, alias="referensi_pasarmikro"
    )


class TransactionOut(WireModel):
    id: int = Field(..., alias="transaksi_id")
    inventory_id: int
    cooperative_id: int = Field(..., alias="koperasi_id")
    transaction_type: str = Field(..., alias="tipe_transaksi")
    operation: str = Field(..., alias="jenis_operasi")
    transaction_date: date = Field(..., alias="tanggal")
    quantity: float = Field(..., alias="jumlah")
    farmer_id: int | None = Field(None, alias="petani_id")
    land_plot_id: int | None = Field(None, alias="lahan_id")
    buyer: str | None = None
    total_price: float | None = Field(None, alias="harga_total")
    note: str | None = Field(None, alias="keterangan")
    external_marketplace_ref: str | None = Field(None, alias="referensi_pasarmikro")
    created_at: datetime | None = None
