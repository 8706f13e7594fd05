"""Response documents of the batch lineage engine
(``/api/inventory/traceability/...``).

Top-level keys are camelCase; row payloads keep the inventory wire names.
"""

from datetime import date, datetime

from pydantic import Field

from kopitrace.schemas.common import CamelModel, WireModel
from kopitrace.schemas.inventory import InventoryOut


# ── Lineage tree ─────────────────────────────────────────────

class LineageNode(InventoryOut):
    level: int
    cooperative_name: str | None = Field(None, alias="nama_koperasi")


class MainBatch(InventoryOut):
    cooperative_name: str | None = Field(None, alias="nama_koperasi")
    farmer_name: str | None = Field(None, alias="petani_name")
    land_plot_name: str | None = Field(None, alias="nama_lahan")


class TraceabilityTree(CamelModel):
    upstream: list[LineageNode]
    current: MainBatch
    downstream: list[LineageNode]


class LineageResponse(CamelModel):
    main_batch: MainBatch
    parent_batches: list[LineageNode]
    child_batches: list[LineageNode]
    traceability_tree: TraceabilityTree


# ── Timeline ─────────────────────────────────────────────────

class TimelineEvent(WireModel):
    event_type: str            # INVENTORY | TRANSACTION
    event_id: int
    action: str
    event_date: date
    quantity: float = Field(..., alias="jumlah")
    unit: str = Field(..., alias="satuan")
    item_name: str = Field(..., alias="nama_item")
    description: str | None = None
    cooperative_name: str | None = Field(None, alias="nama_koperasi")
    created_by_name: str | None = None
    created_at: datetime | None = None


class TimelineResponse(CamelModel):
    batch_id: str
    timeline: list[TimelineEvent]
    total_events: int


# ── Compliance report ────────────────────────────────────────

class BatchInfo(InventoryOut):
    cooperative_name: str | None = Field(None, alias="nama_koperasi")
    cooperative_address: str | None = Field(None, alias="koperasi_alamat")
    province: str | None = Field(None, alias="provinsi")
    regency: str | None = Field(None, alias="kabupaten")
    contact_person: str | None = Field(None, alias="kontak_person")
    phone: str | None = Field(None, alias="nomor_telepon")


class FarmSource(WireModel):
    farmer_name: str | None = Field(None, alias="petani_name")
    farmer_contact: str | None = Field(None, alias="petani_kontak")
    farmer_address: str | None = Field(None, alias="petani_alamat")
    land_plot_name: str | None = Field(None, alias="nama_lahan")
    land_plot_location: str | None = Field(None, alias="lahan_lokasi")
    area_hectares: float | None = Field(None, alias="luas_hektar")
    coffee_variety: str | None = Field(None, alias="jenis_kopi_dominan")
    harvest_date: date | None = None
    harvest_amount: float | None = None


class ProcessingStep(WireModel):
    direction: str = Field(..., alias="tipe_transaksi")
    entry_date: date = Field(..., alias="tanggal")
    quantity: float = Field(..., alias="jumlah")
    unit: str = Field(..., alias="satuan")
    item_name: str = Field(..., alias="nama_item")
    note: str | None = Field(None, alias="keterangan")
    operation: str | None = Field(None, alias="jenis_operasi")
    buyer: str | None = None
    batch_id: str | None = None
    parent_batch_id: str | None = None


class ReportCheckpoint(WireModel):
    checkpoint_type: str
    checkpoint_date: date
    checkpoint_name: str
    checkpoint_result: str | None = None
    status: str
    quality_score: float | None = None
    # SYSTEM (synthesized from harvest/intake records) | INSPECTION (recorded)
    source: str


class ReportSummary(CamelModel):
    total_farms: int
    total_processing_steps: int
    quality_checks_passed: int
    traceability_score: str


class TraceabilityReport(CamelModel):
    report_id: str
    generated_at: datetime
    batch_id: str
    batch_info: BatchInfo
    farm_source: list[FarmSource]
    processing_history: list[ProcessingStep]
    quality_checkpoints: list[ReportCheckpoint]
    traceability_confirmed: bool = True
    report_summary: ReportSummary
    # json | pdf-data
    format: str = "json"
    message: str | None = None
