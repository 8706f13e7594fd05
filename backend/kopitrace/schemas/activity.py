"""Pydantic schemas for farming activities (``/api/aktivitas``)."""

from datetime import date, datetime

from pydantic import Field

from kopitrace.models.activity import ActivityKind, ActivityOrigin, ActivityStatus
from kopitrace.schemas.common import WireModel


# ── Create / update (same body shape) ────────────────────────

class ActivityWrite(WireModel):
    """Payload for POST /api/aktivitas and PUT /api/aktivitas/{id}."""
    land_plot_id: int = Field(..., alias="lahan_id")
    kind: ActivityKind = Field(..., alias="jenis_aktivitas")
    activity_date: date = Field(..., alias="tanggal_aktivitas")
    status: ActivityStatus

    # Optional
    estimate_date: date | None = Field(None, alias="tanggal_estimasi")
    estimated_kg: float | None = Field(None, ge=0, alias="jumlah_estimasi_kg")
    actual_kg: float | None = Field(None, ge=0, alias="jumlah_aktual_kg")
    seed_variety: str | None = Field(None, max_length=100, alias="jenis_bibit")
    note: str | None = Field(None, alias="keterangan")
    origin: ActivityOrigin | None = Field(None, alias="created_from")


# ── Response ─────────────────────────────────────────────────

class ActivityOut(WireModel):
    id: int = Field(..., alias="aktivitas_id")
    land_plot_id: int = Field(..., alias="lahan_id")
    kind: str = Field(..., alias="jenis_aktivitas")
    activity_date: date = Field(..., alias="tanggal_aktivitas")
    estimate_date: date | None = Field(None, alias="tanggal_estimasi")
    estimated_kg: float | None = Field(None, alias="jumlah_estimasi_kg")
    actual_kg: float | None = Field(None, alias="jumlah_aktual_kg")
    seed_variety: str | None = Field(None, alias="jenis_bibit")
    status: str
    note: str | None = Field(None, alias="keterangan")
    origin: str | None = Field(None, alias="created_from")
    created_by: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ActivityListItem(ActivityOut):
    land_plot_name: str | None = Field(None, alias="nama_lahan")
    cooperative_id: int | None = Field(None, alias="koperasi_id")
    farmer_name: str | None = Field(None, alias="petani_name")


# ── Upcoming harvest estimates (dashboard) ───────────────────

class UpcomingHarvest(WireModel):
    id: int = Field(..., alias="aktivitas_id")
    land_plot_id: int = Field(..., alias="lahan_id")
    estimate_date: date | None = Field(None, alias="tanggal_estimasi")
    estimated_kg: float | None = Field(None, alias="jumlah_estimasi_kg")
    note: str | None = Field(None, alias="keterangan")
    land_plot_name: str | None = Field(None, alias="nama_lahan")
    coffee_variety: str | None = Field(None, alias="jenis_kopi_dominan")
    farmer_name: str | None = Field(None, alias="petani_name")
    farmer_contact: str | None = Field(None, alias="petani_kontak")


class UpcomingHarvestResponse(WireModel):
    upcoming_harvests: list[UpcomingHarvest]
    total_estimated_kg: float
    count: int
