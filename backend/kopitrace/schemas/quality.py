"""Pydantic schemas for quality checkpoints (``/api/quality``)."""

from datetime import date, datetime

from pydantic import Field, field_validator

from kopitrace.models.quality_checkpoint import CheckpointStatus, CheckpointType
from kopitrace.schemas.common import CamelModel, WireModel
from kopitrace.schemas.validators import require_text


class CheckpointCreate(WireModel):
    inventory_id: int
    checkpoint_type: CheckpointType
    checkpoint_name: str
    checkpoint_date: date
    quality_score: float = Field(..., ge=0, le=100)
    status: CheckpointStatus

    test_results: str | None = None
    defects_found: str | None = None
    recommendations: str | None = None
    notes: str | None = None

    @field_validator("checkpoint_name")
    @classmethod
    def _name(cls, v: str) -> str:
        return require_text(v, max_length=255)


class CheckpointUpdate(WireModel):
    checkpoint_type: CheckpointType | None = None
    checkpoint_name: str | None = None
    checkpoint_date: date | None = None
    quality_score: float | None = Field(None, ge=0, le=100)
    status: CheckpointStatus | None = None
    test_results: str | None = None
    defects_found: str | None = None
    recommendations: str | None = None
    notes: str | None = None

    # Omit a field to leave it alone; these columns cannot be cleared
    @field_validator(
        "checkpoint_type", "checkpoint_name", "checkpoint_date", "quality_score", "status"
    )
    @classmethod
    def _not_null(cls, v):
        if v is None:
            raise ValueError("Must not be null")
        return v

    @field_validator("checkpoint_name")
    @classmethod
    def _name(cls, v: str) -> str:
        return require_text(v, max_length=255)


class CheckpointOut(WireModel):
    id: int = Field(..., alias="checkpoint_id")
    inventory_id: int
    checkpoint_type: str
    checkpoint_name: str
    checkpoint_date: date
    quality_score: float
    status: str
    test_results: str | None = None
    defects_found: str | None = None
    recommendations: str | None = None
    notes: str | None = None
    inspector_id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class BatchCheckpoint(CheckpointOut):
    item_name: str | None = Field(None, alias="nama_item")
    batch_id: str | None = None
    cooperative_name: str | None = Field(None, alias="nama_koperasi")
    inspector_name: str | None = None


class CheckpointResponse(WireModel):
    message: str
    checkpoint: CheckpointOut


class BatchCheckpointsResponse(CamelModel):
    batch_id: str
    checkpoints: list[BatchCheckpoint]
    total_checkpoints: int


# ── Cooperative summary ──────────────────────────────────────

class CheckpointTypeSummary(WireModel):
    checkpoint_type: str
    total_checkpoints: int
    passed_checkpoints: int
    failed_checkpoints: int
    pending_checkpoints: int
    average_quality_score: float | None = None


class OverallQualitySummary(WireModel):
    total_checkpoints: int
    passed_checkpoints: int
    failed_checkpoints: int
    pending_checkpoints: int
    average_quality_score: float | None = None


class QualityPeriod(CamelModel):
    start_date: date | None = None
    end_date: date | None = None


class CooperativeQualitySummary(CamelModel):
    koperasi_id: int
    period: QualityPeriod
    overall_summary: OverallQualitySummary
    by_type: list[CheckpointTypeSummary]
