"""Quality checkpoint routes (``/api/quality``).

Checkpoints are recorded against an inventory entry; the batch view and
the traceability report group them by the entry's ``batch_id``.
"""

import enum
from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from kopitrace.auth.deps import (
    WRITE_ROLES,
    ensure_cooperative_access,
    get_current_user,
    require_role,
)
from kopitrace.database import get_db
from kopitrace.middleware.exceptions import ResourceNotFoundError
from kopitrace.models.inventory import InventoryEntry
from kopitrace.models.quality_checkpoint import CheckpointStatus, QualityCheckpoint
from kopitrace.models.user import User
from kopitrace.schemas.quality import (
    BatchCheckpoint,
    BatchCheckpointsResponse,
    CheckpointCreate,
    CheckpointOut,
    CheckpointResponse,
    CheckpointTypeSummary,
    CheckpointUpdate,
    CooperativeQualitySummary,
    OverallQualitySummary,
    QualityPeriod,
)
from kopitrace.utils.audit import log_activity

router = APIRouter()


@router.get("/checkpoints/batch/{batch_id}", response_model=BatchCheckpointsResponse)
async def batch_checkpoints(
    batch_id: str,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    """All checkpoints recorded on entries of ``batch_id``, newest first."""
    result = await db.execute(
        select(QualityCheckpoint)
        .join(InventoryEntry, QualityCheckpoint.inventory_id == InventoryEntry.id)
        .where(InventoryEntry.batch_id == batch_id)
        .options(
            selectinload(QualityCheckpoint.inventory).selectinload(InventoryEntry.cooperative),
            selectinload(QualityCheckpoint.inspector),
        )
        .order_by(QualityCheckpoint.checkpoint_date.desc(), QualityCheckpoint.id.desc())
    )
    checkpoints = [
        BatchCheckpoint(
            **CheckpointOut.model_validate(qc).model_dump(),
            item_name=qc.inventory.item_name,
            batch_id=qc.inventory.batch_id,
            cooperative_name=qc.inventory.cooperative.name if qc.inventory.cooperative else None,
            inspector_name=qc.inspector.full_name if qc.inspector else None,
        )
        for qc in result.scalars().all()
    ]
    return BatchCheckpointsResponse(
        batch_id=batch_id,
        checkpoints=checkpoints,
        total_checkpoints=len(checkpoints),
    )


@router.post("/checkpoints", response_model=CheckpointResponse, status_code=status.HTTP_201_CREATED)
async def create_checkpoint(
    body: CheckpointCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_role(*WRITE_ROLES)),
):
    entry = await db.get(InventoryEntry, body.inventory_id)
    if not entry:
        raise ResourceNotFoundError("Inventory", body.inventory_id)
    await ensure_cooperative_access(user, entry.cooperative_id, db)

    checkpoint = QualityCheckpoint(
        inventory_id=body.inventory_id,
        checkpoint_type=body.checkpoint_type.value,
        checkpoint_name=body.checkpoint_name,
        checkpoint_date=body.checkpoint_date,
        quality_score=body.quality_score,
        status=body.status.value,
        test_results=body.test_results,
        defects_found=body.defects_found,
        recommendations=body.recommendations,
        notes=body.notes,
        inspector_id=user.id,
    )
    db.add(checkpoint)
    await db.flush()

    await log_activity(
        db, user,
        action="created",
        entity_type="quality_checkpoint",
        entity_id=checkpoint.id,
        summary=f"{checkpoint.checkpoint_type} check on batch {entry.batch_id}: {checkpoint.status}",
    )
    await db.flush()
    return CheckpointResponse(
        message="Quality checkpoint created successfully",
        checkpoint=CheckpointOut.model_validate(checkpoint),
    )


@router.put("/checkpoints/{checkpoint_id}", response_model=CheckpointResponse)
async def update_checkpoint(
    checkpoint_id: int,
    body: CheckpointUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_role(*WRITE_ROLES)),
):
    result = await db.execute(
        select(QualityCheckpoint)
        .where(QualityCheckpoint.id == checkpoint_id)
        .options(selectinload(QualityCheckpoint.inventory))
    )
    checkpoint = result.scalar_one_or_none()
    if not checkpoint:
        raise ResourceNotFoundError("Quality checkpoint", checkpoint_id)
    await ensure_cooperative_access(user, checkpoint.inventory.cooperative_id, db)

    updates = body.model_dump(exclude_unset=True)
    for key, value in updates.items():
        if isinstance(value, enum.Enum):
            value = value.value
        setattr(checkpoint, key, value)

    await log_activity(
        db, user,
        action="updated",
        entity_type="quality_checkpoint",
        entity_id=checkpoint.id,
        summary=f"Updated checkpoint {checkpoint.id}",
        details={"fields": sorted(updates)},
    )
    await db.flush()
    await db.refresh(checkpoint)
    return CheckpointResponse(
        message="Quality checkpoint updated successfully",
        checkpoint=CheckpointOut.model_validate(checkpoint),
    )


@router.get("/summary/koperasi/{koperasi_id}", response_model=CooperativeQualitySummary)
async def cooperative_summary(
    koperasi_id: int,
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Checkpoint counts and average score for one cooperative, per type."""
    await ensure_cooperative_access(user, koperasi_id, db)

    filters = [InventoryEntry.cooperative_id == koperasi_id]
    if start_date is not None:
        filters.append(QualityCheckpoint.checkpoint_date >= start_date)
    if end_date is not None:
        filters.append(QualityCheckpoint.checkpoint_date <= end_date)

    def _count(status_value: str):
        return func.sum(case((QualityCheckpoint.status == status_value, 1), else_=0))

    result = await db.execute(
        select(
            QualityCheckpoint.checkpoint_type,
            func.count(QualityCheckpoint.id),
            _count(CheckpointStatus.PASSED.value),
            _count(CheckpointStatus.FAILED.value),
            _count(CheckpointStatus.PENDING.value),
            func.avg(QualityCheckpoint.quality_score),
        )
        .join(InventoryEntry, QualityCheckpoint.inventory_id == InventoryEntry.id)
        .where(*filters)
        .group_by(QualityCheckpoint.checkpoint_type)
        .order_by(QualityCheckpoint.checkpoint_type)
    )
    rows = result.all()
    by_type = [
        CheckpointTypeSummary(
            checkpoint_type=row[0],
            total_checkpoints=row[1],
            passed_checkpoints=row[2] or 0,
            failed_checkpoints=row[3] or 0,
            pending_checkpoints=row[4] or 0,
            average_quality_score=round(row[5], 2) if row[5] is not None else None,
        )
        for row in rows
    ]

    total = sum(t.total_checkpoints for t in by_type)
    score_sum = sum(row[5] * row[1] for row in rows if row[5] is not None)
    overall = OverallQualitySummary(
        total_checkpoints=total,
        passed_checkpoints=sum(t.passed_checkpoints for t in by_type),
        failed_checkpoints=sum(t.failed_checkpoints for t in by_type),
        pending_checkpoints=sum(t.pending_checkpoints for t in by_type),
        average_quality_score=round(score_sum / total, 2) if total else None,
    )
    return CooperativeQualitySummary(
        koperasi_id=koperasi_id,
        period=QualityPeriod(start_date=start_date, end_date=end_date),
        overall_summary=overall,
        by_type=by_type,
    )
