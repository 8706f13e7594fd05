"""Batch traceability routes (``/api/inventory/traceability``).

Read-only views over the lineage graph; any authenticated user may read
any batch, so a buyer-facing QR link resolves regardless of cooperative.
"""

import io
import json

import segno
from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from kopitrace.auth.deps import get_current_user
from kopitrace.config import settings
from kopitrace.database import get_db
from kopitrace.middleware.exceptions import ResourceNotFoundError
from kopitrace.models.inventory import InventoryEntry
from kopitrace.models.user import User
from kopitrace.schemas.traceability import (
    LineageResponse,
    TimelineResponse,
    TraceabilityReport,
)
from kopitrace.services.lineage import generate_report, get_lineage_tree, get_timeline

router = APIRouter()


@router.get("/batch/{batch_id}", response_model=LineageResponse)
async def batch_lineage(
    batch_id: str,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    """Upstream (parent) and downstream (child) batches of ``batch_id``."""
    return await get_lineage_tree(db, batch_id)


@router.get("/timeline/{batch_id}", response_model=TimelineResponse)
async def batch_timeline(
    batch_id: str,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return await get_timeline(db, batch_id)


@router.get("/report/{batch_id}", response_model=TraceabilityReport)
async def batch_report(
    batch_id: str,
    output_format: str = Query("json", alias="format", pattern="^(json|pdf)$"),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    """Compliance report: origin farms, processing steps, quality checks.

    ``?format=pdf`` returns the same document marked ``pdf-data`` for
    client-side rendering.
    """
    return await generate_report(db, batch_id, output_format)


@router.get("/qr/{batch_id}")
async def batch_qr(
    batch_id: str,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    """Return an SVG QR code pointing at the batch's traceability report."""
    result = await db.execute(
        select(InventoryEntry)
        .where(InventoryEntry.batch_id == batch_id)
        .options(selectinload(InventoryEntry.cooperative))
        .order_by(InventoryEntry.created_at.desc(), InventoryEntry.id.desc())
        .limit(1)
    )
    entry = result.scalar_one_or_none()
    if not entry:
        raise ResourceNotFoundError("Batch", batch_id)

    qr_data = json.dumps({
        "batch_id": batch_id,
        "item": entry.item_name,
        "cooperative": entry.cooperative.name if entry.cooperative else None,
        "report_url": f"{settings.public_base_url.rstrip('/')}/traceability/{batch_id}",
    }, separators=(",", ":"))

    qr = segno.make(qr_data)
    buf = io.BytesIO()
    qr.save(buf, kind="svg", scale=4, dark="#6f4e37")
    return Response(content=buf.getvalue(), media_type="image/svg+xml")
