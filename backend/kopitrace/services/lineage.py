"""Batch lineage engine.

Inventory entries form a graph through ``parent_batch_id → batch_id``.
This module answers three questions about one batch:

  get_lineage_tree   which batches it came from and which it turned into
  get_timeline       every inventory movement and transaction on it
  generate_report    a consolidated traceability document for compliance

Traversal is level-by-level (one IN query per level) with a visited set of
batch ids, so cyclic parent links terminate.  Depth is capped by
``settings.lineage_max_depth``.
"""

import logging
from datetime import datetime

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from kopitrace.config import settings
from kopitrace.middleware.exceptions import ResourceNotFoundError
from kopitrace.models.activity import Activity, ActivityKind
from kopitrace.models.inventory import InventoryDirection, InventoryEntry
from kopitrace.models.inventory_transaction import InventoryTransaction, TransactionOperation
from kopitrace.models.land_plot import LandPlot
from kopitrace.models.quality_checkpoint import CheckpointStatus, CheckpointType, QualityCheckpoint
from kopitrace.models.user import User
from kopitrace.schemas.inventory import InventoryOut
from kopitrace.schemas.traceability import (
    BatchInfo,
    FarmSource,
    LineageNode,
    LineageResponse,
    MainBatch,
    ProcessingStep,
    ReportCheckpoint,
    ReportSummary,
    TimelineEvent,
    TimelineResponse,
    TraceabilityReport,
    TraceabilityTree,
)
from kopitrace.utils.numbering import generate_report_id

logger = logging.getLogger(__name__)

_ORIGIN_OPTIONS = (
    selectinload(InventoryEntry.cooperative),
    selectinload(InventoryEntry.source_activity)
    .selectinload(Activity.land_plot)
    .selectinload(LandPlot.farmer),
)


# ── Loading ──────────────────────────────────────────────────

async def _entries_for_batch(db: AsyncSession, batch_id: str) -> list[InventoryEntry]:
    """All rows carrying ``batch_id``, newest first.  404 when there are none."""
    result = await db.execute(
        select(InventoryEntry)
        .where(InventoryEntry.batch_id == batch_id)
        .options(*_ORIGIN_OPTIONS)
        .order_by(InventoryEntry.created_at.desc(), InventoryEntry.id.desc())
    )
    entries = list(result.scalars().all())
    if not entries:
        raise ResourceNotFoundError("Batch", batch_id)
    return entries


async def _entries_where(db: AsyncSession, clause) -> list[InventoryEntry]:
    result = await db.execute(
        select(InventoryEntry)
        .where(clause)
        .options(selectinload(InventoryEntry.cooperative))
        .order_by(InventoryEntry.created_at, InventoryEntry.id)
    )
    return list(result.scalars().all())


# ── Traversal ────────────────────────────────────────────────

async def walk_upstream(
    db: AsyncSession,
    batch_id: str,
    start: list[InventoryEntry],
    max_depth: int | None = None,
) -> list[tuple[int, InventoryEntry]]:
    """Ancestors of ``batch_id`` as ``(level, entry)`` pairs, level 1 = direct parent."""
    if max_depth is None:
        max_depth = settings.lineage_max_depth
    visited = {batch_id}
    frontier = {e.parent_batch_id for e in start if e.parent_batch_id} - visited
    found: list[tuple[int, InventoryEntry]] = []
    level = 1

    while frontier and level <= max_depth:
        rows = await _entries_where(db, InventoryEntry.batch_id.in_(sorted(frontier)))
        visited |= frontier
        found.extend((level, row) for row in rows)
        frontier = {r.parent_batch_id for r in rows if r.parent_batch_id} - visited
        level += 1

    # Parent ids may dangle; only a parent that exists was cut off
    if frontier and await _entries_where(db, InventoryEntry.batch_id.in_(sorted(frontier))):
        logger.warning(
            "Upstream lineage of %s truncated at depth %s", batch_id, max_depth
        )
    return found


async def walk_downstream(
    db: AsyncSession,
    batch_id: str,
    max_depth: int | None = None,
) -> list[tuple[int, InventoryEntry]]:
    """Descendants of ``batch_id`` as ``(level, entry)`` pairs, level 1 = direct child."""
    if max_depth is None:
        max_depth = settings.lineage_max_depth
    visited = {batch_id}
    frontier = {batch_id}
    found: list[tuple[int, InventoryEntry]] = []
    level = 1

    while frontier and level <= max_depth:
        rows = await _children(db, frontier, visited)
        frontier = {r.batch_id for r in rows if r.batch_id}
        visited |= frontier
        found.extend((level, row) for row in rows)
        level += 1

    if frontier and await _children(db, frontier, visited):
        logger.warning(
            "Downstream lineage of %s truncated at depth %s", batch_id, max_depth
        )
    return found


async def _children(
    db: AsyncSession, parents: set[str], visited: set[str]
) -> list[InventoryEntry]:
    rows = await _entries_where(db, InventoryEntry.parent_batch_id.in_(sorted(parents)))
    return [r for r in rows if r.batch_id not in visited]


def _node(level: int, entry: InventoryEntry) -> LineageNode:
    return LineageNode(
        **InventoryOut.model_validate(entry).model_dump(),
        level=level,
        cooperative_name=entry.cooperative.name if entry.cooperative else None,
    )


async def _origin_of(db: AsyncSession, entry: InventoryEntry):
    """Return ``(farmer, land_plot)`` an entry came from, or ``(None, None)``.

    Pipeline batches know their harvest activity; other batches fall back
    to the first PANEN transaction recorded against the entry.
    """
    activity = entry.source_activity
    if activity is not None and activity.land_plot is not None:
        return activity.land_plot.farmer, activity.land_plot

    result = await db.execute(
        select(InventoryTransaction)
        .where(
            InventoryTransaction.inventory_id == entry.id,
            InventoryTransaction.operation == TransactionOperation.HARVEST.value,
        )
        .options(
            selectinload(InventoryTransaction.farmer),
            selectinload(InventoryTransaction.land_plot),
        )
        .order_by(InventoryTransaction.transaction_date, InventoryTransaction.id)
        .limit(1)
    )
    txn = result.scalar_one_or_none()
    if txn is None:
        return None, None
    return txn.farmer, txn.land_plot


async def get_lineage_tree(db: AsyncSession, batch_id: str) -> LineageResponse:
    """Upstream and downstream lineage of ``batch_id``.

    ``parent_batches`` runs from the furthest ancestor to the direct parent;
    ``child_batches`` from direct children outwards.  Within a level rows
    are ordered by creation time.
    """
    entries = await _entries_for_batch(db, batch_id)
    current = entries[0]

    upstream = await walk_upstream(db, batch_id, entries)
    downstream = await walk_downstream(db, batch_id)

    upstream.sort(key=lambda pair: (-pair[0], pair[1].created_at, pair[1].id))
    downstream.sort(key=lambda pair: (pair[0], pair[1].created_at, pair[1].id))

    farmer, land_plot = await _origin_of(db, current)
    main_batch = MainBatch(
        **InventoryOut.model_validate(current).model_dump(),
        cooperative_name=current.cooperative.name if current.cooperative else None,
        farmer_name=farmer.name if farmer else None,
        land_plot_name=land_plot.name if land_plot else None,
    )
    parents = [_node(level, e) for level, e in upstream]
    children = [_node(level, e) for level, e in downstream]

    logger.info(
        "Lineage for %s: %d upstream, %d downstream rows",
        batch_id, len(parents), len(children),
    )
    return LineageResponse(
        main_batch=main_batch,
        parent_batches=parents,
        child_batches=children,
        traceability_tree=TraceabilityTree(
            upstream=parents, current=main_batch, downstream=children,
        ),
    )


# ── Timeline ─────────────────────────────────────────────────

async def get_timeline(db: AsyncSession, batch_id: str) -> TimelineResponse:
    """Every inventory movement and transaction on ``batch_id``, newest first."""
    entries = await _entries_for_batch(db, batch_id)
    entry_ids = [e.id for e in entries]

    creator_ids = {e.created_by for e in entries if e.created_by is not None}
    creators: dict[int, str] = {}
    if creator_ids:
        result = await db.execute(
            select(User.id, User.full_name).where(User.id.in_(creator_ids))
        )
        creators = {row.id: row.full_name for row in result}

    result = await db.execute(
        select(InventoryTransaction)
        .where(InventoryTransaction.inventory_id.in_(entry_ids))
        .options(
            selectinload(InventoryTransaction.cooperative),
            selectinload(InventoryTransaction.farmer),
        )
    )
    transactions = list(result.scalars().all())

    events = [
        TimelineEvent(
            event_type="INVENTORY",
            event_id=e.id,
            action=e.direction,
            event_date=e.entry_date,
            quantity=e.quantity,
            unit=e.unit,
            item_name=e.item_name,
            description=e.note,
            cooperative_name=e.cooperative.name if e.cooperative else None,
            created_by_name=creators.get(e.created_by),
            created_at=e.created_at,
        )
        for e in entries
    ]
    events.extend(
        TimelineEvent(
            event_type="TRANSACTION",
            event_id=t.id,
            action=t.transaction_type,
            event_date=t.transaction_date,
            quantity=t.quantity,
            unit="kg",
            item_name=t.buyer or "Internal",
            description=t.note,
            cooperative_name=t.cooperative.name if t.cooperative else None,
            created_by_name=t.farmer.name if t.farmer else None,
        )
        for t in transactions
    )

    # event_date DESC, then created_at DESC with undated events last
    events.sort(
        key=lambda ev: (
            ev.event_date,
            ev.created_at is not None,
            ev.created_at or datetime.min,
        ),
        reverse=True,
    )
    return TimelineResponse(batch_id=batch_id, timeline=events, total_events=len(events))


# ── Compliance report ────────────────────────────────────────

def _fmt_qty(value: float | None) -> str:
    return f"{value:g}" if value is not None else "0"


async def _farm_sources(
    db: AsyncSession, entries: list[InventoryEntry]
) -> tuple[list[FarmSource], list[Activity]]:
    """Farms feeding the batch, plus the harvest activities that prove it."""
    sources: list[FarmSource] = []
    seen: set[tuple] = set()
    harvests: dict[int, Activity] = {}

    def add(farmer, land_plot, harvest: Activity | None) -> None:
        key = (
            farmer.id if farmer else None,
            land_plot.id if land_plot else None,
            harvest.id if harvest else None,
        )
        if key in seen:
            return
        seen.add(key)
        if harvest is not None:
            harvests[harvest.id] = harvest
        sources.append(FarmSource(
            farmer_name=farmer.name if farmer else None,
            farmer_contact=farmer.contact if farmer else None,
            farmer_address=farmer.address if farmer else None,
            land_plot_name=land_plot.name if land_plot else None,
            land_plot_location=land_plot.location if land_plot else None,
            area_hectares=land_plot.area_hectares if land_plot else None,
            coffee_variety=land_plot.dominant_coffee_variety if land_plot else None,
            harvest_date=harvest.activity_date if harvest else None,
            harvest_amount=harvest.actual_kg if harvest else None,
        ))

    # Batches produced by the harvest pipeline
    for entry in entries:
        activity = entry.source_activity
        if activity is not None and activity.land_plot is not None:
            add(activity.land_plot.farmer, activity.land_plot, activity)

    # Batches bought in or harvested through PANEN transactions
    result = await db.execute(
        select(InventoryTransaction)
        .where(
            InventoryTransaction.inventory_id.in_([e.id for e in entries]),
            InventoryTransaction.operation == TransactionOperation.HARVEST.value,
        )
        .options(
            selectinload(InventoryTransaction.farmer),
            selectinload(InventoryTransaction.land_plot).selectinload(LandPlot.farmer),
        )
        .order_by(InventoryTransaction.transaction_date, InventoryTransaction.id)
    )
    for txn in result.scalars().all():
        land_plot = txn.land_plot
        farmer = txn.farmer or (land_plot.farmer if land_plot else None)
        harvest = None
        if land_plot is not None:
            harvest = (await db.execute(
                select(Activity)
                .where(
                    Activity.land_plot_id == land_plot.id,
                    Activity.kind == ActivityKind.HARVEST.value,
                    Activity.activity_date <= txn.transaction_date,
                )
                .options(selectinload(Activity.land_plot))
                .order_by(Activity.activity_date.desc(), Activity.id.desc())
                .limit(1)
            )).scalar_one_or_none()
        add(farmer, land_plot, harvest)

    # Newest harvest first, farms without a recorded harvest last
    sources.sort(
        key=lambda s: (s.harvest_date is not None, s.harvest_date),
        reverse=True,
    )
    return sources, list(harvests.values())


async def _processing_history(db: AsyncSession, batch_id: str) -> list[ProcessingStep]:
    result = await db.execute(
        select(InventoryEntry, InventoryTransaction)
        .outerjoin(
            InventoryTransaction,
            InventoryTransaction.inventory_id == InventoryEntry.id,
        )
        .where(or_(
            InventoryEntry.batch_id == batch_id,
            InventoryEntry.parent_batch_id == batch_id,
        ))
        .order_by(
            InventoryEntry.entry_date,
            InventoryEntry.created_at,
            InventoryEntry.id,
            InventoryTransaction.id,
        )
    )
    return [
        ProcessingStep(
            direction=entry.direction,
            entry_date=entry.entry_date,
            quantity=entry.quantity,
            unit=entry.unit,
            item_name=entry.item_name,
            note=entry.note,
            operation=txn.operation if txn else None,
            buyer=txn.buyer if txn else None,
            batch_id=entry.batch_id,
            parent_batch_id=entry.parent_batch_id,
        )
        for entry, txn in result.all()
    ]


async def _quality_checkpoints(
    db: AsyncSession,
    entries: list[InventoryEntry],
    harvests: list[Activity],
) -> list[ReportCheckpoint]:
    """Recorded inspections when the batch has any; otherwise checkpoints
    synthesized from its harvest and intake records."""
    result = await db.execute(
        select(QualityCheckpoint)
        .where(QualityCheckpoint.inventory_id.in_([e.id for e in entries]))
        .order_by(QualityCheckpoint.checkpoint_date, QualityCheckpoint.id)
    )
    recorded = list(result.scalars().all())
    if recorded:
        return [
            ReportCheckpoint(
                checkpoint_type=qc.checkpoint_type,
                checkpoint_date=qc.checkpoint_date,
                checkpoint_name=qc.checkpoint_name,
                checkpoint_result=qc.notes or qc.test_results,
                status=qc.status,
                quality_score=qc.quality_score,
                source="INSPECTION",
            )
            for qc in recorded
        ]

    checkpoints = [
        ReportCheckpoint(
            checkpoint_type=CheckpointType.HARVEST.value,
            checkpoint_date=h.activity_date,
            checkpoint_name="Harvest Quality Check",
            checkpoint_result=(
                f"Harvested {_fmt_qty(h.actual_kg)}kg from "
                f"{h.seed_variety or h.land_plot.dominant_coffee_variety} variety"
            ),
            status=CheckpointStatus.PASSED.value,
            source="SYSTEM",
        )
        for h in harvests
    ]
    checkpoints.extend(
        ReportCheckpoint(
            checkpoint_type=CheckpointType.PROCESSING.value,
            checkpoint_date=e.entry_date,
            checkpoint_name="Processing Quality Check",
            checkpoint_result=f"Processed {e.item_name} - {_fmt_qty(e.quantity)} {e.unit}",
            status=CheckpointStatus.PASSED.value,
            source="SYSTEM",
        )
        for e in entries
        if e.direction == InventoryDirection.IN.value
    )
    checkpoints.sort(key=lambda c: c.checkpoint_date)
    return checkpoints


async def generate_report(
    db: AsyncSession, batch_id: str, output_format: str = "json"
) -> TraceabilityReport:
    """Build the traceability report for ``batch_id``.

    ``output_format="pdf"`` returns the same document flagged as
    ``pdf-data``; rendering the PDF is left to the client.
    """
    entries = await _entries_for_batch(db, batch_id)
    latest = entries[0]
    cooperative = latest.cooperative

    batch_info = BatchInfo(
        **InventoryOut.model_validate(latest).model_dump(),
        cooperative_name=cooperative.name if cooperative else None,
        cooperative_address=cooperative.address if cooperative else None,
        province=cooperative.province if cooperative else None,
        regency=cooperative.regency if cooperative else None,
        contact_person=cooperative.contact_person if cooperative else None,
        phone=cooperative.phone if cooperative else None,
    )

    farm_source, harvests = await _farm_sources(db, entries)
    processing_history = await _processing_history(db, batch_id)
    quality_checkpoints = await _quality_checkpoints(db, entries, harvests)

    summary = ReportSummary(
        total_farms=len(farm_source),
        total_processing_steps=len(processing_history),
        quality_checks_passed=sum(
            1 for c in quality_checkpoints if c.status == CheckpointStatus.PASSED.value
        ),
        traceability_score="100%",
    )

    report = TraceabilityReport(
        report_id=generate_report_id(batch_id),
        generated_at=datetime.utcnow(),
        batch_id=batch_id,
        batch_info=batch_info,
        farm_source=farm_source,
        processing_history=processing_history,
        quality_checkpoints=quality_checkpoints,
        report_summary=summary,
    )
    if output_format == "pdf":
        report.format = "pdf-data"
        report.message = "PDF data ready for frontend generation"

    logger.info(
        "Traceability report %s generated: %d farms, %d steps, %d checkpoints",
        report.report_id, summary.total_farms,
        summary.total_processing_steps, len(quality_checkpoints),
    )
    return report

