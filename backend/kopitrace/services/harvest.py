"""Harvest integration pipeline.

When a harvest activity transitions into SELESAI with an actual weight,
the transaction that writes the activity also:
  - records the harvested cherries as an inbound inventory batch
    (batch id ``BATCH-<millis>-<land plot id>``)
  - schedules the next harvest estimate: activity date + 6 months,
    actual kg × 1.05 rounded half-up (both configurable in settings)

The caller owns the transaction; this module only adds and flushes rows.
"""

import calendar
import logging
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kopitrace.config import settings
from kopitrace.models.activity import (
    Activity, ActivityKind, ActivityOrigin, ActivityStatus,
)
from kopitrace.models.inventory import InventoryDirection, InventoryEntry
from kopitrace.models.land_plot import LandPlot
from kopitrace.models.user import User
from kopitrace.utils.numbering import generate_batch_id

logger = logging.getLogger(__name__)


@dataclass
class HarvestIntegration:
    inventory_entry: InventoryEntry
    estimate: Activity


# ── Rules ────────────────────────────────────────────────────

def is_harvest_completion(
    kind: str,
    status: str,
    actual_kg: float | None,
    previous_status: str | None = None,
) -> bool:
    """True when a write moves a harvest into SELESAI with a positive weight.

    ``previous_status`` is the stored status before an update (None on
    create).  A harvest that was already SELESAI does not fire again.
    """
    if kind != ActivityKind.HARVEST.value or status != ActivityStatus.DONE.value:
        return False
    if actual_kg is None or actual_kg <= 0:
        return False
    return previous_status != ActivityStatus.DONE.value


def add_months(value: date, months: int) -> date:
    """Shift ``value`` by calendar months, clamping to the month's last day."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def next_estimate_kg(actual_kg: float, growth_factor: float | None = None) -> int:
    """Forecast the next harvest: ``actual_kg × growth_factor``, rounded half-up."""
    factor = settings.harvest_growth_factor if growth_factor is None else growth_factor
    estimate = Decimal(str(actual_kg)) * Decimal(str(factor))
    return int(estimate.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def harvest_item_name(land_plot: LandPlot) -> str:
    return f"Cherry from {land_plot.name}"


def harvest_note(land_plot: LandPlot, activity: Activity) -> str:
    farmer_name = land_plot.farmer.name if land_plot.farmer else "unknown farmer"
    return f"Harvest from {land_plot.name} - {farmer_name} - Activity ID: {activity.id}"


# ── Pipeline ─────────────────────────────────────────────────

async def find_harvest_entry(db: AsyncSession, activity_id: int) -> InventoryEntry | None:
    """Return the inbound batch already produced for ``activity_id``, if any."""
    result = await db.execute(
        select(InventoryEntry).where(
            InventoryEntry.source_activity_id == activity_id,
            InventoryEntry.direction == InventoryDirection.IN.value,
        )
    )
    return result.scalar_one_or_none()


async def integrate_harvest(
    db: AsyncSession,
    activity: Activity,
    land_plot: LandPlot,
    user: User,
) -> HarvestIntegration | None:
    """Materialize a completed harvest as inventory and forecast the next one.

    ``land_plot`` must have its ``farmer`` relationship loaded.

    Returns None when the activity already produced a batch.  A concurrent
    duplicate that slips past this check is rejected by the unique index on
    ``inventory_entries.source_activity_id`` when the rows are flushed.
    """
    if await find_harvest_entry(db, activity.id) is not None:
        logger.info(
            "Harvest activity %s already has an inventory batch; skipping integration",
            activity.id,
        )
        return None

    # ── Inbound inventory batch ───────────────────────────────
    batch_id = generate_batch_id(land_plot.id)
    entry = InventoryEntry(
        cooperative_id=land_plot.cooperative_id,
        item_name=harvest_item_name(land_plot),
        direction=InventoryDirection.IN.value,
        entry_date=activity.activity_date,
        quantity=activity.actual_kg,
        unit="kg",
        batch_id=batch_id,
        source_activity_id=activity.id,
        note=harvest_note(land_plot, activity),
        created_by=user.id,
    )
    db.add(entry)
    await db.flush()

    logger.info(
        "Harvest-to-inventory: %skg cherries from %s recorded as batch %s",
        activity.actual_kg, land_plot.name, batch_id,
    )

    # ── Next harvest estimate ─────────────────────────────────
    next_date = add_months(activity.activity_date, settings.harvest_cycle_months)
    estimate_kg = next_estimate_kg(activity.actual_kg)

    estimate = Activity(
        land_plot_id=land_plot.id,
        kind=ActivityKind.HARVEST_ESTIMATE.value,
        activity_date=next_date,
        estimate_date=next_date,
        estimated_kg=estimate_kg,
        status=ActivityStatus.SCHEDULED.value,
        note=(
            "Auto-generated next harvest estimation based on previous "
            f"harvest of {activity.actual_kg:g}kg"
        ),
        origin=ActivityOrigin.SYSTEM.value,
        created_by=user.id,
    )
    db.add(estimate)
    await db.flush()

    logger.info(
        "Harvest estimate: %skg scheduled for %s on %s",
        estimate_kg, land_plot.name, next_date.isoformat(),
    )

    return HarvestIntegration(inventory_entry=entry, estimate=estimate)
