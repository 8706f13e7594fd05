"""Farming activity routes (``/api/aktivitas``).

Writes go through ``kopitrace.services.activities`` so that completed
harvests are integrated into inventory in the same transaction.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from kopitrace.auth.deps import (
    WRITE_ROLES,
    ensure_cooperative_access,
    get_accessible_cooperative_ids,
    get_current_user,
    require_role,
)
from kopitrace.database import get_db
from kopitrace.middleware.exceptions import ResourceNotFoundError
from kopitrace.models.activity import Activity, ActivityKind, ActivityStatus
from kopitrace.models.land_plot import LandPlot
from kopitrace.models.user import User
from kopitrace.schemas.activity import (
    ActivityListItem,
    ActivityOut,
    ActivityWrite,
    UpcomingHarvest,
    UpcomingHarvestResponse,
)
from kopitrace.schemas.common import MessageResponse
from kopitrace.services.activities import create_activity, update_activity
from kopitrace.services.harvest import add_months
from kopitrace.utils.audit import log_activity

router = APIRouter()


def _list_item(activity: Activity) -> ActivityListItem:
    land_plot = activity.land_plot
    return ActivityListItem(
        **ActivityOut.model_validate(activity).model_dump(),
        land_plot_name=land_plot.name if land_plot else None,
        cooperative_id=land_plot.cooperative_id if land_plot else None,
        farmer_name=land_plot.farmer.name if land_plot and land_plot.farmer else None,
    )


# ── List ─────────────────────────────────────────────────────

@router.get("", response_model=list[ActivityListItem])
async def list_activities(
    lahan_id: int | None = Query(None),
    jenis_aktivitas: ActivityKind | None = Query(None),
    status_filter: ActivityStatus | None = Query(None, alias="status"),
    limit: int = Query(200, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Activities on land plots of the caller's cooperatives, newest first."""
    cooperative_ids = await get_accessible_cooperative_ids(user, db)

    stmt = (
        select(Activity)
        .join(LandPlot, Activity.land_plot_id == LandPlot.id)
        .where(LandPlot.cooperative_id.in_(cooperative_ids))
        .options(selectinload(Activity.land_plot).selectinload(LandPlot.farmer))
    )
    if lahan_id is not None:
        stmt = stmt.where(Activity.land_plot_id == lahan_id)
    if jenis_aktivitas is not None:
        stmt = stmt.where(Activity.kind == jenis_aktivitas.value)
    if status_filter is not None:
        stmt = stmt.where(Activity.status == status_filter.value)

    stmt = (
        stmt.order_by(Activity.activity_date.desc(), Activity.id.desc())
        .limit(limit)
        .offset(offset)
    )
    result = await db.execute(stmt)
    return [_list_item(a) for a in result.scalars().all()]


# ── Upcoming harvest estimates ───────────────────────────────
# Registered before /{activity_id} so the path is not parsed as an id.

@router.get("/estimasi-panen-upcoming", response_model=UpcomingHarvestResponse)
async def upcoming_harvests(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Scheduled harvest estimates falling in the next three months."""
    cooperative_ids = await get_accessible_cooperative_ids(user, db)
    today = date.today()

    result = await db.execute(
        select(Activity)
        .join(LandPlot, Activity.land_plot_id == LandPlot.id)
        .where(
            LandPlot.cooperative_id.in_(cooperative_ids),
            Activity.kind == ActivityKind.HARVEST_ESTIMATE.value,
            Activity.status == ActivityStatus.SCHEDULED.value,
            Activity.estimate_date >= today,
            Activity.estimate_date <= add_months(today, 3),
        )
        .options(selectinload(Activity.land_plot).selectinload(LandPlot.farmer))
        .order_by(Activity.estimate_date)
    )
    harvests = []
    for a in result.scalars().all():
        farmer = a.land_plot.farmer
        harvests.append(UpcomingHarvest(
            id=a.id,
            land_plot_id=a.land_plot_id,
            estimate_date=a.estimate_date,
            estimated_kg=a.estimated_kg,
            note=a.note,
            land_plot_name=a.land_plot.name,
            coffee_variety=a.land_plot.dominant_coffee_variety,
            farmer_name=farmer.name if farmer else None,
            farmer_contact=farmer.contact if farmer else None,
        ))

    return UpcomingHarvestResponse(
        upcoming_harvests=harvests,
        total_estimated_kg=sum(h.estimated_kg or 0 for h in harvests),
        count=len(harvests),
    )


# ── Single activity ──────────────────────────────────────────

@router.get("/{activity_id}", response_model=ActivityListItem)
async def get_activity(
    activity_id: int,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    result = await db.execute(
        select(Activity)
        .where(Activity.id == activity_id)
        .options(selectinload(Activity.land_plot).selectinload(LandPlot.farmer))
    )
    activity = result.scalar_one_or_none()
    if not activity:
        raise ResourceNotFoundError("Activity", activity_id)
    return _list_item(activity)


@router.post("", response_model=ActivityOut, status_code=status.HTTP_201_CREATED)
async def record_activity(
    body: ActivityWrite,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_role(*WRITE_ROLES)),
):
    """Record an activity.

    A PANEN activity saved as SELESAI with ``jumlah_aktual_kg`` > 0 also
    creates an inbound inventory batch and the next harvest estimate.
    """
    activity = await create_activity(body, user, db)
    return ActivityOut.model_validate(activity)


@router.put("/{activity_id}", response_model=ActivityOut)
async def replace_activity(
    activity_id: int,
    body: ActivityWrite,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_role(*WRITE_ROLES)),
):
    activity = await update_activity(activity_id, body, user, db)
    return ActivityOut.model_validate(activity)


@router.delete("/{activity_id}", response_model=MessageResponse)
async def delete_activity(
    activity_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_role(*WRITE_ROLES)),
):
    """Delete an activity.  Inventory it produced stays, unlinked."""
    result = await db.execute(
        select(Activity)
        .where(Activity.id == activity_id)
        .options(selectinload(Activity.land_plot))
    )
    activity = result.scalar_one_or_none()
    if not activity:
        raise ResourceNotFoundError("Activity", activity_id)
    await ensure_cooperative_access(user, activity.land_plot.cooperative_id, db)

    await db.delete(activity)
    await log_activity(
        db, user,
        action="deleted",
        entity_type="activity",
        entity_id=activity_id,
        summary=f"Deleted {activity.kind} activity {activity_id}",
    )
    await db.flush()
    return MessageResponse(message="Activity deleted")
