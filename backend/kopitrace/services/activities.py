"""Activity recorder: create and update farming activities.

Each write runs in one transaction together with any harvest integration
side effects (see ``kopitrace.services.harvest``):

    BEGIN
      INSERT/UPDATE activity
      [INSERT inventory batch, INSERT next estimate]   ← completed harvests only
      INSERT audit log
    COMMIT  (or ROLLBACK of everything on any store error)
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from kopitrace.auth.deps import ensure_cooperative_access
from kopitrace.middleware.exceptions import ResourceNotFoundError, store_failure
from kopitrace.models.activity import Activity, ActivityOrigin
from kopitrace.models.land_plot import LandPlot
from kopitrace.models.user import User
from kopitrace.schemas.activity import ActivityWrite
from kopitrace.services.harvest import integrate_harvest, is_harvest_completion
from kopitrace.utils.audit import log_activity

logger = logging.getLogger(__name__)


async def load_land_plot(db: AsyncSession, land_plot_id: int) -> LandPlot:
    """Load a land plot with its farmer, or raise 404."""
    result = await db.execute(
        select(LandPlot)
        .where(LandPlot.id == land_plot_id)
        .options(selectinload(LandPlot.farmer))
    )
    land_plot = result.scalar_one_or_none()
    if not land_plot:
        raise ResourceNotFoundError("Land plot", land_plot_id)
    return land_plot


def _apply(activity: Activity, body: ActivityWrite) -> None:
    activity.land_plot_id = body.land_plot_id
    activity.kind = body.kind.value
    activity.activity_date = body.activity_date
    activity.estimate_date = body.estimate_date
    activity.estimated_kg = body.estimated_kg
    activity.actual_kg = body.actual_kg
    activity.seed_variety = body.seed_variety
    activity.status = body.status.value
    activity.note = body.note
    # SYSTEM is set by harvest integration only; a client may mark MANUAL
    if body.origin is ActivityOrigin.MANUAL:
        activity.origin = body.origin.value


async def create_activity(body: ActivityWrite, user: User, db: AsyncSession) -> Activity:
    """Record a new activity, integrating it if it is a completed harvest.

    Raises:
        ResourceNotFoundError: the land plot does not exist (nothing is written)
        PermissionDeniedError: the caller cannot write to the plot's cooperative
        IntegrityFailure / TransientStoreFailure: the transaction was rolled back
    """
    land_plot = await load_land_plot(db, body.land_plot_id)
    await ensure_cooperative_access(user, land_plot.cooperative_id, db)

    try:
        activity = Activity(origin=ActivityOrigin.MANUAL.value, created_by=user.id)
        _apply(activity, body)
        db.add(activity)
        await db.flush()  # populate activity.id

        integration = None
        if is_harvest_completion(activity.kind, activity.status, activity.actual_kg):
            integration = await integrate_harvest(db, activity, land_plot, user)

        await log_activity(
            db, user,
            action="created",
            entity_type="activity",
            entity_id=activity.id,
            summary=f"Recorded {activity.kind} on {land_plot.name} ({activity.status})",
            details=_integration_details(integration),
        )
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error(
            "Activity creation rolled back for land plot %s", body.land_plot_id,
            exc_info=True,
        )
        raise store_failure(exc, "Failed to record activity") from exc

    return activity


async def update_activity(
    activity_id: int,
    body: ActivityWrite,
    user: User,
    db: AsyncSession,
) -> Activity:
    """Replace an activity's fields.

    The harvest pipeline fires only when this update moves the activity
    into SELESAI; re-saving an already completed harvest, or moving it back
    to TERJADWAL, has no side effects.

    The caller needs write access to the cooperative that owns the stored
    activity and, when the activity moves plots, to the new plot's one too.
    """
    result = await db.execute(select(Activity).where(Activity.id == activity_id))
    activity = result.scalar_one_or_none()
    if not activity:
        raise ResourceNotFoundError("Activity", activity_id)

    current_plot = await load_land_plot(db, activity.land_plot_id)
    await ensure_cooperative_access(user, current_plot.cooperative_id, db)

    land_plot = current_plot
    if body.land_plot_id != activity.land_plot_id:
        land_plot = await load_land_plot(db, body.land_plot_id)
        if land_plot.cooperative_id != current_plot.cooperative_id:
            await ensure_cooperative_access(user, land_plot.cooperative_id, db)

    previous_status = activity.status

    try:
        _apply(activity, body)
        await db.flush()

        integration = None
        if is_harvest_completion(
            activity.kind, activity.status, activity.actual_kg, previous_status
        ):
            integration = await integrate_harvest(db, activity, land_plot, user)

        await log_activity(
            db, user,
            action="updated",
            entity_type="activity",
            entity_id=activity.id,
            summary=f"Updated {activity.kind} on {land_plot.name}: {previous_status} → {activity.status}",
            details=_integration_details(integration),
        )
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Activity %s update rolled back", activity_id, exc_info=True)
        raise store_failure(exc, "Failed to update activity") from exc

    return activity


def _integration_details(integration) -> dict | None:
    if integration is None:
        return None
    return {
        "batch_id": integration.inventory_entry.batch_id,
        "inventory_id": integration.inventory_entry.id,
        "estimate_activity_id": integration.estimate.id,
        "estimated_kg": integration.estimate.estimated_kg,
    }
