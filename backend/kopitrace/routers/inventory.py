"""Inventory entry routes (``/api/inventory``).

Entries are scoped to the caller's cooperatives.  Lineage reads over
``batch_id`` / ``parent_batch_id`` live in ``routers.traceability``.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from kopitrace.auth.deps import (
    WRITE_ROLES,
    ensure_cooperative_access,
    get_accessible_cooperative_ids,
    get_current_user,
    require_role,
)
from kopitrace.database import get_db
from kopitrace.middleware.exceptions import BusinessLogicError, ResourceNotFoundError
from kopitrace.models.inventory import InventoryDirection, InventoryEntry
from kopitrace.models.inventory_transaction import InventoryTransaction
from kopitrace.models.user import User
from kopitrace.schemas.common import MessageResponse
from kopitrace.schemas.inventory import InventoryOut, InventoryWrite
from kopitrace.utils.audit import log_activity

router = APIRouter()


async def _get_entry(db: AsyncSession, inventory_id: int) -> InventoryEntry:
    result = await db.execute(
        select(InventoryEntry).where(InventoryEntry.id == inventory_id)
    )
    entry = result.scalar_one_or_none()
    if not entry:
        raise ResourceNotFoundError("Inventory", inventory_id)
    return entry


def _apply(entry: InventoryEntry, body: InventoryWrite) -> None:
    entry.cooperative_id = body.cooperative_id
    entry.item_name = body.item_name
    entry.direction = body.direction.value
    entry.entry_date = body.entry_date
    entry.quantity = body.quantity
    entry.unit = body.unit
    entry.batch_id = body.batch_id
    entry.parent_batch_id = body.parent_batch_id
    entry.note = body.note
    entry.external_marketplace_ref = body.external_marketplace_ref


@router.get("", response_model=list[InventoryOut])
async def list_inventory(
    koperasi_id: int | None = Query(None),
    batch_id: str | None = Query(None),
    tipe_transaksi: InventoryDirection | None = Query(None),
    limit: int = Query(200, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    cooperative_ids = await get_accessible_cooperative_ids(user, db)

    stmt = select(InventoryEntry).where(InventoryEntry.cooperative_id.in_(cooperative_ids))
    if koperasi_id is not None:
        stmt = stmt.where(InventoryEntry.cooperative_id == koperasi_id)
    if batch_id:
        stmt = stmt.where(InventoryEntry.batch_id == batch_id)
    if tipe_transaksi is not None:
        stmt = stmt.where(InventoryEntry.direction == tipe_transaksi.value)

    stmt = (
        stmt.order_by(InventoryEntry.entry_date.desc(), InventoryEntry.id.desc())
        .limit(limit)
        .offset(offset)
    )
    result = await db.execute(stmt)
    return [InventoryOut.model_validate(e) for e in result.scalars().all()]


@router.get("/{inventory_id}", response_model=InventoryOut)
async def get_inventory(
    inventory_id: int,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return InventoryOut.model_validate(await _get_entry(db, inventory_id))


@router.post("", response_model=InventoryOut, status_code=status.HTTP_201_CREATED)
async def create_inventory(
    body: InventoryWrite,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_role(*WRITE_ROLES)),
):
    """Record an inventory movement.

    ``parent_batch_id`` links the entry to the batch it was made from;
    the referenced batch does not have to exist yet.
    """
    await ensure_cooperative_access(user, body.cooperative_id, db)

    entry = InventoryEntry(created_by=user.id)
    _apply(entry, body)
    db.add(entry)
    await db.flush()

    await log_activity(
        db, user,
        action="created",
        entity_type="inventory",
        entity_id=entry.id,
        summary=f"{entry.direction} {entry.quantity:g} {entry.unit} {entry.item_name}",
        details={"batch_id": entry.batch_id, "parent_batch_id": entry.parent_batch_id},
    )
    await db.flush()
    return InventoryOut.model_validate(entry)


@router.put("/{inventory_id}", response_model=InventoryOut)
async def update_inventory(
    inventory_id: int,
    body: InventoryWrite,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_role(*WRITE_ROLES)),
):
    entry = await _get_entry(db, inventory_id)
    await ensure_cooperative_access(user, entry.cooperative_id, db)
    if body.cooperative_id != entry.cooperative_id:
        await ensure_cooperative_access(user, body.cooperative_id, db)

    _apply(entry, body)
    await log_activity(
        db, user,
        action="updated",
        entity_type="inventory",
        entity_id=entry.id,
        summary=f"Updated inventory {entry.id} ({entry.item_name})",
    )
    await db.flush()
    return InventoryOut.model_validate(entry)


@router.delete("/{inventory_id}", response_model=MessageResponse)
async def delete_inventory(
    inventory_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_role(*WRITE_ROLES)),
):
    entry = await _get_entry(db, inventory_id)
    await ensure_cooperative_access(user, entry.cooperative_id, db)

    txn_count = await db.scalar(
        select(func.count(InventoryTransaction.id))
        .where(InventoryTransaction.inventory_id == inventory_id)
    )
    if txn_count:
        raise BusinessLogicError(
            f"Inventory {inventory_id} has {txn_count} transaction(s); delete them first",
            error_code="INVENTORY_IN_USE",
        )

    await db.delete(entry)
    await log_activity(
        db, user,
        action="deleted",
        entity_type="inventory",
        entity_id=inventory_id,
        summary=f"Deleted inventory {inventory_id} ({entry.item_name})",
    )
    await db.flush()
    return MessageResponse(message="Inventory deleted")
