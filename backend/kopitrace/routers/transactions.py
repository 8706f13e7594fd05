"""Inventory transaction routes (``/api/transaksi-inventory``).

A transaction records the business event behind an inventory movement:
a purchase or harvest intake from a farmer, a distribution, a sale, or a
processing step.  PANEN transactions are how the traceability report
finds farms for batches that did not come from the harvest pipeline.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
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
from kopitrace.models.inventory import InventoryEntry
from kopitrace.models.inventory_transaction import InventoryTransaction, TransactionOperation
from kopitrace.models.user import User
from kopitrace.schemas.common import MessageResponse
from kopitrace.schemas.inventory import TransactionOut, TransactionWrite
from kopitrace.utils.audit import log_activity

router = APIRouter()


async def _get_transaction(db: AsyncSession, transaction_id: int) -> InventoryTransaction:
    result = await db.execute(
        select(InventoryTransaction).where(InventoryTransaction.id == transaction_id)
    )
    txn = result.scalar_one_or_none()
    if not txn:
        raise ResourceNotFoundError("Transaction", transaction_id)
    return txn


async def _check_inventory(db: AsyncSession, user: User, body: TransactionWrite) -> InventoryEntry:
    """The entry must exist, be writable by the caller and share the
    transaction's cooperative."""
    entry = await db.get(InventoryEntry, body.inventory_id)
    if entry is None:
        raise ResourceNotFoundError("Inventory", body.inventory_id)
    await ensure_cooperative_access(user, entry.cooperative_id, db)
    if entry.cooperative_id != body.cooperative_id:
        raise BusinessLogicError(
            f"Inventory {entry.id} belongs to cooperative {entry.cooperative_id}, "
            f"not {body.cooperative_id}",
            error_code="COOPERATIVE_MISMATCH",
        )
    return entry


def _apply(txn: InventoryTransaction, body: TransactionWrite) -> None:
    txn.inventory_id = body.inventory_id
    txn.cooperative_id = body.cooperative_id
    txn.transaction_type = body.transaction_type.value
    txn.operation = body.operation.value
    txn.transaction_date = body.transaction_date
    txn.quantity = body.quantity
    txn.farmer_id = body.farmer_id
    txn.land_plot_id = body.land_plot_id
    txn.buyer = body.buyer
    txn.total_price = body.total_price
    txn.note = body.note
    txn.external_marketplace_ref = body.external_marketplace_ref


@router.get("", response_model=list[TransactionOut])
async def list_transactions(
    inventory_id: int | None = Query(None),
    jenis_operasi: TransactionOperation | None = Query(None),
    limit: int = Query(200, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    cooperative_ids = await get_accessible_cooperative_ids(user, db)

    stmt = select(InventoryTransaction).where(
        InventoryTransaction.cooperative_id.in_(cooperative_ids)
    )
    if inventory_id is not None:
        stmt = stmt.where(InventoryTransaction.inventory_id == inventory_id)
    if jenis_operasi is not None:
        stmt = stmt.where(InventoryTransaction.operation == jenis_operasi.value)

    stmt = (
        stmt.order_by(
            InventoryTransaction.transaction_date.desc(), InventoryTransaction.id.desc()
        )
        .limit(limit)
        .offset(offset)
    )
    result = await db.execute(stmt)
    return [TransactionOut.model_validate(t) for t in result.scalars().all()]


@router.get("/{transaction_id}", response_model=TransactionOut)
async def get_transaction(
    transaction_id: int,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return TransactionOut.model_validate(await _get_transaction(db, transaction_id))


@router.post("", response_model=TransactionOut, status_code=status.HTTP_201_CREATED)
async def create_transaction(
    body: TransactionWrite,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_role(*WRITE_ROLES)),
):
    await ensure_cooperative_access(user, body.cooperative_id, db)
    await _check_inventory(db, user, body)

    txn = InventoryTransaction()
    _apply(txn, body)
    db.add(txn)
    await db.flush()

    await log_activity(
        db, user,
        action="created",
        entity_type="inventory_transaction",
        entity_id=txn.id,
        summary=f"{txn.operation} {txn.quantity:g} on inventory {txn.inventory_id}",
    )
    await db.flush()
    return TransactionOut.model_validate(txn)


@router.put("/{transaction_id}", response_model=TransactionOut)
async def update_transaction(
    transaction_id: int,
    body: TransactionWrite,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_role(*WRITE_ROLES)),
):
    txn = await _get_transaction(db, transaction_id)
    await ensure_cooperative_access(user, txn.cooperative_id, db)
    if body.cooperative_id != txn.cooperative_id:
        await ensure_cooperative_access(user, body.cooperative_id, db)
    await _check_inventory(db, user, body)

    _apply(txn, body)
    await log_activity(
        db, user,
        action="updated",
        entity_type="inventory_transaction",
        entity_id=txn.id,
        summary=f"Updated transaction {txn.id}",
    )
    await db.flush()
    return TransactionOut.model_validate(txn)


@router.delete("/{transaction_id}", response_model=MessageResponse)
async def delete_transaction(
    transaction_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_role(*WRITE_ROLES)),
):
    txn = await _get_transaction(db, transaction_id)
    await ensure_cooperative_access(user, txn.cooperative_id, db)

    await db.delete(txn)
    await log_activity(
        db, user,
        action="deleted",
        entity_type="inventory_transaction",
        entity_id=transaction_id,
        summary=f"Deleted transaction {transaction_id}",
    )
    await db.flush()
    return MessageResponse(message="Transaction deleted")
