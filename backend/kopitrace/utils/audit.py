"""Lightweight helper for recording audit log entries.

Usage:
    await log_activity(
        db, user, action="created", entity_type="activity",
        entity_id=activity.id,
        summary="Recorded PANEN on land plot 3",
    )

The row is added to the current session and committed with the
enclosing transaction; no extra flush is performed.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from kopitrace.models.audit_log import AuditLog
from kopitrace.models.user import User


async def log_activity(
    db: AsyncSession,
    user: User,
    *,
    action: str,
    entity_type: str,
    entity_id: int | str | None = None,
    summary: str | None = None,
    details: dict | None = None,
) -> None:
    """Append an audit log entry to the current DB session."""
    entry = AuditLog(
        user_id=user.id,
        user_name=user.full_name,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        summary=summary,
        details=details,
    )
    db.add(entry)
