"""Aggregate model imports so every table is registered on Base.metadata
(Alembic auto-detection and ``create_all`` in tests)."""

# ── Organisation / access ────────────────────────────────────
from kopitrace.models.cooperative import Cooperative
from kopitrace.models.user import User, UserCooperative, UserRole

# ── Farms ────────────────────────────────────────────────────
from kopitrace.models.farmer import Farmer
from kopitrace.models.land_plot import LandPlot, LandPlotStatus
from kopitrace.models.activity import (
    Activity, ActivityKind, ActivityOrigin, ActivityStatus,
)

# ── Inventory / lineage ──────────────────────────────────────
from kopitrace.models.inventory import InventoryDirection, InventoryEntry
from kopitrace.models.inventory_transaction import (
    InventoryTransaction, TransactionOperation, TransactionType,
)
from kopitrace.models.quality_checkpoint import (
    CheckpointStatus, CheckpointType, QualityCheckpoint,
)

# ── Audit ────────────────────────────────────────────────────
from kopitrace.models.audit_log import AuditLog

__all__ = [
    "Cooperative", "User", "UserCooperative", "UserRole",
    "Farmer", "LandPlot", "LandPlotStatus",
    "Activity", "ActivityKind", "ActivityOrigin", "ActivityStatus",
    "InventoryDirection", "InventoryEntry",
    "InventoryTransaction", "TransactionOperation", "TransactionType",
    "CheckpointStatus", "CheckpointType", "QualityCheckpoint",
    "AuditLog",
]
