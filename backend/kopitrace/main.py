import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from kopitrace.config import settings
from kopitrace.middleware.exceptions import register_exception_handlers
from kopitrace.middleware.security import SecurityHeadersMiddleware
from kopitrace.routers import (
    activities,
    health,
    inventory,
    quality,
    traceability,
    transactions,
)

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = FastAPI(
    title="KopiTrace",
    description="Coffee cooperative harvest integration and batch traceability",
    version="0.1.0",
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware (outermost first) ─────────────────────────────
app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)

app.include_router(activities.router, prefix="/api/aktivitas", tags=["activities"])
# Traceability before inventory so /traceability/... never reaches /{inventory_id}
app.include_router(
    traceability.router, prefix="/api/inventory/traceability", tags=["traceability"]
)
app.include_router(inventory.router, prefix="/api/inventory", tags=["inventory"])
app.include_router(
    transactions.router, prefix="/api/transaksi-inventory", tags=["inventory-transactions"]
)
app.include_router(quality.router, prefix="/api/quality", tags=["quality"])
