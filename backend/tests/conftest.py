"""Pytest configuration and fixtures for KopiTrace tests.

Every test gets its own SQLite database (aiosqlite) built from the ORM
metadata, an ``httpx.AsyncClient`` wired to the app with ``get_db``
overridden, and a seeded cooperative / farmer / land plot / users.
"""

from types import SimpleNamespace
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from kopitrace.auth.jwt import create_access_token
from kopitrace.database import Base, get_db
from kopitrace.main import app
from kopitrace.models import (
    Cooperative,
    Farmer,
    InventoryEntry,
    LandPlot,
    User,
    UserCooperative,
    UserRole,
)


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Fresh SQLite database file per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'kopitrace.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with overridden database dependency."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    # Let unhandled errors come back as 500 responses, as they would in production
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def fetch_all(session_factory):
    """Run a SELECT in a short-lived session and return the scalars.

    Each call opens and closes its own session so no read transaction is
    left holding the SQLite file while the API writes.
    """
    async def _fetch(stmt) -> list:
        async with session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    return _fetch


@pytest.fixture
def add_entries(session_factory):
    """Insert inventory entries directly and return their ids."""
    async def _add(*entries: InventoryEntry) -> list[int]:
        async with session_factory() as session:
            session.add_all(entries)
            await session.commit()
            return [e.id for e in entries]

    return _add


# ── Test Data Fixtures ───────────────────────────────────────────

@pytest_asyncio.fixture
async def seed(session_factory) -> SimpleNamespace:
    """Two cooperatives, each with a farmer and a land plot, and a user per role."""
    async with session_factory() as session:
        gayo = Cooperative(
            name="Koperasi Kopi Gayo",
            address="Jl. Lebe Kader No. 12, Takengon",
            province="Aceh",
            regency="Aceh Tengah",
            contact_person="Rahmah",
            phone="081234567890",
        )
        kintamani = Cooperative(
            name="Koperasi Kopi Kintamani",
            address="Jl. Raya Penelokan, Kintamani",
            province="Bali",
            regency="Bangli",
        )
        session.add_all([gayo, kintamani])
        await session.flush()

        farmer = Farmer(
            cooperative_id=gayo.id,
            name="Ahmad Syukri",
            contact="081298765432",
            address="Desa Pegasing, Aceh Tengah",
        )
        other_farmer = Farmer(
            cooperative_id=kintamani.id,
            name="I Wayan Sudarsa",
            address="Desa Catur, Kintamani",
        )
        session.add_all([farmer, other_farmer])
        await session.flush()

        land_plot = LandPlot(
            cooperative_id=gayo.id,
            farmer_id=farmer.id,
            name="Kebun Atas",
            location="Pegasing",
            area_hectares=1.5,
            estimated_tree_count=2500,
            dominant_coffee_variety="Arabika Gayo 1",
        )
        other_land_plot = LandPlot(
            cooperative_id=kintamani.id,
            farmer_id=other_farmer.id,
            name="Kebun Batur",
            location="Catur",
            area_hectares=0.8,
            estimated_tree_count=1200,
            dominant_coffee_variety="Kopyol",
        )
        admin = User(email="admin@gayo.coop", full_name="Admin Gayo", role=UserRole.ADMIN)
        operator = User(email="operator@gayo.coop", full_name="Operator Gayo", role=UserRole.OPERATOR)
        super_admin = User(email="root@kopitrace.id", full_name="Super Admin", role=UserRole.SUPER_ADMIN)
        outsider = User(email="admin@kintamani.coop", full_name="Admin Kintamani", role=UserRole.ADMIN)
        session.add_all([land_plot, other_land_plot, admin, operator, super_admin, outsider])
        await session.flush()

        session.add_all([
            UserCooperative(user_id=admin.id, cooperative_id=gayo.id, cooperative_role="ADMIN"),
            UserCooperative(user_id=operator.id, cooperative_id=gayo.id, cooperative_role="OPERATOR"),
            UserCooperative(user_id=outsider.id, cooperative_id=kintamani.id, cooperative_role="ADMIN"),
        ])
        await session.commit()

        return SimpleNamespace(
            cooperative_id=gayo.id,
            other_cooperative_id=kintamani.id,
            farmer_id=farmer.id,
            land_plot_id=land_plot.id,
            other_land_plot_id=other_land_plot.id,
            admin_id=admin.id,
            operator_id=operator.id,
            super_admin_id=super_admin.id,
            outsider_id=outsider.id,
        )


def _bearer(user_id: int, role: UserRole) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id, role.value)}"}


@pytest.fixture
def auth_headers(seed) -> dict:
    """ADMIN of the seeded cooperative."""
    return _bearer(seed.admin_id, UserRole.ADMIN)


@pytest.fixture
def operator_headers(seed) -> dict:
    return _bearer(seed.operator_id, UserRole.OPERATOR)


@pytest.fixture
def super_admin_headers(seed) -> dict:
    return _bearer(seed.super_admin_id, UserRole.SUPER_ADMIN)


@pytest.fixture
def outsider_headers(seed) -> dict:
    """ADMIN of the other cooperative only."""
    return _bearer(seed.outsider_id, UserRole.ADMIN)


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "api: API endpoint tests")
