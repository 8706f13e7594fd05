"""Activity recording and the harvest-to-inventory pipeline."""

import re
from datetime import date

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from kopitrace.models import Activity, AuditLog, InventoryEntry
from kopitrace.services import harvest


def _harvest_body(seed, **overrides) -> dict:
    body = {
        "lahan_id": seed.land_plot_id,
        "jenis_aktivitas": "PANEN",
        "tanggal_aktivitas": "2024-03-15",
        "status": "SELESAI",
        "jumlah_aktual_kg": 200,
        "keterangan": "Petik merah",
    }
    body.update(overrides)
    return body


async def _estimates(fetch_all) -> list[Activity]:
    return await fetch_all(select(Activity).where(Activity.kind == "ESTIMASI_PANEN"))


@pytest.mark.api
@pytest.mark.asyncio
class TestCompletedHarvest:
    """A PANEN activity recorded as SELESAI with a weight."""

    async def test_creates_inbound_batch(self, client: AsyncClient, seed, auth_headers, fetch_all):
        resp = await client.post("/api/aktivitas", json=_harvest_body(seed), headers=auth_headers)

        assert resp.status_code == 201
        activity = resp.json()
        assert activity["lahan_id"] == seed.land_plot_id
        assert activity["jenis_aktivitas"] == "PANEN"
        assert activity["jumlah_aktual_kg"] == 200

        entries = await fetch_all(select(InventoryEntry))
        assert len(entries) == 1
        entry = entries[0]
        assert entry.source_activity_id == activity["aktivitas_id"]
        assert entry.cooperative_id == seed.cooperative_id
        assert entry.direction == "MASUK"
        assert entry.quantity == 200
        assert entry.unit == "kg"
        assert entry.entry_date == date(2024, 3, 15)
        assert entry.item_name == "Cherry from Kebun Atas"
        assert re.fullmatch(rf"BATCH-\d+-{seed.land_plot_id}", entry.batch_id)
        assert entry.parent_batch_id is None
        assert entry.note == (
            f"Harvest from Kebun Atas - Ahmad Syukri - Activity ID: {activity['aktivitas_id']}"
        )

    async def test_schedules_next_estimate(self, client: AsyncClient, seed, auth_headers, fetch_all):
        resp = await client.post("/api/aktivitas", json=_harvest_body(seed), headers=auth_headers)
        assert resp.status_code == 201

        estimates = await _estimates(fetch_all)
        assert len(estimates) == 1
        estimate = estimates[0]
        assert estimate.land_plot_id == seed.land_plot_id
        assert estimate.activity_date == date(2024, 9, 15)
        assert estimate.estimate_date == date(2024, 9, 15)
        assert estimate.estimated_kg == 210
        assert estimate.status == "TERJADWAL"
        assert estimate.origin == "SYSTEM"
        assert estimate.note == (
            "Auto-generated next harvest estimation based on previous harvest of 200kg"
        )

    async def test_estimate_rounds_half_up(self, client: AsyncClient, seed, auth_headers, fetch_all):
        body = _harvest_body(seed, jumlah_aktual_kg=157)
        resp = await client.post("/api/aktivitas", json=body, headers=auth_headers)
        assert resp.status_code == 201

        [estimate] = await _estimates(fetch_all)
        # 157 × 1.05 = 164.85
        assert estimate.estimated_kg == 165

    async def test_estimate_date_clamps_to_month_end(
        self, client: AsyncClient, seed, auth_headers, fetch_all
    ):
        body = _harvest_body(seed, tanggal_aktivitas="2024-08-31")
        resp = await client.post("/api/aktivitas", json=body, headers=auth_headers)
        assert resp.status_code == 201

        [estimate] = await _estimates(fetch_all)
        assert estimate.activity_date == date(2025, 2, 28)

    async def test_operator_may_record(self, client: AsyncClient, seed, operator_headers, fetch_all):
        resp = await client.post("/api/aktivitas", json=_harvest_body(seed), headers=operator_headers)

        assert resp.status_code == 201
        assert len(await fetch_all(select(InventoryEntry))) == 1

    async def test_writes_audit_log(self, client: AsyncClient, seed, auth_headers, fetch_all):
        resp = await client.post("/api/aktivitas", json=_harvest_body(seed), headers=auth_headers)
        assert resp.status_code == 201

        [log] = await fetch_all(select(AuditLog))
        assert log.user_id == seed.admin_id
        assert log.entity_type == "activity"
        assert log.entity_id == str(resp.json()["aktivitas_id"])
        assert log.details["batch_id"].startswith("BATCH-")
        assert log.details["estimated_kg"] == 210


@pytest.mark.api
@pytest.mark.asyncio
class TestNoSideEffects:
    """Activities that must not touch inventory."""

    async def test_scheduled_harvest(self, client: AsyncClient, seed, auth_headers, fetch_all):
        body = _harvest_body(seed, status="TERJADWAL")
        resp = await client.post("/api/aktivitas", json=body, headers=auth_headers)

        assert resp.status_code == 201
        assert await fetch_all(select(InventoryEntry)) == []
        assert len(await fetch_all(select(Activity))) == 1

    async def test_completed_harvest_without_weight(
        self, client: AsyncClient, seed, auth_headers, fetch_all
    ):
        body = _harvest_body(seed, jumlah_aktual_kg=0)
        resp = await client.post("/api/aktivitas", json=body, headers=auth_headers)

        assert resp.status_code == 201
        assert await fetch_all(select(InventoryEntry)) == []
        assert await _estimates(fetch_all) == []

    async def test_planting(self, client: AsyncClient, seed, auth_headers, fetch_all):
        body = _harvest_body(
            seed, jenis_aktivitas="TANAM", jumlah_aktual_kg=None, jenis_bibit="Gayo 2"
        )
        resp = await client.post("/api/aktivitas", json=body, headers=auth_headers)

        assert resp.status_code == 201
        assert resp.json()["jenis_bibit"] == "Gayo 2"
        assert await fetch_all(select(InventoryEntry)) == []


@pytest.mark.api
@pytest.mark.asyncio
class TestHarvestUpdate:
    """PUT /api/aktivitas/{id} fires the pipeline only on the transition into SELESAI."""

    async def test_transition_into_done_fires_once(
        self, client: AsyncClient, seed, auth_headers, fetch_all
    ):
        created = await client.post(
            "/api/aktivitas",
            json=_harvest_body(seed, status="TERJADWAL", jumlah_aktual_kg=None),
            headers=auth_headers,
        )
        activity_id = created.json()["aktivitas_id"]

        resp = await client.put(
            f"/api/aktivitas/{activity_id}",
            json=_harvest_body(seed, jumlah_aktual_kg=120),
            headers=auth_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "SELESAI"

        entries = await fetch_all(select(InventoryEntry))
        assert [e.source_activity_id for e in entries] == [activity_id]
        assert entries[0].quantity == 120
        [estimate] = await _estimates(fetch_all)
        assert estimate.estimated_kg == 126

        # Saving the completed harvest again changes nothing downstream
        resp = await client.put(
            f"/api/aktivitas/{activity_id}",
            json=_harvest_body(seed, jumlah_aktual_kg=120, keterangan="Koreksi catatan"),
            headers=auth_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["keterangan"] == "Koreksi catatan"
        assert len(await fetch_all(select(InventoryEntry))) == 1
        assert len(await _estimates(fetch_all)) == 1

    async def test_reopened_harvest_is_not_integrated_twice(
        self, client: AsyncClient, seed, auth_headers, fetch_all
    ):
        created = await client.post("/api/aktivitas", json=_harvest_body(seed), headers=auth_headers)
        activity_id = created.json()["aktivitas_id"]

        reopened = await client.put(
            f"/api/aktivitas/{activity_id}",
            json=_harvest_body(seed, status="TERJADWAL"),
            headers=auth_headers,
        )
        assert reopened.status_code == 200

        completed = await client.put(
            f"/api/aktivitas/{activity_id}",
            json=_harvest_body(seed),
            headers=auth_headers,
        )
        assert completed.status_code == 200

        assert len(await fetch_all(select(InventoryEntry))) == 1
        assert len(await _estimates(fetch_all)) == 1

    async def test_only_integration_marks_system_origin(
        self, client: AsyncClient, seed, auth_headers, fetch_all
    ):
        resp = await client.post(
            "/api/aktivitas",
            json=_harvest_body(
                seed, jenis_aktivitas="TANAM", status="TERJADWAL",
                jumlah_aktual_kg=None, created_from="SYSTEM",
            ),
            headers=auth_headers,
        )
        assert resp.status_code == 201
        assert resp.json()["created_from"] == "MANUAL"

        await client.post("/api/aktivitas", json=_harvest_body(seed), headers=auth_headers)
        [estimate] = await _estimates(fetch_all)

        resp = await client.put(
            f"/api/aktivitas/{estimate.id}",
            json=_harvest_body(
                seed, jenis_aktivitas="ESTIMASI_PANEN", status="TERJADWAL",
                tanggal_aktivitas=estimate.activity_date.isoformat(),
                jumlah_estimasi_kg=250, jumlah_aktual_kg=None, created_from="SYSTEM",
            ),
            headers=auth_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["created_from"] == "SYSTEM"
        assert resp.json()["jumlah_estimasi_kg"] == 250

    async def test_unknown_activity(self, client: AsyncClient, seed, auth_headers):
        resp = await client.put("/api/aktivitas/9999", json=_harvest_body(seed), headers=auth_headers)

        assert resp.status_code == 404
        assert resp.json()["error"]["message"] == "Activity not found: 9999"


@pytest.mark.api
@pytest.mark.asyncio
class TestAtomicity:

    async def test_failed_inventory_write_rolls_back_activity(
        self, client: AsyncClient, seed, auth_headers, fetch_all, monkeypatch
    ):
        # A NULL item name violates inventory_entries.item_name NOT NULL
        monkeypatch.setattr(harvest, "harvest_item_name", lambda land_plot: None)

        resp = await client.post("/api/aktivitas", json=_harvest_body(seed), headers=auth_headers)

        assert resp.status_code == 500
        error = resp.json()["error"]
        assert error["code"] == "INTEGRITY_FAILURE"
        assert "store_error" in error["details"]

        assert await fetch_all(select(Activity)) == []
        assert await fetch_all(select(InventoryEntry)) == []
        assert await fetch_all(select(AuditLog)) == []

    async def test_unknown_land_plot_writes_nothing(
        self, client: AsyncClient, seed, auth_headers, fetch_all
    ):
        body = _harvest_body(seed, lahan_id=9999)
        resp = await client.post("/api/aktivitas", json=body, headers=auth_headers)

        assert resp.status_code == 404
        assert resp.json()["error"] == {
            "code": "RESOURCE_NOT_FOUND",
            "message": "Land plot not found: 9999",
        }
        assert await fetch_all(select(Activity)) == []
        assert await fetch_all(select(InventoryEntry)) == []


@pytest.mark.api
@pytest.mark.asyncio
class TestActivityValidation:

    async def test_reports_every_missing_field(self, client: AsyncClient, seed, auth_headers):
        resp = await client.post("/api/aktivitas", json={}, headers=auth_headers)

        assert resp.status_code == 400
        error = resp.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        fields = {e["field"] for e in error["details"]["errors"]}
        assert fields == {"lahan_id", "jenis_aktivitas", "tanggal_aktivitas", "status"}

    async def test_rejects_bad_enum_and_date(self, client: AsyncClient, seed, auth_headers, fetch_all):
        body = _harvest_body(seed, jenis_aktivitas="PETIK", tanggal_aktivitas="15/03/2024")
        resp = await client.post("/api/aktivitas", json=body, headers=auth_headers)

        assert resp.status_code == 400
        fields = {e["field"] for e in resp.json()["error"]["details"]["errors"]}
        assert fields == {"jenis_aktivitas", "tanggal_aktivitas"}
        assert await fetch_all(select(Activity)) == []

    async def test_rejects_negative_weight(self, client: AsyncClient, seed, auth_headers):
        body = _harvest_body(seed, jumlah_aktual_kg=-5)
        resp = await client.post("/api/aktivitas", json=body, headers=auth_headers)

        assert resp.status_code == 400
        [error] = resp.json()["error"]["details"]["errors"]
        assert error["field"] == "jumlah_aktual_kg"


@pytest.mark.api
@pytest.mark.asyncio
class TestActivityAccess:

    async def test_requires_token(self, client: AsyncClient, seed, fetch_all):
        resp = await client.post("/api/aktivitas", json=_harvest_body(seed))

        assert resp.status_code == 401
        assert await fetch_all(select(Activity)) == []

    async def test_rejects_invalid_token(self, client: AsyncClient, seed):
        resp = await client.post(
            "/api/aktivitas",
            json=_harvest_body(seed),
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert resp.status_code == 401

    async def test_super_admin_cannot_write(self, client: AsyncClient, seed, super_admin_headers):
        resp = await client.post(
            "/api/aktivitas", json=_harvest_body(seed), headers=super_admin_headers
        )
        assert resp.status_code == 403

    async def test_other_cooperative_cannot_write(
        self, client: AsyncClient, seed, outsider_headers, fetch_all
    ):
        resp = await client.post("/api/aktivitas", json=_harvest_body(seed), headers=outsider_headers)

        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "PERMISSION_DENIED"
        assert await fetch_all(select(Activity)) == []

    async def test_other_cooperative_cannot_take_over_activity(
        self, client: AsyncClient, seed, auth_headers, outsider_headers, fetch_all
    ):
        created = await client.post(
            "/api/aktivitas",
            json=_harvest_body(seed, jenis_aktivitas="TANAM", status="TERJADWAL"),
            headers=auth_headers,
        )
        activity_id = created.json()["aktivitas_id"]

        resp = await client.put(
            f"/api/aktivitas/{activity_id}",
            json=_harvest_body(
                seed,
                lahan_id=seed.other_land_plot_id,
                jenis_aktivitas="TANAM",
                status="TERJADWAL",
                keterangan="Pindah kebun",
            ),
            headers=outsider_headers,
        )

        assert resp.status_code == 403
        [activity] = await fetch_all(select(Activity))
        assert activity.land_plot_id == seed.land_plot_id
        assert activity.note == "Petik merah"

    async def test_cannot_move_activity_to_other_cooperative_plot(
        self, client: AsyncClient, seed, auth_headers, fetch_all
    ):
        created = await client.post(
            "/api/aktivitas",
            json=_harvest_body(seed, status="TERJADWAL"),
            headers=auth_headers,
        )
        activity_id = created.json()["aktivitas_id"]

        resp = await client.put(
            f"/api/aktivitas/{activity_id}",
            json=_harvest_body(seed, lahan_id=seed.other_land_plot_id),
            headers=auth_headers,
        )

        assert resp.status_code == 403
        [activity] = await fetch_all(select(Activity))
        assert activity.land_plot_id == seed.land_plot_id
        assert await fetch_all(select(InventoryEntry)) == []


@pytest.mark.api
@pytest.mark.asyncio
class TestActivityReads:

    async def test_list_is_scoped_to_cooperative(
        self, client: AsyncClient, seed, auth_headers, outsider_headers
    ):
        await client.post("/api/aktivitas", json=_harvest_body(seed), headers=auth_headers)

        own = await client.get("/api/aktivitas", headers=auth_headers)
        assert own.status_code == 200
        kinds = sorted(a["jenis_aktivitas"] for a in own.json())
        assert kinds == ["ESTIMASI_PANEN", "PANEN"]
        assert all(a["nama_lahan"] == "Kebun Atas" for a in own.json())
        assert all(a["petani_name"] == "Ahmad Syukri" for a in own.json())

        other = await client.get("/api/aktivitas", headers=outsider_headers)
        assert other.json() == []

    async def test_get_and_delete(self, client: AsyncClient, seed, auth_headers, fetch_all):
        created = await client.post(
            "/api/aktivitas", json=_harvest_body(seed, status="TERJADWAL"), headers=auth_headers
        )
        activity_id = created.json()["aktivitas_id"]

        resp = await client.get(f"/api/aktivitas/{activity_id}", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json()["koperasi_id"] == seed.cooperative_id

        resp = await client.delete(f"/api/aktivitas/{activity_id}", headers=auth_headers)
        assert resp.status_code == 200
        assert await fetch_all(select(Activity)) == []

        resp = await client.get(f"/api/aktivitas/{activity_id}", headers=auth_headers)
        assert resp.status_code == 404

    async def test_upcoming_harvest_estimates(
        self, client: AsyncClient, seed, auth_headers, session_factory
    ):
        today = date.today()
        soon = harvest.add_months(today, 1)
        later = harvest.add_months(today, 5)
        async with session_factory() as session:
            session.add_all([
                Activity(
                    land_plot_id=seed.land_plot_id, kind="ESTIMASI_PANEN",
                    activity_date=soon, estimate_date=soon, estimated_kg=300,
                    status="TERJADWAL", origin="SYSTEM",
                ),
                Activity(
                    land_plot_id=seed.land_plot_id, kind="ESTIMASI_PANEN",
                    activity_date=later, estimate_date=later, estimated_kg=500,
                    status="TERJADWAL", origin="SYSTEM",
                ),
            ])
            await session.commit()

        resp = await client.get("/api/aktivitas/estimasi-panen-upcoming", headers=auth_headers)

        assert resp.status_code == 200
        data = resp.json()
        assert data["count"] == 1
        assert data["total_estimated_kg"] == 300
        [upcoming] = data["upcoming_harvests"]
        assert upcoming["nama_lahan"] == "Kebun Atas"
        assert upcoming["petani_kontak"] == "081298765432"
