"""Quality checkpoint endpoints."""

from datetime import date

import pytest
from httpx import AsyncClient

from kopitrace.models import InventoryEntry


def _checkpoint_body(inventory_id, **overrides) -> dict:
    body = {
        "inventory_id": inventory_id,
        "checkpoint_type": "HARVEST",
        "checkpoint_name": "Cherry ripeness",
        "checkpoint_date": "2024-03-16",
        "quality_score": 88,
        "status": "PASSED",
    }
    body.update(overrides)
    return body


@pytest.fixture
def batch_entry(seed, add_entries):
    async def _make(batch_id="QC-1"):
        [entry_id] = await add_entries(InventoryEntry(
            cooperative_id=seed.cooperative_id,
            item_name="Cherry",
            direction="MASUK",
            entry_date=date(2024, 3, 15),
            quantity=200,
            unit="kg",
            batch_id=batch_id,
        ))
        return entry_id

    return _make


@pytest.mark.api
@pytest.mark.asyncio
class TestCheckpoints:

    async def test_create_and_list_for_batch(
        self, client: AsyncClient, seed, auth_headers, batch_entry
    ):
        entry_id = await batch_entry()

        for day, name in (("2024-03-16", "Cherry ripeness"), ("2024-03-20", "Moisture")):
            resp = await client.post(
                "/api/quality/checkpoints",
                json=_checkpoint_body(entry_id, checkpoint_date=day, checkpoint_name=name),
                headers=auth_headers,
            )
            assert resp.status_code == 201
            assert resp.json()["message"] == "Quality checkpoint created successfully"
            assert resp.json()["checkpoint"]["inspector_id"] == seed.admin_id

        resp = await client.get("/api/quality/checkpoints/batch/QC-1", headers=auth_headers)

        assert resp.status_code == 200
        data = resp.json()
        assert data["batchId"] == "QC-1"
        assert data["totalCheckpoints"] == 2
        assert [c["checkpoint_name"] for c in data["checkpoints"]] == ["Moisture", "Cherry ripeness"]
        assert data["checkpoints"][0]["inspector_name"] == "Admin Gayo"
        assert data["checkpoints"][0]["nama_koperasi"] == "Koperasi Kopi Gayo"

    async def test_score_out_of_range(self, client: AsyncClient, seed, auth_headers, batch_entry):
        entry_id = await batch_entry()

        resp = await client.post(
            "/api/quality/checkpoints",
            json=_checkpoint_body(entry_id, quality_score=101, status="GOOD"),
            headers=auth_headers,
        )

        assert resp.status_code == 400
        fields = {e["field"] for e in resp.json()["error"]["details"]["errors"]}
        assert fields == {"quality_score", "status"}

    async def test_unknown_inventory(self, client: AsyncClient, seed, auth_headers):
        resp = await client.post(
            "/api/quality/checkpoints", json=_checkpoint_body(9999), headers=auth_headers
        )
        assert resp.status_code == 404

    async def test_partial_update(self, client: AsyncClient, seed, auth_headers, batch_entry):
        entry_id = await batch_entry()
        created = (await client.post(
            "/api/quality/checkpoints", json=_checkpoint_body(entry_id), headers=auth_headers
        )).json()["checkpoint"]

        resp = await client.put(
            f"/api/quality/checkpoints/{created['checkpoint_id']}",
            json={"status": "FAILED", "defects_found": "Floaters 8%"},
            headers=auth_headers,
        )

        assert resp.status_code == 200
        updated = resp.json()["checkpoint"]
        assert updated["status"] == "FAILED"
        assert updated["defects_found"] == "Floaters 8%"
        assert updated["checkpoint_name"] == "Cherry ripeness"

    async def test_update_cannot_clear_required_fields(
        self, client: AsyncClient, seed, auth_headers, batch_entry
    ):
        entry_id = await batch_entry()
        created = (await client.post(
            "/api/quality/checkpoints", json=_checkpoint_body(entry_id), headers=auth_headers
        )).json()["checkpoint"]

        resp = await client.put(
            f"/api/quality/checkpoints/{created['checkpoint_id']}",
            json={"quality_score": None, "status": None, "notes": None},
            headers=auth_headers,
        )

        assert resp.status_code == 400
        fields = {e["field"] for e in resp.json()["error"]["details"]["errors"]}
        assert fields == {"quality_score", "status"}

        listed = await client.get("/api/quality/checkpoints/batch/QC-1", headers=auth_headers)
        [checkpoint] = listed.json()["checkpoints"]
        assert checkpoint["quality_score"] == 88
        assert checkpoint["status"] == "PASSED"

    async def test_update_unknown(self, client: AsyncClient, seed, auth_headers):
        resp = await client.put(
            "/api/quality/checkpoints/9999", json={"status": "FAILED"}, headers=auth_headers
        )
        assert resp.status_code == 404


@pytest.mark.api
@pytest.mark.asyncio
class TestCooperativeSummary:

    async def test_counts_by_type(self, client: AsyncClient, seed, auth_headers, batch_entry):
        entry_id = await batch_entry()
        for body in (
            _checkpoint_body(entry_id, quality_score=90, status="PASSED"),
            _checkpoint_body(entry_id, quality_score=70, status="FAILED"),
            _checkpoint_body(
                entry_id, checkpoint_type="STORAGE", checkpoint_date="2024-06-01",
                quality_score=80, status="PENDING",
            ),
        ):
            await client.post("/api/quality/checkpoints", json=body, headers=auth_headers)

        resp = await client.get(
            f"/api/quality/summary/koperasi/{seed.cooperative_id}", headers=auth_headers
        )

        assert resp.status_code == 200
        data = resp.json()
        assert data["koperasiId"] == seed.cooperative_id
        assert data["overallSummary"] == {
            "total_checkpoints": 3,
            "passed_checkpoints": 1,
            "failed_checkpoints": 1,
            "pending_checkpoints": 1,
            "average_quality_score": 80.0,
        }
        by_type = {t["checkpoint_type"]: t for t in data["byType"]}
        assert by_type["HARVEST"]["total_checkpoints"] == 2
        assert by_type["HARVEST"]["average_quality_score"] == 80.0
        assert by_type["STORAGE"]["pending_checkpoints"] == 1

        filtered = await client.get(
            f"/api/quality/summary/koperasi/{seed.cooperative_id}",
            params={"startDate": "2024-05-01"},
            headers=auth_headers,
        )
        assert filtered.json()["overallSummary"]["total_checkpoints"] == 1
        assert filtered.json()["period"] == {"startDate": "2024-05-01", "endDate": None}

    async def test_other_cooperative_denied(self, client: AsyncClient, seed, outsider_headers):
        resp = await client.get(
            f"/api/quality/summary/koperasi/{seed.cooperative_id}", headers=outsider_headers
        )
        assert resp.status_code == 403
