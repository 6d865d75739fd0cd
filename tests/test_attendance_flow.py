# tests/test_attendance_flow.py
#
# Happy-path flow through the HTTP surface, the way the UI drives it:
#   * Calls the app through httpx.AsyncClient over ASGITransport.
#   * Backs the store with a file cache in tmp_path.
#   * Wires an in-memory SQLite remote so every intent is also pushed.

import pytest
from httpx import ASGITransport, AsyncClient

from practice.main import create_app
from practice.services.store import PracticeStore
from practice.utils.config import Settings


@pytest.mark.anyio
async def test_attendance_and_payment_happy_path(cache, clock, remote, make_engine):
    store = PracticeStore.open(cache, sync=make_engine(), clock=clock)
    app = create_app(store=store, settings=Settings())

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post("/patients", json={"name": "Ana", "phone": "555-0100"})
        assert response.status_code == 201
        patient_id = response.json()["state"]["patients"][0]["id"]

        records = []
        for _ in range(3):
            response = await client.post(f"/patients/{patient_id}/attendance")
            records.append(response.json()["state"]["patients"][0]["attendance"][-1]["id"])

        # present, absent, holiday
        for clicks, record_id in enumerate(records, start=1):
            for _ in range(clicks):
                await client.post(f"/patients/{patient_id}/attendance/{record_id}/advance")
            await client.put(f"/patients/{patient_id}/attendance/{record_id}/amount", json={"amount": 50})

        await client.post(f"/patients/{patient_id}/attendance/{records[0]}/paid")
        stats = (await client.get("/stats")).json()
        sync_status = (await client.get("/sync/status")).json()

    assert stats["totalAttendances"] == 1
    assert stats["totalAbsences"] == 1
    assert stats["totalHolidays"] == 1
    assert stats["attendanceRate"] == pytest.approx(100 / 3)
    assert stats["totalBilled"] == 150
    assert stats["totalCollected"] == 50
    assert stats["pendingPayments"] == 2
    assert stats["paymentRate"] == pytest.approx(100 / 3)
    assert sync_status["status"] == "synced"

    snapshot = remote.fetch_all()
    assert [row["name"] for row in snapshot.patients] == ["Ana"]
    assert sorted(row["status"] for row in snapshot.attendance) == ["absent", "holiday", "present"]
    assert cache.read() == store.state
