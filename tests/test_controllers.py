from __future__ import annotations

import pytest

from src.timeclock.timeclock.container import assemble
from src.timeclock.timeclock.main import create_app
from tests.fakes import FakeCamera, InMemoryAttendanceStore, InMemoryFaceStore, ScriptedDetector, descriptor, hit

DAY = "2025-01-06"


@pytest.fixture
def container():
    return assemble(
        attendance_store=InMemoryAttendanceStore(),
        face_store=InMemoryFaceStore(),
        detector=ScriptedDetector(default=hit(descriptor())),
        camera=FakeCamera(),
    )


@pytest.fixture
def client(container, monkeypatch):
    monkeypatch.setenv("APP_ENV", "testing")
    app = create_app(container)
    return app.test_client()


def _login(client, employee_id="emp1", role="employee"):
    with client.session_transaction() as s:
        s["employee_id"] = employee_id
        s["role"] = role


def test_requires_session(client):
    resp = client.post("/api/attendance/clock-in", json={"date": DAY})
    assert resp.status_code == 401
    assert resp.get_json() == {"success": False, "error": "Authentication required"}


def test_clock_in_and_today(client):
    _login(client)

    resp = client.post("/api/attendance/clock-in", json={"date": DAY})
    assert resp.status_code == 200
    assert resp.get_json()["data"]["state"] == "CLOCKED_IN"

    today = client.get(f"/api/attendance/today?date={DAY}").get_json()
    assert today["data"]["employeeId"] == "emp1"
    assert today["data"]["clockOut"] is None


def test_domain_failure_is_400(client):
    _login(client)
    client.post("/api/attendance/clock-in", json={"date": DAY})

    resp = client.post("/api/attendance/clock-in", json={"date": DAY})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Already clocked in today"


def test_missing_date_is_400(client):
    _login(client)
    resp = client.post("/api/attendance/break/start", json={})
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "ValidationError"


def test_history(client):
    _login(client)
    client.post("/api/attendance/clock-in", json={"date": DAY})
    client.post("/api/attendance/clock-out", json={"date": DAY})

    data = client.get("/api/attendance/history?limit=5").get_json()["data"]
    assert [r["date"] for r in data] == [DAY]
    assert data[0]["state"] == "CLOCKED_OUT"


def test_management_edit_requires_role(client):
    _login(client)
    resp = client.put(f"/api/attendance/emp2/{DAY}", json={"clockIn": "2025-01-06T09:00:00Z"})
    assert resp.status_code == 403


def test_management_edit(client):
    _login(client, "mgr1", "management")
    resp = client.put(
        f"/api/attendance/emp2/{DAY}",
        json={"clockIn": "2025-01-06T09:00:00Z", "clockOut": "2025-01-06T17:00:00Z", "managerNote": "paper timesheet"},
    )

    body = resp.get_json()
    assert resp.status_code == 200
    assert body["data"]["totalHours"] == 8.0
    assert body["data"]["isEditedByManagement"] is True
    assert body["data"]["editedBy"] == "mgr1"

    fetched = client.get(f"/api/attendance/emp2/{DAY}").get_json()
    assert fetched["data"]["managerNote"] == "paper timesheet"


def test_face_enroll_status_verify(client):
    _login(client)

    bad = client.post("/api/face/enroll", json={"descriptor": [0.1] * 127})
    assert bad.status_code == 400
    assert bad.get_json()["error"] == "Invalid descriptor (must be 128 numbers)"

    assert client.get("/api/face/status").get_json()["data"] == {"enrolled": False}
    assert client.post("/api/face/enroll", json={"descriptor": descriptor()}).status_code == 200
    assert client.get("/api/face/status").get_json()["data"] == {"enrolled": True}

    verdict = client.post("/api/face/verify", json={"descriptor": descriptor(0.1)}).get_json()["data"]
    assert verdict["match"] is False
    assert verdict["band"] == "STRONG_MISMATCH"


def test_verify_without_enrollment(client):
    _login(client)
    resp = client.post("/api/face/verify", json={"descriptor": descriptor()})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "No face registered"


def test_face_delete_is_management_only(client, container):
    container.face_service.save_descriptor("emp2", descriptor())

    _login(client)
    assert client.delete("/api/face/emp2").status_code == 403

    _login(client, "mgr1", "management")
    resp = client.delete("/api/face/emp2")
    assert resp.get_json()["data"] == {"removed": True}
    assert not container.face_service.is_enrolled("emp2")
