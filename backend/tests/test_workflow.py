from __future__ import annotations

import csv
import io

import httpx
from fastapi.testclient import TestClient

from siteclock.main import app, get_report_client
from siteclock.reports import ReportClient


def test_start_break_finish_flow(client: TestClient, time_source):
    start_resp = client.post("/work/start", json={"location": {"lat": 51.5072, "lng": -0.1276}})
    assert start_resp.status_code == 201
    data_start = start_resp.json()
    assert data_start["action"] == "started"
    assert data_start["state"] == "working"
    shift_id = data_start["shift"]["id"]
    assert data_start["shift"]["user_id"] == "u1"
    assert data_start["shift"]["project_id"] == "p1"
    assert data_start["shift"]["start_geo"] == {"lat": 51.5072, "lng": -0.1276}
    assert data_start["shift"]["start_ts"].endswith("+00:00")
    assert "center=51.5072%2C-0.1276" in data_start["shift"]["start_map_url"]

    time_source.advance(hours=2)
    pause_resp = client.post("/work/break", json={})
    assert pause_resp.status_code == 200
    assert pause_resp.json()["action"] == "break_started"
    assert pause_resp.json()["state"] == "on_break"
    assert pause_resp.json()["shift"]["on_break"] is True

    time_source.advance(minutes=20)
    resume_resp = client.post("/work/break", json={})
    assert resume_resp.json()["action"] == "break_ended"
    assert resume_resp.json()["state"] == "working"

    time_source.advance(hours=6)
    stop_resp = client.post("/work/finish", json={"location": {"lat": 51.5, "lng": -0.1}})
    assert stop_resp.status_code == 200
    data = stop_resp.json()
    assert data["action"] == "finished"
    assert data["state"] == "idle"
    assert data["shift"]["id"] == shift_id
    assert data["shift"]["finish_geo"] == {"lat": 51.5, "lng": -0.1}
    assert len(data["shift"]["breaks"]) == 1
    assert data["shift"]["breaks"][0]["end_ts"] is not None

    shifts_resp = client.get("/shifts")
    assert shifts_resp.status_code == 200
    assert [s["id"] for s in shifts_resp.json()] == [shift_id]


def test_repeated_and_premature_actions_are_noops(client: TestClient):
    assert client.post("/work/break", json={}).json()["action"] == "noop"
    assert client.post("/work/finish", json={}).json()["action"] == "noop"

    assert client.post("/work/start", json={}).status_code == 201
    second = client.post("/work/start", json={})
    assert second.status_code == 200
    assert second.json()["action"] == "noop"
    assert second.json()["shift"] is None
    assert len(client.get("/shifts").json()) == 1


def test_start_without_device_fix_uses_server_provider(client: TestClient):
    resp = client.post("/work/start", json={})
    assert resp.status_code == 201
    assert resp.json()["shift"]["start_geo"] == {"lat": 51.5072, "lng": -0.1276}


def test_status_reflects_break_and_finish(client: TestClient):
    idle = client.get("/work/status")
    assert idle.status_code == 200
    assert idle.json() == {"user_id": "u1", "state": "idle", "shift": None}

    client.post("/work/start", json={"notes": "Roofing"})
    client.post("/work/break", json={})
    on_break = client.get("/work/status").json()
    assert on_break["state"] == "on_break"
    assert on_break["shift"]["notes"] == "Roofing"

    client.post("/work/finish", json={})
    finished = client.get("/work/status").json()
    assert finished["state"] == "idle"
    history = client.get("/shifts").json()
    assert history[0]["breaks"][0]["end_ts"] == history[0]["finish_ts"]


def test_two_employees_work_independently(client: TestClient):
    assert client.post("/work/start", json={"user_id": "u1"}).status_code == 201
    assert client.post("/work/start", json={"user_id": "u2"}).status_code == 201
    client.post("/work/break", json={"user_id": "u2"})

    assert client.get("/work/status", params={"user_id": "u1"}).json()["state"] == "working"
    assert client.get("/work/status", params={"user_id": "u2"}).json()["state"] == "on_break"
    assert len(client.get("/shifts", params={"user_id": "u2"}).json()) == 1


def test_switch_current_user(client: TestClient):
    assert client.get("/me").json()["id"] == "u1"
    resp = client.put("/me", json={"user_id": "u2"})
    assert resp.status_code == 200
    assert resp.json()["name"] == "Jordan Lee"

    client.post("/work/start", json={})
    assert client.get("/work/status").json()["user_id"] == "u2"


def test_unknown_employee_and_project_are_rejected(client: TestClient):
    assert client.post("/work/start", json={"user_id": "nobody"}).status_code == 404
    assert client.put("/me", json={"user_id": "nobody"}).status_code == 404
    assert client.post("/work/start", json={"project_id": "p404"}).status_code == 404
    assert client.get("/work/status").json()["state"] == "idle"


def test_invalid_location_is_rejected(client: TestClient):
    resp = client.post("/work/start", json={"location": {"lat": 123.0, "lng": 0}})
    assert resp.status_code == 422


def test_reference_data(client: TestClient):
    employees = client.get("/employees").json()
    assert [e["name"] for e in employees] == ["Alex Mason", "Jordan Lee"]
    projects = client.get("/projects").json()
    assert projects == [{"id": "p1", "name": "Site A", "address": "123 High St"}]


def test_csv_export(client: TestClient):
    client.post("/work/start", json={"user_id": "u1", "location": {"lat": 51.5, "lng": -0.12}})
    client.post("/work/start", json={"user_id": "u2"})

    resp = client.get("/exports/shifts.csv")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert 'filename="shifts_2024-03-04.csv"' in resp.headers["content-disposition"]

    rows = list(csv.reader(io.StringIO(resp.text)))
    assert rows[0][0] == "First Name"
    assert len(rows) == 3
    assert rows[1][:2] == ["Jordan", "Lee"]
    assert rows[2][:2] == ["Alex", "Mason"]
    assert rows[2][6] == "51.5,-0.12"
    assert rows[2][5] == "—"


def test_manual_daily_report(client: TestClient):
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(request.content)
        return httpx.Response(200)

    app.dependency_overrides[get_report_client] = lambda: ReportClient(
        "http://reports.test/api/sendDailyReport", transport=httpx.MockTransport(handler)
    )
    client.post("/work/start", json={})

    resp = client.post("/reports/daily")
    assert resp.status_code == 200
    assert resp.json() == {"date": "2024-03-04", "shift_count": 1}
    assert len(bodies) == 1


def test_manual_daily_report_failure_maps_to_bad_gateway(client: TestClient):
    app.dependency_overrides[get_report_client] = lambda: ReportClient(
        "http://reports.test/api/sendDailyReport",
        transport=httpx.MockTransport(lambda request: httpx.Response(500)),
    )

    resp = client.post("/reports/daily")
    assert resp.status_code == 502


def test_healthz(client: TestClient):
    assert client.get("/healthz").json() == {"status": "ok"}
