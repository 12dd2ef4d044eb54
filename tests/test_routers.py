# tests/test_routers.py
"""API tests for ticket and gate scanner endpoints."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import uuid
import pytest
import requests
from unittest.mock import MagicMock, patch
from sqlalchemy.exc import OperationalError
from fastapi.testclient import TestClient
from whereabout.database import get_db
from whereabout.exceptions import DeviceUnavailableError
from whereabout.main import app
from whereabout.services.feedback_service import FeedbackController
from whereabout.services.gate_scanner import GateScanner
from whereabout.services.ticket_codec import encode_ticket_code


class UnavailableSource:
    name = "unavailable"

    async def open(self):
        raise DeviceUnavailableError("no camera attached")

    async def read(self):
        return None

    async def close(self):
        pass


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    original_scanner = app.state.gate_scanner
    app.dependency_overrides[get_db] = override_get_db
    app.state.gate_scanner = GateScanner(
        gate_id="GATE-API",
        session_factory=session_factory,
        source_factory=UnavailableSource,
        feedback=FeedbackController(dismiss_after_s=10),
    )
    yield TestClient(app)
    app.dependency_overrides.clear()
    app.state.gate_scanner = original_scanner


class TestTicketEndpoints:
    def test_ticket_requires_confirmed_registration(self, client, make_registration):
        event, _ = make_registration()
        resp = client.get(f"/api/v1/events/{event.id}/tickets/{uuid.uuid4()}")
        assert resp.status_code == 404

    def test_ticket_issued_once(self, client, make_registration):
        event, user_id = make_registration()

        first = client.get(f"/api/v1/events/{event.id}/tickets/{user_id}")
        second = client.get(f"/api/v1/events/{event.id}/tickets/{user_id}")

        assert first.status_code == 200
        assert first.json()["id"] == second.json()["id"]
        assert first.json()["ticket_code"] == encode_ticket_code(event.id, user_id)
        assert first.json()["status"] == "valid"

    def test_non_uuid_attendee_is_unprocessable(self, client, make_registration):
        event, user_id = make_registration(user_id="student-42")

        resp = client.get(f"/api/v1/events/{event.id}/tickets/{user_id}")

        assert resp.status_code == 422
        assert "UUID" in resp.json()["detail"]

    def test_user_ticket_list(self, client, make_registration):
        event, user_id = make_registration(title="Spring Fest")

        resp = client.get(f"/api/v1/users/{user_id}/tickets")

        assert resp.status_code == 200
        body = resp.json()
        assert len(body) == 1
        assert body[0]["event"]["title"] == "Spring Fest"

    def test_qr_png(self, client, make_registration):
        event, user_id = make_registration()
        ticket = client.get(f"/api/v1/events/{event.id}/tickets/{user_id}").json()

        resp = client.get(f"/api/v1/tickets/{ticket['id']}/qr.png")

        assert resp.status_code == 200
        assert resp.headers["content-type"] == "image/png"
        assert resp.content.startswith(b"\x89PNG")

    def test_qr_png_unknown_ticket(self, client):
        assert client.get(f"/api/v1/tickets/{uuid.uuid4()}/qr.png").status_code == 404


class TestScanEndpoints:
    def test_scan_toggles_and_logs(self, client, make_registration):
        event, user_id = make_registration(title="Career Fair")
        ticket = client.get(f"/api/v1/events/{event.id}/tickets/{user_id}").json()

        first = client.post("/api/v1/scan", json={"payload": ticket["ticket_code"], "gate_id": "GATE-N"})
        attendance = client.get(f"/api/v1/events/{event.id}/attendance").json()
        second = client.post("/api/v1/scan", json={"payload": ticket["ticket_code"]})

        assert first.status_code == 200
        assert first.json()["entry_status"] == "entered"
        assert first.json()["message"] == "Entry confirmed"
        assert first.json()["feedback"]["panel"]["event_title"] == "Career Fair"
        assert attendance["currently_inside"] == 1
        assert attendance["registered"] == 1
        assert second.json()["entry_status"] == "exited"
        assert second.json()["entry_id"] == first.json()["entry_id"]
        assert second.json()["exit_time"] is not None

        entries = client.get(f"/api/v1/tickets/{ticket['id']}/entries").json()
        assert len(entries) == 1
        assert entries[0]["entry_gate"] == "GATE-N"
        assert entries[0]["exit_gate"] == "GATE-API"

    def test_malformed_payload_is_a_rejection_not_an_error(self, client):
        resp = client.post("/api/v1/scan", json={"payload": "not-a-real-code"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["ticket_status"] == "invalid"
        assert body["entry_status"] == "error"
        assert body["message"] == "Invalid QR format"
        assert body["feedback"]["flash_color"] == "red"

    def test_unknown_ticket(self, client):
        code = encode_ticket_code(str(uuid.uuid4()), str(uuid.uuid4()))
        body = client.post("/api/v1/scan", json={"payload": code}).json()
        assert body["message"] == "Invalid or used ticket"
        assert body["ticket_id"] is None

    def test_store_down_is_a_rejection_not_a_500(self, client):
        session = MagicMock()
        session.query.side_effect = OperationalError("SELECT", {}, Exception("connection refused"))
        app.dependency_overrides[get_db] = lambda: session
        code = encode_ticket_code(str(uuid.uuid4()), str(uuid.uuid4()))

        resp = client.post("/api/v1/scan", json={"payload": code})

        assert resp.status_code == 200
        body = resp.json()
        assert body["entry_status"] == "error"
        assert body["message"] == "Scan not recorded, please scan again"
        assert body["feedback"]["flash_color"] == "red"

    def test_attendance_unknown_event(self, client):
        assert client.get(f"/api/v1/events/{uuid.uuid4()}/attendance").status_code == 404


class TestScannerControl:
    def test_status_idle(self, client):
        body = client.get("/api/v1/scanner/status").json()
        assert body["state"] == "idle"
        assert body["gate_id"] == "GATE-API"

    def test_start_without_camera(self, client):
        resp = client.post("/api/v1/scanner/start")

        assert resp.status_code == 503
        status = client.get("/api/v1/scanner/status").json()
        assert status["state"] == "stopped"
        assert status["last_error"] == "no camera attached"

    def test_stop_when_idle(self, client):
        assert client.post("/api/v1/scanner/stop").status_code == 200

    def test_gate_socket_sends_status_on_connect(self, client):
        with client.websocket_connect("/api/v1/ws/gate") as ws:
            message = ws.receive_json()
        assert message["type"] == "scanner_status"
        assert message["gate_id"] == "GATE-API"


class TestHealth:
    def test_camera_unreachable_is_degraded(self, client):
        with patch("whereabout.routers.health.requests.get",
                   side_effect=requests.exceptions.ConnectionError("no route")):
            body = client.get("/api/v1/health").json()

        assert body["database"] == "ok"
        assert body["gate_camera"] == "unreachable"
        assert body["status"] == "degraded"
        assert body["scanner"]["state"] == "idle"

    def test_all_ok(self, client):
        with patch("whereabout.routers.health.requests.get") as mock_get:
            mock_get.return_value.status_code = 200
            body = client.get("/api/v1/health").json()

        assert body["status"] == "ok"
        assert body["gate_camera"] == "ok"
