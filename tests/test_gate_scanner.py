# tests/test_gate_scanner.py
"""Gate scanner wiring: camera loop → state machine → feedback."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import asyncio
import uuid
import pytest
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy.exc import OperationalError
from whereabout.exceptions import DeviceUnavailableError
from whereabout.models.ticket_entry import TicketEntry
from whereabout.services.capture_loop import CaptureState
from whereabout.services.feedback_service import TONE_ERROR, FeedbackController
from whereabout.services.gate_scanner import GateScanner
from whereabout.services.gate_service import Entered, Exited, Rejected
from whereabout.services.ticket_codec import encode_ticket_code
from whereabout.services.ticket_service import get_or_create_ticket
from whereabout.services.ticket_store import TicketStore


class ScriptedSource:
    name = "scripted"

    def __init__(self, frames=None, fail_open=False):
        self.frames = list(frames or [])
        self.fail_open = fail_open
        self.closed = False

    async def open(self):
        if self.fail_open:
            raise DeviceUnavailableError("camera permission denied")

    async def read(self):
        return self.frames.pop(0) if self.frames else None

    async def close(self):
        self.closed = True


class EchoDecoder:
    def detect(self, frame):
        return frame


def make_scanner(session_factory, source, feedback=None):
    return GateScanner(
        gate_id="GATE-TEST",
        session_factory=session_factory,
        source_factory=lambda: source,
        feedback=feedback or FeedbackController(dismiss_after_s=10),
        decoder=EchoDecoder(),
        frame_interval=0, cooldown=0, duplicate_window=0,
    )


async def wait_for(predicate, timeout=2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def ticket_code(db, make_registration):
    async def _issue(title="Orientation Night"):
        event, user_id = make_registration(title=title)
        ticket = await get_or_create_ticket(TicketStore(db), event.id, user_id)
        return ticket.ticket_code
    return _issue


class TestHandlePayload:
    @pytest.mark.asyncio
    async def test_valid_code_enters_and_shows_event_title(self, session_factory, ticket_code):
        code = await ticket_code("Hackathon")
        feedback = FeedbackController(dismiss_after_s=10)
        scanner = make_scanner(session_factory, ScriptedSource(), feedback)

        outcome = await scanner.handle_payload(code)

        assert isinstance(outcome, Entered)
        assert feedback.current.panel.event_title == "Hackathon"
        assert feedback.current.flash_color == "green"
        assert scanner.scans_processed == 1

    @pytest.mark.asyncio
    async def test_second_scan_exits(self, session_factory, ticket_code):
        code = await ticket_code()
        scanner = make_scanner(session_factory, ScriptedSource())

        await scanner.handle_payload(code)
        outcome = await scanner.handle_payload(code)

        assert isinstance(outcome, Exited)
        assert scanner.feedback.current.flash_color == "blue"

    @pytest.mark.asyncio
    async def test_garbage_is_rejected_with_feedback(self, session_factory):
        scanner = make_scanner(session_factory, ScriptedSource())

        outcome = await scanner.handle_payload("https://example.com/not-a-ticket")

        assert isinstance(outcome, Rejected)
        assert scanner.feedback.current.flash_color == "red"
        assert scanner.feedback.current.panel.message == "Invalid QR format"

    @pytest.mark.asyncio
    async def test_store_down_still_signals_the_gate(self):
        session = MagicMock()
        session.query.side_effect = OperationalError("SELECT", {}, Exception("connection refused"))
        scanner = make_scanner(lambda: session, ScriptedSource())
        subscriber = AsyncMock()
        scanner.feedback.subscribe(subscriber)

        outcome = await scanner.handle_payload(encode_ticket_code(str(uuid.uuid4()), str(uuid.uuid4())))

        assert isinstance(outcome, Rejected)
        assert outcome.reason == "store_unavailable"
        assert scanner.feedback.current.flash_color == "red"
        assert scanner.feedback.current.tone == TONE_ERROR
        assert subscriber.await_args.args[0]["panel"]["entry_status"] == "error"
        session.rollback.assert_called_once()
        session.close.assert_called_once()


class TestScannerSession:
    @pytest.mark.asyncio
    async def test_camera_scan_records_entry(self, db, session_factory, ticket_code):
        code = await ticket_code()
        source = ScriptedSource([None, None, code])
        scanner = make_scanner(session_factory, source)
        subscriber = AsyncMock()
        scanner.feedback.subscribe(subscriber)

        await scanner.start()
        assert scanner.state is CaptureState.SCANNING
        await wait_for(lambda: scanner.scans_processed == 1)
        await scanner.stop()

        assert scanner.state is CaptureState.STOPPED
        assert source.closed
        assert db.query(TicketEntry).count() == 1
        assert subscriber.await_args.args[0]["panel"]["entry_status"] == "entered"

    @pytest.mark.asyncio
    async def test_camera_unavailable(self, session_factory):
        scanner = make_scanner(session_factory, ScriptedSource(fail_open=True))

        with pytest.raises(DeviceUnavailableError):
            await scanner.start()

        status = scanner.status()
        assert status["state"] == "stopped"
        assert "permission denied" in status["last_error"]

    @pytest.mark.asyncio
    async def test_status_before_start(self, session_factory):
        status = make_scanner(session_factory, ScriptedSource()).status()
        assert status["state"] == "idle"
        assert status["camera"] is None
        assert status["scans_processed"] == 0
