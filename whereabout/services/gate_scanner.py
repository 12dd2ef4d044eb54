# whereabout/services/gate_scanner.py
"""
Gate scanner — one per gate station process.

Connects the capture loop to the entry/exit state machine: each decoded
code is validated with a fresh DB session (one session per scan, closed
afterwards) and the result is pushed to the feedback controller, which the
gate display listens to.

Runs as a background asyncio task started from the API (/scanner/start) or
at startup when SCANNER_AUTOSTART is set.
"""

import asyncio
from typing import Callable, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from whereabout.exceptions import DeviceUnavailableError
from whereabout.services.capture_loop import CaptureState, QRCaptureLoop
from whereabout.services.feedback_service import FeedbackController
from whereabout.services.frame_source import FrameSource
from whereabout.services.gate_service import ScanOutcome, process_scan
from whereabout.services.qr_decoder import OpenCVQRDecoder
from whereabout.services.ticket_store import TicketStore
from whereabout.utils.logger import get_logger

logger = get_logger(__name__)


def event_title_for(outcome: ScanOutcome) -> Optional[str]:
    """Title for the feedback panel. A failed lookup leaves the panel untitled."""
    ticket = getattr(outcome, "ticket", None)
    if ticket is None:
        return None
    try:
        return ticket.event.title
    except SQLAlchemyError as e:
        logger.warning(f"[SCANNER] Event title unavailable for ticket {ticket.id}: {e}")
        return None


class GateScanner:
    def __init__(self, gate_id: str, session_factory: Callable[[], Session],
                 source_factory: Callable[[], FrameSource],
                 feedback: FeedbackController,
                 decoder: Optional[OpenCVQRDecoder] = None,
                 frame_interval: float = 1 / 15, cooldown: float = 2.0,
                 duplicate_window: float = 5.0):
        self.gate_id = gate_id
        self.session_factory = session_factory
        self.source_factory = source_factory
        self.feedback = feedback
        self.decoder = decoder or OpenCVQRDecoder()
        self.frame_interval = frame_interval
        self.cooldown = cooldown
        self.duplicate_window = duplicate_window

        self.loop: Optional[QRCaptureLoop] = None
        self.last_error: Optional[str] = None
        self.last_outcome: Optional[ScanOutcome] = None
        self.scans_processed = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def state(self) -> CaptureState:
        return self.loop.state if self.loop else CaptureState.IDLE

    async def start(self):
        """Acquire the camera and begin scanning. Raises DeviceUnavailableError."""
        if self.state in (CaptureState.REQUESTING, CaptureState.SCANNING):
            return

        self.loop = QRCaptureLoop(
            self.source_factory(), self.decoder, self.handle_payload,
            frame_interval=self.frame_interval, cooldown=self.cooldown,
            duplicate_window=self.duplicate_window,
        )
        try:
            await self.loop.start()
        except DeviceUnavailableError as e:
            self.last_error = str(e)
            logger.error(f"[SCANNER] {self.gate_id} camera unavailable: {e}")
            raise

        self.last_error = None
        if self.loop.state is CaptureState.SCANNING:
            self._task = asyncio.create_task(self._run(self.loop), name=f"scanner-{self.gate_id}")

    async def stop(self):
        """Stop sampling now. A scan already being validated is allowed to finish."""
        if self.loop:
            await self.loop.stop()

    async def _run(self, loop: QRCaptureLoop):
        try:
            await loop.run()
        except DeviceUnavailableError as e:
            self.last_error = str(e)
            logger.error(f"[SCANNER] {self.gate_id} lost camera: {e}")

    async def handle_payload(self, payload: str) -> ScanOutcome:
        db = self.session_factory()
        try:
            outcome = await process_scan(TicketStore(db), payload, gate_id=self.gate_id)
            event_title = event_title_for(outcome)
        finally:
            db.close()

        self.scans_processed += 1
        self.last_outcome = outcome
        await self.feedback.show(outcome, event_title)
        return outcome

    def status(self) -> dict:
        return {
            "gate_id": self.gate_id,
            "state": self.state.value,
            "camera": self.loop.source.name if self.loop else None,
            "busy": self.loop.busy if self.loop else False,
            "frames_read": self.loop.frames_read if self.loop else 0,
            "scans_processed": self.scans_processed,
            "last_error": self.last_error,
        }
