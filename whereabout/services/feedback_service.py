# whereabout/services/feedback_service.py
"""
Scan feedback for the gate display.

Turns a ScanOutcome into what the operator sees and hears: one short tone,
a brief colour flash over the camera view, and a result panel that clears
itself after FEEDBACK_DISMISS_SECONDS. Nothing here touches the database.

The gate display subscribes over WebSocket and plays the tone/flash
locally; this module only decides which ones.
"""

import asyncio
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Awaitable, Callable, Optional
from whereabout.services.gate_service import ScanOutcome
from whereabout.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Tone:
    frequency_hz: int
    duration_s: float
    gain: float


TONE_SUCCESS = Tone(frequency_hz=900, duration_s=0.15, gain=0.3)
TONE_ERROR = Tone(frequency_hz=300, duration_s=0.2, gain=0.4)

FLASH_COLORS = {
    "entered": "green",
    "exited": "blue",
    "error": "red",
}
FLASH_DURATION_S = 0.6
DEFAULT_DISMISS_S = 3.5


@dataclass
class FeedbackPanel:
    event_title: str
    message: str
    ticket_code: str
    ticket_status: str
    entry_status: str
    timestamp: datetime


@dataclass
class ScanFeedback:
    tone: Tone
    flash_color: str
    flash_duration_s: float
    panel: FeedbackPanel
    dismiss_after_s: float

    def to_dict(self) -> dict:
        data = asdict(self)
        data["panel"]["timestamp"] = self.panel.timestamp.isoformat()
        return data


def build_feedback(outcome: ScanOutcome, event_title: Optional[str] = None,
                   now: Optional[datetime] = None,
                   dismiss_after_s: float = DEFAULT_DISMISS_S) -> ScanFeedback:
    success = outcome.entry_status != "error"
    return ScanFeedback(
        tone=TONE_SUCCESS if success else TONE_ERROR,
        flash_color=FLASH_COLORS[outcome.entry_status],
        flash_duration_s=FLASH_DURATION_S,
        panel=FeedbackPanel(
            event_title=(event_title or "Unknown") if success else "Unknown",
            message=outcome.message,
            ticket_code=outcome.ticket_code,
            ticket_status=outcome.ticket_status,
            entry_status=outcome.entry_status,
            timestamp=now or datetime.utcnow(),
        ),
        dismiss_after_s=dismiss_after_s,
    )


Subscriber = Callable[[dict], Awaitable[None]]


class FeedbackController:
    """
    Holds the panel currently on screen and pushes every change to
    subscribers: {"type": "scan_feedback", ...} on a new result and
    {"type": "scan_feedback_cleared"} when the panel auto-dismisses.
    """

    def __init__(self, dismiss_after_s: float = DEFAULT_DISMISS_S):
        self.dismiss_after_s = dismiss_after_s
        self.current: Optional[ScanFeedback] = None
        self._subscribers: list[Subscriber] = []
        self._dismiss_handle: Optional[asyncio.TimerHandle] = None
        self._dismiss_task: Optional[asyncio.Task] = None

    def subscribe(self, callback: Subscriber):
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber):
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    async def show(self, outcome: ScanOutcome, event_title: Optional[str] = None) -> ScanFeedback:
        feedback = build_feedback(outcome, event_title, dismiss_after_s=self.dismiss_after_s)
        self.current = feedback

        if self._dismiss_handle:
            self._dismiss_handle.cancel()
        loop = asyncio.get_running_loop()
        self._dismiss_handle = loop.call_later(self.dismiss_after_s, self._start_dismiss, feedback)

        await self._publish({"type": "scan_feedback", **feedback.to_dict()})
        return feedback

    def _start_dismiss(self, feedback: ScanFeedback):
        # The loop only keeps a weak reference to tasks
        self._dismiss_task = asyncio.get_running_loop().create_task(self._dismiss(feedback))

    async def _dismiss(self, feedback: ScanFeedback):
        # A newer result may have replaced this one already
        if self.current is not feedback:
            return
        self.current = None
        self._dismiss_handle = None
        await self._publish({"type": "scan_feedback_cleared"})

    async def _publish(self, message: dict):
        for callback in list(self._subscribers):
            try:
                await callback(message)
            except Exception as e:
                logger.warning(f"[FEEDBACK] Dropping subscriber after send failure: {e}")
                self.unsubscribe(callback)
