# whereabout/exceptions.py
"""
Error taxonomy for ticketing and gate scanning.

Only genuinely exceptional conditions live here. A scanned code that is well
formed but matches no valid ticket is a normal rejection outcome (see
gate_service.Rejected), not an exception.
"""


class TicketingError(Exception):
    """Base class for every error raised by the ticketing subsystem."""


# ── Ticket code ──────────────────────────────────────────────────────────────
class DecodeError(TicketingError):
    pass


class MalformedPayloadError(DecodeError):
    """Scanned text is not EVENT-<event token>-<attendee token>."""

    def __init__(self, raw):
        self.raw = raw
        super().__init__(f"Malformed ticket payload: {raw!r}")


# ── Camera ───────────────────────────────────────────────────────────────────
class CaptureError(TicketingError):
    pass


class DeviceUnavailableError(CaptureError):
    """Camera permission denied, unreachable, or failed mid-stream."""


# ── Issuance ─────────────────────────────────────────────────────────────────
class IssuanceError(TicketingError):
    pass


class UpstreamUnavailableError(IssuanceError):
    """The ticket store could not be reached while issuing a ticket."""


class InvalidTicketKeyError(IssuanceError):
    """Event or attendee id cannot be carried in a ticket code (not a UUID)."""
