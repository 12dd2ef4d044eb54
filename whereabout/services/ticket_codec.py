# whereabout/services/ticket_codec.py
"""
Ticket code codec — the string embedded in every ticket QR image.

Format:  EVENT-<event_id>-<attendee_id>
Both ids are 36-character UUID strings, so the code splits back losslessly
with a fixed-width match even though the ids themselves contain dashes.
The code is a pure function of (event, attendee): issuing twice yields the
same code, and the gate can recover both keys without a lookup.
"""

import re
from typing import NamedTuple

from whereabout.exceptions import MalformedPayloadError

PREFIX = "EVENT-"
TOKEN_LENGTH = 36

_TOKEN = rf"[0-9a-fA-F-]{{{TOKEN_LENGTH}}}"
_TOKEN_RE = re.compile(_TOKEN)
_CODE_RE = re.compile(rf"{re.escape(PREFIX)}(?P<event_id>{_TOKEN})-(?P<attendee_id>{_TOKEN})")


class TicketKey(NamedTuple):
    event_id: str
    attendee_id: str


def encode_ticket_code(event_id: str, attendee_id: str) -> str:
    for name, value in (("event_id", event_id), ("attendee_id", attendee_id)):
        if not isinstance(value, str) or not _TOKEN_RE.fullmatch(value):
            raise ValueError(f"{name} must be a {TOKEN_LENGTH}-character UUID string, got {value!r}")
    return f"{PREFIX}{event_id}-{attendee_id}"


def decode_ticket_code(raw: str) -> TicketKey:
    """Parse a scanned payload. Raises MalformedPayloadError on anything else."""
    if not isinstance(raw, str):
        raise MalformedPayloadError(raw)
    match = _CODE_RE.fullmatch(raw.strip())
    if not match:
        raise MalformedPayloadError(raw)
    return TicketKey(match.group("event_id"), match.group("attendee_id"))
