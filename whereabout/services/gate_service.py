# whereabout/services/gate_service.py
"""
Gate entry/exit state machine.

Each accepted scan toggles the attendee between outside and inside:
  - latest entry record open (exit_time NULL) → close it      → Exited
  - no record, or latest already closed       → insert a new one → Entered

Rejections (bad QR text, unknown or non-valid ticket) write nothing. A store
failure mid-scan is also a rejection: the attendee is asked to scan again and
the gate keeps running.

This is a plain toggle: no capacity check, no door-open window, and the
ticket's status column is never changed here. status is only an
administrative revocation flag; inside/outside comes from the entry log.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union
from sqlalchemy.exc import SQLAlchemyError
from whereabout.exceptions import MalformedPayloadError
from whereabout.models.ticket import Ticket, TICKET_VALID
from whereabout.models.ticket_entry import TicketEntry
from whereabout.services.ticket_codec import TicketKey, decode_ticket_code
from whereabout.services.ticket_store import TicketStore
from whereabout.utils.logger import get_logger

logger = get_logger(__name__)

MSG_INVALID_FORMAT = "Invalid QR format"
MSG_INVALID_TICKET = "Invalid or used ticket"
MSG_ENTRY = "Entry confirmed"
MSG_EXIT = "Exit confirmed"
MSG_STORE_UNAVAILABLE = "Scan not recorded, please scan again"

REASON_MALFORMED = "malformed_payload"
REASON_UNKNOWN_TICKET = "unknown_ticket"
REASON_NOT_VALID = "ticket_not_valid"
REASON_STORE_UNAVAILABLE = "store_unavailable"


@dataclass
class Rejected:
    reason: str            # malformed_payload | unknown_ticket | ticket_not_valid | store_unavailable
    message: str
    ticket_code: str
    ticket: Optional[Ticket] = None

    ticket_status = "invalid"
    entry_status = "error"


@dataclass
class Entered:
    ticket: Ticket
    record: TicketEntry
    ticket_code: str
    message: str = MSG_ENTRY

    ticket_status = "valid"
    entry_status = "entered"


@dataclass
class Exited:
    ticket: Ticket
    record: TicketEntry
    ticket_code: str
    message: str = MSG_EXIT

    ticket_status = "valid"
    entry_status = "exited"


ScanOutcome = Union[Rejected, Entered, Exited]


async def process_scan(store: TicketStore, raw_payload: str,
                       gate_id: Optional[str] = None,
                       now: Optional[datetime] = None) -> ScanOutcome:
    code = raw_payload.strip() if isinstance(raw_payload, str) else str(raw_payload)

    try:
        key = decode_ticket_code(code)
    except MalformedPayloadError:
        logger.warning(f"[GATE] {gate_id} | rejected malformed payload {code[:80]!r}")
        return Rejected(REASON_MALFORMED, MSG_INVALID_FORMAT, code)

    try:
        return _toggle(store, key, code, gate_id, now or datetime.utcnow())
    except SQLAlchemyError as e:
        store.rollback()
        logger.error(f"[GATE] {gate_id} | store unavailable, scan of {code} not recorded: {e}")
        return Rejected(REASON_STORE_UNAVAILABLE, MSG_STORE_UNAVAILABLE, code)


def _toggle(store: TicketStore, key: TicketKey, code: str, gate_id: Optional[str], now: datetime) -> ScanOutcome:
    ticket = store.get_ticket(key.event_id, key.attendee_id)
    if ticket is None:
        logger.warning(f"[GATE] {gate_id} | no ticket for event={key.event_id} user={key.attendee_id}")
        return Rejected(REASON_UNKNOWN_TICKET, MSG_INVALID_TICKET, code)
    if ticket.status != TICKET_VALID:
        logger.warning(f"[GATE] {gate_id} | ticket {ticket.id} has status={ticket.status}")
        return Rejected(REASON_NOT_VALID, MSG_INVALID_TICKET, code, ticket=ticket)

    latest = store.latest_entry(ticket.id)

    if latest is not None and latest.exit_time is None:
        store.close_entry(latest, now, gate_id)
        logger.info(f"[GATE] {gate_id} | EXIT ticket={ticket.id} (inside since {latest.entry_time})")
        return Exited(ticket, latest, code)

    record = store.insert_entry(TicketEntry(
        ticket_id=ticket.id,
        entry_time=now,
        exit_time=None,
        entry_gate=gate_id,
    ))
    logger.info(f"[GATE] {gate_id} | ENTRY ticket={ticket.id}")
    return Entered(ticket, record, code)
