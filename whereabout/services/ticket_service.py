# whereabout/services/ticket_service.py
"""
Ticket issuance.

A ticket is created lazily, the first time an attendee with a confirmed
registration opens their ticket view. Registration itself is checked
upstream; this module only guarantees one row per (event, attendee).

Concurrency: the tickets table is unique on (event_id, user_id). When two
first views race, the loser's insert raises IntegrityError and it returns
the winner's row instead.
"""

from datetime import datetime
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from whereabout.exceptions import InvalidTicketKeyError, UpstreamUnavailableError
from whereabout.models.ticket import Ticket, TICKET_VALID
from whereabout.services.ticket_codec import encode_ticket_code
from whereabout.services.ticket_store import TicketStore
from whereabout.utils.logger import get_logger

logger = get_logger(__name__)

_UNREACHABLE = (OperationalError, InterfaceError)


async def get_or_create_ticket(store: TicketStore, event_id: str, attendee_id: str) -> Ticket:
    try:
        ticket_code = encode_ticket_code(event_id, attendee_id)
    except ValueError as e:
        raise InvalidTicketKeyError(str(e)) from e

    try:
        ticket = store.get_ticket(event_id, attendee_id)
        if ticket:
            return ticket

        ticket = Ticket(
            event_id=event_id,
            user_id=attendee_id,
            ticket_code=ticket_code,
            status=TICKET_VALID,
            created_at=datetime.utcnow(),
        )
        try:
            ticket = store.insert_ticket(ticket)
        except IntegrityError:
            existing = store.get_ticket(event_id, attendee_id)
            if existing is None:
                raise
            logger.info(f"[TICKET] Concurrent issue for event={event_id} user={attendee_id}, using existing {existing.id}")
            return existing

    except _UNREACHABLE as e:
        logger.error(f"[TICKET] Store unavailable issuing event={event_id} user={attendee_id}: {e}")
        raise UpstreamUnavailableError(str(e)) from e

    logger.info(f"[TICKET] Issued {ticket.id} for event={event_id} user={attendee_id}")
    return ticket


async def list_tickets_for_user(store: TicketStore, user_id: str) -> list[Ticket]:
    """Ticket for every confirmed registration, issuing any that are missing."""
    try:
        registrations = store.confirmed_registrations(user_id)
    except _UNREACHABLE as e:
        raise UpstreamUnavailableError(str(e)) from e

    tickets = []
    for reg in registrations:
        try:
            tickets.append(await get_or_create_ticket(store, reg.event_id, user_id))
        except InvalidTicketKeyError as e:
            # One unissuable registration must not hide the user's other tickets
            logger.warning(f"[TICKET] Skipping registration {reg.id}: {e}")
    return tickets
