# whereabout/services/ticket_store.py
"""
Data-store collaborator for the ticketing core.

Wraps one SQLAlchemy Session and exposes only the row operations issuance
and gate scanning need: compound-key lookup, insert, and update of the
latest entry record. Services receive a TicketStore explicitly; nothing in
the ticketing core opens its own session.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Session
from whereabout.models.event import Event
from whereabout.models.event_registration import EventRegistration
from whereabout.models.ticket import Ticket
from whereabout.models.ticket_entry import TicketEntry


class TicketStore:
    def __init__(self, db: Session):
        self.db = db

    # ── Reads ────────────────────────────────────────────────────────────
    def get_event(self, event_id: str) -> Optional[Event]:
        return self.db.query(Event).filter(Event.id == event_id).first()

    def get_ticket(self, event_id: str, user_id: str) -> Optional[Ticket]:
        return (
            self.db.query(Ticket)
            .filter(Ticket.event_id == event_id, Ticket.user_id == user_id)
            .first()
        )

    def get_ticket_by_id(self, ticket_id: str) -> Optional[Ticket]:
        return self.db.query(Ticket).filter(Ticket.id == ticket_id).first()

    def latest_entry(self, ticket_id: str) -> Optional[TicketEntry]:
        return (
            self.db.query(TicketEntry)
            .filter(TicketEntry.ticket_id == ticket_id)
            .order_by(TicketEntry.entry_time.desc(), TicketEntry.id.desc())
            .first()
        )

    def list_entries(self, ticket_id: str, limit: int = 50) -> list[TicketEntry]:
        return (
            self.db.query(TicketEntry)
            .filter(TicketEntry.ticket_id == ticket_id)
            .order_by(TicketEntry.entry_time.desc(), TicketEntry.id.desc())
            .limit(limit)
            .all()
        )

    def open_entries_for_event(self, event_id: str) -> list[TicketEntry]:
        """Entry records with no exit yet, i.e. attendees currently inside."""
        return (
            self.db.query(TicketEntry)
            .join(Ticket, Ticket.id == TicketEntry.ticket_id)
            .filter(Ticket.event_id == event_id, TicketEntry.exit_time.is_(None))
            .all()
        )

    def confirmed_registrations(self, user_id: str) -> list[EventRegistration]:
        return (
            self.db.query(EventRegistration)
            .filter(EventRegistration.user_id == user_id,
                    EventRegistration.status == "confirmed")
            .order_by(EventRegistration.registered_at)
            .all()
        )

    # ── Writes (each commits immediately) ────────────────────────────────
    def insert_ticket(self, ticket: Ticket) -> Ticket:
        """Insert and commit. IntegrityError propagates after rollback."""
        self.db.add(ticket)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(ticket)
        return ticket

    def insert_entry(self, entry: TicketEntry) -> TicketEntry:
        self.db.add(entry)
        self.db.commit()
        return entry

    def close_entry(self, entry: TicketEntry, exit_time: datetime,
                    gate_id: Optional[str] = None) -> TicketEntry:
        entry.exit_time = exit_time
        entry.exit_gate = gate_id
        self.db.commit()
        return entry

    def rollback(self):
        self.db.rollback()
