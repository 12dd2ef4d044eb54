# whereabout/models/ticket.py
"""
Tickets table — exactly one row per (event, attendee).
The unique constraint on (event_id, user_id) is what makes issuance safe
under concurrent first views: a losing insert fails and the caller re-reads.
"""

import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from whereabout.database import Base

TICKET_VALID = "valid"
TICKET_USED = "used"
TICKET_INVALID = "invalid"


class Ticket(Base):
    __tablename__ = "tickets"
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_ticket_event_user"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    event_id = Column(String(36), ForeignKey("events.id"), nullable=False, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    ticket_code = Column(String(120), unique=True, nullable=False)
    status = Column(String(20), default=TICKET_VALID, nullable=False)  # valid | used | invalid
    created_at = Column(DateTime)

    event = relationship("Event", back_populates="tickets")
    entries = relationship(
        "TicketEntry", back_populates="ticket", order_by="TicketEntry.entry_time"
    )

    def __repr__(self):
        return f"<Ticket {self.id} event={self.event_id} user={self.user_id} status={self.status}>"
