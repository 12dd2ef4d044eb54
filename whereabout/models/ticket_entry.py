# whereabout/models/ticket_entry.py
"""
Gate entry/exit log (append-only per ticket).
A row is inserted when an attendee walks in; its exit_time is filled in by
the next scan of the same ticket. exit_time IS NULL on the latest row means
the attendee is currently inside.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from whereabout.database import Base


class TicketEntry(Base):
    __tablename__ = "ticket_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ticket_id = Column(String(36), ForeignKey("tickets.id"), nullable=False, index=True)
    entry_time = Column(DateTime, nullable=False, index=True)
    exit_time = Column(DateTime)             # NULL while inside
    entry_gate = Column(String(50))
    exit_gate = Column(String(50))

    ticket = relationship("Ticket", back_populates="entries")

    @property
    def is_inside(self) -> bool:
        return self.exit_time is None

    def __repr__(self):
        return f"<TicketEntry {self.id} ticket={self.ticket_id} in={self.entry_time} out={self.exit_time}>"
