# whereabout/models/event.py
"""
Campus events table.
Only the columns the ticketing and gate flows read are modelled here;
discovery, map and feed data live with the hosted frontend.
"""

import uuid
from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.orm import relationship
from whereabout.database import Base


class Event(Base):
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(200), nullable=False)
    description = Column(Text)
    category = Column(String(50))
    date_time = Column(DateTime, nullable=False, index=True)
    location = Column(String(200))
    capacity = Column(Integer)                             # enforced by registration, not at the gate
    attendee_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime)

    tickets = relationship("Ticket", back_populates="event")

    def __repr__(self):
        return f"<Event {self.id} title={self.title!r} {self.attendee_count}/{self.capacity}>"
