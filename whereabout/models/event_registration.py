# whereabout/models/event_registration.py
"""
Event registrations — written by the signup flow, read here to decide
which tickets a user should see. One row per (event, user).
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from whereabout.database import Base


class EventRegistration(Base):
    __tablename__ = "event_registrations"
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_registration_event_user"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(36), ForeignKey("events.id"), nullable=False, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    status = Column(String(20), default="confirmed", nullable=False)  # confirmed | cancelled
    registered_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<EventRegistration event={self.event_id} user={self.user_id} status={self.status}>"
