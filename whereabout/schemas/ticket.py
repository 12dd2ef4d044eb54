# whereabout/schemas/ticket.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class EventSummaryOut(BaseModel):
    id: str
    title: str
    date_time: datetime
    location: Optional[str]
    category: Optional[str]

    class Config:
        from_attributes = True


class TicketOut(BaseModel):
    id: str
    event_id: str
    user_id: str
    ticket_code: str
    status: str
    created_at: Optional[datetime]
    event: Optional[EventSummaryOut] = None

    class Config:
        from_attributes = True


class TicketEntryOut(BaseModel):
    id: int
    ticket_id: str
    entry_time: datetime
    exit_time: Optional[datetime]
    entry_gate: Optional[str]
    exit_gate: Optional[str]

    class Config:
        from_attributes = True


class AttendanceOut(BaseModel):
    event_id: str
    title: str
    capacity: Optional[int]
    registered: int
    currently_inside: int
