# whereabout/routers/tickets.py
"""
Ticket view endpoints.
GET /users/{user_id}/tickets             — all tickets for a user (issues missing ones)
GET /events/{event_id}/tickets/{user_id} — one ticket (issued on first view)
GET /tickets/{ticket_id}/qr.png          — QR image for display / download
GET /tickets/{ticket_id}/entries         — gate entry/exit log, newest first
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.orm import Session
from whereabout.database import get_db
from whereabout.exceptions import InvalidTicketKeyError, UpstreamUnavailableError
from whereabout.models.event_registration import EventRegistration
from whereabout.schemas.ticket import TicketOut, TicketEntryOut
from whereabout.services.ticket_service import get_or_create_ticket, list_tickets_for_user
from whereabout.services.ticket_store import TicketStore
from whereabout.utils.qr_image import render_ticket_qr
from whereabout.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.get("/users/{user_id}/tickets", response_model=list[TicketOut], summary="List a user's tickets")
async def get_user_tickets(user_id: str, db: Session = Depends(get_db)):
    """One ticket per confirmed registration. Missing tickets are issued on the fly."""
    try:
        return await list_tickets_for_user(TicketStore(db), user_id)
    except UpstreamUnavailableError as e:
        raise HTTPException(status_code=503, detail=f"Ticket store unavailable: {e}")


@router.get("/events/{event_id}/tickets/{user_id}", response_model=TicketOut, summary="Get or issue a ticket")
async def get_ticket(event_id: str, user_id: str, db: Session = Depends(get_db)):
    registration = db.query(EventRegistration).filter(
        EventRegistration.event_id == event_id,
        EventRegistration.user_id == user_id,
        EventRegistration.status == "confirmed",
    ).first()
    if not registration:
        raise HTTPException(status_code=404, detail="No confirmed registration for this event")

    try:
        return await get_or_create_ticket(TicketStore(db), event_id, user_id)
    except InvalidTicketKeyError as e:
        raise HTTPException(status_code=422, detail=f"Cannot issue a ticket for this registration: {e}")
    except UpstreamUnavailableError as e:
        raise HTTPException(status_code=503, detail=f"Ticket store unavailable: {e}")


@router.get("/tickets/{ticket_id}/qr.png", summary="Ticket QR code image")
def get_ticket_qr(ticket_id: str, db: Session = Depends(get_db)):
    ticket = TicketStore(db).get_ticket_by_id(ticket_id)
    if not ticket:
        raise HTTPException(status_code=404, detail=f"Ticket '{ticket_id}' not found")
    return Response(
        content=render_ticket_qr(ticket.ticket_code),
        media_type="image/png",
        headers={"Content-Disposition": f'inline; filename="ticket-{ticket.id[:8]}.png"'},
    )


@router.get("/tickets/{ticket_id}/entries", response_model=list[TicketEntryOut], summary="Gate log for a ticket")
def get_ticket_entries(ticket_id: str, limit: int = 50, db: Session = Depends(get_db)):
    store = TicketStore(db)
    if not store.get_ticket_by_id(ticket_id):
        raise HTTPException(status_code=404, detail=f"Ticket '{ticket_id}' not found")
    return store.list_entries(ticket_id, limit=limit)
