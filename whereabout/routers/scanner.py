# whereabout/routers/scanner.py
"""
Gate scanning endpoints.
POST /scan                     — validate one payload (handheld / manual entry)
POST /scanner/start, /stop     — control the gate camera loop
GET  /scanner/status           — loop state + last camera error
GET  /events/{id}/attendance   — how many attendees are inside right now
WS   /ws/gate                  — live scan feedback for the gate display
"""

from fastapi import APIRouter, Depends, HTTPException, Request, WebSocket, WebSocketDisconnect
from sqlalchemy import func
from sqlalchemy.orm import Session
from whereabout.database import get_db
from whereabout.exceptions import DeviceUnavailableError
from whereabout.models.event_registration import EventRegistration
from whereabout.schemas.scan import ScanRequest, ScanResultOut, ScannerStatusOut
from whereabout.schemas.ticket import AttendanceOut
from whereabout.services.gate_scanner import GateScanner, event_title_for
from whereabout.services.gate_service import process_scan
from whereabout.services.ticket_store import TicketStore
from whereabout.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


def get_gate_scanner(request: Request) -> GateScanner:
    return request.app.state.gate_scanner


@router.post("/scan", response_model=ScanResultOut, summary="Validate a scanned ticket code")
async def scan_ticket(body: ScanRequest, db: Session = Depends(get_db),
                      scanner: GateScanner = Depends(get_gate_scanner)):
    """Toggles entry/exit for a valid ticket. Rejections are returned with HTTP 200."""
    gate_id = body.gate_id or scanner.gate_id
    outcome = await process_scan(TicketStore(db), body.payload, gate_id=gate_id)

    ticket = getattr(outcome, "ticket", None)
    record = getattr(outcome, "record", None)
    feedback = await scanner.feedback.show(outcome, event_title_for(outcome))

    return ScanResultOut(
        ticket_status=outcome.ticket_status,
        entry_status=outcome.entry_status,
        message=outcome.message,
        ticket_code=outcome.ticket_code,
        ticket_id=ticket.id if ticket is not None else None,
        entry_id=record.id if record is not None else None,
        entry_time=record.entry_time if record is not None else None,
        exit_time=record.exit_time if record is not None else None,
        feedback=feedback.to_dict(),
    )


@router.post("/scanner/start", response_model=ScannerStatusOut, summary="Start the gate camera")
async def start_scanner(scanner: GateScanner = Depends(get_gate_scanner)):
    try:
        await scanner.start()
    except DeviceUnavailableError as e:
        raise HTTPException(status_code=503, detail=f"Camera unavailable: {e}")
    return scanner.status()


@router.post("/scanner/stop", response_model=ScannerStatusOut, summary="Stop the gate camera")
async def stop_scanner(scanner: GateScanner = Depends(get_gate_scanner)):
    await scanner.stop()
    return scanner.status()


@router.get("/scanner/status", response_model=ScannerStatusOut)
def scanner_status(scanner: GateScanner = Depends(get_gate_scanner)):
    return scanner.status()


@router.get("/events/{event_id}/attendance", response_model=AttendanceOut, summary="Attendees inside now")
def get_attendance(event_id: str, db: Session = Depends(get_db)):
    store = TicketStore(db)
    event = store.get_event(event_id)
    if not event:
        raise HTTPException(status_code=404, detail=f"Event '{event_id}' not found")

    registered = db.query(func.count(EventRegistration.id)).filter(
        EventRegistration.event_id == event_id,
        EventRegistration.status == "confirmed",
    ).scalar()
    return AttendanceOut(
        event_id=event.id,
        title=event.title,
        capacity=event.capacity,
        registered=registered or 0,
        currently_inside=len(store.open_entries_for_event(event_id)),
    )


@router.websocket("/ws/gate")
async def gate_feedback_socket(websocket: WebSocket):
    scanner: GateScanner = websocket.app.state.gate_scanner
    await websocket.accept()
    scanner.feedback.subscribe(websocket.send_json)
    logger.info(f"Gate display connected ({scanner.gate_id})")
    try:
        await websocket.send_json({"type": "scanner_status", **scanner.status()})
        while True:
            # The display only listens; incoming text is ignored
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info(f"Gate display disconnected ({scanner.gate_id})")
    finally:
        scanner.feedback.unsubscribe(websocket.send_json)
