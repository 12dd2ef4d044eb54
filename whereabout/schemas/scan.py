# whereabout/schemas/scan.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class ScanRequest(BaseModel):
    payload: str
    gate_id: Optional[str] = None


class ScanResultOut(BaseModel):
    ticket_status: str            # valid | invalid
    entry_status: str             # entered | exited | error
    message: str
    ticket_code: str
    ticket_id: Optional[str] = None
    entry_id: Optional[int] = None
    entry_time: Optional[datetime] = None
    exit_time: Optional[datetime] = None
    feedback: dict


class ScannerStatusOut(BaseModel):
    gate_id: str
    state: str                    # idle | requesting | scanning | stopped
    camera: Optional[str]
    busy: bool
    frames_read: int
    scans_processed: int
    last_error: Optional[str]
