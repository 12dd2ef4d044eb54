# whereabout/routers/health.py
"""
System health check endpoint.
Returns status of backend + DB + gate camera reachability + scanner state.
"""

import requests
from requests.auth import HTTPDigestAuth
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from sqlalchemy import text
from whereabout.database import get_db
from whereabout.config import settings
from datetime import datetime

router = APIRouter()


def _check_gate_camera(camera: dict) -> str:
    if camera["source"] != "isapi":
        return f"local device {camera['device_index']} (not probed)"
    try:
        resp = requests.get(
            f"http://{camera['ip']}/ISAPI/System/deviceInfo",
            auth=HTTPDigestAuth(camera["user"], camera["password"]),
            timeout=3,
        )
        return "ok" if resp.status_code == 200 else f"http_{resp.status_code}"
    except requests.exceptions.ConnectionError:
        return "unreachable"
    except requests.exceptions.Timeout:
        return "timeout"


@router.get("/health", summary="System health check")
def health_check(request: Request, db: Session = Depends(get_db)):
    result = {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "backend": "ok",
        "database": "unknown",
        "gate_camera": "unknown",
        "scanner": request.app.state.gate_scanner.status(),
    }

    try:
        db.execute(text("SELECT 1"))
        result["database"] = "ok"
    except Exception as e:
        result["database"] = f"error: {str(e)}"
        result["status"] = "degraded"

    result["gate_camera"] = _check_gate_camera(settings.GATE_CAMERA)
    if result["gate_camera"] in ("unreachable", "timeout"):
        result["status"] = "degraded"

    return result
