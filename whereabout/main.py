# whereabout/main.py
"""
FastAPI application entry point.
Includes security middleware, global error handlers, all routers, and the
gate scanner that drives the station's camera.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from whereabout.routers import tickets, scanner, health
from whereabout.database import SessionLocal, create_tables
from whereabout.config import settings
from whereabout.exceptions import DeviceUnavailableError
from whereabout.services.feedback_service import FeedbackController
from whereabout.services.frame_source import build_frame_source
from whereabout.services.gate_scanner import GateScanner
from whereabout.utils.logger import get_logger
import time

logger = get_logger(__name__)

app = FastAPI(
    title="WhereAbout Ticketing API",
    description="Ticket issuance, QR ticket codes and gate entry/exit scanning for campus events.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (the web frontend is served from a different origin) ───────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],   # Restrict to the frontend origin in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── API Key Middleware ───────────────────────────────────────────────────────
class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Optional lightweight API key auth for staff endpoints.
    Health and docs stay open so monitoring works without a key.
    Set API_KEY in .env. Leave empty to disable auth.
    """
    async def dispatch(self, request: Request, call_next):
        open_paths = {"/api/v1/health", "/docs", "/redoc", "/openapi.json"}
        if request.url.path in open_paths or not settings.API_KEY:
            return await call_next(request)

        api_key = request.headers.get("X-API-Key") or request.query_params.get("api_key")
        if api_key != settings.API_KEY:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid or missing API key"},
            )
        return await call_next(request)


if settings.API_KEY:
    app.add_middleware(APIKeyMiddleware)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Global Exception Handler ─────────────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(tickets.router, prefix="/api/v1", tags=["🎟️  Tickets"])
app.include_router(scanner.router, prefix="/api/v1", tags=["🚪 Gate Scanner"])
app.include_router(health.router,  prefix="/api/v1", tags=["💚 Health"])


# ── Gate Scanner ─────────────────────────────────────────────────────────────
app.state.gate_scanner = GateScanner(
    gate_id=settings.GATE_ID,
    session_factory=SessionLocal,
    source_factory=lambda: build_frame_source(settings.GATE_CAMERA),
    feedback=FeedbackController(dismiss_after_s=settings.FEEDBACK_DISMISS_SECONDS),
    frame_interval=settings.SCAN_FRAME_INTERVAL_SECONDS,
    cooldown=settings.SCAN_COOLDOWN_SECONDS,
    duplicate_window=settings.SCAN_DUPLICATE_WINDOW_SECONDS,
)


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚀 WhereAbout backend starting up...")
    create_tables()
    logger.info("✅ Database tables ready")
    logger.info(f"🚪 Gate {settings.GATE_ID} camera: {settings.GATE_CAMERA_SOURCE}")
    logger.info(f"🌐 Listening on http://{settings.BACKEND_IP}:{settings.BACKEND_PORT}")
    logger.info("📖 API docs at /docs")

    if settings.SCANNER_AUTOSTART:
        try:
            await app.state.gate_scanner.start()
            logger.info("📡 Gate scanner started")
        except DeviceUnavailableError as e:
            logger.error(f"Gate scanner not started: {e}")


@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 WhereAbout backend shutting down...")
    await app.state.gate_scanner.stop()
