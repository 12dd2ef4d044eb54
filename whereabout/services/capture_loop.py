# whereabout/services/capture_loop.py
"""
QR capture loop — samples the gate camera until a code is read or the
operator stops scanning.

    IDLE ──start()──▶ REQUESTING ──camera ready──▶ SCANNING ──stop()/camera lost──▶ STOPPED
                          │                                                            │
                          └──────────── acquisition failed ───────────────────────────▶┘
    STOPPED ──start()──▶ REQUESTING   (a fresh session)

While SCANNING, each iteration reads one frame and tries to decode it:
  - nothing found → wait frame_interval, sample again
  - code found    → await on_payload(code), then wait cooldown

Scans are handled one at a time: run() awaits on_payload before reading the
next frame, so two frames of the same held-up code can never be validated
concurrently. The same code is also ignored for duplicate_window seconds
after it was handled.

stop() releases the camera before it returns. A validation already in
flight finishes; no frame is read or decoded afterwards.
"""

import asyncio
import enum
from typing import Awaitable, Callable, Optional
from whereabout.exceptions import DeviceUnavailableError
from whereabout.services.frame_source import FrameSource
from whereabout.services.qr_decoder import OpenCVQRDecoder
from whereabout.utils.logger import get_logger

logger = get_logger(__name__)

PayloadHandler = Callable[[str], Awaitable[None]]


class CaptureState(str, enum.Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    SCANNING = "scanning"
    STOPPED = "stopped"


class QRCaptureLoop:
    def __init__(self, source: FrameSource, decoder: OpenCVQRDecoder, on_payload: PayloadHandler,
                 frame_interval: float = 1 / 15, cooldown: float = 2.0,
                 duplicate_window: float = 5.0):
        self.source = source
        self.decoder = decoder
        self.on_payload = on_payload
        self.frame_interval = frame_interval
        self.cooldown = cooldown
        self.duplicate_window = duplicate_window

        self._state = CaptureState.IDLE
        self._source_open = False
        self._in_flight = False
        self._last_payload: Optional[str] = None
        self._last_payload_at = float("-inf")
        self.frames_read = 0
        self.payloads_handled = 0

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._in_flight

    async def start(self):
        """Acquire the camera. Raises DeviceUnavailableError and ends in STOPPED on failure."""
        if self._state in (CaptureState.REQUESTING, CaptureState.SCANNING):
            return

        self._state = CaptureState.REQUESTING
        logger.info(f"📷 Requesting camera {self.source.name}")
        try:
            await self.source.open()
        except DeviceUnavailableError:
            self._state = CaptureState.STOPPED
            raise
        except Exception as e:
            self._state = CaptureState.STOPPED
            raise DeviceUnavailableError(f"{self.source.name}: {e}") from e

        self._source_open = True
        if self._state is not CaptureState.REQUESTING:
            # stop() arrived while the camera was being acquired
            await self._release()
            return

        self._state = CaptureState.SCANNING
        logger.info(f"✅ {self.source.name} scanning")

    async def stop(self):
        if self._state is CaptureState.STOPPED:
            return
        self._state = CaptureState.STOPPED
        await self._release()
        logger.info(f"🛑 {self.source.name} stopped")

    async def run(self):
        """
        Sample frames until stopped. Returns normally after stop(); raises
        DeviceUnavailableError (after moving to STOPPED) if the camera drops.
        """
        while self._state is CaptureState.SCANNING:
            try:
                frame = await self.source.read()
            except Exception as e:
                if self._state is not CaptureState.SCANNING:
                    break
                logger.error(f"❌ {self.source.name} — frame read failed: {e}")
                await self.stop()
                if isinstance(e, DeviceUnavailableError):
                    raise
                raise DeviceUnavailableError(f"{self.source.name}: {e}") from e

            if self._state is not CaptureState.SCANNING:
                break
            self.frames_read += 1

            payload = None
            if frame is not None:
                # Detection is CPU-bound; keep it off the event loop
                payload = await asyncio.to_thread(self.decoder.detect, frame)
            if self._state is not CaptureState.SCANNING:
                break
            if payload and self._accepts(payload):
                await self._dispatch(payload)
                await asyncio.sleep(self.cooldown)
            else:
                await asyncio.sleep(self.frame_interval)

    def _accepts(self, payload: str) -> bool:
        if self._in_flight:
            return False
        if payload != self._last_payload:
            return True
        elapsed = asyncio.get_running_loop().time() - self._last_payload_at
        return elapsed >= self.duplicate_window

    async def _dispatch(self, payload: str):
        self._in_flight = True
        self._last_payload = payload
        try:
            await self.on_payload(payload)
            self.payloads_handled += 1
        except Exception as e:
            # One bad scan must not end the session
            logger.error(f"Scan handling error on {self.source.name}: {e}", exc_info=True)
        finally:
            self._in_flight = False
            self._last_payload_at = asyncio.get_running_loop().time()

    async def _release(self):
        if self._source_open:
            self._source_open = False
            await self.source.close()
