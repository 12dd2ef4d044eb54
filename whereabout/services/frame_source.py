# whereabout/services/frame_source.py
"""
Camera frame sources for the gate scanner.

Two kinds of gate camera are supported:
  - isapi:  an IP camera at the gate; stills are pulled from
            GET http://{cam_ip}/ISAPI/Streaming/channels/{ch}01/picture
            (HTTP Digest Auth, returns one JPEG per request)
  - device: a USB / built-in camera on the gate PC, read with OpenCV

Every source has the same lifecycle: open() acquires the camera or raises
DeviceUnavailableError, read() returns the current still (or None when no
frame is ready), close() releases it. close() is safe to call twice.

OpenCV capture calls block, so the device source runs them in a worker thread
and the event loop stays free for the API and the gate display socket.
"""

import asyncio
from typing import Optional, Union
import cv2
import httpx
import numpy as np
from whereabout.exceptions import DeviceUnavailableError
from whereabout.utils.logger import get_logger

logger = get_logger(__name__)

Frame = Union[bytes, np.ndarray]


class FrameSource:
    name = "frame-source"

    async def open(self):
        raise NotImplementedError

    async def read(self) -> Optional[Frame]:
        raise NotImplementedError

    async def close(self):
        raise NotImplementedError


class IsapiSnapshotSource(FrameSource):
    """Pulls JPEG stills from a Hikvision-style camera over ISAPI."""

    def __init__(self, ip: str, user: str, password: str, channel: int = 1, timeout: float = 5.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.ip = ip
        self.name = f"isapi:{ip}"
        self.url = f"http://{ip}/ISAPI/Streaming/channels/{channel}01/picture"
        self._auth = httpx.DigestAuth(user, password)
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def open(self):
        client = httpx.AsyncClient(auth=self._auth, timeout=self._timeout, transport=self._transport)
        try:
            response = await client.get(self.url)
        except httpx.HTTPError as e:
            await client.aclose()
            raise DeviceUnavailableError(f"Camera {self.ip} unreachable: {e}") from e

        if response.status_code == 401:
            await client.aclose()
            raise DeviceUnavailableError(f"Camera {self.ip} rejected credentials")
        if response.status_code != 200:
            await client.aclose()
            raise DeviceUnavailableError(f"Camera {self.ip} returned HTTP {response.status_code}")

        self._client = client
        logger.info(f"📷 Gate camera {self.ip} ready ({len(response.content)} byte stills)")

    async def read(self) -> Optional[bytes]:
        if self._client is None:
            raise DeviceUnavailableError(f"Camera {self.ip} is not open")
        try:
            response = await self._client.get(self.url)
        except httpx.TimeoutException:
            logger.warning(f"⏱  {self.ip} — snapshot timeout, skipping frame")
            return None
        except httpx.HTTPError as e:
            raise DeviceUnavailableError(f"Camera {self.ip} connection lost: {e}") from e

        if response.status_code != 200:
            logger.warning(f"⚠️  {self.ip} snapshot returned HTTP {response.status_code}")
            return None
        return response.content

    async def close(self):
        client, self._client = self._client, None
        if client is not None:
            await client.aclose()
            logger.info(f"📷 Gate camera {self.ip} released")


class OpenCVDeviceSource(FrameSource):
    """Local capture device (USB webcam, laptop camera)."""

    def __init__(self, device_index: int = 0):
        self.device_index = device_index
        self.name = f"device:{device_index}"
        self._capture = None
        self._lock = asyncio.Lock()

    async def open(self):
        capture = await asyncio.to_thread(cv2.VideoCapture, self.device_index)
        if not capture.isOpened():
            await asyncio.to_thread(capture.release)
            raise DeviceUnavailableError(
                f"Capture device {self.device_index} unavailable (missing or permission denied)"
            )
        self._capture = capture
        logger.info(f"📷 Capture device {self.device_index} opened")

    async def read(self) -> Optional[np.ndarray]:
        if self._capture is None:
            raise DeviceUnavailableError(f"Capture device {self.device_index} is not open")
        async with self._lock:
            capture = self._capture
            if capture is None:
                return None   # closed while waiting
            ok, frame = await asyncio.to_thread(capture.read)
        return frame if ok else None

    async def close(self):
        capture, self._capture = self._capture, None
        if capture is not None:
            # Wait for a read still running in the worker thread
            async with self._lock:
                await asyncio.to_thread(capture.release)
            logger.info(f"📷 Capture device {self.device_index} released")


def build_frame_source(camera: dict) -> FrameSource:
    """Create the source described by settings.GATE_CAMERA."""
    kind = camera.get("source", "isapi")
    if kind == "isapi":
        return IsapiSnapshotSource(camera["ip"], camera["user"], camera["password"],
                                   channel=camera.get("channel", 1))
    if kind == "device":
        return OpenCVDeviceSource(camera.get("device_index", 0))
    raise ValueError(f"Unknown gate camera source: {kind!r}")
