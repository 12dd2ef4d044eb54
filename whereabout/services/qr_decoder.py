# whereabout/services/qr_decoder.py
"""QR detection on a single still frame (OpenCV QRCodeDetector)."""

from typing import Optional
import cv2
import numpy as np
from whereabout.services.frame_source import Frame
from whereabout.utils.logger import get_logger

logger = get_logger(__name__)


class OpenCVQRDecoder:
    def __init__(self):
        self._detector = cv2.QRCodeDetector()

    def detect(self, image: Frame) -> Optional[str]:
        """
        Return the QR text found in the frame, or None when there is nothing
        to read. JPEG/PNG bytes are decoded first; arrays are used as-is.
        """
        if isinstance(image, (bytes, bytearray)):
            image = cv2.imdecode(np.frombuffer(image, dtype=np.uint8), cv2.IMREAD_COLOR)
        if image is None or getattr(image, "size", 0) == 0:
            return None

        try:
            data, _points, _ = self._detector.detectAndDecode(image)
        except cv2.error as e:
            logger.debug(f"QR detector failed on frame: {e}")
            return None
        return data or None
