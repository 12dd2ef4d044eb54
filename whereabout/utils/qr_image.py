# whereabout/utils/qr_image.py
"""
Renders a ticket code as a PNG QR image for the ticket view, download and
share. High error correction so a cracked phone screen still scans.
"""

import base64
import io
import qrcode


def render_ticket_qr(ticket_code: str, box_size: int = 10, border: int = 4) -> bytes:
    """Return PNG bytes for the given ticket code."""
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_H,
        box_size=box_size,
        border=border,
    )
    qr.add_data(ticket_code)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def render_ticket_qr_data_uri(ticket_code: str) -> str:
    png = render_ticket_qr(ticket_code)
    return f"data:image/png;base64,{base64.b64encode(png).decode('utf-8')}"
