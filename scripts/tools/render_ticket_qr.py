# scripts/tools/render_ticket_qr.py
"""
Write the QR image for a ticket code (or for an event/attendee pair) to disk.
Usage: python scripts/tools/render_ticket_qr.py --code EVENT-<uuid>-<uuid>
       python scripts/tools/render_ticket_qr.py --event <uuid> --user <uuid> -o ticket.png
"""

import sys
import os
import argparse
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from whereabout.services.ticket_codec import encode_ticket_code
from whereabout.utils.qr_image import render_ticket_qr


def main():
    parser = argparse.ArgumentParser(description="Render a ticket QR code as PNG")
    parser.add_argument("--code", default=None)
    parser.add_argument("--event", default=None)
    parser.add_argument("--user", default=None)
    parser.add_argument("-o", "--output", default="ticket.png")
    args = parser.parse_args()

    code = args.code
    if not code:
        if not (args.event and args.user):
            parser.error("pass --code, or both --event and --user")
        code = encode_ticket_code(args.event, args.user)

    with open(args.output, "wb") as f:
        f.write(render_ticket_qr(code))
    print(f"✅ {code} → {args.output}")


if __name__ == "__main__":
    main()
