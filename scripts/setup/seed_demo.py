# scripts/setup/seed_demo.py
"""
Seed a demo event with one confirmed registration and issue its ticket.
Prints the ticket code so it can be fed to simulate_scan.py.
Usage: python scripts/setup/seed_demo.py [--title "Orientation Night"] [--user <uuid>]
"""

import sys
import os
import argparse
import asyncio
import uuid
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from datetime import datetime, timedelta
from whereabout.database import SessionLocal, create_tables
from whereabout.models.event import Event
from whereabout.models.event_registration import EventRegistration
from whereabout.services.ticket_service import get_or_create_ticket
from whereabout.services.ticket_store import TicketStore


def main():
    parser = argparse.ArgumentParser(description="Create a demo event, registration and ticket")
    parser.add_argument("--title", default="Orientation Night")
    parser.add_argument("--location", default="Main Auditorium")
    parser.add_argument("--capacity", type=int, default=200)
    parser.add_argument("--user", default=None, help="attendee UUID (random if omitted)")
    args = parser.parse_args()

    create_tables()
    user_id = args.user or str(uuid.uuid4())

    db = SessionLocal()
    try:
        event = Event(title=args.title, location=args.location, capacity=args.capacity,
                      attendee_count=1, date_time=datetime.utcnow() + timedelta(days=1),
                      created_at=datetime.utcnow())
        db.add(event)
        db.commit()
        db.add(EventRegistration(event_id=event.id, user_id=user_id, status="confirmed",
                                 registered_at=datetime.utcnow()))
        db.commit()

        ticket = asyncio.run(get_or_create_ticket(TicketStore(db), event.id, user_id))
        print(f"✅ Event    : {event.title} ({event.id})")
        print(f"✅ Attendee : {user_id}")
        print(f"🎟️  Ticket   : {ticket.id}")
        print(f"   Code     : {ticket.ticket_code}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
