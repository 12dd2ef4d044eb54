# scripts/setup/init_db.py
"""
Create the ticketing tables and check the schema the gate relies on.

Ticket issuance depends on the (event_id, user_id) unique constraint on
tickets, so a database created by hand without it is reported as broken.

Usage:
  python scripts/setup/init_db.py
  python scripts/setup/init_db.py --reset   # drop and recreate (demo / dev only)
"""

import argparse
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from sqlalchemy import func, inspect
from sqlalchemy.exc import SQLAlchemyError
from whereabout.config import settings
from whereabout.database import Base, SessionLocal, create_tables, engine
from whereabout.models import Event, EventRegistration, Ticket, TicketEntry

REQUIRED_UNIQUE = {"tickets": {"event_id", "user_id"}, "event_registrations": {"event_id", "user_id"}}


def missing_unique_constraints(inspector) -> list[str]:
    problems = []
    for table, columns in REQUIRED_UNIQUE.items():
        found = [set(uc["column_names"]) for uc in inspector.get_unique_constraints(table)]
        found += [set(ix["column_names"]) for ix in inspector.get_indexes(table) if ix.get("unique")]
        if columns not in found:
            problems.append(f"{table}({', '.join(sorted(columns))})")
    return problems


def main():
    parser = argparse.ArgumentParser(description="Create and verify the WhereAbout ticketing schema")
    parser.add_argument("--reset", action="store_true", help="drop every ticketing table first")
    args = parser.parse_args()

    print(f"🗄️  Database: {settings.DATABASE_URL}")

    try:
        if args.reset:
            print("⚠️  Dropping ticketing tables...")
            Base.metadata.drop_all(bind=engine)
        create_tables()
    except SQLAlchemyError as e:
        print(f"❌ Cannot prepare database: {e}")
        print("   For a local run, point DATABASE_URL at SQLite: sqlite:///./whereabout.db")
        sys.exit(1)

    inspector = inspect(engine)
    present = set(inspector.get_table_names())
    expected = set(Base.metadata.tables)
    missing = sorted(expected - present)
    if missing:
        print(f"❌ Missing tables: {', '.join(missing)}")
        sys.exit(1)

    broken = missing_unique_constraints(inspector)
    if broken:
        print(f"❌ Missing unique constraints: {', '.join(broken)}")
        print("   Concurrent ticket views could issue duplicate tickets. Recreate with --reset.")
        sys.exit(1)

    with SessionLocal() as db:
        counts = {
            model.__tablename__: db.query(func.count()).select_from(model).scalar()
            for model in (Event, EventRegistration, Ticket, TicketEntry)
        }

    print("✅ Schema OK")
    for table, count in counts.items():
        print(f"   ✓ {table:<22} {count} rows")
    print("\nNext: python scripts/setup/seed_demo.py  (demo event + ticket)")


if __name__ == "__main__":
    main()
