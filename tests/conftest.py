# tests/conftest.py
"""Shared fixtures: an in-memory SQLite database with every table created."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Point the app at SQLite before any whereabout module builds its engine
os.environ.setdefault("DATABASE_URL", "sqlite://")

import uuid
import pytest
from datetime import datetime, timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from whereabout.database import create_tables
from whereabout.models.event import Event
from whereabout.models.event_registration import EventRegistration


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_registration(db):
    """Create an event plus a registration; returns (event, user_id)."""
    def _make(title="Orientation Night", status="confirmed", user_id=None, event=None):
        if event is None:
            event = Event(title=title, location="Main Auditorium", capacity=100,
                          attendee_count=0, date_time=datetime.utcnow() + timedelta(days=1),
                          created_at=datetime.utcnow())
            db.add(event)
            db.commit()
        user_id = user_id or str(uuid.uuid4())
        db.add(EventRegistration(event_id=event.id, user_id=user_id, status=status,
                                 registered_at=datetime.utcnow()))
        db.commit()
        return event, user_id
    return _make
