"""
Test configuration and fixtures.

Every test gets its own in-memory SQLite database; factories commit into
it so workflow rollbacks never remove seeded rows.
"""
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from leadhub.database import Base, get_db, init_db
from leadhub.main import app
from leadhub.services.lead_lock import LeadLockService
from leadhub.services.lead_workflow import LeadWorkflow
from tests import factories


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    """Create a fresh database session for each test."""
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    for factory_cls in factories.ALL_FACTORIES:
        factory_cls._meta.sqlalchemy_session = session
    yield session
    session.close()


@pytest.fixture
def lock_service():
    """Process-local lead locks; tests never talk to redis."""
    return LeadLockService(redis_service=None, wait_seconds=1)


@pytest.fixture
def workflow(db_session, lock_service):
    return LeadWorkflow(db_session, lock_service=lock_service, trace_id="test-trace")


@pytest.fixture
def client(db_session, lock_service, monkeypatch):
    """Create test client with database session override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    monkeypatch.setattr("leadhub.services.lead_workflow.get_lead_lock_service", lambda: lock_service)
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"X-User-Id": "admin-1", "X-User-Role": "admin"}


@pytest.fixture
def partner_headers():
    """Headers for a partner user; the user id is the partner id."""
    def _factory(partner):
        return {"X-User-Id": partner.id, "X-User-Role": "partner"}
    return _factory


class EventCapture:
    """Captures events published on the bus for assertions."""

    def __init__(self):
        self.events: List[Dict[str, Any]] = []

    def capture_event(
        self,
        event_name: str,
        payload: Dict[str, Any],
        *,
        lead_id: Optional[str] = None,
        partner_id: Optional[str] = None,
        actor: Optional[str] = None,
        trace_id: Optional[str] = None,
        severity: str = "info",
        version: str = "1"
    ) -> bool:
        self.events.append({
            "event_name": event_name,
            "payload": payload,
            "lead_id": lead_id,
            "partner_id": partner_id,
            "actor": actor,
            "trace_id": trace_id,
        })
        return True

    def get_events(self, event_name: Optional[str] = None) -> List[Dict[str, Any]]:
        if event_name:
            return [e for e in self.events if e["event_name"] == event_name]
        return self.events

    def assert_event_emitted(self, event_name: str, **filters) -> Dict[str, Any]:
        matching_events = self.get_events(event_name)
        if not matching_events:
            raise AssertionError(f"Event '{event_name}' was not emitted")
        for event in matching_events:
            if all(event.get(key) == value for key, value in filters.items()):
                return event
        raise AssertionError(f"Event '{event_name}' was emitted but no event matched filters: {filters}")


@pytest.fixture
def event_capture(monkeypatch):
    capture = EventCapture()
    monkeypatch.setattr("leadhub.realtime.bus.emit", capture.capture_event)
    yield capture
