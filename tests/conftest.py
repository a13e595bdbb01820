"""Shared test fixtures."""

import threading
import time
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from secret_santa.core.database import get_session
from secret_santa.core.dependencies import get_orchestrator
from secret_santa.draw.orchestrator import DrawOrchestrator, EventLocks
from secret_santa.draw.store import DrawStore
from secret_santa.main import app
from secret_santa.models import Event, Participant
from secret_santa.notify.sender import SendResult


class FakeNotifier:
    """Records every message instead of sending it.

    Addresses in fail_for get a failed SendResult; addresses in slow_for
    wait `delay` seconds before answering.
    """

    def __init__(self, fail_for=(), slow_for=(), delay=0.0):
        self.fail_for = set(fail_for)
        self.slow_for = set(slow_for)
        self.delay = delay
        self.sent: list[tuple[str, str, str]] = []
        self._lock = threading.Lock()

    def send(self, to: str, subject: str, body: str) -> SendResult:
        if to in self.slow_for:
            time.sleep(self.delay)
        with self._lock:
            self.sent.append((to, subject, body))
            message_number = len(self.sent)
        if to in self.fail_for:
            return SendResult(success=False, error=f"Mailbox unavailable: {to}")
        return SendResult(success=True, external_id=f"<{message_number}@test.invalid>")

    def recipients(self) -> set[str]:
        return {to for to, _, _ in self.sent}


@pytest.fixture(name="engine")
def engine_fixture():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="session")
def session_fixture(engine):
    """Create a new database session for each test."""
    with Session(engine) as session:
        yield session


@pytest.fixture(name="store")
def store_fixture(engine) -> DrawStore:
    return DrawStore(engine)


@pytest.fixture(name="notifier")
def notifier_fixture() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture(name="orchestrator")
def orchestrator_fixture(store: DrawStore, notifier: FakeNotifier) -> DrawOrchestrator:
    """Orchestrator on the test database with its own lock registry."""
    return DrawOrchestrator(
        store,
        notifier,
        timeout=5.0,
        max_workers=4,
        base_url="https://santa.example.com",
        locks=EventLocks(),
        notify_locks=EventLocks(),
    )


@pytest.fixture(name="client")
def client_fixture(session: Session, orchestrator: DrawOrchestrator):
    """Create a test client with the test database and orchestrator."""

    def get_session_override():
        return session

    def get_orchestrator_override():
        return orchestrator

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_orchestrator] = get_orchestrator_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


def _create_event(session: Session, name: str, people: list[dict]) -> Event:
    event = Event(
        id=uuid4(),
        name=name,
        description="Gift exchange",
        date=datetime.now(UTC) + timedelta(days=20),
    )
    session.add(event)
    session.flush()

    for offset, person in enumerate(people):
        session.add(
            Participant(
                event_id=event.id,
                created_at=datetime.now(UTC) + timedelta(seconds=offset),
                **person,
            )
        )

    session.commit()
    session.refresh(event)
    return event


@pytest.fixture(name="empty_event")
def empty_event_fixture(session: Session) -> Event:
    """Create an event nobody registered for yet."""
    return _create_event(session, "Empty Party", [])


@pytest.fixture(name="lonely_event")
def lonely_event_fixture(session: Session) -> Event:
    """Create an event with a single participant."""
    return _create_event(
        session, "Lonely Party", [{"name": "Solo", "email": "solo@example.com"}]
    )


@pytest.fixture(name="pair_event")
def pair_event_fixture(session: Session) -> Event:
    """Create an event with exactly two participants."""
    return _create_event(
        session,
        "Couple Party",
        [
            {"name": "Ann", "email": "ann@example.com"},
            {"name": "Ben", "email": "ben@example.com"},
        ],
    )


@pytest.fixture(name="event")
def event_fixture(session: Session) -> Event:
    """Create an event with three participants, one with a gift idea and image."""
    return _create_event(
        session,
        "Office Party",
        [
            {"name": "Alice", "email": "alice@example.com"},
            {"name": "Bob", "email": "bob@example.com", "gift_idea": "A good book"},
            {
                "name": "Carol",
                "email": "carol@example.com",
                "gift_idea": "Warm socks",
                "gift_image": "/uploads/socks.png",
            },
        ],
    )


@pytest.fixture(name="make_notifier")
def make_notifier_fixture():
    """Factory for notifiers with scripted failures or delays."""
    return FakeNotifier
