"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta, timezone

import pytest

from reminder_service.bulk import BulkOperationCoordinator
from reminder_service.db import create_db_engine, create_session_factory, init_db
from reminder_service.errors import PublishError
from reminder_service.lifecycle import ReminderLifecycleService
from reminder_service.ports import EventPublisher
from reminder_service.repository import SqlAlchemyReminderStore


T0 = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingPublisher(EventPublisher):
    """Keeps every published event; can be told to fail."""

    def __init__(self):
        self.events = []
        self.fail = False

    def publish(self, topic, payload):
        if self.fail:
            raise PublishError(f"broker down for {topic}")
        self.events.append((topic, dict(payload)))

    def topics(self):
        return [topic for topic, _ in self.events]

    def of(self, topic):
        return [payload for t, payload in self.events if t == topic]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    return SqlAlchemyReminderStore(create_session_factory(engine))


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def service(store, publisher, clock):
    return ReminderLifecycleService(store, publisher, clock=clock)


@pytest.fixture
def bulk(service):
    return BulkOperationCoordinator(service)


@pytest.fixture
def make_request():
    """Build a valid create payload, overriding any field."""

    def _make(**overrides):
        data = {
            "user_id": "u1",
            "workspace_id": "w1",
            "channel_id": "c1",
            "type": "message",
            "title": "Stand-up",
            "remind_at": T0 + timedelta(hours=1),
        }
        data.update(overrides)
        return data

    return _make
