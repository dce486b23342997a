"""Shared test fixtures for the linear-notify test suite.

Provides an in-memory provider, a recording sink, Redis mocks and record
factories so polling tests run without network access or a desktop session.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from linear_notify.log import LogConfig
from linear_notify.preferences import Preferences, PreferenceStore
from linear_notify.providers.base import NotificationProvider
from linear_notify.schemas.notifications import CanonicalNotification
from linear_notify.schemas.records import RawRecord
from linear_notify.sinks.base import NotificationSink

BASE_TIME = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeProvider(NotificationProvider):
    """Provider returning queued batches; an Exception in the queue is raised."""

    def __init__(self, authenticated: bool = True):
        self.authenticated = authenticated
        self.batches: list = []
        self.fetch_count = 0
        # When set, get_updates waits on it before answering
        self.gate: asyncio.Event | None = None
        self.marked_read: list[str] = []
        self.snoozed: list[tuple[str, datetime]] = []
        self.closed = False

    def is_authenticated(self) -> bool:
        return self.authenticated

    async def get_updates(self) -> list[RawRecord]:
        self.fetch_count += 1
        if self.gate is not None:
            await self.gate.wait()
        if not self.batches:
            return []
        batch = self.batches.pop(0)
        if isinstance(batch, Exception):
            raise batch
        return batch

    async def mark_as_read(self, notification_id: str) -> bool:
        self.marked_read.append(notification_id)
        return True

    async def snooze(self, notification_id: str, until: datetime) -> bool:
        self.snoozed.append((notification_id, until))
        return True

    async def get_current_user(self) -> dict:
        return {"id": "user-1", "name": "Test User", "email": "test@example.com"}

    async def close(self) -> None:
        self.closed = True


class RecordingSink(NotificationSink):
    """Sink that keeps every delivered notification; ids in ``fail_ids`` raise."""

    name = "recording"

    def __init__(self, preferences: PreferenceStore | None = None):
        super().__init__(preferences)
        self.delivered: list[CanonicalNotification] = []
        self.fail_ids: set[str] = set()

    async def deliver(self, notification: CanonicalNotification) -> None:
        if notification.id in self.fail_ids:
            raise RuntimeError("notification daemon went away")
        self.delivered.append(notification)

    @property
    def delivered_ids(self) -> list[str]:
        return [n.id for n in self.delivered]


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def log_config():
    return LogConfig(debug=True)


@pytest.fixture
def preference_store():
    """In-memory preference store authenticated with a personal API token."""
    return PreferenceStore(Preferences(auth_method="token", api_token="lin_api_test"))


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def recording_sink():
    return RecordingSink()


# ---------------------------------------------------------------------------
# Redis mock
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_redis():
    """Mock async Redis client with common operations."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.setex = AsyncMock()
    redis.delete = AsyncMock(return_value=1)
    redis.publish = AsyncMock()
    redis.pubsub = MagicMock()
    return redis


# ---------------------------------------------------------------------------
# Model factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_record():
    """Factory for RawRecord instances. ``minutes`` offsets created_at from BASE_TIME."""

    def _make(
        record_id: str,
        minutes: int = 0,
        type: str = "issueAssignedToYou",
        title: str | None = "ENG-1 Fix the login flow",
        subtitle: str | None = None,
        url: str | None = None,
        **kwargs,
    ) -> RawRecord:
        return RawRecord(
            id=record_id,
            created_at=BASE_TIME + timedelta(minutes=minutes),
            type=type,
            title=title,
            subtitle=subtitle,
            url=url or f"https://linear.app/acme/issue/{record_id}",
            **kwargs,
        )

    return _make
