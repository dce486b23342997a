"""Tests for notification sinks: type filtering, Redis publishing, desktop retry
and desktop popup actions."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import RecordingSink
from linear_notify.actions import ActionRouter
from linear_notify.preferences import Preferences, PreferenceStore
from linear_notify.schemas.notifications import CanonicalNotification, NotificationType
from linear_notify.sinks.base import FanoutSink
from linear_notify.sinks.desktop import (
    DesktopNotificationSink,
    NotifySendSource,
    SourceUnavailableError,
)
from linear_notify.sinks.pubsub import RedisNotificationSink, available_actions


def make_notification(
    notification_type: NotificationType = NotificationType.ISSUE_ASSIGNED,
    linear_id: str | None = "n-1",
) -> CanonicalNotification:
    return CanonicalNotification(
        id=f"notification-{linear_id or 'x'}",
        type=notification_type,
        title="ENG-1 Fix the login flow",
        body="Jane Doe: Assigned to you",
        url="https://linear.app/acme/issue/ENG-1",
        timestamp=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
        data={"notification_id": linear_id} if linear_id else {},
    )


# ---------------------------------------------------------------------------
# Type filter
# ---------------------------------------------------------------------------


class TestTypeFilter:
    @pytest.mark.parametrize(
        "toggle,notification_type",
        [
            ("notify_new_issues", NotificationType.NEW_ISSUE),
            ("notify_assigned_issues", NotificationType.ISSUE_ASSIGNED),
            ("notify_assigned_issues", NotificationType.ISSUE_UNASSIGNED),
            ("notify_comments", NotificationType.NEW_COMMENT),
            ("notify_mentions", NotificationType.MENTIONED),
            ("notify_status_changes", NotificationType.STATUS_CHANGE),
        ],
    )
    async def test_disabled_type_is_filtered(self, toggle, notification_type):
        sink = RecordingSink(PreferenceStore(Preferences(**{toggle: False})))
        delivered = await sink.show_notification(make_notification(notification_type))
        assert delivered is False
        assert sink.delivered == []

    async def test_fallback_type_always_shown(self):
        prefs = Preferences(
            notify_new_issues=False,
            notify_assigned_issues=False,
            notify_comments=False,
            notify_mentions=False,
            notify_status_changes=False,
        )
        sink = RecordingSink(PreferenceStore(prefs))
        assert await sink.show_notification(make_notification(NotificationType.NOTIFICATION))
        assert len(sink.delivered) == 1

    async def test_delivery_errors_are_swallowed(self):
        sink = RecordingSink()
        sink.fail_ids = {"notification-n-1"}
        assert await sink.show_notification(make_notification()) is False

    async def test_fanout_delivers_to_every_sink(self):
        first, second = RecordingSink(), RecordingSink()
        first.fail_ids = {"notification-n-1"}
        fanout = FanoutSink([first, second])

        await fanout.show_notification(make_notification())

        assert first.delivered == []
        assert len(second.delivered) == 1


# ---------------------------------------------------------------------------
# Redis sink
# ---------------------------------------------------------------------------


class TestRedisSink:
    async def test_publishes_desktop_notification(self, mock_redis):
        sink = RedisNotificationSink(mock_redis, "notifications:desktop")
        await sink.show_notification(make_notification())

        mock_redis.publish.assert_awaited_once()
        channel, payload = mock_redis.publish.call_args.args
        assert channel == "notifications:desktop"
        data = json.loads(payload)
        assert data["notification"]["id"] == "notification-n-1"
        assert data["notification"]["type"] == "issue_assigned"
        assert data["actions"] == ["open", "mark_read", "snooze"]

    def test_actions_without_linear_id(self):
        assert available_actions(make_notification(linear_id=None)) == ["open"]

    async def test_publish_failure_logged_not_raised(self, mock_redis):
        mock_redis.publish = AsyncMock(side_effect=ConnectionError("redis down"))
        sink = RedisNotificationSink(mock_redis, "notifications:desktop")
        assert await sink.show_notification(make_notification()) is False


# ---------------------------------------------------------------------------
# Desktop sink
# ---------------------------------------------------------------------------


class TestDesktopSink:
    async def test_posts_title_and_body(self):
        source = MagicMock()
        source.post = AsyncMock()
        sink = DesktopNotificationSink(source_factory=lambda: source)

        assert await sink.show_notification(make_notification()) is True
        source.post.assert_awaited_once_with(
            "ENG-1 Fix the login flow", "Jane Doe: Assigned to you"
        )

    async def test_source_reused_between_notifications(self):
        source = MagicMock()
        source.post = AsyncMock()
        factory = MagicMock(return_value=source)
        sink = DesktopNotificationSink(source_factory=factory)

        await sink.show_notification(make_notification())
        await sink.show_notification(make_notification())
        assert factory.call_count == 1

    async def test_stale_source_recreated_and_retried(self):
        stale, fresh = MagicMock(), MagicMock()
        stale.post = AsyncMock(side_effect=SourceUnavailableError("disposed"))
        fresh.post = AsyncMock()
        factory = MagicMock(side_effect=[stale, fresh])
        sink = DesktopNotificationSink(source_factory=factory)

        assert await sink.show_notification(make_notification()) is True
        assert factory.call_count == 2
        fresh.post.assert_awaited_once()

    async def test_gives_up_after_max_retries(self):
        broken = MagicMock()
        broken.post = AsyncMock(side_effect=SourceUnavailableError("no daemon"))
        factory = MagicMock(return_value=broken)
        sink = DesktopNotificationSink(source_factory=factory, max_retries=2)

        assert await sink.show_notification(make_notification()) is False
        assert broken.post.await_count == 2
        assert factory.call_count == 2

    async def test_factory_failure_counts_as_attempt(self):
        factory = MagicMock(side_effect=SourceUnavailableError("notify-send not found"))
        sink = DesktopNotificationSink(source_factory=factory)
        assert await sink.show_notification(make_notification()) is False
        assert factory.call_count == 2


class TestDesktopActions:
    @pytest.fixture
    def router(self, fake_provider, preference_store):
        return ActionRouter(fake_provider, preference_store, opener=MagicMock(return_value=True))

    def make_sink(self, source, router):
        return DesktopNotificationSink(source_factory=lambda: source, action_router=router)

    async def test_offers_every_action_when_linear_id_known(self, router):
        source = MagicMock()
        source.post = AsyncMock(return_value=None)
        sink = self.make_sink(source, router)

        assert await sink.show_notification(make_notification()) is True
        await sink.wait_pending()

        source.post.assert_awaited_once_with(
            "ENG-1 Fix the login flow",
            "Jane Doe: Assigned to you",
            {"open": "Open", "mark_read": "Mark Read", "snooze": "Snooze 1h"},
        )

    async def test_only_open_without_linear_id(self, router):
        source = MagicMock()
        source.post = AsyncMock(return_value=None)
        sink = self.make_sink(source, router)

        await sink.show_notification(make_notification(linear_id=None))
        await sink.wait_pending()

        assert source.post.call_args.args[2] == {"open": "Open"}

    async def test_mark_read_routed_to_provider(self, router, fake_provider):
        source = MagicMock()
        source.post = AsyncMock(return_value="mark_read")
        sink = self.make_sink(source, router)

        await sink.show_notification(make_notification())
        await sink.wait_pending()

        assert fake_provider.marked_read == ["n-1"]

    async def test_snooze_routed_to_provider(self, router, fake_provider):
        source = MagicMock()
        source.post = AsyncMock(return_value="snooze")
        sink = self.make_sink(source, router)

        await sink.show_notification(make_notification())
        await sink.wait_pending()

        assert [notification_id for notification_id, _ in fake_provider.snoozed] == ["n-1"]

    async def test_open_uses_notification_url(self, router):
        source = MagicMock()
        source.post = AsyncMock(return_value="open")
        sink = self.make_sink(source, router)

        await sink.show_notification(make_notification())
        await sink.wait_pending()

        router.opener.assert_called_once_with("https://linear.app/acme/issue/ENG-1")

    async def test_dismissed_popup_routes_nothing(self):
        router = MagicMock()
        router.handle = AsyncMock()
        source = MagicMock()
        source.post = AsyncMock(return_value=None)
        sink = self.make_sink(source, router)

        await sink.show_notification(make_notification())
        await sink.wait_pending()
        router.handle.assert_not_awaited()

    async def test_unknown_choice_is_ignored(self):
        router = MagicMock()
        router.handle = AsyncMock()
        source = MagicMock()
        source.post = AsyncMock(return_value="archive")
        sink = self.make_sink(source, router)

        await sink.show_notification(make_notification())
        await sink.wait_pending()
        router.handle.assert_not_awaited()

    async def test_failed_popup_is_retried_then_logged(self):
        router = MagicMock()
        router.handle = AsyncMock()
        broken = MagicMock()
        broken.post = AsyncMock(side_effect=SourceUnavailableError("no daemon"))
        sink = DesktopNotificationSink(
            source_factory=MagicMock(return_value=broken), action_router=router
        )

        await sink.show_notification(make_notification())
        await sink.wait_pending()

        assert broken.post.await_count == 2
        router.handle.assert_not_awaited()

    async def test_close_cancels_open_popups(self, router):
        answered = asyncio.Event()

        async def post(title, body, actions=None):
            await answered.wait()
            return "mark_read"

        source = MagicMock()
        source.post = post
        sink = self.make_sink(source, router)

        await sink.show_notification(make_notification())
        await asyncio.sleep(0)
        await sink.close()

        assert sink._pending == set()


class TestNotifySendSource:
    @pytest.fixture
    def source(self, monkeypatch):
        monkeypatch.setattr(
            "linear_notify.sinks.desktop.shutil.which", lambda name: f"/usr/bin/{name}"
        )
        return NotifySendSource()

    def test_plain_popup_args(self, source):
        assert source.build_args("Title", "Body") == [
            "/usr/bin/notify-send",
            "--app-name", "Linear Notifications",
            "--icon", "applications-internet-symbolic",
            "Title",
            "Body",
        ]

    def test_action_args_wait_for_choice(self, source):
        args = source.build_args("Title", "Body", {"open": "Open", "snooze": "Snooze 1h"})
        assert "--action=open=Open" in args
        assert "--action=snooze=Snooze 1h" in args
        assert "--wait" in args
        assert args[-2:] == ["Title", "Body"]

    def test_missing_executable(self, monkeypatch):
        monkeypatch.setattr("linear_notify.sinks.desktop.shutil.which", lambda name: None)
        with pytest.raises(SourceUnavailableError):
            NotifySendSource()
