"""Base sink interface.

A sink receives canonical notifications from the polling service and presents
them somewhere. Filtering by the user's per-type preferences happens here, so
every sink honours the same toggles.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from linear_notify.log import LogConfig
from linear_notify.preferences import PreferenceStore
from linear_notify.schemas.notifications import CanonicalNotification, NotificationType

# Preference toggle gating each notification type; unlisted types always show
TYPE_TOGGLES: dict[NotificationType, str] = {
    NotificationType.NEW_ISSUE: "notify_new_issues",
    NotificationType.ISSUE_ASSIGNED: "notify_assigned_issues",
    NotificationType.ISSUE_UNASSIGNED: "notify_assigned_issues",
    NotificationType.NEW_COMMENT: "notify_comments",
    NotificationType.MENTIONED: "notify_mentions",
    NotificationType.STATUS_CHANGE: "notify_status_changes",
}


def available_actions(notification: CanonicalNotification) -> list[str]:
    """Actions a presenter may offer for this notification."""
    actions = ["open"]
    if notification.data.get("notification_id"):
        actions += ["mark_read", "snooze"]
    return actions


class NotificationSink(ABC):
    """Abstract destination for canonical notifications."""

    name = "sink"

    def __init__(
        self,
        preferences: PreferenceStore | None = None,
        log_config: LogConfig | None = None,
    ):
        self.preferences = preferences
        self.logger = (log_config or LogConfig()).get_logger(f"sinks.{self.name}")

    def should_show(self, notification: CanonicalNotification) -> bool:
        if self.preferences is None:
            return True
        toggle = TYPE_TOGGLES.get(notification.type)
        if toggle is None:
            return True
        return bool(getattr(self.preferences.get(), toggle))

    async def show_notification(self, notification: CanonicalNotification) -> bool:
        """Deliver ``notification`` unless filtered. Returns True if it was delivered.

        Delivery failures are logged, not raised.
        """
        if not self.should_show(notification):
            self.logger.debug(
                "notification_filtered",
                notification_id=notification.id,
                type=notification.type.value,
            )
            return False
        try:
            await self.deliver(notification)
        except Exception as e:
            self.logger.error(
                "notification_delivery_failed",
                notification_id=notification.id,
                error=str(e),
            )
            return False
        return True

    @abstractmethod
    async def deliver(self, notification: CanonicalNotification) -> None:
        """Present one notification. May raise; the caller logs."""

    async def close(self) -> None:
        """Release resources. Override if the sink holds connections."""


class FanoutSink(NotificationSink):
    """Delivers each notification to several sinks in order."""

    name = "fanout"

    def __init__(self, sinks: list[NotificationSink], log_config: LogConfig | None = None):
        super().__init__(log_config=log_config)
        self.sinks = sinks

    async def deliver(self, notification: CanonicalNotification) -> None:
        for sink in self.sinks:
            await sink.show_notification(notification)

    async def close(self) -> None:
        for sink in self.sinks:
            await sink.close()
