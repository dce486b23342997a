"""Redis pub/sub sink: hands notifications to an external presenter."""

from __future__ import annotations

import redis.asyncio as aioredis

from linear_notify.log import LogConfig
from linear_notify.preferences import PreferenceStore
from linear_notify.schemas.notifications import CanonicalNotification, DesktopNotification
from linear_notify.sinks.base import NotificationSink, available_actions


class RedisNotificationSink(NotificationSink):
    """Publishes ``DesktopNotification`` JSON on a Redis channel."""

    name = "redis"

    def __init__(
        self,
        redis: aioredis.Redis,
        channel: str,
        preferences: PreferenceStore | None = None,
        log_config: LogConfig | None = None,
    ):
        super().__init__(preferences, log_config)
        self.redis = redis
        self.channel = channel

    async def deliver(self, notification: CanonicalNotification) -> None:
        payload = DesktopNotification(
            notification=notification,
            actions=available_actions(notification),
        )
        await self.redis.publish(self.channel, payload.model_dump_json())
        self.logger.info(
            "notification_published",
            channel=self.channel,
            notification_id=notification.id,
        )
