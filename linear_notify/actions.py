"""Routes user actions on displayed notifications.

A presenter (desktop popup, web UI, tray) publishes ``NotificationAction``
JSON on the action channel; ``action_listener`` picks it up and hands it to
the ``ActionRouter``. Actions are fire-and-forget: failures are logged and
never reach the presenter.
"""

from __future__ import annotations

import asyncio
import shlex
import webbrowser
from datetime import datetime, timedelta, timezone
from typing import Callable

import redis.asyncio as aioredis
from pydantic import ValidationError

from linear_notify.log import LogConfig
from linear_notify.preferences import PreferenceStore
from linear_notify.providers.base import NotificationProvider
from linear_notify.schemas.actions import NotificationAction

URL_PLACEHOLDER = "{{URL}}"
DEFAULT_SNOOZE = timedelta(hours=1)


class ActionRouter:
    """Executes ``NotificationAction``s against the provider or the desktop."""

    def __init__(
        self,
        provider: NotificationProvider,
        preferences: PreferenceStore,
        opener: Callable[[str], bool] = webbrowser.open,
        log_config: LogConfig | None = None,
    ):
        self.provider = provider
        self.preferences = preferences
        self.opener = opener
        self.logger = (log_config or LogConfig()).get_logger("actions")

    async def handle(self, action: NotificationAction) -> bool:
        """Run one action. Returns True on success; never raises."""
        self.logger.debug("action_received", action=action.action)
        try:
            if action.action == "open":
                return await self.open(action.url)
            if action.action == "mark_read":
                return await self.mark_read(action.notification_id)
            return await self.snooze(action.notification_id, action.snooze_until)
        except Exception as e:
            self.logger.error(
                "action_failed",
                action=action.action,
                notification_id=action.notification_id,
                error=str(e),
            )
            return False

    async def open(self, url: str) -> bool:
        prefs = self.preferences.get()
        if prefs.click_action == "browser":
            opened = await asyncio.to_thread(self.opener, url)
            self.logger.info("url_opened", url=url, opened=bool(opened))
            return bool(opened)
        if prefs.click_action == "custom":
            return await self._run_custom_command(prefs.custom_command, url)
        self.logger.debug("click_action_disabled")
        return False

    async def _run_custom_command(self, template: str, url: str) -> bool:
        if not template.strip():
            self.logger.error("custom_command_not_configured")
            return False
        argv = [part.replace(URL_PLACEHOLDER, url) for part in shlex.split(template)]
        # Launched detached; the command may outlive this process
        await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
            start_new_session=True,
        )
        self.logger.info("custom_command_started", command=argv[0])
        return True

    async def mark_read(self, notification_id: str) -> bool:
        ok = await self.provider.mark_as_read(notification_id)
        self.logger.info("notification_marked_read", notification_id=notification_id, success=ok)
        return ok

    async def snooze(self, notification_id: str, until: datetime | None = None) -> bool:
        until = until or datetime.now(timezone.utc) + DEFAULT_SNOOZE
        ok = await self.provider.snooze(notification_id, until)
        self.logger.info(
            "notification_snoozed",
            notification_id=notification_id,
            until=until.isoformat(),
            success=ok,
        )
        return ok


async def action_listener(
    redis: aioredis.Redis,
    channel: str,
    router: ActionRouter,
    log_config: LogConfig | None = None,
) -> None:
    """Subscribe to ``channel`` and route every action published on it."""
    logger = (log_config or LogConfig()).get_logger("actions")
    pubsub = redis.pubsub()
    await pubsub.subscribe(channel)
    logger.info("action_listener_started", channel=channel)

    try:
        async for message in pubsub.listen():
            if message["type"] != "message":
                continue
            try:
                action = NotificationAction.model_validate_json(message["data"])
            except ValidationError as e:
                logger.warning("action_invalid", error=str(e))
                continue
            await router.handle(action)
    except asyncio.CancelledError:
        pass
    finally:
        await pubsub.unsubscribe(channel)
        logger.info("action_listener_stopped", channel=channel)
