"""Desktop sink: shows notifications through the freedesktop notification daemon.

The sink talks to a *source*, a handle onto the notification service that
can go stale (daemon restarted, session bus gone). Each delivery runs through
``_execute_with_source``, which recreates the source once and retries before
giving up.

With an ``ActionRouter`` attached, each popup carries Open (plus Mark Read
and Snooze 1h when the Linear id is known) and the button the user picks is
routed back to the provider. Waiting for that choice happens in a background
task so a lingering popup never holds up the poll cycle.
"""

from __future__ import annotations

import asyncio
import shutil
from typing import Awaitable, Callable, Protocol, TypeVar

from linear_notify.actions import ActionRouter
from linear_notify.log import LogConfig
from linear_notify.preferences import PreferenceStore
from linear_notify.schemas.actions import NotificationAction
from linear_notify.schemas.notifications import CanonicalNotification
from linear_notify.sinks.base import NotificationSink, available_actions

APP_NAME = "Linear Notifications"
APP_ICON = "applications-internet-symbolic"

ACTION_LABELS = {
    "open": "Open",
    "mark_read": "Mark Read",
    "snooze": "Snooze 1h",
}

T = TypeVar("T")


class SourceUnavailableError(RuntimeError):
    """The notification service cannot be reached."""


class NotificationSource(Protocol):
    async def post(
        self, title: str, body: str, actions: dict[str, str] | None = None
    ) -> str | None:
        """Show a popup. With ``actions``, wait and return the chosen key (or None)."""
        ...


class NotifySendSource:
    """Posts notifications by running ``notify-send``."""

    def __init__(
        self,
        executable: str = "notify-send",
        timeout: float = 10.0,
        action_timeout: float | None = None,
    ):
        path = shutil.which(executable)
        if path is None:
            raise SourceUnavailableError(f"{executable} not found on PATH")
        self.path = path
        self.timeout = timeout
        self.action_timeout = action_timeout

    def build_args(self, title: str, body: str, actions: dict[str, str] | None = None) -> list[str]:
        args = [self.path, "--app-name", APP_NAME, "--icon", APP_ICON]
        if actions:
            args += [f"--action={key}={label}" for key, label in actions.items()]
            args.append("--wait")
        return args + [title, body]

    async def post(
        self, title: str, body: str, actions: dict[str, str] | None = None
    ) -> str | None:
        proc = await asyncio.create_subprocess_exec(
            *self.build_args(title, body, actions),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        timeout = self.action_timeout if actions else self.timeout
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            if actions:
                # Popup left unanswered; nothing to route
                return None
            raise SourceUnavailableError("notify-send timed out")
        if proc.returncode != 0:
            raise SourceUnavailableError(
                f"notify-send exited with {proc.returncode}: "
                f"{stderr.decode(errors='replace').strip()[:200]}"
            )
        if not actions:
            return None
        return stdout.decode(errors="replace").strip() or None


def action_for(key: str, notification: CanonicalNotification) -> NotificationAction | None:
    """Build the routed action for a popup button, or None for an unknown key."""
    if key == "open":
        return NotificationAction(action="open", url=notification.url)
    notification_id = notification.data.get("notification_id")
    if key in ("mark_read", "snooze") and notification_id:
        return NotificationAction(action=key, notification_id=notification_id)
    return None


class DesktopNotificationSink(NotificationSink):
    """Shows notifications on the local desktop."""

    name = "desktop"

    def __init__(
        self,
        preferences: PreferenceStore | None = None,
        source_factory: Callable[[], NotificationSource] = NotifySendSource,
        max_retries: int = 2,
        action_router: ActionRouter | None = None,
        log_config: LogConfig | None = None,
    ):
        super().__init__(preferences, log_config)
        self.source_factory = source_factory
        self.max_retries = max_retries
        self.action_router = action_router
        self._source: NotificationSource | None = None
        self._pending: set[asyncio.Task] = set()

    def _acquire_source(self) -> NotificationSource:
        if self._source is None:
            self._source = self.source_factory()
            self.logger.debug("notification_source_created")
        return self._source

    async def _execute_with_source(
        self, operation: Callable[[NotificationSource], Awaitable[T]]
    ) -> T:
        """Run ``operation`` against the source, recreating it after a failure."""
        for attempt in range(1, self.max_retries + 1):
            try:
                return await operation(self._acquire_source())
            except Exception as e:
                self.logger.debug(
                    "notification_source_failed",
                    attempt=attempt,
                    max_retries=self.max_retries,
                    error=str(e),
                )
                self._source = None
                if attempt == self.max_retries:
                    raise
        raise RuntimeError("max_retries must be at least 1")

    async def deliver(self, notification: CanonicalNotification) -> None:
        if self.action_router is None:
            await self._execute_with_source(
                lambda source: source.post(notification.title, notification.body)
            )
            self.logger.debug("notification_displayed", notification_id=notification.id)
            return

        task = asyncio.create_task(self._show_with_actions(notification))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _show_with_actions(self, notification: CanonicalNotification) -> None:
        actions = {key: ACTION_LABELS[key] for key in available_actions(notification)}
        try:
            chosen = await self._execute_with_source(
                lambda source: source.post(notification.title, notification.body, actions)
            )
        except Exception as e:
            self.logger.error(
                "notification_delivery_failed",
                notification_id=notification.id,
                error=str(e),
            )
            return

        self.logger.debug(
            "notification_closed", notification_id=notification.id, action=chosen
        )
        if chosen is None:
            return
        action = action_for(chosen, notification)
        if action is None:
            self.logger.warning("notification_action_unknown", action=chosen)
            return
        await self.action_router.handle(action)

    async def wait_pending(self) -> None:
        """Wait until every open popup has been answered or dismissed."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    async def close(self) -> None:
        for task in list(self._pending):
            task.cancel()
        await self.wait_pending()
        self._source = None
