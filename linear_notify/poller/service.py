"""Polling service: fetch, dedupe, normalize and dispatch notifications.

One cycle:

1. skip unless polling and authenticated
2. fetch raw records from the provider
3. drop records whose canonical id is already in the seen-set
4. normalize the rest, oldest first
5. hand each notification to the sink and record its id
6. prune the seen-set

The timer re-arms itself once per cycle (fire once, then schedule the next),
so a slow fetch delays the next cycle instead of overlapping it.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from linear_notify.config import MIN_POLLING_INTERVAL
from linear_notify.log import LogConfig
from linear_notify.poller.normalizer import UpdateNormalizer
from linear_notify.poller.seen import SeenSet
from linear_notify.preferences import PreferenceStore
from linear_notify.providers.base import NotificationProvider, is_authentication_error
from linear_notify.schemas.notifications import PollingStatus
from linear_notify.sinks.base import NotificationSink

# Preference keys whose change requires a fresh polling cadence
RESTART_KEYS = ("polling_interval", "auth_method", "api_token", "oauth_token")


def next_poll_delay(interval_seconds: int) -> int:
    """Seconds until the next cycle. Never below the API-friendly floor."""
    return max(MIN_POLLING_INTERVAL, interval_seconds)


@dataclass
class PollingState:
    is_polling: bool = False
    timer_handle: asyncio.TimerHandle | None = None
    interval_seconds: int = MIN_POLLING_INTERVAL


class PollingService:
    """Drives the fetch cycle and owns the failure policy."""

    def __init__(
        self,
        provider: NotificationProvider,
        sink: NotificationSink,
        preferences: PreferenceStore,
        normalizer: UpdateNormalizer | None = None,
        seen: SeenSet | None = None,
        log_config: LogConfig | None = None,
    ):
        self.provider = provider
        self.sink = sink
        self.preferences = preferences
        self.normalizer = normalizer or UpdateNormalizer()
        self.seen = seen or SeenSet()
        self.logger = (log_config or LogConfig()).get_logger("polling")
        self.state = PollingState(
            interval_seconds=next_poll_delay(preferences.polling_interval)
        )

        # Bumped by every start/stop; callbacks from an older run are ignored
        self._generation = 0
        self._cycle_task: asyncio.Task | None = None
        self._cycle_lock = asyncio.Lock()

        self._subscription = preferences.subscribe(RESTART_KEYS, self._on_preferences_changed)
        self.logger.info("polling_service_initialized")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin polling: one immediate cycle, then one cycle per interval.

        Must be called from within a running event loop.
        """
        if self.state.is_polling:
            self.logger.debug("polling_already_active")
            return

        if not self.provider.is_authenticated():
            self.logger.warning("polling_not_started", reason="not_authenticated")
            return

        self.state.is_polling = True
        self._generation += 1
        self.logger.info(
            "polling_started",
            interval_seconds=next_poll_delay(self.preferences.polling_interval),
        )
        self._spawn_cycle(self._generation)

    def stop(self) -> None:
        """Stop polling. Safe to call repeatedly or before ``start``."""
        was_polling = self.state.is_polling
        self.state.is_polling = False
        self._generation += 1

        if self.state.timer_handle is not None:
            self.state.timer_handle.cancel()
            self.state.timer_handle = None

        if was_polling:
            self.logger.info("polling_stopped")

    def restart(self) -> None:
        self.stop()
        self.start()

    async def destroy(self) -> None:
        """Stop polling, drop subscriptions and release the provider."""
        self.stop()
        self.preferences.unsubscribe(self._subscription)
        task = self._cycle_task
        if task is not None and not task.done():
            # An in-flight fetch may finish; its result is discarded
            await asyncio.gather(task, return_exceptions=True)
        await self.provider.close()
        self.logger.info("polling_service_destroyed")

    def _on_preferences_changed(self, changes: dict) -> None:
        self.logger.info("polling_settings_changed", keys=sorted(changes))
        self.restart()

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _spawn_cycle(self, generation: int) -> None:
        loop = asyncio.get_running_loop()
        self._cycle_task = loop.create_task(self._run_cycle(generation))

    async def _run_cycle(self, generation: int) -> None:
        try:
            await self.poll()
        finally:
            if self._cycle_task is asyncio.current_task():
                self._cycle_task = None
        self._schedule_next_poll(generation)

    def _schedule_next_poll(self, generation: int) -> None:
        if not self.state.is_polling or generation != self._generation:
            return

        if self.state.timer_handle is not None:
            self.state.timer_handle.cancel()

        delay = next_poll_delay(self.preferences.polling_interval)
        self.state.interval_seconds = delay
        loop = asyncio.get_running_loop()
        self.state.timer_handle = loop.call_later(delay, self._on_timer, generation)
        self.logger.debug("next_poll_scheduled", in_seconds=delay)

    def _on_timer(self, generation: int) -> None:
        self.state.timer_handle = None
        if not self.state.is_polling or generation != self._generation:
            return
        self._spawn_cycle(generation)

    # ------------------------------------------------------------------
    # Poll cycle
    # ------------------------------------------------------------------

    async def poll(self) -> int:
        """Run one fetch/filter/dispatch cycle. Returns the number dispatched.

        Never raises: every failure is logged and ends the cycle early.
        """
        async with self._cycle_lock:
            if not self.state.is_polling:
                return 0

            if not self.provider.is_authenticated():
                self.logger.info("poll_skipped", reason="not_authenticated")
                return 0

            # A start/stop while the fetch is in flight makes this cycle stale
            generation = self._generation
            self.logger.debug("polling_for_updates")
            try:
                records = await self.provider.get_updates()
                # A malformed record aborts the whole batch before anything is shown
                fresh = []
                batch_ids = set()
                for record in records:
                    notification_id = self.normalizer.notification_id(record)
                    if notification_id in self.seen or notification_id in batch_ids:
                        continue
                    batch_ids.add(notification_id)
                    fresh.append(record)
                fresh.sort(key=lambda r: r.created_at)
                notifications = [self.normalizer.normalize(r) for r in fresh]
            except Exception as e:
                if generation != self._generation:
                    self.logger.info("poll_failure_discarded", error=str(e))
                    return 0
                self._handle_fetch_failure(e)
                return 0

            if generation != self._generation:
                self.logger.info("poll_result_discarded", count=len(records))
                return 0

            if not notifications:
                self.logger.debug("no_new_updates", received=len(records))
                return 0

            self.logger.info("new_updates_found", count=len(notifications), received=len(records))
            for notification in notifications:
                self.logger.debug(
                    "dispatching_notification",
                    notification_id=notification.id,
                    type=notification.type.value,
                    title=notification.title,
                )
                try:
                    await self.sink.show_notification(notification)
                except Exception as e:
                    self.logger.error(
                        "notification_dispatch_failed",
                        notification_id=notification.id,
                        error=str(e),
                    )
                self.seen.add(notification.id)

            dropped = self.seen.prune()
            if dropped:
                self.logger.info("seen_ids_pruned", dropped=dropped, kept=self.seen.size())
            return len(notifications)

    def _handle_fetch_failure(self, error: Exception) -> None:
        self.logger.error("poll_failed", error=str(error), error_type=type(error).__name__)
        if is_authentication_error(error):
            self.logger.warning("authentication_error_stopping_polling")
            self.stop()

    # ------------------------------------------------------------------
    # Extras
    # ------------------------------------------------------------------

    async def force_poll(self) -> int:
        """Poll right now, outside the regular cadence."""
        self.logger.info("force_poll")
        return await self.poll()

    def get_status(self) -> PollingStatus:
        return PollingStatus(
            is_polling=self.state.is_polling,
            is_authenticated=self.provider.is_authenticated(),
            polling_interval=self.get_polling_interval(),
            seen_count=self.seen.size(),
        )

    def reset(self) -> None:
        """Forget every seen id."""
        self.logger.info("polling_state_reset", forgotten=self.seen.size())
        self.seen.clear()

    async def test_connection(self) -> bool:
        return await self.provider.test_connection()

    def get_polling_interval(self) -> int:
        return self.preferences.polling_interval

    def set_polling_interval(self, seconds: int) -> None:
        """Validate and store a new interval; the change restarts polling."""
        self.preferences.set_polling_interval(seconds)
