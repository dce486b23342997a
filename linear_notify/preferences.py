"""User preferences with change notifications.

The preference store is the only user-mutable configuration. Components that
need to react to a change subscribe to one or more keys::

    handle = store.subscribe("polling_interval", lambda changes: service.restart())
    store.set_polling_interval(45)   # validates, persists, then notifies
    store.unsubscribe(handle)

Out-of-range values are rejected with ``PreferenceError`` and leave the stored
preferences untouched.
"""

from __future__ import annotations

import itertools
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterable, Literal

from pydantic import BaseModel, Field, ValidationError

from linear_notify.config import MAX_POLLING_INTERVAL, MIN_POLLING_INTERVAL
from linear_notify.log import LogConfig

ChangeCallback = Callable[[dict[str, Any]], None]


class PreferenceError(ValueError):
    """Raised when a preference update fails validation."""


class Preferences(BaseModel):
    """Everything the preferences pane can change."""

    polling_interval: int = Field(default=60, ge=MIN_POLLING_INTERVAL, le=MAX_POLLING_INTERVAL)

    # Authentication
    auth_method: Literal["oauth", "token"] = "oauth"
    api_token: str = ""
    oauth_token: str = ""
    refresh_token: str = ""
    token_expires_at: datetime | None = None

    # Which notification types to show
    notify_new_issues: bool = True
    notify_assigned_issues: bool = True
    notify_comments: bool = True
    notify_mentions: bool = True
    notify_status_changes: bool = True

    # What clicking a notification does
    click_action: Literal["browser", "custom", "none"] = "browser"
    custom_command: str = ""  # "{{URL}}" is replaced with the notification URL

    # Creation time of the last successful fetch; survives daemon restarts
    last_update_time: datetime | None = None


def _interval_error(seconds: Any) -> PreferenceError:
    return PreferenceError(
        f"Polling interval must be between {MIN_POLLING_INTERVAL} and "
        f"{MAX_POLLING_INTERVAL} seconds (got {seconds})"
    )


class PreferenceStore:
    """Observable, optionally persisted holder of ``Preferences``."""

    def __init__(
        self,
        preferences: Preferences | None = None,
        path: Path | None = None,
        log_config: LogConfig | None = None,
    ):
        self._preferences = preferences or Preferences()
        self.path = path
        self._subscribers: dict[int, tuple[frozenset[str], ChangeCallback]] = {}
        self._handles = itertools.count(1)
        self.logger = (log_config or LogConfig()).get_logger("preferences")

    @classmethod
    def load(cls, path: Path, log_config: LogConfig | None = None) -> PreferenceStore:
        """Load preferences from a JSON file, falling back to defaults."""
        preferences = None
        if path.exists():
            try:
                preferences = Preferences.model_validate_json(path.read_text())
            except (OSError, ValidationError) as e:
                (log_config or LogConfig()).get_logger("preferences").warning(
                    "preferences_load_failed", path=str(path), error=str(e)
                )
        return cls(preferences, path=path, log_config=log_config)

    def save(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(self._preferences.model_dump_json(indent=2))

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def get(self) -> Preferences:
        return self._preferences

    @property
    def polling_interval(self) -> int:
        return self._preferences.polling_interval

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def update(self, **changes: Any) -> dict[str, Any]:
        """Validate and apply changes. Returns the keys that actually changed."""
        unknown = set(changes) - set(Preferences.model_fields)
        if unknown:
            raise PreferenceError(f"Unknown preference(s): {', '.join(sorted(unknown))}")

        if "polling_interval" in changes:
            seconds = changes["polling_interval"]
            if not isinstance(seconds, int) or not (
                MIN_POLLING_INTERVAL <= seconds <= MAX_POLLING_INTERVAL
            ):
                raise _interval_error(seconds)

        try:
            updated = Preferences.model_validate(
                {**self._preferences.model_dump(), **changes}
            )
        except ValidationError as e:
            raise PreferenceError(str(e)) from e

        changed = {
            key: getattr(updated, key)
            for key in changes
            if getattr(updated, key) != getattr(self._preferences, key)
        }
        self._preferences = updated
        if changed:
            self.save()
            self.logger.debug("preferences_changed", keys=sorted(changed))
            self._notify(changed)
        return changed

    def set_polling_interval(self, seconds: int) -> None:
        self.update(polling_interval=seconds)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, keys: str | Iterable[str], callback: ChangeCallback) -> int:
        """Call ``callback(changes)`` once per update touching any of ``keys``."""
        watched = frozenset([keys] if isinstance(keys, str) else keys)
        unknown = watched - set(Preferences.model_fields)
        if unknown:
            raise PreferenceError(f"Unknown preference(s): {', '.join(sorted(unknown))}")
        handle = next(self._handles)
        self._subscribers[handle] = (watched, callback)
        return handle

    def unsubscribe(self, handle: int) -> None:
        self._subscribers.pop(handle, None)

    def _notify(self, changed: dict[str, Any]) -> None:
        for watched, callback in list(self._subscribers.values()):
            relevant = {k: v for k, v in changed.items() if k in watched}
            if not relevant:
                continue
            try:
                callback(relevant)
            except Exception:
                self.logger.exception("preference_callback_failed", keys=sorted(relevant))
