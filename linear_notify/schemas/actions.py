"""User actions routed back from a notification presenter."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, model_validator


class NotificationAction(BaseModel):
    """An action the user took on a displayed notification."""

    action: Literal["open", "mark_read", "snooze"]
    notification_id: str | None = None  # Linear notification id (not the canonical id)
    url: str | None = None
    snooze_until: datetime | None = None  # defaults to one hour from now

    @model_validator(mode="after")
    def _check_target(self) -> NotificationAction:
        if self.action == "open" and not self.url:
            raise ValueError("open requires a url")
        if self.action in ("mark_read", "snooze") and not self.notification_id:
            raise ValueError(f"{self.action} requires a notification_id")
        return self
