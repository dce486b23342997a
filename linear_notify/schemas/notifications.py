"""Canonical notification shapes handed to sinks."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class NotificationType(str, Enum):
    NEW_ISSUE = "new_issue"
    ISSUE_ASSIGNED = "issue_assigned"
    ISSUE_UNASSIGNED = "issue_unassigned"
    STATUS_CHANGE = "status_change"
    NEW_COMMENT = "new_comment"
    MENTIONED = "mentioned"
    NOTIFICATION = "notification"  # fallback for unknown provider types


class CanonicalNotification(BaseModel):
    """A display-ready notification built from exactly one raw record."""

    model_config = ConfigDict(frozen=True)

    id: str  # namespaced by record kind, e.g. "notification-<raw id>"
    type: NotificationType
    title: str
    body: str
    url: str
    timestamp: datetime
    data: dict[str, Any] = Field(default_factory=dict)


class DesktopNotification(BaseModel):
    """Payload published on the notification channel for an external presenter."""

    notification: CanonicalNotification
    actions: list[str] = Field(default_factory=list)  # "open" | "mark_read" | "snooze"


class PollingStatus(BaseModel):
    is_polling: bool
    is_authenticated: bool
    polling_interval: int
    seen_count: int
