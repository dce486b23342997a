"""Pydantic schemas for linear-notify."""

from linear_notify.schemas.actions import NotificationAction
from linear_notify.schemas.common import (
    AuthorizationResponse,
    ConnectionResponse,
    HealthResponse,
    IntervalResponse,
    IntervalUpdate,
    PollResponse,
)
from linear_notify.schemas.notifications import (
    CanonicalNotification,
    DesktopNotification,
    NotificationType,
    PollingStatus,
)
from linear_notify.schemas.records import Actor, RawRecord

__all__ = [
    "Actor",
    "AuthorizationResponse",
    "CanonicalNotification",
    "ConnectionResponse",
    "DesktopNotification",
    "HealthResponse",
    "IntervalResponse",
    "IntervalUpdate",
    "NotificationAction",
    "NotificationType",
    "PollResponse",
    "PollingStatus",
    "RawRecord",
]
