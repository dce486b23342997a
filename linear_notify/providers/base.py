"""Base provider interface for remote notification feeds.

The polling service only talks to this interface, so the core stays
independent of Linear's GraphQL schema.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from linear_notify.schemas.records import RawRecord

# Message fragments that identify an authentication failure regardless of type
_AUTH_ERROR_PATTERNS = ("unauthorized", "invalid token", "authentication")


class ProviderError(Exception):
    """Base class for failures talking to the remote API."""


class ProviderAuthError(ProviderError):
    """The credential is missing, expired or rejected. Retrying will not help."""


class ProviderTransportError(ProviderError):
    """Connection failure, timeout or a non-2xx status unrelated to auth."""


class ProviderResponseError(ProviderError):
    """The API answered, but the payload was malformed or carried errors."""


def mentions_auth_failure(message: str) -> bool:
    message = message.lower()
    return any(pattern in message for pattern in _AUTH_ERROR_PATTERNS)


def is_authentication_error(error: BaseException) -> bool:
    """Return True if ``error`` means polling should stop until credentials change."""
    return isinstance(error, ProviderAuthError) or mentions_auth_failure(str(error))


class NotificationProvider(ABC):
    """Abstract remote data provider consumed by the polling service."""

    @abstractmethod
    def is_authenticated(self) -> bool:
        """True iff a non-expired credential is configured."""

    @abstractmethod
    async def get_updates(self) -> list[RawRecord]:
        """Fetch records created after the watermark and advance it on success."""

    @abstractmethod
    async def mark_as_read(self, notification_id: str) -> bool:
        """Mark a notification as read on the remote side."""

    @abstractmethod
    async def snooze(self, notification_id: str, until: datetime) -> bool:
        """Hide a notification on the remote side until ``until``."""

    @abstractmethod
    async def get_current_user(self) -> dict:
        """Return the authenticated user's profile."""

    async def test_connection(self) -> bool:
        """Return True if an authenticated round trip succeeds. Never raises."""
        if not self.is_authenticated():
            return False
        try:
            await self.get_current_user()
        except Exception:
            return False
        return True

    async def close(self) -> None:
        """Clean up resources. Override if the provider holds connections."""
