"""Linear provider: implements NotificationProvider using the Linear GraphQL API."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import httpx
from pydantic import ValidationError

from linear_notify import __version__
from linear_notify.credentials import CredentialProvider
from linear_notify.log import LogConfig
from linear_notify.providers.base import (
    NotificationProvider,
    ProviderAuthError,
    ProviderResponseError,
    ProviderTransportError,
    is_authentication_error,
    mentions_auth_failure,
)
from linear_notify.schemas.records import RawRecord

_DEFAULT_API_URL = "https://api.linear.app/graphql"

# On the very first fetch, only look this far back
FIRST_FETCH_WINDOW = timedelta(hours=1)

# GraphQL error codes Linear uses for bad or expired credentials
_AUTH_ERROR_CODES = {"AUTHENTICATION_ERROR", "UNAUTHENTICATED", "FORBIDDEN"}

NOTIFICATIONS_QUERY = """
query GetNotifications($first: Int!) {
    notifications(first: $first, orderBy: createdAt) {
        nodes {
            id
            type
            createdAt
            readAt
            snoozedUntilAt
            title
            subtitle
            url
            issueStatusType
            actor {
                displayName
                avatarUrl
            }
            ... on IssueNotification {
                issue {
                    identifier
                }
            }
        }
        pageInfo {
            hasNextPage
            endCursor
        }
    }
}
"""

VIEWER_QUERY = """
query {
    viewer {
        id
        name
        email
        organization {
            id
            name
        }
    }
}
"""

ARCHIVE_MUTATION = """
mutation ArchiveNotification($id: String!) {
    notificationArchive(id: $id) {
        success
    }
}
"""

UNARCHIVE_MUTATION = """
mutation UnarchiveNotification($id: String!) {
    notificationUnarchive(id: $id) {
        success
    }
}
"""

SNOOZE_MUTATION = """
mutation SnoozeNotification($id: String!, $input: NotificationUpdateInput!) {
    notificationUpdate(id: $id, input: $input) {
        success
    }
}
"""


class LinearProvider(NotificationProvider):
    """Linear GraphQL API provider."""

    def __init__(
        self,
        credentials: CredentialProvider,
        api_url: str = _DEFAULT_API_URL,
        page_size: int = 50,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
        log_config: LogConfig | None = None,
    ):
        self.credentials = credentials
        self.api_url = api_url
        self.page_size = page_size
        self.logger = (log_config or LogConfig()).get_logger("linear")
        self._client = http_client or httpx.AsyncClient(
            headers={
                "Content-Type": "application/json",
                "User-Agent": f"LinearNotifications/{__version__}",
            },
            timeout=timeout,
        )

    @property
    def watermark(self) -> datetime | None:
        """Creation-time boundary of the last successful fetch.

        Kept in the preference store so a restarted daemon resumes where it
        stopped instead of replaying the first-fetch window.
        """
        value = self.credentials.preferences.get().last_update_time
        return _as_utc(value) if value is not None else None

    @watermark.setter
    def watermark(self, value: datetime | None) -> None:
        self.credentials.preferences.update(last_update_time=value)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _request(self, query: str, variables: dict | None = None) -> dict:
        """Run a GraphQL operation and return its ``data`` object."""
        authorization = self.credentials.authorization_header()
        if authorization is None:
            raise ProviderAuthError(
                "Not authenticated - configure OAuth or an API token first"
            )

        self.logger.debug("linear_request", operation=query.strip().split("\n", 1)[0])
        try:
            resp = await self._client.post(
                self.api_url,
                json={"query": query, "variables": variables or {}},
                headers={"Authorization": authorization},
            )
        except httpx.RequestError as e:
            self.logger.error("linear_request_error", error=str(e))
            raise ProviderTransportError(f"Failed to connect to Linear API: {e}") from e

        if resp.status_code in (401, 403):
            raise ProviderAuthError(f"HTTP {resp.status_code}: unauthorized")
        if resp.status_code >= 400:
            self.logger.error("linear_http_error", status=resp.status_code, body=resp.text[:500])
            raise ProviderTransportError(f"HTTP {resp.status_code}: {resp.text[:500]}")

        try:
            body = resp.json()
        except ValueError as e:
            raise ProviderResponseError(f"Linear API returned invalid JSON: {e}") from e
        if not isinstance(body, dict):
            raise ProviderResponseError("Linear API returned an unexpected payload")

        errors = body.get("errors")
        if errors:
            message = f"GraphQL errors: {json.dumps(errors)[:500]}"
            if _is_auth_graphql_error(errors):
                raise ProviderAuthError(message)
            raise ProviderResponseError(message)

        data = body.get("data")
        if not isinstance(data, dict):
            raise ProviderResponseError("Linear API response has no data")
        return data

    # ------------------------------------------------------------------
    # NotificationProvider
    # ------------------------------------------------------------------

    def is_authenticated(self) -> bool:
        return self.credentials.is_authenticated()

    async def get_notifications(self, first: int | None = None) -> list[RawRecord]:
        """Fetch the most recent notifications, newest first."""
        data = await self._request(NOTIFICATIONS_QUERY, {"first": first or self.page_size})
        try:
            nodes = data["notifications"]["nodes"]
            return [RawRecord.model_validate(node) for node in nodes]
        except (KeyError, TypeError) as e:
            raise ProviderResponseError(f"Unexpected notifications payload: {e}") from e
        except ValidationError as e:
            raise ProviderResponseError(f"Invalid notification record: {e}") from e

    async def get_updates(self) -> list[RawRecord]:
        fetched_at = datetime.now(timezone.utc)
        since = self.watermark or fetched_at - FIRST_FETCH_WINDOW

        notifications = await self.get_notifications()
        updates = [n for n in notifications if _as_utc(n.created_at) > since]

        self.watermark = fetched_at
        self.logger.info(
            "linear_updates_fetched",
            received=len(notifications),
            new=len(updates),
            since=since.isoformat(),
        )
        return updates

    async def mark_as_read(self, notification_id: str) -> bool:
        data = await self._request(ARCHIVE_MUTATION, {"id": notification_id})
        return bool((data.get("notificationArchive") or {}).get("success"))

    async def unarchive(self, notification_id: str) -> bool:
        data = await self._request(UNARCHIVE_MUTATION, {"id": notification_id})
        return bool((data.get("notificationUnarchive") or {}).get("success"))

    async def snooze(self, notification_id: str, until: datetime) -> bool:
        data = await self._request(
            SNOOZE_MUTATION,
            {"id": notification_id, "input": {"snoozedUntilAt": _as_utc(until).isoformat()}},
        )
        return bool((data.get("notificationUpdate") or {}).get("success"))

    async def get_current_user(self) -> dict:
        data = await self._request(VIEWER_QUERY)
        viewer = data.get("viewer")
        if not isinstance(viewer, dict):
            raise ProviderResponseError("Linear API response has no viewer")
        return viewer

    async def test_connection(self) -> bool:
        if not self.is_authenticated():
            return False
        try:
            user = await self.get_current_user()
        except Exception as e:
            self.logger.error(
                "linear_connection_failed",
                error=str(e),
                auth_error=is_authentication_error(e),
            )
            return False
        self.logger.info("linear_connection_ok", user=user.get("name"), email=user.get("email"))
        return True

    async def close(self) -> None:
        await self._client.aclose()


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _is_auth_graphql_error(errors: list) -> bool:
    for error in errors:
        if not isinstance(error, dict):
            continue
        code = (error.get("extensions") or {}).get("code", "")
        if code in _AUTH_ERROR_CODES or mentions_auth_failure(str(error.get("message", ""))):
            return True
    return False
