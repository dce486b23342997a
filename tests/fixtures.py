"""Canned Linear GraphQL payloads for provider and OAuth tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone


def iso(dt: datetime) -> str:
    return dt.isoformat().replace("+00:00", "Z")


def notification_node(
    node_id: str,
    created_at: datetime,
    type: str = "issueAssignedToYou",
    title: str = "ENG-42 Checkout fails on Safari",
    identifier: str | None = "ENG-42",
) -> dict:
    node = {
        "id": node_id,
        "type": type,
        "createdAt": iso(created_at),
        "readAt": None,
        "snoozedUntilAt": None,
        "title": title,
        "subtitle": "Assigned to you",
        "url": f"https://linear.app/acme/issue/{identifier or node_id}",
        "issueStatusType": "started",
        "actor": {"displayName": "Jane Doe", "avatarUrl": "https://example.com/jane.png"},
    }
    if identifier:
        node["issue"] = {"identifier": identifier}
    return node


def notifications_response(*nodes: dict) -> dict:
    return {
        "data": {
            "notifications": {
                "nodes": list(nodes),
                "pageInfo": {"hasNextPage": False, "endCursor": None},
            }
        }
    }


def recent_notifications_response(now: datetime | None = None) -> dict:
    """Two fresh notifications and one older than the first-fetch window."""
    now = now or datetime.now(timezone.utc)
    return notifications_response(
        notification_node("n-new", now - timedelta(minutes=5)),
        notification_node("n-mid", now - timedelta(minutes=30), type="issueNewComment"),
        notification_node("n-old", now - timedelta(hours=3), type="issueMention"),
    )


VIEWER_RESPONSE = {
    "data": {
        "viewer": {
            "id": "user-1",
            "name": "Jane Doe",
            "email": "jane@example.com",
            "organization": {"id": "org-1", "name": "Acme"},
        }
    }
}

AUTH_ERROR_RESPONSE = {
    "errors": [
        {
            "message": "Authentication required, not authenticated",
            "extensions": {"code": "AUTHENTICATION_ERROR"},
        }
    ]
}

RATE_LIMIT_RESPONSE = {
    "errors": [
        {
            "message": "Rate limit exceeded",
            "extensions": {"code": "RATELIMITED"},
        }
    ]
}

ARCHIVE_RESPONSE = {"data": {"notificationArchive": {"success": True}}}
UNARCHIVE_RESPONSE = {"data": {"notificationUnarchive": {"success": True}}}
SNOOZE_RESPONSE = {"data": {"notificationUpdate": {"success": True}}}

TOKEN_RESPONSE = {
    "access_token": "lin_oauth_access",
    "token_type": "Bearer",
    "expires_in": 3600,
    "refresh_token": "lin_oauth_refresh",
    "scope": "read",
}
