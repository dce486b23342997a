"""Map Linear notification records onto canonical notifications.

Pure functions only: no network, no state. The same record always produces
the same notification.
"""

from __future__ import annotations

from linear_notify.schemas.notifications import CanonicalNotification, NotificationType
from linear_notify.schemas.records import RawRecord

# Linear notification type tags. Both the tags Linear sends today and the
# shorter names older API versions used are accepted.
TYPE_MAP: dict[str, NotificationType] = {
    "issueCreated": NotificationType.NEW_ISSUE,
    "issueNew": NotificationType.NEW_ISSUE,
    "issueAssigned": NotificationType.ISSUE_ASSIGNED,
    "issueAssignedToYou": NotificationType.ISSUE_ASSIGNED,
    "issueUnassigned": NotificationType.ISSUE_UNASSIGNED,
    "issueUnassignedFromYou": NotificationType.ISSUE_UNASSIGNED,
    "issueStatusChanged": NotificationType.STATUS_CHANGE,
    "issueStatusChangedAll": NotificationType.STATUS_CHANGE,
    "issueCommentCreated": NotificationType.NEW_COMMENT,
    "issueNewComment": NotificationType.NEW_COMMENT,
    "issueMentioned": NotificationType.MENTIONED,
    "issueMention": NotificationType.MENTIONED,
    "issueCommentMention": NotificationType.MENTIONED,
}

DEFAULT_TITLES: dict[NotificationType, str] = {
    NotificationType.NEW_ISSUE: "New issue",
    NotificationType.ISSUE_ASSIGNED: "Issue assigned to you",
    NotificationType.ISSUE_UNASSIGNED: "Issue unassigned",
    NotificationType.STATUS_CHANGE: "Issue status changed",
    NotificationType.NEW_COMMENT: "New comment",
    NotificationType.MENTIONED: "You were mentioned",
    NotificationType.NOTIFICATION: "Linear notification",
}

DEFAULT_BODY = "No additional details"
DEFAULT_URL = "https://linear.app/inbox"


def map_type(provider_type: str | None) -> NotificationType:
    """Translate a provider type tag; unknown tags map to the generic fallback."""
    return TYPE_MAP.get(provider_type or "", NotificationType.NOTIFICATION)


class UpdateNormalizer:
    """Builds ``CanonicalNotification``s from ``RawRecord``s."""

    def notification_id(self, record: RawRecord) -> str:
        """Canonical id, namespaced by record kind so kinds can share raw ids."""
        return f"{record.kind}-{record.id}"

    def normalize(self, record: RawRecord) -> CanonicalNotification:
        notification_type = map_type(record.type)
        return CanonicalNotification(
            id=self.notification_id(record),
            type=notification_type,
            title=self._title(record, notification_type),
            body=self._body(record),
            url=(record.url or "").strip() or DEFAULT_URL,
            timestamp=record.created_at,
            data={
                "notification_id": record.id,
                "notification_type": record.type,
                "actor": record.actor.model_dump() if record.actor else None,
                "issue_status_type": record.issue_status_type,
                "issue_identifier": record.issue_identifier,
            },
        )

    def _title(self, record: RawRecord, notification_type: NotificationType) -> str:
        title = (record.title or "").strip()
        if title:
            return title
        if record.issue_identifier:
            return f"{DEFAULT_TITLES[notification_type]}: {record.issue_identifier}"
        return DEFAULT_TITLES[notification_type]

    def _body(self, record: RawRecord) -> str:
        """Subtitle, prefixed with the actor name and then the issue status.

        e.g. ``[started] Jane Doe: Moved to In Progress``
        """
        body = (record.subtitle or "").strip() or DEFAULT_BODY
        actor_name = (record.actor.display_name or "").strip() if record.actor else ""
        if actor_name:
            body = f"{actor_name}: {body}"
        if record.issue_status_type:
            body = f"[{record.issue_status_type}] {body}"
        return body
