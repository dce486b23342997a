"""Raw records as returned by the Linear notification feed."""

from __future__ import annotations

from datetime import datetime

from pydantic import AliasPath, BaseModel, ConfigDict, Field


class Actor(BaseModel):
    """The user who caused a notification."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    display_name: str | None = Field(default=None, alias="displayName")
    avatar_url: str | None = Field(default=None, alias="avatarUrl")


class RawRecord(BaseModel):
    """One notification node, in Linear's schema. Immutable once fetched."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str
    kind: str = "notification"  # namespace for the canonical id
    type: str = ""  # Linear notification type tag, e.g. "issueAssignedToYou"
    created_at: datetime = Field(alias="createdAt")
    title: str | None = None
    subtitle: str | None = None
    url: str | None = None
    actor: Actor | None = None
    issue_status_type: str | None = Field(default=None, alias="issueStatusType")
    issue_identifier: str | None = Field(
        default=None, validation_alias=AliasPath("issue", "identifier")
    )
    read_at: datetime | None = Field(default=None, alias="readAt")
    snoozed_until_at: datetime | None = Field(default=None, alias="snoozedUntilAt")
