"""Credential/session provider backed by the preference store."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from linear_notify.log import LogConfig
from linear_notify.preferences import PreferenceStore

# Linear access tokens without an explicit lifetime are assumed to last a day
DEFAULT_TOKEN_LIFETIME_SECONDS = 86400


class CredentialProvider:
    """Answers "which credential do we use, and is it still valid?"."""

    def __init__(self, preferences: PreferenceStore, log_config: LogConfig | None = None):
        self.preferences = preferences
        self.logger = (log_config or LogConfig()).get_logger("credentials")

    def is_authenticated(self) -> bool:
        """True iff a non-expired credential for the active auth method is stored."""
        prefs = self.preferences.get()
        if prefs.auth_method == "token":
            return bool(prefs.api_token)

        if not prefs.oauth_token or prefs.token_expires_at is None:
            return False
        expires_at = prefs.token_expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if datetime.now(timezone.utc) >= expires_at:
            self.logger.info("oauth_token_expired", expired_at=expires_at.isoformat())
            return False
        return True

    def get_token(self) -> str | None:
        if not self.is_authenticated():
            return None
        prefs = self.preferences.get()
        return prefs.api_token if prefs.auth_method == "token" else prefs.oauth_token

    def authorization_header(self) -> str | None:
        """Value for the Authorization header.

        Personal API tokens are sent as-is; OAuth access tokens use the Bearer scheme.
        """
        token = self.get_token()
        if token is None:
            return None
        if self.preferences.get().auth_method == "token":
            return token
        return f"Bearer {token}"

    def store_oauth_token(
        self,
        access_token: str,
        expires_in: int | None = None,
        refresh_token: str | None = None,
    ) -> datetime:
        """Persist a freshly issued OAuth token and switch to OAuth auth."""
        lifetime = expires_in or DEFAULT_TOKEN_LIFETIME_SECONDS
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=lifetime)
        changes: dict = {
            "auth_method": "oauth",
            "oauth_token": access_token,
            "token_expires_at": expires_at,
        }
        if refresh_token:
            changes["refresh_token"] = refresh_token
        self.preferences.update(**changes)
        self.logger.info("oauth_token_stored", expires_at=expires_at.isoformat())
        return expires_at

    def store_api_token(self, api_token: str) -> None:
        self.preferences.update(auth_method="token", api_token=api_token)

    def clear(self) -> None:
        self.preferences.update(
            api_token="",
            oauth_token="",
            refresh_token="",
            token_expires_at=None,
            last_update_time=None,
        )
        self.logger.info("credentials_cleared")
