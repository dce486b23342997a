"""Linear OAuth 2.0 authorization-code flow.

``start()`` issues a one-time state and returns the authorize URL; the user
approves in the browser and Linear redirects to ``/oauth/callback``, where
``complete()`` checks the state and exchanges the code for a token. Tokens are
stored through the ``CredentialProvider``, which switches the auth method to
OAuth and, through the preference store, restarts polling.
"""

from __future__ import annotations

import secrets
import time
from urllib.parse import urlencode

import httpx
import redis.asyncio as aioredis

from linear_notify.credentials import CredentialProvider
from linear_notify.log import LogConfig

LINEAR_AUTH_URL = "https://linear.app/oauth/authorize"
LINEAR_TOKEN_URL = "https://api.linear.app/oauth/token"

_STATE_KEY_PREFIX = "linear_oauth_state:"


class OAuthError(ValueError):
    """The authorization flow failed or was tampered with."""


class OAuthStateStore:
    """One-time CSRF states with a TTL, kept in Redis when available."""

    def __init__(self, redis_client: aioredis.Redis | None = None, ttl_seconds: int = 600):
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds
        # state -> expiry (monotonic); used when no Redis is configured
        self._local: dict[str, float] = {}

    async def issue(self) -> str:
        state = secrets.token_urlsafe(32)
        if self.redis is not None:
            await self.redis.setex(f"{_STATE_KEY_PREFIX}{state}", self.ttl_seconds, "1")
        else:
            self._expire_local()
            self._local[state] = time.monotonic() + self.ttl_seconds
        return state

    async def consume(self, state: str) -> bool:
        """Return True if ``state`` was issued and not yet used. Always invalidates it."""
        if not state:
            return False
        if self.redis is not None:
            return bool(await self.redis.delete(f"{_STATE_KEY_PREFIX}{state}"))
        self._expire_local()
        return self._local.pop(state, None) is not None

    def _expire_local(self) -> None:
        now = time.monotonic()
        for state in [s for s, expires in self._local.items() if expires <= now]:
            del self._local[state]


class LinearOAuth:
    """Runs the Linear OAuth flow and stores the resulting tokens."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        credentials: CredentialProvider,
        state_store: OAuthStateStore | None = None,
        scope: str = "read",
        authorize_url: str = LINEAR_AUTH_URL,
        token_url: str = LINEAR_TOKEN_URL,
        http_client: httpx.AsyncClient | None = None,
        log_config: LogConfig | None = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.credentials = credentials
        self.state_store = state_store or OAuthStateStore()
        self.scope = scope
        self.authorize_url = authorize_url
        self.token_url = token_url
        self._client = http_client or httpx.AsyncClient(timeout=15.0)
        self.logger = (log_config or LogConfig()).get_logger("oauth")

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def get_auth_url(self, state: str) -> str:
        params = urlencode(
            {
                "client_id": self.client_id,
                "redirect_uri": self.redirect_uri,
                "response_type": "code",
                "scope": self.scope,
                "state": state,
                "prompt": "consent",
            }
        )
        return f"{self.authorize_url}?{params}"

    async def start(self) -> str:
        """Begin the flow. Returns the URL the user must open."""
        if not self.configured:
            raise OAuthError("OAuth client ID and secret must be configured")
        state = await self.state_store.issue()
        self.logger.info("oauth_flow_started")
        return self.get_auth_url(state)

    async def complete(self, code: str, state: str) -> None:
        """Handle the redirect: verify ``state``, exchange ``code``, store the token."""
        if not await self.state_store.consume(state):
            self.logger.warning("oauth_state_mismatch")
            raise OAuthError("Invalid or expired OAuth state")
        if not code:
            raise OAuthError("No authorization code received")

        token_data = await self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.redirect_uri,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            }
        )
        self._store(token_data)
        self.logger.info("oauth_flow_completed")

    async def refresh(self) -> None:
        """Exchange the stored refresh token for a new access token."""
        refresh_token = self.credentials.preferences.get().refresh_token
        if not refresh_token:
            raise OAuthError("No refresh token available")

        token_data = await self._token_request(
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            }
        )
        self._store(token_data)
        self.logger.info("oauth_token_refreshed")

    def logout(self) -> None:
        self.credentials.clear()
        self.logger.info("oauth_logged_out")

    async def close(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _token_request(self, form: dict[str, str]) -> dict:
        try:
            resp = await self._client.post(
                self.token_url,
                data=form,
                headers={"Accept": "application/json"},
            )
        except httpx.RequestError as e:
            raise OAuthError(f"Failed to reach Linear token endpoint: {e}") from e

        if resp.status_code != 200:
            self.logger.warning(
                "oauth_token_request_failed",
                grant_type=form["grant_type"],
                status=resp.status_code,
                body=resp.text[:500],
            )
            raise OAuthError(f"Token request failed ({resp.status_code}): {resp.text[:200]}")

        try:
            data = resp.json()
        except ValueError as e:
            raise OAuthError(f"Token endpoint returned invalid JSON: {e}") from e

        if "error" in data:
            raise OAuthError(f"Token error: {data.get('error_description', data['error'])}")
        if not data.get("access_token"):
            raise OAuthError("Linear did not return an access token")
        return data

    def _store(self, token_data: dict) -> None:
        self.credentials.store_oauth_token(
            token_data["access_token"],
            expires_in=token_data.get("expires_in"),
            refresh_token=token_data.get("refresh_token"),
        )
