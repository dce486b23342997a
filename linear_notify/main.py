"""FastAPI control surface for the linear-notify daemon.

Runs the polling service in the background and exposes a small local API for
status, manual refresh, the polling interval, notification actions and the
OAuth login flow.
"""

from __future__ import annotations

import asyncio
import html

import redis.asyncio as aioredis
from fastapi import FastAPI, HTTPException
from fastapi.responses import HTMLResponse

from linear_notify import __version__
from linear_notify.actions import ActionRouter, action_listener
from linear_notify.config import Settings, get_settings, parse_list
from linear_notify.credentials import CredentialProvider
from linear_notify.log import LogConfig, configure_logging
from linear_notify.oauth import LinearOAuth, OAuthError, OAuthStateStore
from linear_notify.poller.service import PollingService
from linear_notify.preferences import PreferenceError, PreferenceStore
from linear_notify.providers.linear import LinearProvider
from linear_notify.schemas.actions import NotificationAction
from linear_notify.schemas.common import (
    AuthorizationResponse,
    ConnectionResponse,
    HealthResponse,
    IntervalResponse,
    IntervalUpdate,
    PollResponse,
)
from linear_notify.schemas.notifications import PollingStatus
from linear_notify.sinks.base import FanoutSink, NotificationSink
from linear_notify.sinks.desktop import DesktopNotificationSink
from linear_notify.sinks.pubsub import RedisNotificationSink

app = FastAPI(title="Linear Notifications", version=__version__)

# Global instances (initialized on startup)
service: PollingService | None = None
router: ActionRouter | None = None
oauth: LinearOAuth | None = None
_redis: aioredis.Redis | None = None
_listener_task: asyncio.Task | None = None

_log_config = LogConfig()
logger = _log_config.get_logger("api")

_CALLBACK_PAGE = """<!DOCTYPE html>
<html>
<head><title>Linear Notifications</title></head>
<body style="font-family: sans-serif; text-align: center; padding: 50px;">
<h1>{heading}</h1>
<p>{message}</p>
</body>
</html>
"""


def _callback_page(heading: str, message: str, status_code: int = 200) -> HTMLResponse:
    return HTMLResponse(
        _CALLBACK_PAGE.format(heading=html.escape(heading), message=html.escape(message)),
        status_code=status_code,
    )


def build_sink(
    settings: Settings,
    preferences: PreferenceStore,
    redis: aioredis.Redis | None,
    log_config: LogConfig,
    action_router: ActionRouter | None = None,
) -> NotificationSink:
    """Build the configured sink(s) from ``settings.notification_sinks``.

    Desktop popups route their buttons through ``action_router`` when given.
    """
    sinks: list[NotificationSink] = []
    for name in parse_list(settings.notification_sinks):
        if name == "desktop":
            sinks.append(
                DesktopNotificationSink(
                    preferences, action_router=action_router, log_config=log_config
                )
            )
        elif name == "redis":
            if redis is None:
                logger.warning("sink_skipped", sink=name, reason="redis_url not set")
                continue
            sinks.append(
                RedisNotificationSink(
                    redis, settings.notification_channel, preferences, log_config
                )
            )
        else:
            logger.warning("sink_unknown", sink=name)

    if not sinks:
        logger.warning("no_sinks_configured_using_desktop")
        return DesktopNotificationSink(
            preferences, action_router=action_router, log_config=log_config
        )
    if len(sinks) == 1:
        return sinks[0]
    return FanoutSink(sinks, log_config=log_config)


def load_preferences(settings: Settings, log_config: LogConfig) -> PreferenceStore:
    """Load persisted preferences, seeding first-run values from settings."""
    path = settings.resolved_preferences_path()
    first_run = not path.exists()
    preferences = PreferenceStore.load(path, log_config)
    if first_run:
        preferences.update(polling_interval=settings.default_polling_interval)

    prefs = preferences.get()
    if settings.linear_api_token and not (prefs.api_token or prefs.oauth_token):
        preferences.update(auth_method="token", api_token=settings.linear_api_token)
        logger.info("api_token_seeded_from_environment")
    return preferences


@app.on_event("startup")
async def startup():
    """Wire up components and start polling."""
    global service, router, oauth, _redis, _listener_task

    settings = get_settings()
    configure_logging(json_logs=settings.log_json)
    if settings.debug_logging:
        _log_config.enable_debug()

    preferences = load_preferences(settings, _log_config)
    credentials = CredentialProvider(preferences, _log_config)

    if settings.redis_url:
        _redis = aioredis.from_url(settings.redis_url)

    provider = LinearProvider(
        credentials,
        api_url=settings.linear_api_url,
        page_size=settings.linear_page_size,
        timeout=settings.request_timeout_seconds,
        log_config=_log_config,
    )
    router = ActionRouter(provider, preferences, log_config=_log_config)
    sink = build_sink(settings, preferences, _redis, _log_config, router)
    service = PollingService(provider, sink, preferences, log_config=_log_config)
    oauth = LinearOAuth(
        client_id=settings.linear_oauth_client_id,
        client_secret=settings.linear_oauth_client_secret,
        redirect_uri=settings.linear_oauth_redirect_uri,
        credentials=credentials,
        state_store=OAuthStateStore(_redis, settings.oauth_state_ttl_seconds),
        scope=settings.linear_oauth_scope,
        authorize_url=settings.linear_oauth_authorize_url,
        token_url=settings.linear_oauth_token_url,
        log_config=_log_config,
    )

    if _redis is not None:
        _listener_task = asyncio.create_task(
            action_listener(_redis, settings.action_channel, router, _log_config)
        )

    service.start()
    logger.info("linear_notify_started", version=__version__)


@app.on_event("shutdown")
async def shutdown():
    global _listener_task, _redis

    if _listener_task is not None:
        _listener_task.cancel()
        await asyncio.gather(_listener_task, return_exceptions=True)
        _listener_task = None
    if service is not None:
        await service.destroy()
        await service.sink.close()
    if oauth is not None:
        await oauth.close()
    if _redis is not None:
        await _redis.aclose()
        _redis = None
    logger.info("linear_notify_stopped")


def _require_service() -> PollingService:
    if service is None:
        raise HTTPException(503, "Service not initialized")
    return service


def _require_oauth() -> LinearOAuth:
    if oauth is None:
        raise HTTPException(503, "Service not initialized")
    return oauth


# --------------- Status & polling ---------------


@app.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse()


@app.get("/status", response_model=PollingStatus)
async def status():
    return _require_service().get_status()


@app.post("/poll", response_model=PollResponse)
async def poll_now():
    """Fetch immediately instead of waiting for the next cycle."""
    return PollResponse(dispatched=await _require_service().force_poll())


@app.post("/reset", response_model=PollingStatus)
async def reset():
    """Forget every seen notification id."""
    svc = _require_service()
    svc.reset()
    return svc.get_status()


@app.post("/connection/test", response_model=ConnectionResponse)
async def check_connection():
    return ConnectionResponse(connected=await _require_service().test_connection())


# --------------- Settings ---------------


@app.get("/settings/polling-interval", response_model=IntervalResponse)
async def get_polling_interval():
    return IntervalResponse(seconds=_require_service().get_polling_interval())


@app.put("/settings/polling-interval", response_model=IntervalResponse)
async def set_polling_interval(body: IntervalUpdate):
    svc = _require_service()
    try:
        svc.set_polling_interval(body.seconds)
    except PreferenceError as e:
        raise HTTPException(400, str(e))
    return IntervalResponse(seconds=svc.get_polling_interval())


# --------------- Actions ---------------


@app.post("/actions")
async def handle_action(action: NotificationAction) -> dict:
    """Run a notification action (open, mark_read, snooze)."""
    if router is None:
        raise HTTPException(503, "Service not initialized")
    return {"handled": await router.handle(action)}


# --------------- OAuth ---------------


@app.get("/oauth/start", response_model=AuthorizationResponse)
async def oauth_start():
    try:
        url = await _require_oauth().start()
    except OAuthError as e:
        raise HTTPException(400, str(e))
    return AuthorizationResponse(authorization_url=url)


@app.get("/oauth/callback", response_class=HTMLResponse)
async def oauth_callback(code: str = "", state: str = "", error: str = ""):
    """Redirect target registered with Linear."""
    flow = _require_oauth()
    if error:
        logger.warning("oauth_denied", error=error)
        return _callback_page("Authorization failed", error, status_code=400)
    try:
        await flow.complete(code, state)
    except OAuthError as e:
        logger.warning("oauth_callback_failed", error=str(e))
        return _callback_page("Authorization failed", str(e), status_code=400)
    return _callback_page(
        "Authorization successful",
        "You can close this window and return to your desktop.",
    )


@app.post("/oauth/logout")
async def oauth_logout() -> dict:
    _require_oauth().logout()
    return {"status": "ok"}
