"""Common schemas used across the control API."""

from __future__ import annotations

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Standard health check response."""

    status: str = "ok"


class IntervalUpdate(BaseModel):
    seconds: int


class IntervalResponse(BaseModel):
    seconds: int


class PollResponse(BaseModel):
    dispatched: int


class ConnectionResponse(BaseModel):
    connected: bool


class AuthorizationResponse(BaseModel):
    authorization_url: str
