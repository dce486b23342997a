"""Notification sinks: where canonical notifications are delivered."""
