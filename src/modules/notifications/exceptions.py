"""Notification exceptions."""

from __future__ import annotations

from shared.domain.exceptions import NotFound


class NotificationNotFound(NotFound):
    """The requested notification does not exist."""
