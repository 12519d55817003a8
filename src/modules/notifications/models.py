"""Notification model.

A derived, independently-lifecycled record produced as a side effect of
an accepted order transition.  It never mutates the entities that
triggered it and is never authoritative over order state.
"""

from __future__ import annotations

from django.db import models

from modules.core.models import BaseModel
from modules.notifications.constants import NotificationStatus, NotificationType
from shared.domain.events import DomainEventMixin


class Notification(DomainEventMixin, BaseModel):
    """Lifecycle message addressed to a restaurant."""

    restaurant_id: models.UUIDField = models.UUIDField()
    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="notifications",
    )
    message: models.TextField = models.TextField()
    type: models.CharField = models.CharField(
        max_length=20,
        choices=NotificationType.choices,
        default=NotificationType.OTHER,
    )
    status: models.CharField = models.CharField(
        max_length=20,
        choices=NotificationStatus.choices,
        default=NotificationStatus.UNREAD,
    )

    class Meta:
        db_table = "notifications"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["restaurant_id", "status", "-created_at"],
                name="notif_restaurant_status_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"[{self.type}] {self.message}"
