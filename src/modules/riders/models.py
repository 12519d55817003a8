"""Rider model.

Business rules implemented:
- One rider profile per user account (``user_id`` unique).
- ``status`` is ``busy`` if and only if ``assigned_order_ids`` is non-empty
  (enforced by ``RiderDirectory`` and the repository's attach/release).
- Coordinates use the GeoJSON order ``[longitude, latitude]``; they change
  only through the rider's own location report.
- ``assigned_order_ids`` holds weak references (order UUID strings); the
  rider never owns its orders.
"""

from __future__ import annotations

from typing import List

from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel
from modules.riders.constants import RiderStatus
from shared.domain.events import DomainEventMixin


class Rider(DomainEventMixin, BaseModel):
    """Courier profile with live position and availability."""

    user_id: models.UUIDField = models.UUIDField(unique=True)
    longitude: models.FloatField = models.FloatField()
    latitude: models.FloatField = models.FloatField()
    last_updated: models.DateTimeField = models.DateTimeField(default=timezone.now)
    status: models.CharField = models.CharField(
        max_length=20,
        choices=RiderStatus.choices,
        default=RiderStatus.OFFLINE,
    )
    assigned_order_ids: models.JSONField = models.JSONField(default=list, blank=True)

    class Meta:
        db_table = "riders"
        ordering = ["created_at"]
        indexes = [
            # Serves the bounding-box prefilter of proximity searches.
            models.Index(
                fields=["status", "latitude", "longitude"],
                name="riders_status_geo_idx",
            ),
        ]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def coordinates(self) -> List[float]:
        """GeoJSON-ordered ``[longitude, latitude]``."""
        return [self.longitude, self.latitude]

    @property
    def active_order_count(self) -> int:
        return len(self.assigned_order_ids or [])

    def holds_order(self, order_id: object) -> bool:
        return str(order_id) in (self.assigned_order_ids or [])

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def __str__(self) -> str:
        return f"Rider {self.id} ({self.status})"
