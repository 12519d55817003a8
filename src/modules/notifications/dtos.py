"""Notification DTOs (Pydantic v2, immutable)."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from modules.notifications.models import Notification


class NotificationOutputDTO(BaseModel):
    """The ``(type, restaurant_id, order_id, message, created_at)`` sink tuple."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    type: str
    restaurant_id: UUID
    order_id: UUID
    message: str
    status: str
    created_at: datetime

    @classmethod
    def from_entity(cls, notification: Notification) -> NotificationOutputDTO:
        return cls(
            id=notification.id,
            type=notification.type,
            restaurant_id=notification.restaurant_id,
            order_id=notification.order_id,
            message=notification.message,
            status=notification.status,
            created_at=notification.created_at,
        )
