"""Event handlers for Notifications domain events."""

from __future__ import annotations

import structlog

from modules.notifications.events import NotificationCreated
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


class NotificationCreatedHandler(IEventHandler[NotificationCreated]):
    def handle(self, event: NotificationCreated) -> None:
        logger.info(
            f"Notification {event.aggregate_id} ready for delivery",
            notification_id=str(event.aggregate_id),
            restaurant_id=event.restaurant_id,
            order_id=event.order_id,
            notification_type=event.notification_type,
        )


notification_created_handler = NotificationCreatedHandler()
