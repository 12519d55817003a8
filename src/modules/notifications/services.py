"""Notification emitter (Use Cases).

A pure event-producing boundary: each accepted order transition results
in exactly one ``Notification`` row and one ``NotificationCreated``
outbox event, written in the caller's transaction.  Delivery transport
(push, SMS, email) belongs to the external sink consuming those events.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List
from uuid import UUID

import structlog
from django.db import transaction

from modules.notifications.constants import NotificationStatus, NotificationType
from modules.notifications.events import NotificationCreated
from modules.notifications.exceptions import NotificationNotFound
from shared.domain.exceptions import ValidationError

if TYPE_CHECKING:
    from modules.notifications.models import Notification
    from modules.notifications.repositories.interfaces import (
        INotificationRepository,
    )
    from modules.orders.models import Order

logger = structlog.get_logger(__name__)


class NotificationEmitter:
    """Application service for restaurant notifications."""

    def __init__(self, notification_repository: INotificationRepository) -> None:
        self._notification_repo = notification_repository

    @transaction.atomic
    def emit(self, order: Order, notification_type: str, message: str) -> Notification:
        """Record one notification for the order's restaurant.

        Raises:
            ValidationError: unknown notification type.
        """
        if notification_type not in NotificationType.values:
            raise ValidationError(f"Unknown notification type {notification_type!r}.")

        notification = self._notification_repo.create(
            restaurant_id=order.restaurant_id,
            order_id=order.id,
            notification_type=notification_type,
            message=message,
        )
        notification.add_domain_event(
            NotificationCreated(
                aggregate_id=notification.id,
                restaurant_id=str(order.restaurant_id),
                order_id=str(order.id),
                notification_type=notification_type,
                message=message,
            )
        )
        self._notification_repo.save(notification)

        logger.info(
            "notification.emitted",
            notification_id=str(notification.id),
            order_id=str(order.id),
            restaurant_id=str(order.restaurant_id),
            notification_type=notification_type,
        )
        return notification

    def list_for_restaurant(
        self, restaurant_id: UUID, unread_only: bool = False
    ) -> List[Notification]:
        return self._notification_repo.list_for_restaurant(restaurant_id, unread_only)

    def mark_read(self, notification_id: UUID) -> Notification:
        """Raises ``NotificationNotFound`` if the notification does not exist."""
        self._notification_repo.compare_and_set(
            notification_id,
            expected={"status": NotificationStatus.UNREAD},
            changes={"status": NotificationStatus.READ},
        )
        notification = self._notification_repo.get_by_id(str(notification_id))
        if not notification:
            raise NotificationNotFound(f"Notification {notification_id} not found.")
        return notification

    def mark_all_read(self, restaurant_id: UUID) -> int:
        return self._notification_repo.mark_all_read(restaurant_id)
