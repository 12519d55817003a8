"""Django ORM implementation of the Notification repository."""

from __future__ import annotations

from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from modules.core.outbox import flush_domain_events
from modules.core.repositories.django_repository import CompareAndSetMixin
from modules.notifications.constants import NotificationStatus
from modules.notifications.models import Notification
from modules.notifications.repositories.interfaces import INotificationRepository

logger = structlog.get_logger(__name__)


class NotificationDjangoRepository(CompareAndSetMixin, INotificationRepository):
    """Concrete Notification repository backed by Django ORM."""

    model = Notification

    def create(
        self, restaurant_id: UUID, order_id: UUID, notification_type: str, message: str
    ) -> Notification:
        return Notification.objects.create(
            restaurant_id=restaurant_id,
            order_id=order_id,
            type=notification_type,
            message=message,
        )

    def get_by_id(self, id: str) -> Optional[Notification]:
        try:
            return Notification.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Notification]:
        queryset = Notification.objects.all()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def list_for_restaurant(
        self, restaurant_id: UUID, unread_only: bool = False
    ) -> List[Notification]:
        queryset = Notification.objects.filter(restaurant_id=restaurant_id)
        if unread_only:
            queryset = queryset.filter(status=NotificationStatus.UNREAD)
        return list(queryset)

    @transaction.atomic
    def save(self, entity: Notification) -> Notification:
        entity.save()
        flush_domain_events(entity, topic="notifications")
        return entity

    def mark_all_read(self, restaurant_id: UUID) -> int:
        updated = Notification.objects.filter(
            restaurant_id=restaurant_id, status=NotificationStatus.UNREAD
        ).update(status=NotificationStatus.READ, updated_at=timezone.now())
        logger.info(
            "notification.marked_all_read",
            restaurant_id=str(restaurant_id),
            count=updated,
        )
        return updated
