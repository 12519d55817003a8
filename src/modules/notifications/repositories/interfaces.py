"""Notification repository interface."""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, List
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.notifications.models import Notification


class INotificationRepository(IRepository["Notification"]):
    """Repository contract for Notification records."""

    @abstractmethod
    def create(
        self, restaurant_id: UUID, order_id: UUID, notification_type: str, message: str
    ) -> Notification:
        """Create an ``unread`` notification."""

    @abstractmethod
    def list_for_restaurant(
        self, restaurant_id: UUID, unread_only: bool = False
    ) -> List[Notification]:
        """Newest-first notifications addressed to a restaurant."""

    @abstractmethod
    def mark_all_read(self, restaurant_id: UUID) -> int:
        """Mark every unread notification of a restaurant as read."""
