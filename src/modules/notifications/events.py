"""Domain events for the Notifications bounded context."""

from __future__ import annotations

from dataclasses import dataclass

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class NotificationCreated(DomainEvent):
    """Handed to the (external) notification sink for delivery."""

    restaurant_id: str = ""
    order_id: str = ""
    notification_type: str = ""
    message: str = ""
