"""Domain events for the Orders bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderCreated(DomainEvent):
    """Raised when an order is created."""

    customer_id: str = ""
    restaurant_id: str = ""
    payment_method: str = ""
    total_amount: str = "0.00"


@dataclass(frozen=True)
class OrderStatusChanged(DomainEvent):
    """Raised on every accepted status transition except cancellation."""

    old_status: str = ""
    new_status: str = ""
    actor_role: str = ""
    rider_id: Optional[str] = None


@dataclass(frozen=True)
class OrderCancelled(DomainEvent):
    """Raised when an order is cancelled."""

    old_status: str = ""
    actor_role: str = ""
    rider_id: Optional[str] = None
