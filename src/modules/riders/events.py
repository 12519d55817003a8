"""Domain events for the Riders bounded context."""

from __future__ import annotations

from dataclasses import dataclass

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class RiderStatusChanged(DomainEvent):
    """Raised when a rider's availability changes."""

    old_status: str = ""
    new_status: str = ""


@dataclass(frozen=True)
class RiderLocationUpdated(DomainEvent):
    """Raised once per active order when its rider reports a new position."""

    order_id: str = ""
    longitude: float = 0.0
    latitude: float = 0.0
