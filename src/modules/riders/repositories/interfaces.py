"""Rider repository interface.

Extends ``IRepository[Rider]`` with the geospatial prefilter and the
order bookkeeping the assignment flow performs under a row lock.
"""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.riders.geo import BoundingBox
    from modules.riders.models import Rider


class IRiderRepository(IRepository["Rider"]):
    """Repository contract for the Rider aggregate."""

    @abstractmethod
    def create(self, user_id: UUID, longitude: float, latitude: float) -> Rider:
        """Create a rider profile (status ``offline``)."""

    @abstractmethod
    def get_by_user(self, user_id: UUID) -> Optional[Rider]:
        """Retrieve the rider linked to a user account."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Rider]:
        """Retrieve a rider with a row-level lock (SELECT FOR UPDATE)."""

    @abstractmethod
    def update_location(
        self, id: UUID, longitude: float, latitude: float, timestamp: datetime
    ) -> bool:
        """Overwrite position and ``last_updated`` without touching status."""

    @abstractmethod
    def available_within(self, box: BoundingBox) -> List[Rider]:
        """Available riders inside ``box`` (index-backed prefilter)."""

    @abstractmethod
    def publish_events(self, rider: Rider) -> int:
        """Write the rider's pending domain events to the outbox without saving it."""

    @abstractmethod
    def attach_order(self, rider: Rider, order_id: UUID) -> Rider:
        """Record an assigned order on a locked rider and mark it busy."""

    @abstractmethod
    def release_order(self, rider: Rider, order_id: UUID) -> Rider:
        """Drop an order from a locked rider; available again when idle."""
