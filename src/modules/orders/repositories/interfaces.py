"""Order repository interface.

Extends ``IRepository[Order]`` with methods required by the Order
aggregate: atomic creation with items, status history tracking,
idempotency-key look-up, the assignment compare-and-set pair and the
assignable-pool queries.

The Service Layer depends exclusively on this contract (DIP).
"""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderStatusHistory
    from modules.riders.geo import BoundingBox
    from shared.domain.actors import ActorDTO


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root.

    The Order aggregate includes OrderItem children and
    OrderStatusHistory records.  Mutations must be atomic.
    """

    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Order:
        """Create an order with its items atomically.

        ``data`` holds the order fields plus ``items`` (list of dicts with
        ``item_id``, ``item_name``, ``quantity``, ``unit_price``).
        ``total_amount`` is computed here from the items and delivery fee.
        """

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with prefetched items and status history."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """List orders with optional filters."""

    @abstractmethod
    def add_history(
        self,
        order_id: UUID,
        new_status: str,
        actor: ActorDTO,
        notes: str = "",
        old_status: Optional[str] = None,
    ) -> OrderStatusHistory:
        """Record a status change in the order's audit trail."""

    @abstractmethod
    def get_by_idempotency_key(self, key: str) -> Optional[Order]:
        """Retrieve an order by its idempotency key."""

    @abstractmethod
    def publish_events(self, order: Order) -> int:
        """Write the order's pending domain events to the outbox."""

    @abstractmethod
    def claim(self, order_id: UUID, rider_id: UUID, allow_escalated: bool) -> bool:
        """Set rider and ``assigned`` only if unclaimed and ``ready_for_pickup``."""

    @abstractmethod
    def release_claim(self, order_id: UUID, rider_id: UUID) -> bool:
        """Revert ``assigned`` to ``ready_for_pickup`` if still held by *rider_id*.

        Counts the release in ``failed_proposals``.
        """

    @abstractmethod
    def list_assignable(self, limit: Optional[int] = None) -> List[Order]:
        """Unclaimed, non-escalated ready orders, oldest ``ready_at`` first."""

    @abstractmethod
    def assignable_within(self, box: BoundingBox) -> List[Order]:
        """Assignable orders whose pickup point lies inside ``box``."""

    @abstractmethod
    def summary(self, restaurant_id: UUID, since: datetime) -> Dict[str, Any]:
        """Aggregate dashboard counters for one restaurant."""
