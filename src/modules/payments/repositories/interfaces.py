"""Payment repository interface."""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, List, Mapping, Optional
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.payments.models import Payment


class IPaymentRepository(IRepository["Payment"]):
    """Repository contract for Payment records."""

    @abstractmethod
    def create(
        self,
        order_id: UUID,
        payer_id: Optional[UUID],
        amount: Decimal,
        method: str,
        status: str,
        gateway_order_id: Optional[str] = None,
        settled_at: Optional[datetime] = None,
    ) -> Payment:
        """Insert a payment row."""

    @abstractmethod
    def get_by_gateway_order(self, gateway_order_id: str) -> Optional[Payment]:
        """Retrieve the payment opened for a gateway order."""

    @abstractmethod
    def get_settled(self, order_id: UUID) -> Optional[Payment]:
        """The ``success`` payment of an order, if any."""

    @abstractmethod
    def list_for_order(self, order_id: UUID) -> List[Payment]:
        """Every payment attempt of an order, newest first."""

    @abstractmethod
    def resolve(
        self, payment_id: UUID, outcome: str, changes: Mapping[str, Any]
    ) -> bool:
        """Move a payment from ``pending`` to *outcome* (compare-and-set)."""

    @abstractmethod
    def publish_events(self, payment: Payment) -> int:
        """Write the payment's pending domain events to the outbox."""
