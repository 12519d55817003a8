"""Assignment proposal repository interface."""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.assignments.models import AssignmentProposal


class IProposalRepository(IRepository["AssignmentProposal"]):
    """Repository contract for assignment proposals."""

    @abstractmethod
    def create(
        self,
        order_id: UUID,
        rider_id: UUID,
        source: str,
        status: str,
        expires_at: Optional[datetime],
    ) -> AssignmentProposal:
        """Record a proposal or claim."""

    @abstractmethod
    def get_pending(
        self, order_id: UUID, rider_id: Optional[UUID] = None
    ) -> Optional[AssignmentProposal]:
        """The open proposal of an order, optionally for a given rider."""

    @abstractmethod
    def resolve(self, proposal_id: UUID, outcome: str, responded_at: datetime) -> bool:
        """Move a proposal from ``pending`` to *outcome* (compare-and-set)."""

    @abstractmethod
    def accept_pending(self, order_id: UUID, rider_id: UUID) -> bool:
        """Accept the rider's pending proposal on the order, if any."""

    @abstractmethod
    def cancel_open(self, order_id: UUID) -> int:
        """Cancel every pending proposal of the order."""

    @abstractmethod
    def list_expired(self, now: datetime, limit: int) -> List[AssignmentProposal]:
        """Pending proposals whose acceptance window has elapsed."""

    @abstractmethod
    def list_for_order(self, order_id: UUID) -> List[AssignmentProposal]:
        """Every proposal made on an order, newest first."""

    @abstractmethod
    def publish_events(self, proposal: AssignmentProposal) -> int:
        """Write the proposal's pending domain events to the outbox."""
