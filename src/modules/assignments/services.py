"""Assignment coordinator (Use Cases).

Bridges ``ready_for_pickup`` orders to idle riders with single-claim
exclusivity: no two riders can both believe they own the same order.

Business rules enforced:
- The assignable pool is FIFO by ``ready_at``.
- Proposals (restaurant/admin) and claims (rider self-service) funnel
  through one compare-and-set on the order row; losers get
  ``AlreadyAssigned``.
- The rider row is locked after the order row, never before, and only
  inside the short assignment transaction.
- A proposal must be accepted within the acceptance window; decline or
  expiry hands the order back to the pool without reassigning it.
- After ``ASSIGNMENT_MAX_PROPOSALS`` failed proposals the order is
  escalated to manual (admin) assignment.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, List, Optional
from uuid import UUID

import structlog
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from modules.assignments.constants import ProposalSource, ProposalStatus
from modules.assignments.events import (
    AssignmentReleased,
    OrderEscalated,
    RiderAssigned,
)
from modules.assignments.exceptions import (
    AssignmentEscalated,
    ProposalExpired,
    ProposalNotFound,
)
from modules.orders.constants import OrderStatus
from modules.orders.exceptions import (
    IllegalOrderTransition,
    NotAssignedRider,
    OrderNotFound,
    UnauthorizedTransition,
)
from modules.riders.constants import RiderStatus
from modules.riders.exceptions import RiderNotFound, RiderUnavailable
from shared.domain.actors import ActorDTO, ActorRole
from shared.domain.exceptions import IllegalTransition

if TYPE_CHECKING:
    from modules.assignments.models import AssignmentProposal
    from modules.assignments.repositories.interfaces import IProposalRepository
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.orders.services import OrderService
    from modules.riders.dtos import NearbyRiderDTO
    from modules.riders.repositories.interfaces import IRiderRepository
    from modules.riders.services import RiderDirectory

logger = structlog.get_logger(__name__)

EXPIRY_SWEEP_BATCH_SIZE = 200


class AssignmentCoordinator:
    """Application service brokering orders to riders."""

    def __init__(
        self,
        order_repository: IOrderRepository,
        rider_repository: IRiderRepository,
        proposal_repository: IProposalRepository,
        order_service: OrderService,
        rider_directory: RiderDirectory,
    ) -> None:
        self._order_repo = order_repository
        self._rider_repo = rider_repository
        self._proposal_repo = proposal_repository
        self._order_service = order_service
        self._directory = rider_directory

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_assignable(self, limit: Optional[int] = None) -> List[Order]:
        """Unclaimed ready orders, oldest first; escalated orders excluded."""
        return self._order_repo.list_assignable(limit)

    def suggest_riders(
        self,
        order_id: UUID,
        radius_m: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> List[NearbyRiderDTO]:
        """Available riders nearest to the order's pickup point."""
        order = self._get_order(order_id)
        return self._directory.find_available(
            order.pickup_longitude, order.pickup_latitude, radius_m, limit
        )

    def list_proposals(self, order_id: UUID) -> List[AssignmentProposal]:
        return self._proposal_repo.list_for_order(order_id)

    # ------------------------------------------------------------------
    # Claim / propose
    # ------------------------------------------------------------------

    @transaction.atomic
    def propose_assignment(
        self, order_id: UUID, rider_id: UUID, actor: ActorDTO
    ) -> AssignmentProposal:
        """Restaurant (owner) or admin offers the order to a rider.

        Raises:
            UnauthorizedTransition: actor is not the owning restaurant or
                an admin.
            AssignmentEscalated: escalated orders need an admin.
            OrderNotFound, RiderNotFound, AlreadyAssigned,
            IllegalOrderTransition, RiderUnavailable.
        """
        order = self._get_order(order_id)
        if actor.role not in (ActorRole.RESTAURANT, ActorRole.ADMIN) or (
            actor.role == ActorRole.RESTAURANT and order.restaurant_id != actor.actor_id
        ):
            raise UnauthorizedTransition(
                f"Role {actor.role.value} may not propose riders for order {order.id}."
            )
        is_admin = actor.role == ActorRole.ADMIN
        if not is_admin:
            self._reject_if_escalated(order)
        return self._assign(
            order,
            rider_id,
            ProposalSource.PROPOSAL,
            allow_escalated=is_admin,
            notes=f"Proposed to rider {rider_id} by {actor.role.value}",
        )

    @transaction.atomic
    def claim(self, order_id: UUID, rider_id: UUID) -> AssignmentProposal:
        """Rider self-service claim from the unclaimed-orders feed.

        Raises:
            AssignmentEscalated: the order awaits manual assignment.
            OrderNotFound, RiderNotFound, AlreadyAssigned,
            IllegalOrderTransition, RiderUnavailable.
        """
        order = self._get_order(order_id)
        self._reject_if_escalated(order)
        return self._assign(
            order,
            rider_id,
            ProposalSource.CLAIM,
            allow_escalated=False,
            notes=f"Claimed by rider {rider_id}",
        )

    # ------------------------------------------------------------------
    # Rider responses
    # ------------------------------------------------------------------

    def accept_order(self, order_id: UUID, rider_id: UUID) -> AssignmentProposal:
        """Rider accepts a pending proposal within its window.

        An expired proposal is released (committed) before
        ``ProposalExpired`` is raised.

        Raises:
            OrderNotFound, NotAssignedRider, ProposalNotFound,
            ProposalExpired.
        """
        proposal = self._pending_proposal(order_id, rider_id)
        now = timezone.now()
        if proposal.is_expired(now):
            self._release(proposal, ProposalStatus.EXPIRED)
            raise ProposalExpired(
                f"Proposal for order {order_id} expired at {proposal.expires_at}."
            )

        with transaction.atomic():
            won = self._proposal_repo.resolve(proposal.id, ProposalStatus.ACCEPTED, now)
        proposal = self._proposal_repo.get_by_id(str(proposal.id))
        if not won and proposal.status != ProposalStatus.ACCEPTED:
            if proposal.status == ProposalStatus.EXPIRED:
                raise ProposalExpired(f"Proposal for order {order_id} expired.")
            raise ProposalNotFound(
                f"Proposal for order {order_id} is already {proposal.status}."
            )
        logger.info(
            "assignment.accepted", order_id=str(order_id), rider_id=str(rider_id)
        )
        return proposal

    def decline_order(self, order_id: UUID, rider_id: UUID) -> Order:
        """Rider turns down a pending proposal; the order re-enters the pool.

        Raises:
            OrderNotFound, NotAssignedRider, ProposalNotFound.
        """
        proposal = self._pending_proposal(order_id, rider_id)
        return self._release(proposal, ProposalStatus.DECLINED)

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    def expire_stale_proposals(self, now: Optional[datetime] = None) -> int:
        """Treat every pending proposal past its window as an expiry.

        Returns the number of orders handed back to the pool.
        """
        now = now or timezone.now()
        released = 0
        for proposal in self._proposal_repo.list_expired(now, EXPIRY_SWEEP_BATCH_SIZE):
            try:
                self._release(proposal, ProposalStatus.EXPIRED)
                released += 1
            except IllegalTransition as exc:
                # The order moved on (picked up, cancelled); close the row only.
                self._proposal_repo.resolve(proposal.id, ProposalStatus.EXPIRED, now)
                logger.info(
                    "assignment.expiry_skipped",
                    proposal_id=str(proposal.id),
                    order_id=str(proposal.order_id),
                    reason=str(exc),
                )
        if released:
            logger.info("assignment.proposals_expired", count=released)
        return released

    def cancel_open_proposals(self, order_id: UUID) -> int:
        return self._proposal_repo.cancel_open(order_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get_order(self, order_id: UUID) -> Order:
        order = self._order_repo.get_by_id(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    @staticmethod
    def _reject_if_escalated(order: Order) -> None:
        if (
            order.requires_manual_assignment
            and order.rider_id is None
            and order.status == OrderStatus.READY_FOR_PICKUP
        ):
            raise AssignmentEscalated(
                f"Order {order.id} requires manual assignment by an admin."
            )

    def _pending_proposal(self, order_id: UUID, rider_id: UUID) -> AssignmentProposal:
        order = self._get_order(order_id)
        if str(order.rider_id) != str(rider_id):
            raise NotAssignedRider(f"Rider {rider_id} is not assigned to order {order_id}.")
        proposal = self._proposal_repo.get_pending(order.id, rider_id)
        if not proposal:
            raise ProposalNotFound(
                f"No pending proposal for order {order_id} and rider {rider_id}."
            )
        return proposal

    def _assign(
        self,
        order: Order,
        rider_id: UUID,
        source: str,
        allow_escalated: bool,
        notes: str,
    ) -> AssignmentProposal:
        log = logger.bind(order_id=str(order.id), rider_id=str(rider_id), source=source)
        if not self._rider_repo.get_by_id(str(rider_id)):
            raise RiderNotFound(f"Rider {rider_id} not found.")

        # 1. Order compare-and-set: the exclusivity decision.
        order = self._order_service.assign_rider(
            order.id, rider_id, notes=notes, allow_escalated=allow_escalated
        )

        # 2. Rider bookkeeping under a row lock; raising rolls back step 1.
        rider = self._rider_repo.get_for_update(str(rider_id))
        if (
            rider.status == RiderStatus.OFFLINE
            or rider.active_order_count >= settings.RIDER_MAX_ACTIVE_ORDERS
        ):
            log.warning(
                "assignment.rider_unavailable",
                rider_status=rider.status,
                active_orders=rider.active_order_count,
            )
            raise RiderUnavailable(
                f"Rider {rider_id} is {rider.status} with "
                f"{rider.active_order_count} active order(s)."
            )
        self._rider_repo.attach_order(rider, order.id)

        # 3. Proposal record.
        now = timezone.now()
        if source == ProposalSource.PROPOSAL:
            status = ProposalStatus.PENDING
            expires_at = now + timedelta(
                seconds=settings.ASSIGNMENT_ACCEPTANCE_WINDOW_SECONDS
            )
        else:
            status, expires_at = ProposalStatus.ACCEPTED, None
        proposal = self._proposal_repo.create(
            order_id=order.id,
            rider_id=rider.id,
            source=source,
            status=status,
            expires_at=expires_at,
        )
        proposal.add_domain_event(
            RiderAssigned(aggregate_id=order.id, rider_id=str(rider.id), source=source)
        )
        self._proposal_repo.publish_events(proposal)

        log.info("assignment.claimed", proposal_id=str(proposal.id))
        return proposal

    @transaction.atomic
    def _release(self, proposal: AssignmentProposal, outcome: str) -> Order:
        """Hand a proposed order back to the pool (decline or expiry)."""
        log = logger.bind(
            order_id=str(proposal.order_id),
            rider_id=str(proposal.rider_id),
            outcome=outcome,
        )
        order = self._order_service.release_rider(
            proposal.order_id, proposal.rider_id, notes=f"Proposal {outcome}"
        )
        if not self._proposal_repo.resolve(proposal.id, outcome, timezone.now()):
            raise IllegalOrderTransition(
                f"Proposal {proposal.id} was resolved concurrently."
            )

        rider = self._rider_repo.get_for_update(str(proposal.rider_id))
        if rider and rider.holds_order(order.id):
            self._rider_repo.release_order(rider, order.id)

        proposal.add_domain_event(
            AssignmentReleased(
                aggregate_id=order.id,
                rider_id=str(proposal.rider_id),
                outcome=outcome,
                failed_proposals=order.failed_proposals,
            )
        )
        if (
            order.failed_proposals >= settings.ASSIGNMENT_MAX_PROPOSALS
            and self._order_repo.compare_and_set(
                order.id,
                expected={"requires_manual_assignment": False},
                changes={"requires_manual_assignment": True},
            )
        ):
            proposal.add_domain_event(
                OrderEscalated(
                    aggregate_id=order.id, failed_proposals=order.failed_proposals
                )
            )
            log.warning("assignment.escalated", failed_proposals=order.failed_proposals)
            order = self._get_order(order.id)
        self._proposal_repo.publish_events(proposal)

        log.info("assignment.released", failed_proposals=order.failed_proposals)
        return order
