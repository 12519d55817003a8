"""Unit tests for AssignmentCoordinator.

Covers:
- FIFO assignable pool and rider suggestions.
- Self-service claims and restaurant/admin proposals.
- Accept / decline within the acceptance window, expiry sweep.
- Escalation to manual assignment after repeated failures.
- Rider capacity and availability checks.
"""

from __future__ import annotations

from datetime import timedelta
from uuid import uuid4

import pytest
from django.utils import timezone
from freezegun import freeze_time

from modules.assignments.constants import ProposalSource, ProposalStatus
from modules.assignments.exceptions import (
    AssignmentEscalated,
    ProposalExpired,
    ProposalNotFound,
)
from modules.assignments.tasks import expire_stale_proposals
from modules.core.models import OutboxEvent
from modules.orders.constants import OrderStatus
from modules.orders.exceptions import (
    IllegalOrderTransition,
    NotAssignedRider,
    UnauthorizedTransition,
)
from modules.riders.constants import RiderStatus
from modules.riders.exceptions import RiderNotFound, RiderUnavailable
from shared.domain.actors import ActorDTO, ActorRole
from shared.domain.exceptions import AlreadyAssigned
from tests.factories import rider_actor

pytestmark = pytest.mark.unit


def _refresh(*instances):
    for instance in instances:
        instance.refresh_from_db()


# ---------------------------------------------------------------------------
# Pool and suggestions
# ---------------------------------------------------------------------------


class TestAssignablePool:
    def test_oldest_ready_first(self, coordinator, make_ready_order):
        first = make_ready_order()
        second = make_ready_order()

        assert [o.id for o in coordinator.list_assignable()] == [first.id, second.id]

    def test_claimed_orders_leave_the_pool(self, coordinator, make_rider, make_ready_order):
        claimed = make_ready_order()
        waiting = make_ready_order()
        coordinator.claim(claimed.id, make_rider().id)

        assert [o.id for o in coordinator.list_assignable()] == [waiting.id]

    def test_limit(self, coordinator, make_ready_order):
        make_ready_order()
        make_ready_order()
        assert len(coordinator.list_assignable(limit=1)) == 1

    def test_released_order_keeps_its_place(
        self, coordinator, make_rider, make_ready_order, restaurant
    ):
        first = make_ready_order()
        second = make_ready_order()
        rider = make_rider()
        coordinator.propose_assignment(first.id, rider.id, restaurant)
        coordinator.decline_order(first.id, rider.id)

        assert [o.id for o in coordinator.list_assignable()] == [first.id, second.id]

    def test_suggest_riders_nearest_pickup(self, coordinator, make_rider, ready_order):
        near = make_rider(77.6075, 12.9755)
        far = make_rider(77.6300, 12.9755)
        make_rider(77.6071, 12.9755, status="offline")

        suggestions = coordinator.suggest_riders(ready_order.id, radius_m=5_000)

        assert [s.rider_id for s in suggestions] == [near.id, far.id]


# ---------------------------------------------------------------------------
# Claim
# ---------------------------------------------------------------------------


class TestClaim:
    def test_claim_assigns_order_and_marks_rider_busy(
        self, coordinator, make_rider, ready_order
    ):
        rider = make_rider()

        proposal = coordinator.claim(ready_order.id, rider.id)

        _refresh(ready_order, rider)
        assert ready_order.status == OrderStatus.ASSIGNED
        assert ready_order.rider_id == rider.id
        assert rider.status == RiderStatus.BUSY
        assert rider.assigned_order_ids == [str(ready_order.id)]
        assert proposal.source == ProposalSource.CLAIM
        assert proposal.status == ProposalStatus.ACCEPTED
        assert OutboxEvent.objects.filter(
            event_type="RiderAssigned", aggregate_id=str(ready_order.id)
        ).exists()

    def test_second_rider_loses(self, coordinator, make_rider, ready_order):
        winner, loser = make_rider(), make_rider()
        coordinator.claim(ready_order.id, winner.id)

        with pytest.raises(AlreadyAssigned):
            coordinator.claim(ready_order.id, loser.id)

        _refresh(ready_order, loser)
        assert ready_order.rider_id == winner.id
        assert loser.status == RiderStatus.AVAILABLE

    def test_order_not_ready(self, coordinator, make_rider, confirmed_order):
        with pytest.raises(IllegalOrderTransition):
            coordinator.claim(confirmed_order.id, make_rider().id)

    def test_unknown_rider(self, coordinator, ready_order):
        with pytest.raises(RiderNotFound):
            coordinator.claim(ready_order.id, uuid4())

    def test_offline_rider_rolls_back(self, coordinator, make_rider, ready_order):
        rider = make_rider(status="offline")

        with pytest.raises(RiderUnavailable):
            coordinator.claim(ready_order.id, rider.id)

        _refresh(ready_order)
        assert ready_order.status == OrderStatus.READY_FOR_PICKUP
        assert ready_order.rider_id is None
        assert not coordinator.list_proposals(ready_order.id)

    def test_rider_at_capacity(self, coordinator, make_rider, make_ready_order):
        rider = make_rider()
        first, second = make_ready_order(), make_ready_order()
        coordinator.claim(first.id, rider.id)

        with pytest.raises(RiderUnavailable):
            coordinator.claim(second.id, rider.id)

        _refresh(second)
        assert second.status == OrderStatus.READY_FOR_PICKUP

    def test_capacity_is_configurable(
        self, coordinator, make_rider, make_ready_order, settings
    ):
        settings.RIDER_MAX_ACTIVE_ORDERS = 2
        rider = make_rider()
        first, second = make_ready_order(), make_ready_order()
        coordinator.claim(first.id, rider.id)
        coordinator.claim(second.id, rider.id)

        rider.refresh_from_db()
        assert sorted(rider.assigned_order_ids) == sorted([str(first.id), str(second.id)])


# ---------------------------------------------------------------------------
# Proposals
# ---------------------------------------------------------------------------


class TestProposal:
    def test_restaurant_proposes(self, coordinator, make_rider, ready_order, restaurant):
        rider = make_rider()

        with freeze_time("2026-10-19 12:00:00"):
            proposal = coordinator.propose_assignment(ready_order.id, rider.id, restaurant)

        assert proposal.status == ProposalStatus.PENDING
        assert proposal.source == ProposalSource.PROPOSAL
        assert proposal.expires_at - proposal.created_at == timedelta(seconds=120)
        ready_order.refresh_from_db()
        assert ready_order.status == OrderStatus.ASSIGNED

    def test_other_restaurant_cannot_propose(self, coordinator, make_rider, ready_order):
        stranger = ActorDTO(actor_id=uuid4(), role=ActorRole.RESTAURANT)
        with pytest.raises(UnauthorizedTransition):
            coordinator.propose_assignment(ready_order.id, make_rider().id, stranger)

    def test_customer_cannot_propose(self, coordinator, make_rider, ready_order, customer):
        with pytest.raises(UnauthorizedTransition):
            coordinator.propose_assignment(ready_order.id, make_rider().id, customer)

    def test_accept_within_window(self, coordinator, make_rider, ready_order, restaurant):
        rider = make_rider()
        coordinator.propose_assignment(ready_order.id, rider.id, restaurant)

        proposal = coordinator.accept_order(ready_order.id, rider.id)

        assert proposal.status == ProposalStatus.ACCEPTED
        assert proposal.responded_at is not None

    def test_accept_by_other_rider(self, coordinator, make_rider, ready_order, restaurant):
        rider, other = make_rider(), make_rider()
        coordinator.propose_assignment(ready_order.id, rider.id, restaurant)

        with pytest.raises(NotAssignedRider):
            coordinator.accept_order(ready_order.id, other.id)

    def test_claims_cannot_be_declined(self, coordinator, make_rider, ready_order):
        rider = make_rider()
        coordinator.claim(ready_order.id, rider.id)

        with pytest.raises(ProposalNotFound):
            coordinator.decline_order(ready_order.id, rider.id)

    def test_accept_after_window_releases_order(
        self, coordinator, make_rider, ready_order, restaurant
    ):
        rider = make_rider()
        coordinator.propose_assignment(ready_order.id, rider.id, restaurant)

        with freeze_time(timezone.now() + timedelta(seconds=121)):
            with pytest.raises(ProposalExpired):
                coordinator.accept_order(ready_order.id, rider.id)

        _refresh(ready_order, rider)
        assert ready_order.status == OrderStatus.READY_FOR_PICKUP
        assert ready_order.rider_id is None
        assert rider.status == RiderStatus.AVAILABLE
        assert coordinator.list_proposals(ready_order.id)[0].status == ProposalStatus.EXPIRED

    def test_decline_returns_order_to_pool(
        self, coordinator, make_rider, ready_order, restaurant
    ):
        rider = make_rider()
        coordinator.propose_assignment(ready_order.id, rider.id, restaurant)

        order = coordinator.decline_order(ready_order.id, rider.id)

        rider.refresh_from_db()
        assert order.status == OrderStatus.READY_FOR_PICKUP
        assert order.rider_id is None
        assert order.failed_proposals == 1
        assert rider.status == RiderStatus.AVAILABLE
        assert rider.assigned_order_ids == []
        assert OutboxEvent.objects.filter(event_type="AssignmentReleased").count() == 1

    def test_picking_up_accepts_pending_proposal(
        self, coordinator, order_service, make_rider, ready_order, restaurant
    ):
        rider = make_rider()
        proposal = coordinator.propose_assignment(ready_order.id, rider.id, restaurant)

        order_service.mark_picked_up(ready_order.id, rider_actor(rider))

        proposal.refresh_from_db()
        assert proposal.status == ProposalStatus.ACCEPTED


# ---------------------------------------------------------------------------
# Expiry sweep
# ---------------------------------------------------------------------------


class TestExpireStaleProposals:
    def test_only_lapsed_proposals_are_released(
        self, coordinator, make_rider, make_ready_order, restaurant
    ):
        stale_order, fresh_order = make_ready_order(), make_ready_order()
        stale_rider, fresh_rider = make_rider(), make_rider()
        coordinator.propose_assignment(stale_order.id, stale_rider.id, restaurant)
        with freeze_time(timezone.now() + timedelta(seconds=60)):
            coordinator.propose_assignment(fresh_order.id, fresh_rider.id, restaurant)

        released = coordinator.expire_stale_proposals(
            now=timezone.now() + timedelta(seconds=150)
        )

        assert released == 1
        _refresh(stale_order, fresh_order)
        assert stale_order.status == OrderStatus.READY_FOR_PICKUP
        assert fresh_order.status == OrderStatus.ASSIGNED

    def test_task_runs_sweep(self, coordinator, make_rider, ready_order, restaurant):
        coordinator.propose_assignment(ready_order.id, make_rider().id, restaurant)

        with freeze_time(timezone.now() + timedelta(seconds=121)):
            assert expire_stale_proposals() == 1

    def test_nothing_to_expire(self, coordinator):
        assert coordinator.expire_stale_proposals() == 0


# ---------------------------------------------------------------------------
# Escalation
# ---------------------------------------------------------------------------


class TestEscalation:
    @pytest.fixture()
    def escalated_order(self, coordinator, make_rider, ready_order, restaurant):
        for _ in range(3):
            rider = make_rider()
            coordinator.propose_assignment(ready_order.id, rider.id, restaurant)
            coordinator.decline_order(ready_order.id, rider.id)
        ready_order.refresh_from_db()
        return ready_order

    def test_flag_set_after_max_failures(self, escalated_order):
        assert escalated_order.requires_manual_assignment is True
        assert escalated_order.failed_proposals == 3
        assert OutboxEvent.objects.filter(
            event_type="OrderEscalated", aggregate_id=str(escalated_order.id)
        ).count() == 1

    def test_escalated_order_leaves_pool(self, coordinator, escalated_order):
        assert coordinator.list_assignable() == []

    def test_rider_cannot_claim_escalated(self, coordinator, make_rider, escalated_order):
        with pytest.raises(AssignmentEscalated):
            coordinator.claim(escalated_order.id, make_rider().id)

    def test_restaurant_cannot_propose_escalated(
        self, coordinator, make_rider, escalated_order, restaurant
    ):
        with pytest.raises(AssignmentEscalated):
            coordinator.propose_assignment(escalated_order.id, make_rider().id, restaurant)

    def test_admin_assigns_manually(self, coordinator, make_rider, escalated_order, admin):
        rider = make_rider()

        proposal = coordinator.propose_assignment(escalated_order.id, rider.id, admin)

        assert proposal.status == ProposalStatus.PENDING
        escalated_order.refresh_from_db()
        assert escalated_order.rider_id == rider.id
