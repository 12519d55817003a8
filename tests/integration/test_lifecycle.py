"""End-to-end order lifecycles across every bounded context.

Each scenario drives the public services the way the outer layers would
and checks the cross-cutting records: status history, restaurant
notifications, rider bookkeeping and outbox events.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from modules.assignments.exceptions import AssignmentEscalated
from modules.core.models import OutboxEvent
from modules.notifications.constants import NotificationType
from modules.notifications.models import Notification
from modules.orders.constants import OrderStatus
from modules.orders.exceptions import UnauthorizedTransition
from modules.orders.models import OrderStatusHistory
from modules.payments.constants import PaymentStatus
from modules.riders.constants import RiderStatus
from tests.factories import DROP, rider_actor

pytestmark = pytest.mark.integration


def _history(order):
    return list(
        OrderStatusHistory.objects.filter(order_id=order.id).values_list(
            "new_status", flat=True
        )
    )


def _event_types(aggregate_id):
    return list(
        OutboxEvent.objects.filter(aggregate_id=str(aggregate_id)).values_list(
            "event_type", flat=True
        )
    )


class TestOnlinePaymentDelivery:
    """Card order of 250.00 from checkout to doorstep."""

    def test_full_flow(
        self,
        order_service,
        payment_gate,
        gateway_client,
        coordinator,
        rider_directory,
        make_order,
        make_rider,
        restaurant,
    ):
        order = make_order()
        assert order.status == OrderStatus.PAYMENT_PENDING
        assert order.total_amount == Decimal("250.00")

        payment = payment_gate.initiate(order.id, "card", Decimal("250.00"))
        assert payment.status == PaymentStatus.PENDING
        assert payment.gateway_order_id == "order_test0001"

        signature = gateway_client.expected_signature("order_test0001", "pay_0001")
        payment = payment_gate.verify(payment.id, "order_test0001", "pay_0001", signature)
        assert payment.status == PaymentStatus.SUCCESS
        assert order_service.get_order(order.id).status == OrderStatus.CONFIRMED

        new_order = Notification.objects.get(
            order_id=order.id, type=NotificationType.NEW_ORDER
        )
        assert order.order_number in new_order.message
        assert "250.00" in new_order.message

        order_service.start_preparing(order.id, restaurant)
        order_service.mark_ready(order.id, restaurant)
        assert [o.id for o in coordinator.list_assignable()] == [order.id]

        rider = make_rider()
        coordinator.claim(order.id, rider.id)
        rider.refresh_from_db()
        assert rider.status == RiderStatus.BUSY
        assert coordinator.list_assignable() == []

        rider_directory.upsert_location(rider.id, *DROP)
        order_service.mark_picked_up(order.id, rider_actor(rider))
        order = order_service.mark_delivered(order.id, rider_actor(rider))

        assert order.status == OrderStatus.DELIVERED
        assert order.rider_id == rider.id
        rider.refresh_from_db()
        assert rider.status == RiderStatus.AVAILABLE
        assert rider.assigned_order_ids == []

        assert _history(order) == [
            OrderStatus.CREATED,
            OrderStatus.PAYMENT_PENDING,
            OrderStatus.CONFIRMED,
            OrderStatus.PREPARING,
            OrderStatus.READY_FOR_PICKUP,
            OrderStatus.ASSIGNED,
            OrderStatus.PICKED_UP,
            OrderStatus.DELIVERED,
        ]
        # One notification per accepted transition after creation.
        assert Notification.objects.filter(order_id=order.id).count() == 7
        assert _event_types(order.id).count("OrderStatusChanged") == 7
        assert _event_types(payment.id) == ["PaymentInitiated", "PaymentSettled"]
        assert "RiderLocationUpdated" in _event_types(rider.id)
        assert OutboxEvent.objects.filter(event_type="RiderAssigned").count() == 1

    def test_failed_signature_then_cash_on_delivery(
        self, order_service, payment_gate, make_order
    ):
        order = make_order(payment_method="UPI")
        payment = payment_gate.initiate(order.id, "UPI", Decimal("250.00"))

        failed = payment_gate.verify(payment.id, "order_test0001", "pay_x", "forged")
        assert failed.status == PaymentStatus.FAILED
        assert order_service.get_order(order.id).status == OrderStatus.PAYMENT_PENDING

        cod = payment_gate.initiate(order.id, "COD", Decimal("250.00"))

        assert cod.status == PaymentStatus.SUCCESS
        assert order_service.get_order(order.id).status == OrderStatus.CONFIRMED
        assert [p.status for p in payment_gate.list_payments(order.id)] == [
            PaymentStatus.SUCCESS,
            PaymentStatus.FAILED,
        ]


class TestProposalEscalation:
    """Three refusals hand the order to an admin."""

    def test_declines_escalate_then_admin_assigns(
        self, order_service, coordinator, ready_order, make_rider, restaurant, admin
    ):
        for _ in range(3):
            rider = make_rider()
            coordinator.propose_assignment(ready_order.id, rider.id, restaurant)
            coordinator.decline_order(ready_order.id, rider.id)

        ready_order.refresh_from_db()
        assert ready_order.requires_manual_assignment
        assert ready_order.status == OrderStatus.READY_FOR_PICKUP
        assert coordinator.list_assignable() == []
        assert "OrderEscalated" in _event_types(ready_order.id)

        courier = make_rider()
        with pytest.raises(AssignmentEscalated):
            coordinator.claim(ready_order.id, courier.id)

        coordinator.propose_assignment(ready_order.id, courier.id, admin)
        coordinator.accept_order(ready_order.id, courier.id)
        order_service.mark_picked_up(ready_order.id, rider_actor(courier))
        order = order_service.mark_delivered(ready_order.id, rider_actor(courier))

        assert order.status == OrderStatus.DELIVERED
        assert order.rider_id == courier.id


class TestCancellation:
    def test_customer_cancels_before_assignment(
        self, order_service, make_order, customer
    ):
        order = make_order(payment_method="COD")

        order = order_service.cancel_order(order.id, customer, "Changed my mind")

        assert order.status == OrderStatus.CANCELLED
        assert "OrderCancelled" in _event_types(order.id)

    def test_admin_cancels_assigned_order_and_frees_rider(
        self, order_service, coordinator, ready_order, make_rider, customer, admin
    ):
        rider = make_rider()
        coordinator.claim(ready_order.id, rider.id)

        with pytest.raises(UnauthorizedTransition):
            order_service.cancel_order(ready_order.id, customer)

        order = order_service.cancel_order(ready_order.id, admin, "Restaurant closed")

        assert order.status == OrderStatus.CANCELLED
        assert order.rider_id == rider.id
        rider.refresh_from_db()
        assert rider.status == RiderStatus.AVAILABLE
        assert rider.assigned_order_ids == []
