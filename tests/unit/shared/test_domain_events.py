"""Unit tests for domain event registration, serialization and the bus."""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import Mock
from uuid import UUID, uuid4

import pytest

from modules.orders.events import OrderCreated, OrderStatusChanged
from modules.orders.models import Order
from shared.domain.events import DomainEvent
from shared.infrastructure.bus import InMemoryEventBus

pytestmark = pytest.mark.unit


def test_order_registers_and_clears_domain_events():
    order = Order(
        customer_id=uuid4(),
        restaurant_id=uuid4(),
        order_number="ORD-TEST-000001",
        total_amount=Decimal("0.00"),
    )

    assert order.domain_events == []

    event = OrderCreated(aggregate_id=order.id)
    order.add_domain_event(event)

    assert order.domain_events == [event]
    assert event.event_name == "OrderCreated"

    order.clear_domain_events()
    assert order.domain_events == []


def test_payload_is_json_safe():
    order_id = uuid4()
    event = OrderCreated(
        aggregate_id=order_id,
        customer_id=str(uuid4()),
        payment_method="card",
        total_amount=str(Decimal("250.00")),
    )

    payload = event.to_payload()

    assert payload["aggregate_id"] == str(order_id)
    assert payload["total_amount"] == "250.00"
    assert payload["event_name"] == "OrderCreated"
    assert isinstance(payload["occurred_on"], str)


def test_event_rebuilt_from_payload():
    original = OrderStatusChanged(
        aggregate_id=uuid4(),
        old_status="ready_for_pickup",
        new_status="assigned",
        actor_role="coordinator",
        rider_id=str(uuid4()),
    )

    rebuilt = DomainEvent.from_payload("OrderStatusChanged", original.to_payload())

    assert isinstance(rebuilt, OrderStatusChanged)
    assert rebuilt == original
    assert isinstance(rebuilt.aggregate_id, UUID)


def test_unknown_event_name_raises_key_error():
    with pytest.raises(KeyError):
        DomainEvent.from_payload("NoSuchEvent", {"aggregate_id": str(uuid4())})


class TestInMemoryEventBus:
    def test_delivers_to_subscribers_of_exact_class(self):
        bus = InMemoryEventBus()
        created_handler, changed_handler = Mock(), Mock()
        bus.subscribe(OrderCreated, created_handler)
        bus.subscribe(OrderStatusChanged, changed_handler)

        event = OrderCreated(aggregate_id=uuid4())
        bus.publish(event)

        created_handler.handle.assert_called_once_with(event)
        changed_handler.handle.assert_not_called()

    def test_subscribe_is_idempotent(self):
        bus = InMemoryEventBus()
        handler = Mock()
        bus.subscribe(OrderCreated, handler)
        bus.subscribe(OrderCreated, handler)

        bus.publish(OrderCreated(aggregate_id=uuid4()))

        assert handler.handle.call_count == 1

    def test_unsubscribe(self):
        bus = InMemoryEventBus()
        handler = Mock()
        bus.subscribe(OrderCreated, handler)
        bus.unsubscribe(OrderCreated, handler)

        bus.publish(OrderCreated(aggregate_id=uuid4()))

        handler.handle.assert_not_called()

    def test_handler_errors_propagate(self):
        bus = InMemoryEventBus()
        handler = Mock()
        handler.handle.side_effect = RuntimeError("boom")
        bus.subscribe(OrderCreated, handler)

        with pytest.raises(RuntimeError):
            bus.publish(OrderCreated(aggregate_id=uuid4()))
