"""Shared fixtures: services wired through the composition root, a fake
payment gateway session and factories that walk orders through the
state machine."""

from __future__ import annotations

import itertools
from unittest.mock import Mock
from uuid import uuid4

import pytest
import requests

from shared.domain.actors import ActorDTO, ActorRole
from tests.factories import PICKUP, build_order_dto


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture()
def order_service():
    from config.container import order_service

    return order_service()


@pytest.fixture()
def rider_directory():
    from config.container import rider_directory

    return rider_directory()


@pytest.fixture()
def coordinator():
    from config.container import assignment_coordinator

    return assignment_coordinator()


@pytest.fixture()
def notification_emitter():
    from config.container import notification_emitter

    return notification_emitter()


@pytest.fixture()
def gateway_session():
    """``requests.Session`` double answering the gateway's create-order call."""
    session = Mock(spec=requests.Session)
    counter = itertools.count(1)

    def _post(url, json=None, auth=None, timeout=None):
        response = Mock(spec=requests.Response)
        response.raise_for_status.return_value = None
        response.json.return_value = {
            "id": f"order_test{next(counter):04d}",
            "amount": json["amount"],
            "currency": json["currency"],
            "receipt": json["receipt"],
            "status": "created",
        }
        return response

    session.post.side_effect = _post
    return session


@pytest.fixture()
def gateway_client(gateway_session):
    from modules.payments.gateway import PaymentGatewayClient

    return PaymentGatewayClient(
        base_url="https://gateway.test/v1",
        key_id="rzp_test_key",
        key_secret="test-gateway-secret",
        timeout=2,
        session=gateway_session,
    )


@pytest.fixture()
def payment_gate(gateway_client):
    from config.container import payment_gate

    return payment_gate(gateway_client)


# ---------------------------------------------------------------------------
# Actors
# ---------------------------------------------------------------------------


@pytest.fixture()
def customer_id():
    return uuid4()


@pytest.fixture()
def restaurant_id():
    return uuid4()


@pytest.fixture()
def customer(customer_id):
    return ActorDTO(actor_id=customer_id, role=ActorRole.CUSTOMER)


@pytest.fixture()
def restaurant(restaurant_id):
    return ActorDTO(actor_id=restaurant_id, role=ActorRole.RESTAURANT)


@pytest.fixture()
def admin():
    return ActorDTO(role=ActorRole.ADMIN)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_order(order_service, customer_id, restaurant_id):
    def _make(**overrides):
        return order_service.create_order(
            build_order_dto(customer_id, restaurant_id, **overrides)
        )

    return _make


@pytest.fixture()
def confirmed_order(make_order):
    """Cash-on-delivery order, confirmed at creation."""
    return make_order(payment_method="COD")


@pytest.fixture()
def ready_order(order_service, confirmed_order, restaurant):
    order_service.start_preparing(confirmed_order.id, restaurant)
    return order_service.mark_ready(confirmed_order.id, restaurant)


@pytest.fixture()
def make_ready_order(order_service, make_order, restaurant):
    def _make(**overrides):
        order = make_order(payment_method="COD", **overrides)
        order_service.start_preparing(order.id, restaurant)
        return order_service.mark_ready(order.id, restaurant)

    return _make


@pytest.fixture()
def make_rider(rider_directory):
    def _make(longitude=PICKUP[0], latitude=PICKUP[1], status="available"):
        rider = rider_directory.register_rider(uuid4(), longitude, latitude)
        if status != "offline":
            rider = rider_directory.set_status(rider.id, status)
        return rider

    return _make
