"""Unit tests for OrderDjangoRepository.

Covers the storage-level primitives the services build on: aggregate
creation, invalid-ID handling, claim/release compare-and-set and the
bounding-box prefilter of the assignable pool.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest

from modules.orders.constants import OrderStatus
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.riders.geo import bounding_box
from tests.factories import PICKUP

pytestmark = pytest.mark.unit


@pytest.fixture()
def repo():
    return OrderDjangoRepository()


class TestCreate:
    def test_creates_items_and_total(self, repo):
        order = repo.create(
            {
                "customer_id": uuid4(),
                "restaurant_id": uuid4(),
                "payment_method": "UPI",
                "street": "5 MG Road",
                "city": "Bengaluru",
                "state": "Karnataka",
                "pincode": "560001",
                "delivery_longitude": 77.61,
                "delivery_latitude": 12.97,
                "pickup_longitude": PICKUP[0],
                "pickup_latitude": PICKUP[1],
                "delivery_fee": Decimal("15.00"),
                "items": [
                    {
                        "item_id": uuid4(),
                        "item_name": "Paneer Roll",
                        "quantity": 2,
                        "unit_price": Decimal("60.00"),
                    }
                ],
            }
        )

        assert order.total_amount == Decimal("135.00")
        assert order.items.count() == 1


class TestReads:
    @pytest.mark.parametrize("bad_id", ["not-a-uuid", "", "123"])
    def test_get_by_invalid_id_returns_none(self, repo, bad_id):
        assert repo.get_by_id(bad_id) is None

    def test_get_by_unknown_id_returns_none(self, repo):
        assert repo.get_by_id(str(uuid4())) is None


class TestClaimAndRelease:
    def test_claim_only_from_ready_and_unassigned(self, repo, ready_order):
        first, second = uuid4(), uuid4()

        assert repo.claim(ready_order.id, first, allow_escalated=False) is True
        assert repo.claim(ready_order.id, second, allow_escalated=False) is False

        ready_order.refresh_from_db()
        assert ready_order.status == OrderStatus.ASSIGNED
        assert ready_order.rider_id == first

    def test_claim_respects_escalation_flag(self, repo, ready_order):
        repo.compare_and_set(
            ready_order.id, expected={}, changes={"requires_manual_assignment": True}
        )

        assert repo.claim(ready_order.id, uuid4(), allow_escalated=False) is False
        assert repo.claim(ready_order.id, uuid4(), allow_escalated=True) is True

    def test_release_only_by_holder(self, repo, ready_order):
        holder = uuid4()
        repo.claim(ready_order.id, holder, allow_escalated=False)

        assert repo.release_claim(ready_order.id, uuid4()) is False
        assert repo.release_claim(ready_order.id, holder) is True
        assert repo.release_claim(ready_order.id, holder) is False

        ready_order.refresh_from_db()
        assert ready_order.failed_proposals == 1
        assert ready_order.rider_id is None


class TestAssignableWithin:
    def test_filters_by_pickup_box(self, repo, make_ready_order):
        inside = make_ready_order()
        make_ready_order(pickup_longitude=78.50, pickup_latitude=17.38)  # Hyderabad

        found = repo.assignable_within(bounding_box(PICKUP, 2_000))

        assert [o.id for o in found] == [inside.id]
