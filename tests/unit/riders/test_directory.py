"""Unit tests for ``RiderDirectory``.

Covers:
- Registration (offline by default, one profile per user).
- Location upserts (validation, status untouched, tracking events).
- Proximity search (available only, sorted, radius and limit).
- Status changes guarded by the busy invariant.
- The rider's feed of nearby unclaimed orders.
"""

from __future__ import annotations

from unittest.mock import patch
from uuid import uuid4

import pytest
from django.db import DatabaseError

from modules.core.models import OutboxEvent
from modules.riders.constants import RiderStatus
from modules.riders.exceptions import (
    IllegalRiderTransition,
    InvalidCoordinates,
    RiderAlreadyExists,
    RiderNotFound,
)
from modules.riders.models import Rider
from shared.domain.exceptions import UpstreamUnavailable, ValidationError
from tests.factories import PICKUP

pytestmark = pytest.mark.unit


def _offset(meters_east: float, origin=PICKUP):
    """Point *meters_east* of *origin* (small distances, equatorial-ish)."""
    import math

    lon, lat = origin
    delta = meters_east / (111_195 * math.cos(math.radians(lat)))
    return lon + delta, lat


class TestRegisterRider:
    def test_new_rider_is_offline(self, rider_directory):
        rider = rider_directory.register_rider(uuid4(), *PICKUP)
        assert rider.status == RiderStatus.OFFLINE
        assert rider.assigned_order_ids == []
        assert rider.coordinates == list(PICKUP)

    def test_one_profile_per_user(self, rider_directory):
        user_id = uuid4()
        rider_directory.register_rider(user_id, *PICKUP)
        with pytest.raises(RiderAlreadyExists):
            rider_directory.register_rider(user_id, *PICKUP)

    def test_rejects_bad_coordinates(self, rider_directory):
        with pytest.raises(InvalidCoordinates):
            rider_directory.register_rider(uuid4(), 200.0, 0.0)
        assert Rider.objects.count() == 0

    def test_get_by_user(self, rider_directory):
        user_id = uuid4()
        rider = rider_directory.register_rider(user_id, *PICKUP)
        assert rider_directory.get_by_user(user_id).id == rider.id

    def test_get_by_unknown_user(self, rider_directory):
        with pytest.raises(RiderNotFound):
            rider_directory.get_by_user(uuid4())


class TestUpsertLocation:
    def test_overwrites_position_and_timestamp(self, rider_directory, make_rider):
        rider = make_rider()
        before = rider.last_updated

        updated = rider_directory.upsert_location(rider.id, 77.70, 13.01)

        assert (updated.longitude, updated.latitude) == (77.70, 13.01)
        assert updated.last_updated > before

    def test_does_not_change_status(self, rider_directory, make_rider):
        rider = make_rider(status="offline")
        updated = rider_directory.upsert_location(rider.id, 77.70, 13.01)
        assert updated.status == RiderStatus.OFFLINE

    @pytest.mark.parametrize("lon, lat", [(181, 0), (0, -90.5)])
    def test_rejects_invalid_coordinates(self, rider_directory, make_rider, lon, lat):
        rider = make_rider()
        with pytest.raises(InvalidCoordinates):
            rider_directory.upsert_location(rider.id, lon, lat)
        rider.refresh_from_db()
        assert rider.coordinates == list(PICKUP)

    def test_unknown_rider(self, rider_directory):
        with pytest.raises(RiderNotFound):
            rider_directory.upsert_location(uuid4(), 77.0, 12.0)

    def test_emits_tracking_event_per_active_order(
        self, rider_directory, coordinator, make_rider, ready_order
    ):
        rider = make_rider()
        coordinator.claim(ready_order.id, rider.id)

        rider_directory.upsert_location(rider.id, 77.61, 12.98)

        events = OutboxEvent.objects.filter(
            event_type="RiderLocationUpdated", aggregate_id=str(rider.id)
        )
        assert events.count() == 1
        assert events.first().payload["order_id"] == str(ready_order.id)

    def test_idle_rider_emits_no_tracking_event(self, rider_directory, make_rider):
        rider = make_rider()
        rider_directory.upsert_location(rider.id, 77.61, 12.98)
        assert not OutboxEvent.objects.filter(
            event_type="RiderLocationUpdated"
        ).exists()


class TestFindAvailable:
    def test_returns_only_available_riders_sorted(self, rider_directory, make_rider):
        far = make_rider(*_offset(3_000))
        near = make_rider(*_offset(500))
        make_rider(*_offset(100), status="offline")
        middle = make_rider(*_offset(1_500))

        results = rider_directory.find_available(*PICKUP, radius_m=5_000, limit=10)

        assert [r.rider_id for r in results] == [near.id, middle.id, far.id]
        distances = [r.distance_m for r in results]
        assert distances == sorted(distances)

    def test_excludes_riders_outside_radius(self, rider_directory, make_rider):
        make_rider(*_offset(6_000))
        inside = make_rider(*_offset(4_000))

        results = rider_directory.find_available(*PICKUP, radius_m=5_000, limit=10)

        assert [r.rider_id for r in results] == [inside.id]

    def test_caps_at_limit(self, rider_directory, make_rider):
        for meters in (100, 200, 300, 400):
            make_rider(*_offset(meters))

        results = rider_directory.find_available(*PICKUP, radius_m=5_000, limit=2)

        assert len(results) == 2
        assert results[0].distance_m < results[1].distance_m

    def test_busy_rider_not_returned(self, rider_directory, coordinator, make_rider, ready_order):
        rider = make_rider()
        coordinator.claim(ready_order.id, rider.id)

        assert rider_directory.find_available(*PICKUP, radius_m=1_000, limit=5) == []

    def test_empty_result_is_not_an_error(self, rider_directory):
        assert rider_directory.find_available(0.0, 0.0, radius_m=1_000, limit=5) == []

    def test_uses_configured_defaults(self, rider_directory, make_rider, settings):
        settings.RIDER_SEARCH_RADIUS_M = 1_000
        make_rider(*_offset(2_000))
        assert rider_directory.find_available(*PICKUP) == []

    def test_rejects_invalid_origin(self, rider_directory):
        with pytest.raises(InvalidCoordinates):
            rider_directory.find_available(0.0, 95.0)

    def test_rejects_non_positive_radius(self, rider_directory):
        with pytest.raises(ValidationError):
            rider_directory.find_available(*PICKUP, radius_m=0)

    def test_storage_failure_surfaces_as_upstream(self, rider_directory):
        with patch(
            "modules.riders.repositories.django_repository."
            "RiderDjangoRepository.available_within",
            side_effect=DatabaseError("connection lost"),
        ):
            with pytest.raises(UpstreamUnavailable):
                rider_directory.find_available(*PICKUP, radius_m=1_000)


class TestSetStatus:
    def test_offline_to_available(self, rider_directory, make_rider):
        rider = make_rider(status="offline")
        assert rider_directory.set_status(rider.id, "available").status == "available"

    def test_cannot_force_busy(self, rider_directory, make_rider):
        rider = make_rider()
        with pytest.raises(IllegalRiderTransition):
            rider_directory.set_status(rider.id, RiderStatus.BUSY)

    def test_cannot_go_available_with_active_order(
        self, rider_directory, coordinator, make_rider, ready_order
    ):
        rider = make_rider()
        coordinator.claim(ready_order.id, rider.id)

        with pytest.raises(IllegalRiderTransition):
            rider_directory.set_status(rider.id, RiderStatus.AVAILABLE)
        with pytest.raises(IllegalRiderTransition):
            rider_directory.set_status(rider.id, RiderStatus.OFFLINE)

        rider.refresh_from_db()
        assert rider.status == RiderStatus.BUSY

    def test_same_status_is_noop(self, rider_directory, make_rider):
        rider = make_rider()
        before = OutboxEvent.objects.filter(event_type="RiderStatusChanged").count()
        rider_directory.set_status(rider.id, RiderStatus.AVAILABLE)
        after = OutboxEvent.objects.filter(event_type="RiderStatusChanged").count()
        assert before == after

    def test_status_change_writes_event(self, rider_directory, make_rider):
        rider = make_rider(status="offline")
        rider_directory.set_status(rider.id, RiderStatus.AVAILABLE)
        event = OutboxEvent.objects.get(
            event_type="RiderStatusChanged", aggregate_id=str(rider.id)
        )
        assert event.payload["old_status"] == "offline"
        assert event.payload["new_status"] == "available"

    def test_unknown_status(self, rider_directory, make_rider):
        rider = make_rider()
        with pytest.raises(ValidationError):
            rider_directory.set_status(rider.id, "on_break")

    def test_unknown_rider(self, rider_directory):
        with pytest.raises(RiderNotFound):
            rider_directory.set_status(uuid4(), RiderStatus.AVAILABLE)


class TestNearbyPendingOrders:
    def test_lists_nearby_unclaimed_orders(
        self, rider_directory, make_rider, make_ready_order
    ):
        rider = make_rider(*_offset(300))
        near = make_ready_order()
        far = make_ready_order(
            pickup_longitude=_offset(9_000)[0], pickup_latitude=PICKUP[1]
        )

        feed = rider_directory.nearby_pending_orders(rider.id, radius_m=5_000)

        assert [order.id for _, order in feed] == [near.id]
        assert far.id not in [order.id for _, order in feed]

    def test_claimed_orders_leave_the_feed(
        self, rider_directory, coordinator, make_rider, ready_order
    ):
        rider = make_rider()
        other = make_rider()
        coordinator.claim(ready_order.id, other.id)

        assert rider_directory.nearby_pending_orders(rider.id, radius_m=5_000) == []
