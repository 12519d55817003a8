"""Geospatial rider directory (Use Cases).

The directory is the only component that answers "which riders are near
point P".  Callers never filter riders themselves.

Business rules enforced:
- Coordinates validated to [-180, 180] x [-90, 90] on every write.
- A location report never changes a rider's status.
- ``busy`` iff the rider holds undelivered orders; manual status changes
  that contradict this are rejected.
- Proximity results contain only ``available`` riders, nearest first.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional, Tuple
from uuid import UUID

import structlog
from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from modules.riders.constants import RiderStatus
from modules.riders.dtos import NearbyRiderDTO
from modules.riders.events import RiderLocationUpdated, RiderStatusChanged
from modules.riders.exceptions import (
    IllegalRiderTransition,
    RiderAlreadyExists,
    RiderNotFound,
)
from modules.riders.geo import bounding_box, haversine_m, validate_coordinates
from shared.domain.exceptions import UpstreamUnavailable, ValidationError

if TYPE_CHECKING:
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.riders.models import Rider
    from modules.riders.repositories.interfaces import IRiderRepository

logger = structlog.get_logger(__name__)


class RiderDirectory:
    """Application service for rider position and availability.

    Receives repositories via constructor injection (DIP).
    """

    def __init__(
        self,
        rider_repository: IRiderRepository,
        order_repository: IOrderRepository,
    ) -> None:
        self._rider_repo = rider_repository
        self._order_repo = order_repository

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def register_rider(self, user_id: UUID, longitude: float, latitude: float) -> Rider:
        """Create the rider profile for a user account, initially offline.

        Raises:
            InvalidCoordinates: position out of range.
            RiderAlreadyExists: the user already has a rider profile.
        """
        lon, lat = validate_coordinates(longitude, latitude)
        if self._rider_repo.get_by_user(user_id):
            raise RiderAlreadyExists(f"User {user_id} already has a rider profile.")
        try:
            with transaction.atomic():
                return self._rider_repo.create(user_id, lon, lat)
        except IntegrityError as exc:
            raise RiderAlreadyExists(
                f"User {user_id} already has a rider profile."
            ) from exc

    @transaction.atomic
    def upsert_location(
        self,
        rider_id: UUID,
        longitude: float,
        latitude: float,
        timestamp: Optional[datetime] = None,
    ) -> Rider:
        """Overwrite the rider's position and ``last_updated``.

        Emits one ``RiderLocationUpdated`` event per active order so the
        customer and restaurant can follow the delivery.

        Raises:
            InvalidCoordinates: position out of range.
            RiderNotFound: rider does not exist.
        """
        lon, lat = validate_coordinates(longitude, latitude)
        reported_at = timestamp or timezone.now()

        if not self._rider_repo.update_location(rider_id, lon, lat, reported_at):
            raise RiderNotFound(f"Rider {rider_id} not found.")

        rider = self._rider_repo.get_by_id(str(rider_id))
        for order_id in rider.assigned_order_ids:
            rider.add_domain_event(
                RiderLocationUpdated(
                    aggregate_id=rider.id,
                    order_id=order_id,
                    longitude=lon,
                    latitude=lat,
                )
            )
        self._rider_repo.publish_events(rider)

        logger.info(
            "rider.location_updated",
            rider_id=str(rider_id),
            longitude=lon,
            latitude=lat,
            active_orders=rider.active_order_count,
        )
        return rider

    @transaction.atomic
    def set_status(self, rider_id: UUID, status: str) -> Rider:
        """Change availability while preserving the busy invariant.

        Raises:
            RiderNotFound: rider does not exist.
            ValidationError: unknown status value.
            IllegalRiderTransition: the new status contradicts the rider's
                assigned orders.
        """
        if status not in RiderStatus.values:
            raise ValidationError(f"Unknown rider status {status!r}.")

        rider = self._rider_repo.get_for_update(str(rider_id))
        if not rider:
            raise RiderNotFound(f"Rider {rider_id} not found.")

        log = logger.bind(
            rider_id=str(rider_id),
            current_status=rider.status,
            new_status=status,
            active_orders=rider.active_order_count,
        )

        if rider.status == status:
            return rider
        if status == RiderStatus.BUSY:
            log.warning("rider.invalid_status_change")
            raise IllegalRiderTransition(
                "A rider becomes busy only by taking an order."
            )
        if rider.active_order_count:
            log.warning("rider.invalid_status_change")
            raise IllegalRiderTransition(
                f"Rider {rider_id} still has {rider.active_order_count} "
                f"undelivered order(s); cannot switch to {status}."
            )

        rider.add_domain_event(
            RiderStatusChanged(
                aggregate_id=rider.id, old_status=rider.status, new_status=status
            )
        )
        rider.status = status
        self._rider_repo.save(rider)
        log.info("rider.status_updated")
        return rider

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_rider(self, rider_id: UUID) -> Rider:
        """Raises ``RiderNotFound`` if the rider does not exist."""
        rider = self._rider_repo.get_by_id(str(rider_id))
        if not rider:
            raise RiderNotFound(f"Rider {rider_id} not found.")
        return rider

    def get_by_user(self, user_id: UUID) -> Rider:
        rider = self._rider_repo.get_by_user(user_id)
        if not rider:
            raise RiderNotFound(f"No rider profile for user {user_id}.")
        return rider

    def find_available(
        self,
        longitude: float,
        latitude: float,
        radius_m: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> List[NearbyRiderDTO]:
        """Available riders within ``radius_m`` of the origin, nearest first.

        An empty list is a normal result.

        Raises:
            InvalidCoordinates: origin out of range.
            ValidationError: non-positive radius or limit.
            UpstreamUnavailable: the backing store could not be queried.
        """
        origin = validate_coordinates(longitude, latitude)
        radius_m = settings.RIDER_SEARCH_RADIUS_M if radius_m is None else radius_m
        limit = settings.RIDER_SEARCH_LIMIT if limit is None else limit
        if radius_m <= 0 or limit <= 0:
            raise ValidationError("radius_m and limit must be positive.")

        try:
            candidates = self._rider_repo.available_within(
                bounding_box(origin, radius_m)
            )
        except DatabaseError as exc:
            logger.error("rider.proximity_query_failed", error=str(exc))
            raise UpstreamUnavailable("Rider location index unavailable.") from exc

        ranked = _rank_by_distance(
            origin, candidates, radius_m, key=lambda r: (r.longitude, r.latitude)
        )
        return [
            NearbyRiderDTO.from_entity(rider, distance)
            for distance, rider in ranked[:limit]
        ]

    def nearby_pending_orders(
        self,
        rider_id: UUID,
        radius_m: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> List[Tuple[float, Order]]:
        """Unclaimed ready orders whose pickup point is near the rider.

        Returns ``(distance_m, order)`` pairs, nearest first.
        """
        rider = self.get_rider(rider_id)
        radius_m = settings.RIDER_SEARCH_RADIUS_M if radius_m is None else radius_m
        limit = settings.RIDER_SEARCH_LIMIT if limit is None else limit
        origin = (rider.longitude, rider.latitude)

        try:
            candidates = self._order_repo.assignable_within(
                bounding_box(origin, radius_m)
            )
        except DatabaseError as exc:
            logger.error("rider.order_feed_query_failed", error=str(exc))
            raise UpstreamUnavailable("Order location index unavailable.") from exc

        ranked = _rank_by_distance(
            origin,
            candidates,
            radius_m,
            key=lambda o: (o.pickup_longitude, o.pickup_latitude),
        )
        return ranked[:limit]


def _rank_by_distance(origin, candidates, radius_m, key):
    """Exact-distance filter and ascending sort (ties broken by id)."""
    ranked = []
    for candidate in candidates:
        distance = haversine_m(origin, key(candidate))
        if distance <= radius_m:
            ranked.append((distance, candidate))
    ranked.sort(key=lambda pair: (pair[0], str(pair[1].id)))
    return ranked
