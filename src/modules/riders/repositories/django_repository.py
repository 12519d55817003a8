"""Django ORM implementation of the Rider repository.

The proximity prefilter is a plain range query on the composite
``(status, latitude, longitude)`` index; exact distances are computed by
the directory on the (small) candidate set.  Mutations of
``assigned_order_ids`` always happen on a row locked with
``select_for_update()`` inside the caller's transaction.
"""

from __future__ import annotations

from datetime import datetime
from functools import reduce
from operator import or_
from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Q

from modules.core.outbox import flush_domain_events
from modules.core.repositories.django_repository import CompareAndSetMixin
from modules.riders.constants import RiderStatus
from modules.riders.events import RiderStatusChanged
from modules.riders.geo import BoundingBox
from modules.riders.models import Rider
from modules.riders.repositories.interfaces import IRiderRepository

logger = structlog.get_logger(__name__)


class RiderDjangoRepository(CompareAndSetMixin, IRiderRepository):
    """Concrete Rider repository backed by Django ORM."""

    model = Rider

    # ------------------------------------------------------------------
    # Create / Read
    # ------------------------------------------------------------------

    def create(self, user_id: UUID, longitude: float, latitude: float) -> Rider:
        rider = Rider.objects.create(
            user_id=user_id, longitude=longitude, latitude=latitude
        )
        logger.info("rider.created", rider_id=str(rider.id), user_id=str(user_id))
        return rider

    def get_by_id(self, id: str) -> Optional[Rider]:
        """Returns ``None`` for non-existent or invalid IDs."""
        try:
            return Rider.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_by_user(self, user_id: UUID) -> Optional[Rider]:
        try:
            return Rider.objects.filter(user_id=user_id).first()
        except (ValueError, ValidationError):
            return None

    def get_for_update(self, id: str) -> Optional[Rider]:
        try:
            return Rider.objects.select_for_update().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Rider]:
        queryset = Rider.objects.all()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def available_within(self, box: BoundingBox) -> List[Rider]:
        longitude_filter = reduce(
            or_,
            (Q(longitude__gte=west, longitude__lte=east) for west, east in box.longitude_ranges),
        )
        queryset = Rider.objects.filter(
            longitude_filter,
            status=RiderStatus.AVAILABLE,
            latitude__gte=box.min_latitude,
            latitude__lte=box.max_latitude,
        )
        return list(queryset)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @transaction.atomic
    def save(self, entity: Rider) -> Rider:
        """Persist a rider and move its domain events to the outbox."""
        entity.save()
        flush_domain_events(entity, topic="riders")
        return entity

    def publish_events(self, rider: Rider) -> int:
        return flush_domain_events(rider, topic="riders")

    def update_location(
        self, id: UUID, longitude: float, latitude: float, timestamp: datetime
    ) -> bool:
        return self.compare_and_set(
            id,
            expected={},
            changes={
                "longitude": longitude,
                "latitude": latitude,
                "last_updated": timestamp,
            },
        )

    def attach_order(self, rider: Rider, order_id: UUID) -> Rider:
        order_ids = list(rider.assigned_order_ids or [])
        if str(order_id) not in order_ids:
            order_ids.append(str(order_id))
        rider.assigned_order_ids = order_ids
        self._set_status(rider, RiderStatus.BUSY)
        rider.save(update_fields=["assigned_order_ids", "status"])
        flush_domain_events(rider, topic="riders")
        logger.info(
            "rider.order_attached",
            rider_id=str(rider.id),
            order_id=str(order_id),
            active_orders=len(order_ids),
        )
        return rider

    def release_order(self, rider: Rider, order_id: UUID) -> Rider:
        order_ids = [i for i in (rider.assigned_order_ids or []) if i != str(order_id)]
        rider.assigned_order_ids = order_ids
        if not order_ids and rider.status == RiderStatus.BUSY:
            self._set_status(rider, RiderStatus.AVAILABLE)
        rider.save(update_fields=["assigned_order_ids", "status"])
        flush_domain_events(rider, topic="riders")
        logger.info(
            "rider.order_released",
            rider_id=str(rider.id),
            order_id=str(order_id),
            active_orders=len(order_ids),
        )
        return rider

    @staticmethod
    def _set_status(rider: Rider, new_status: str) -> None:
        if rider.status == new_status:
            return
        rider.add_domain_event(
            RiderStatusChanged(
                aggregate_id=rider.id,
                old_status=rider.status,
                new_status=new_status,
            )
        )
        rider.status = new_status
