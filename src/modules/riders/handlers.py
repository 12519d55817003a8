"""Event handlers for Riders domain events."""

from __future__ import annotations

import structlog

from modules.riders.events import RiderLocationUpdated, RiderStatusChanged
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


class RiderStatusChangedHandler(IEventHandler[RiderStatusChanged]):
    def handle(self, event: RiderStatusChanged) -> None:
        logger.info(
            f"Rider {event.aggregate_id} is now {event.new_status}",
            rider_id=str(event.aggregate_id),
            old_status=event.old_status,
            new_status=event.new_status,
        )


class RiderLocationUpdatedHandler(IEventHandler[RiderLocationUpdated]):
    def handle(self, event: RiderLocationUpdated) -> None:
        logger.info(
            f"Tracking update for order {event.order_id}",
            rider_id=str(event.aggregate_id),
            order_id=event.order_id,
            longitude=event.longitude,
            latitude=event.latitude,
        )


rider_status_changed_handler = RiderStatusChangedHandler()
rider_location_updated_handler = RiderLocationUpdatedHandler()
