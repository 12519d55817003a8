"""Event handlers for Assignments domain events."""

from __future__ import annotations

import structlog

from modules.assignments.events import (
    AssignmentReleased,
    OrderEscalated,
    RiderAssigned,
)
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


class RiderAssignedHandler(IEventHandler[RiderAssigned]):
    def handle(self, event: RiderAssigned) -> None:
        logger.info(
            f"Rider {event.rider_id} assigned to order {event.aggregate_id}",
            order_id=str(event.aggregate_id),
            rider_id=event.rider_id,
            source=event.source,
        )


class AssignmentReleasedHandler(IEventHandler[AssignmentReleased]):
    def handle(self, event: AssignmentReleased) -> None:
        logger.info(
            f"Order {event.aggregate_id} returned to the assignable pool",
            order_id=str(event.aggregate_id),
            rider_id=event.rider_id,
            outcome=event.outcome,
            failed_proposals=event.failed_proposals,
        )


class OrderEscalatedHandler(IEventHandler[OrderEscalated]):
    def handle(self, event: OrderEscalated) -> None:
        logger.warning(
            f"Order {event.aggregate_id} requires manual assignment",
            order_id=str(event.aggregate_id),
            failed_proposals=event.failed_proposals,
        )


rider_assigned_handler = RiderAssignedHandler()
assignment_released_handler = AssignmentReleasedHandler()
order_escalated_handler = OrderEscalatedHandler()
