"""Domain events for the Assignments bounded context.

``aggregate_id`` is the order the event concerns.
"""

from __future__ import annotations

from dataclasses import dataclass

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class RiderAssigned(DomainEvent):
    """A rider won the claim on an order (proposal or self-service)."""

    rider_id: str = ""
    source: str = ""


@dataclass(frozen=True)
class AssignmentReleased(DomainEvent):
    """A proposed rider declined or let the acceptance window lapse."""

    rider_id: str = ""
    outcome: str = ""
    failed_proposals: int = 0


@dataclass(frozen=True)
class OrderEscalated(DomainEvent):
    """The order exhausted its proposals and needs manual assignment."""

    failed_proposals: int = 0
