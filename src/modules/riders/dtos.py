"""Rider DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
DTOs are immutable (``frozen=True``).
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, List
from uuid import UUID

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from modules.riders.models import Rider


class NearbyRiderDTO(BaseModel):
    """An available rider and its distance from the search origin."""

    model_config = ConfigDict(frozen=True)

    rider_id: UUID
    user_id: UUID
    longitude: float
    latitude: float
    distance_m: float

    @classmethod
    def from_entity(cls, rider: Rider, distance_m: float) -> NearbyRiderDTO:
        return cls(
            rider_id=rider.id,
            user_id=rider.user_id,
            longitude=rider.longitude,
            latitude=rider.latitude,
            distance_m=round(distance_m, 2),
        )


class RiderOutputDTO(BaseModel):
    """Immutable DTO for rider read models."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    user_id: UUID
    coordinates: List[float]
    status: str
    assigned_order_ids: List[UUID]
    last_updated: datetime

    @classmethod
    def from_entity(cls, rider: Rider) -> RiderOutputDTO:
        return cls(
            id=rider.id,
            user_id=rider.user_id,
            coordinates=rider.coordinates,
            status=rider.status,
            assigned_order_ids=[UUID(str(i)) for i in rider.assigned_order_ids],
            last_updated=rider.last_updated,
        )
