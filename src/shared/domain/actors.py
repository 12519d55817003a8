"""Actor identity attached to every inbound action.

Actions arrive pre-authenticated; the core trusts the role but re-checks
ownership itself.  Internal roles identify the components allowed to fire
the guarded transitions and cannot be built from external input.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator, model_validator


class ActorRole(str, Enum):
    CUSTOMER = "customer"
    RESTAURANT = "restaurant"
    RIDER = "rider"
    ADMIN = "admin"
    SYSTEM = "system"
    PAYMENT_GATE = "payment_gate"
    COORDINATOR = "coordinator"


INTERNAL_ROLES = frozenset(
    {ActorRole.SYSTEM, ActorRole.PAYMENT_GATE, ActorRole.COORDINATOR}
)


class ActorDTO(BaseModel):
    """Immutable resolved actor (identity + role).

    For riders ``actor_id`` is the rider id, for restaurants the restaurant
    id, for customers the customer id.
    """

    model_config = ConfigDict(frozen=True)

    actor_id: Optional[UUID] = None
    role: ActorRole

    @field_validator("role")
    @classmethod
    def role_must_be_external(cls, v: ActorRole) -> ActorRole:
        if v in INTERNAL_ROLES:
            raise ValueError(f"Role {v.value} is reserved for internal components.")
        return v

    @model_validator(mode="after")
    def identity_required(self):
        if self.role != ActorRole.ADMIN and self.actor_id is None:
            raise ValueError(f"Role {self.role.value} requires an actor_id.")
        return self

    @classmethod
    def internal(cls, role: ActorRole) -> ActorDTO:
        """Build an actor for an internal component, skipping validation."""
        return cls.model_construct(actor_id=None, role=role)

    @property
    def is_internal(self) -> bool:
        return self.role in INTERNAL_ROLES
