"""Payment DTOs (Pydantic v2, immutable)."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from modules.payments.models import Payment


class GatewayOrderDTO(BaseModel):
    """Normalized response of the gateway's create-order call."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(min_length=1)
    amount: int
    currency: str
    receipt: Optional[str] = None
    status: str = "created"


class GatewayCallbackDTO(BaseModel):
    """Inbound ``(gateway_order_id, gateway_payment_id, signature)`` triple."""

    model_config = ConfigDict(frozen=True)

    gateway_order_id: str = Field(min_length=1)
    gateway_payment_id: str = Field(min_length=1)
    signature: str = Field(min_length=1)


class PaymentOutputDTO(BaseModel):
    """Immutable DTO for payment read models."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    order_id: UUID
    payer_id: Optional[UUID]
    amount: Decimal
    status: str
    method: str
    gateway_order_id: Optional[str]
    gateway_payment_id: Optional[str]
    settled_at: Optional[datetime]
    created_at: datetime

    @classmethod
    def from_entity(cls, payment: Payment) -> PaymentOutputDTO:
        return cls(
            id=payment.id,
            order_id=payment.order_id,
            payer_id=payment.payer_id,
            amount=payment.amount,
            status=payment.status,
            method=payment.method,
            gateway_order_id=payment.gateway_order_id,
            gateway_payment_id=payment.gateway_payment_id,
            settled_at=payment.settled_at,
            created_at=payment.created_at,
        )
