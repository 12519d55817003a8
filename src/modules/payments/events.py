"""Domain events for the Payments bounded context."""

from __future__ import annotations

from dataclasses import dataclass

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class PaymentInitiated(DomainEvent):
    """An online payment was opened with the gateway."""

    order_id: str = ""
    method: str = ""
    amount: str = "0.00"
    gateway_order_id: str = ""


@dataclass(frozen=True)
class PaymentSettled(DomainEvent):
    """The payment reached ``success`` (signature verified or COD)."""

    order_id: str = ""
    method: str = ""
    amount: str = "0.00"


@dataclass(frozen=True)
class PaymentFailed(DomainEvent):
    """Signature verification failed; the order stays unpaid."""

    order_id: str = ""
    method: str = ""
