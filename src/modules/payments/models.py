"""Payment model.

Business rules implemented:
- ``amount`` equals the order total (checked by ``PaymentGate.initiate``).
- ``status`` moves ``pending -> success | failed`` once, through a
  conditional update; both outcomes are terminal.
- A failed payment never touches its order; a retry creates a new row.
- ``gateway_order_id`` is the gateway's reference created at initiation
  (online methods only); ``gateway_payment_id`` is set on settlement.
"""

from __future__ import annotations

from django.db import models

from modules.core.models import BaseModel
from modules.orders.constants import PaymentMethod
from modules.payments.constants import TERMINAL_PAYMENT_STATES, PaymentStatus
from shared.domain.events import DomainEventMixin


class Payment(DomainEventMixin, BaseModel):
    """A payment attempt for an order."""

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="payments",
    )
    payer_id: models.UUIDField = models.UUIDField(null=True, blank=True)
    amount: models.DecimalField = models.DecimalField(max_digits=10, decimal_places=2)
    status: models.CharField = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )
    method: models.CharField = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
    )
    gateway_order_id: models.CharField = models.CharField(  # noqa: DJ01
        max_length=100, unique=True, null=True, blank=True
    )
    gateway_payment_id: models.CharField = models.CharField(  # noqa: DJ01
        max_length=100, null=True, blank=True
    )
    settled_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "payments"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["order", "status"], name="payments_order_status_idx"),
        ]

    @property
    def is_resolved(self) -> bool:
        return self.status in TERMINAL_PAYMENT_STATES

    def __str__(self) -> str:
        return f"Payment {self.id} {self.method} {self.amount} ({self.status})"
