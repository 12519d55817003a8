"""Order, OrderItem, and OrderStatusHistory models.

Business rules implemented:
- Status only advances along ``VALID_TRANSITIONS`` (enforced at the
  service layer through conditional updates).
- Each accepted status change generates a history record with the acting
  identity, role and notes.
- Idempotency via ``idempotency_key`` unique constraint.
- Order number auto-generated as human-readable identifier.
- ``customer_id``, ``restaurant_id`` and ``rider_id`` are weak references
  by UUID; the order never owns those entities.
- OrderItem snapshots the menu price at creation time (``unit_price``) and
  ``subtotal`` is always ``quantity * unit_price`` (calculated on save).
- ``total_amount`` is computed once at creation and never changed.
"""

from __future__ import annotations

import secrets
from decimal import Decimal
from typing import Any

import structlog
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel
from modules.orders.constants import (
    ORDER_NUMBER_MAX_RETRIES,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    OrderStatus,
    PaymentMethod,
)
from shared.domain.events import DomainEventMixin

logger = structlog.get_logger(__name__)


class Order(DomainEventMixin, BaseModel):
    """Order aggregate root.

    ``order_number`` is a human-readable identifier auto-generated on first
    save (format: ``ORD-YYYYMMDD-XXXXXX``).  The UUIDv7 ``id`` is used for
    all internal references.

    ``ready_at`` is stamped when the kitchen marks the order ready and is
    kept when a claim is released, so the assignable pool stays FIFO.
    """

    order_number: models.CharField = models.CharField(
        max_length=20, unique=True, editable=False
    )
    customer_id: models.UUIDField = models.UUIDField(db_index=True)
    restaurant_id: models.UUIDField = models.UUIDField(db_index=True)
    rider_id: models.UUIDField = models.UUIDField(null=True, blank=True, db_index=True)
    status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.CREATED,
    )
    payment_method: models.CharField = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
    )

    # Delivery address
    street: models.CharField = models.CharField(max_length=255)
    city: models.CharField = models.CharField(max_length=100)
    state: models.CharField = models.CharField(max_length=100)
    country: models.CharField = models.CharField(max_length=100, default="India")
    pincode: models.CharField = models.CharField(max_length=12)
    delivery_longitude: models.FloatField = models.FloatField()
    delivery_latitude: models.FloatField = models.FloatField()
    contact_number: models.CharField = models.CharField(max_length=20, blank=True)

    # Pickup point (restaurant location snapshot)
    pickup_longitude: models.FloatField = models.FloatField()
    pickup_latitude: models.FloatField = models.FloatField()

    delivery_fee: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    total_amount: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    notes: models.TextField = models.TextField(blank=True, default="")

    # Assignment bookkeeping
    ready_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)
    failed_proposals: models.PositiveIntegerField = models.PositiveIntegerField(
        default=0
    )
    requires_manual_assignment: models.BooleanField = models.BooleanField(
        default=False
    )

    idempotency_key: models.CharField = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
    )

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
            models.Index(
                fields=["status", "ready_at"],
                name="orders_status_ready_idx",
            ),
            models.Index(
                fields=["status", "pickup_latitude", "pickup_longitude"],
                name="orders_status_pickup_idx",
            ),
        ]

    # ------------------------------------------------------------------
    # State Machine helpers
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        """Return ``True`` if the order is in a terminal state."""
        return self.status in TERMINAL_STATES

    def can_transition_to(self, new_status: str) -> bool:
        """Check whether transitioning to *new_status* is valid."""
        allowed = VALID_TRANSITIONS.get(self.status, set())
        return new_status in allowed

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items.all())

    # ------------------------------------------------------------------
    # Order number generation
    # ------------------------------------------------------------------

    @staticmethod
    def generate_order_number() -> str:
        """Generate a human-readable order number: ``ORD-YYYYMMDD-XXXXXX``."""
        now = timezone.now()
        suffix = secrets.token_hex(3).upper()
        return f"ORD-{now:%Y%m%d}-{suffix}"

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.order_number:
            for attempt in range(ORDER_NUMBER_MAX_RETRIES):
                candidate = self.generate_order_number()
                if not Order.objects.filter(order_number=candidate).exists():
                    self.order_number = candidate
                    break
            else:
                raise RuntimeError(
                    f"Failed to generate unique order_number after "
                    f"{ORDER_NUMBER_MAX_RETRIES} attempts"
                )
        super().save(*args, **kwargs)

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status})"


class OrderItem(BaseModel):
    """Line item of an Order.

    ``item_id`` references a menu item of the restaurant's catalog (managed
    elsewhere); ``item_name`` and ``unit_price`` are snapshots taken at the
    time of purchase.  ``subtotal`` is always ``quantity * unit_price``,
    recalculated on every save.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    item_id: models.UUIDField = models.UUIDField()
    item_name: models.CharField = models.CharField(max_length=255)
    quantity: models.PositiveIntegerField = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
    )
    unit_price: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
    )
    subtotal: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        editable=False,
    )

    class Meta:
        db_table = "order_items"
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                check=models.Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
        ]

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def clean(self) -> None:
        super().clean()
        if self.quantity is not None and self.quantity < 1:
            raise ValidationError({"quantity": "Quantity must be at least 1."})

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args: Any, **kwargs: Any) -> None:
        self.subtotal = self.quantity * self.unit_price
        super().save(*args, **kwargs)

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def __str__(self) -> str:
        return f"{self.item_name} x{self.quantity} ({self.subtotal})"


class OrderStatusHistory(BaseModel):
    """Append-only audit trail for order status transitions.

    Each record captures a single status change with the acting identity
    and role plus optional notes (e.g. cancellation reason).  Audit records
    are immutable.  ``actor_id`` is ``None`` for internal components.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="status_history",
    )
    old_status: models.CharField = models.CharField(  # noqa: DJ01
        max_length=20,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
    )
    new_status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
    )
    actor_id: models.UUIDField = models.UUIDField(null=True, blank=True)
    actor_role: models.CharField = models.CharField(max_length=20)
    notes: models.TextField = models.TextField(blank=True, default="")

    class Meta:
        db_table = "order_status_history"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(
                fields=["order", "created_at"],
                name="osh_order_created_idx",
            ),
        ]

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def __str__(self) -> str:
        return f"{self.order_id} : {self.old_status} -> {self.new_status}"
