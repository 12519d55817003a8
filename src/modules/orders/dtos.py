"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.  These are
the contracts between the (external) request layer and the Service
layer.  DTOs are immutable (``frozen=True``).

- ``CreateOrderItemDTO``: input for a single order line item.
- ``DeliveryAddressDTO``: input for the delivery address.
- ``CreateOrderDTO``: input for order creation (nested items + address).
- ``OrderItemOutputDTO``: output for a single line item.
- ``StatusHistoryDTO``: output for a status history record.
- ``OrderOutputDTO``: output with items and history.
- ``RestaurantSummaryDTO``: dashboard metrics for one restaurant.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from modules.orders.constants import PaymentMethod

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderStatusHistory


# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CreateOrderItemDTO(BaseModel):
    """Immutable DTO for a single order item in a creation request.

    ``item_name`` and ``unit_price`` are the menu snapshot resolved by the
    catalog collaborator before the order reaches the core.
    """

    model_config = ConfigDict(frozen=True)

    item_id: UUID
    item_name: str = Field(min_length=1, max_length=255)
    quantity: int
    unit_price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v


class DeliveryAddressDTO(BaseModel):
    """Immutable delivery address with GeoJSON-ordered coordinates."""

    model_config = ConfigDict(frozen=True)

    street: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    country: str = "India"
    pincode: str = Field(min_length=3, max_length=12)
    longitude: float = Field(ge=-180, le=180)
    latitude: float = Field(ge=-90, le=90)


class CreateOrderDTO(BaseModel):
    """Immutable DTO for order creation requests.

    Validates:
    - ``items`` must contain at least one item.
    - Each item quantity must be positive.
    - Pickup coordinates within range.
    """

    model_config = ConfigDict(frozen=True)

    customer_id: UUID
    restaurant_id: UUID
    items: List[CreateOrderItemDTO]
    address: DeliveryAddressDTO
    pickup_longitude: float = Field(ge=-180, le=180)
    pickup_latitude: float = Field(ge=-90, le=90)
    payment_method: PaymentMethod
    delivery_fee: Decimal = Field(default=Decimal("0.00"), ge=0, decimal_places=2)
    contact_number: str = ""
    notes: Optional[str] = ""
    idempotency_key: Optional[str] = None

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(
        cls, v: List[CreateOrderItemDTO]
    ) -> List[CreateOrderItemDTO]:
        if not v:
            raise ValueError("Order must have at least one item.")
        return v

    @model_validator(mode="after")
    def no_duplicate_items(self):
        """Prevent duplicate menu items in the same order."""
        item_ids = [item.item_id for item in self.items]
        if len(item_ids) != len(set(item_ids)):
            raise ValueError("Duplicate item IDs are not allowed in the same order.")
        return self


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


class OrderItemOutputDTO(BaseModel):
    """Immutable DTO for order item responses."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    item_id: UUID
    item_name: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


class StatusHistoryDTO(BaseModel):
    """Immutable DTO for order status history records."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    old_status: Optional[str]
    new_status: str
    actor_id: Optional[UUID]
    actor_role: str
    notes: str
    created_at: datetime

    @classmethod
    def from_entity(cls, history: OrderStatusHistory) -> StatusHistoryDTO:
        return cls(
            id=history.id,
            old_status=history.old_status,
            new_status=history.new_status,
            actor_id=history.actor_id,
            actor_role=history.actor_role,
            notes=history.notes,
            created_at=history.created_at,
        )


class OrderOutputDTO(BaseModel):
    """Immutable DTO for order read models."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    order_number: str
    customer_id: UUID
    restaurant_id: UUID
    rider_id: Optional[UUID]
    status: str
    payment_method: str
    delivery_fee: Decimal
    total_amount: Decimal
    delivery_coordinates: List[float]
    pickup_coordinates: List[float]
    requires_manual_assignment: bool
    notes: str
    created_at: datetime
    updated_at: datetime
    items: List[OrderItemOutputDTO]
    history: List[StatusHistoryDTO]

    @classmethod
    def from_entity(cls, order: Order) -> OrderOutputDTO:
        """Build an output DTO from an Order model instance.

        Assumes ``items`` and ``status_history`` are prefetched.
        """
        items = [
            OrderItemOutputDTO(
                id=item.id,
                item_id=item.item_id,
                item_name=item.item_name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                subtotal=item.subtotal,
            )
            for item in order.items.all()
        ]
        history = [StatusHistoryDTO.from_entity(h) for h in order.status_history.all()]
        return cls(
            id=order.id,
            order_number=order.order_number,
            customer_id=order.customer_id,
            restaurant_id=order.restaurant_id,
            rider_id=order.rider_id,
            status=order.status,
            payment_method=order.payment_method,
            delivery_fee=order.delivery_fee,
            total_amount=order.total_amount,
            delivery_coordinates=[order.delivery_longitude, order.delivery_latitude],
            pickup_coordinates=[order.pickup_longitude, order.pickup_latitude],
            requires_manual_assignment=order.requires_manual_assignment,
            notes=order.notes,
            created_at=order.created_at,
            updated_at=order.updated_at,
            items=items,
            history=history,
        )


class RestaurantSummaryDTO(BaseModel):
    """Dashboard metrics for a restaurant's orders."""

    model_config = ConfigDict(frozen=True)

    restaurant_id: UUID
    total_orders: int
    today_orders: int
    pending_orders: int
    active_orders: int
    delivered_orders: int
    cancelled_orders: int
    total_revenue: Decimal
    average_order_value: Decimal
    unique_customers: int
