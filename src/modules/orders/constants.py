"""Order domain constants.

Defines status choices, the transition table of the order state machine
and the actor roles allowed to fire each edge.
"""

from django.db import models

from shared.domain.actors import ActorRole


class OrderStatus(models.TextChoices):
    CREATED = "created", "Created"
    PAYMENT_PENDING = "payment_pending", "Payment pending"
    CONFIRMED = "confirmed", "Confirmed"
    PREPARING = "preparing", "Preparing"
    READY_FOR_PICKUP = "ready_for_pickup", "Ready for pickup"
    ASSIGNED = "assigned", "Assigned"
    PICKED_UP = "picked_up", "Picked up"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"


class PaymentMethod(models.TextChoices):
    UPI = "UPI", "UPI"
    CARD = "card", "Card"
    COD = "COD", "Cash on delivery"
    GATEWAY = "gateway", "Payment gateway"


ONLINE_PAYMENT_METHODS: frozenset = frozenset(
    {PaymentMethod.UPI, PaymentMethod.CARD, PaymentMethod.GATEWAY}
)

_STAFF = frozenset({ActorRole.RESTAURANT, ActorRole.ADMIN})
_CANCELLERS = frozenset({ActorRole.CUSTOMER, ActorRole.RESTAURANT, ActorRole.ADMIN})

# (from, to) -> roles allowed to fire the edge.
TRANSITION_ROLES: dict[tuple[str, str], frozenset] = {
    (OrderStatus.CREATED, OrderStatus.PAYMENT_PENDING): frozenset({ActorRole.SYSTEM}),
    (OrderStatus.CREATED, OrderStatus.CONFIRMED): frozenset({ActorRole.PAYMENT_GATE}),
    (OrderStatus.PAYMENT_PENDING, OrderStatus.CONFIRMED): frozenset(
        {ActorRole.PAYMENT_GATE}
    ),
    (OrderStatus.CONFIRMED, OrderStatus.PREPARING): _STAFF,
    (OrderStatus.PREPARING, OrderStatus.READY_FOR_PICKUP): _STAFF,
    (OrderStatus.READY_FOR_PICKUP, OrderStatus.ASSIGNED): frozenset(
        {ActorRole.COORDINATOR}
    ),
    (OrderStatus.ASSIGNED, OrderStatus.READY_FOR_PICKUP): frozenset(
        {ActorRole.COORDINATOR}
    ),
    (OrderStatus.ASSIGNED, OrderStatus.PICKED_UP): frozenset({ActorRole.RIDER}),
    (OrderStatus.PICKED_UP, OrderStatus.DELIVERED): frozenset({ActorRole.RIDER}),
    **{
        (status, OrderStatus.CANCELLED): _CANCELLERS
        for status in (
            OrderStatus.CREATED,
            OrderStatus.PAYMENT_PENDING,
            OrderStatus.CONFIRMED,
            OrderStatus.PREPARING,
            OrderStatus.READY_FOR_PICKUP,
            OrderStatus.ASSIGNED,
            OrderStatus.PICKED_UP,
        )
    },
}

VALID_TRANSITIONS: dict[str, set[str]] = {status: set() for status in OrderStatus.values}
for _from, _to in TRANSITION_ROLES:
    VALID_TRANSITIONS[_from].add(_to)

TERMINAL_STATES: set[str] = {OrderStatus.DELIVERED, OrderStatus.CANCELLED}

# A customer may cancel only before a rider holds the order.
CUSTOMER_CANCELLABLE_STATES: set[str] = {
    OrderStatus.CREATED,
    OrderStatus.PAYMENT_PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.READY_FOR_PICKUP,
}

# States in which a rider holds the order.
RIDER_HELD_STATES: set[str] = {OrderStatus.ASSIGNED, OrderStatus.PICKED_UP}

# Restaurant dashboard buckets.
PENDING_STATES: set[str] = {
    OrderStatus.CREATED,
    OrderStatus.PAYMENT_PENDING,
    OrderStatus.CONFIRMED,
}
ACTIVE_STATES: set[str] = {
    OrderStatus.PREPARING,
    OrderStatus.READY_FOR_PICKUP,
    OrderStatus.ASSIGNED,
    OrderStatus.PICKED_UP,
}

ORDER_NUMBER_MAX_RETRIES = 5
