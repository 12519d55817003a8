"""Django ORM implementation of the Order repository.

Satisfies ``IOrderRepository`` using Django's QuerySet API.  Creation is
wrapped in ``transaction.atomic()`` so the Order aggregate (Order +
OrderItems) is persisted atomically.

Status changes never go through ``save()``: every transition is a
conditional ``UPDATE ... WHERE status = <observed>`` (see
``CompareAndSetMixin``), so a concurrent writer that got there first
makes the update match zero rows instead of being silently overwritten.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from functools import reduce
from operator import or_
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Avg, Count, F, Q, Sum
from django.utils import timezone

from modules.core.outbox import flush_domain_events
from modules.core.repositories.django_repository import CompareAndSetMixin
from modules.orders.constants import (
    ACTIVE_STATES,
    PENDING_STATES,
    OrderStatus,
)
from modules.orders.models import Order, OrderItem, OrderStatusHistory
from modules.orders.repositories.interfaces import IOrderRepository

if TYPE_CHECKING:
    from modules.riders.geo import BoundingBox
    from shared.domain.actors import ActorDTO

logger = structlog.get_logger(__name__)


class OrderDjangoRepository(CompareAndSetMixin, IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    model = Order

    # ------------------------------------------------------------------
    # Create (aggregate root + children)
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(self, data: Dict[str, Any]) -> Order:
        """Create an order with its items atomically."""
        fields = dict(data)
        items = fields.pop("items", [])
        order = Order(**fields)
        order.save()

        total = Decimal("0.00")
        for item_data in items:
            item = OrderItem(
                order=order,
                item_id=item_data["item_id"],
                item_name=item_data["item_name"],
                quantity=item_data["quantity"],
                unit_price=item_data["unit_price"],
            )
            item.save()
            total += item.subtotal

        order.total_amount = total + Decimal(order.delivery_fee)
        order.save(update_fields=["total_amount"])

        log = logger.bind(order_id=str(order.id), item_count=len(items))
        log.info("order.persisted", total_amount=str(order.total_amount))

        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with eager-loaded items and history.

        Returns ``None`` for non-existent or invalid IDs.
        """
        try:
            return (
                Order.objects.prefetch_related("items", "status_history")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """List orders with optional filters, newest first.

        Supported filter keys are any ``Order`` field lookups, e.g.
        ``status``, ``status__in``, ``customer_id``, ``restaurant_id``,
        ``rider_id``, ``created_at__range``.
        """
        queryset = Order.objects.prefetch_related("items", "status_history")
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def get_by_idempotency_key(self, key: str) -> Optional[Order]:
        """Retrieve an order by its idempotency key."""
        return (
            Order.objects.prefetch_related("items", "status_history")
            .filter(idempotency_key=key)
            .first()
        )

    # ------------------------------------------------------------------
    # Save / events (IRepository contract)
    # ------------------------------------------------------------------

    @transaction.atomic
    def save(self, entity: Order) -> Order:
        """Persist (create or update) an order and flush its events."""
        entity.save()
        event_count = flush_domain_events(entity, topic="orders")
        logger.info("order.saved", order_id=str(entity.id), event_count=event_count)
        return entity

    def publish_events(self, order: Order) -> int:
        return flush_domain_events(order, topic="orders")

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    @transaction.atomic
    def add_history(
        self,
        order_id: UUID,
        new_status: str,
        actor: ActorDTO,
        notes: str = "",
        old_status: Optional[str] = None,
    ) -> OrderStatusHistory:
        """Record a status change in the order's audit trail."""
        history = OrderStatusHistory.objects.create(
            order_id=order_id,
            old_status=old_status,
            new_status=new_status,
            actor_id=actor.actor_id,
            actor_role=actor.role.value,
            notes=notes,
        )

        logger.info(
            "order.history_added",
            order_id=str(order_id),
            old_status=old_status,
            new_status=new_status,
            actor_role=actor.role.value,
        )
        return history

    # ------------------------------------------------------------------
    # Assignment compare-and-set
    # ------------------------------------------------------------------

    def claim(self, order_id: UUID, rider_id: UUID, allow_escalated: bool) -> bool:
        expected: Dict[str, Any] = {
            "status": OrderStatus.READY_FOR_PICKUP,
            "rider_id__isnull": True,
        }
        if not allow_escalated:
            expected["requires_manual_assignment"] = False
        return self.compare_and_set(
            order_id,
            expected=expected,
            changes={"status": OrderStatus.ASSIGNED, "rider_id": rider_id},
        )

    def release_claim(self, order_id: UUID, rider_id: UUID) -> bool:
        return self.compare_and_set(
            order_id,
            expected={"status": OrderStatus.ASSIGNED, "rider_id": rider_id},
            changes={
                "status": OrderStatus.READY_FOR_PICKUP,
                "rider_id": None,
                "failed_proposals": F("failed_proposals") + 1,
            },
        )

    # ------------------------------------------------------------------
    # Assignable pool
    # ------------------------------------------------------------------

    def _assignable(self):
        return Order.objects.filter(
            status=OrderStatus.READY_FOR_PICKUP,
            rider_id__isnull=True,
            requires_manual_assignment=False,
        )

    def list_assignable(self, limit: Optional[int] = None) -> List[Order]:
        queryset = self._assignable().order_by("ready_at", "id")
        if limit is not None:
            queryset = queryset[:limit]
        return list(queryset)

    def assignable_within(self, box: BoundingBox) -> List[Order]:
        longitude_filter = reduce(
            or_,
            (
                Q(pickup_longitude__gte=west, pickup_longitude__lte=east)
                for west, east in box.longitude_ranges
            ),
        )
        queryset = self._assignable().filter(
            longitude_filter,
            pickup_latitude__gte=box.min_latitude,
            pickup_latitude__lte=box.max_latitude,
        )
        return list(queryset)

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------

    def summary(self, restaurant_id: UUID, since: datetime) -> Dict[str, Any]:
        delivered = Q(status=OrderStatus.DELIVERED)
        aggregates = Order.objects.filter(restaurant_id=restaurant_id).aggregate(
            total_orders=Count("id"),
            today_orders=Count("id", filter=Q(created_at__gte=since)),
            pending_orders=Count("id", filter=Q(status__in=PENDING_STATES)),
            active_orders=Count("id", filter=Q(status__in=ACTIVE_STATES)),
            delivered_orders=Count("id", filter=delivered),
            cancelled_orders=Count("id", filter=Q(status=OrderStatus.CANCELLED)),
            total_revenue=Sum("total_amount", filter=delivered),
            average_order_value=Avg("total_amount", filter=delivered),
            unique_customers=Count("customer_id", distinct=True),
        )
        logger.debug(
            "order.summary_computed",
            restaurant_id=str(restaurant_id),
            generated_at=timezone.now().isoformat(),
        )
        return aggregates
