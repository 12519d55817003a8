"""Order service layer (Use Cases).

Owns the canonical status of an order and enforces legal transitions.
All write operations are atomic: the service defines the unit-of-work
boundary, and any raised exception rolls every write of the call back.

Business rules enforced:
- Status only advances along ``TRANSITION_ROLES``; the COD shortcut
  ``created -> confirmed`` is the only skip.
- Check order for every request: existence, edge from the current state,
  acting role, ownership.
- Every transition is committed with a conditional update on the
  observed status, so a lost race is rejected instead of applied twice.
- Every accepted transition appends one history row, one domain event
  and one notification; rejected transitions write nothing.
- Delivery and cancellation of a rider-held order release the rider.
"""

from __future__ import annotations

from datetime import datetime, time
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from modules.orders.constants import (
    CUSTOMER_CANCELLABLE_STATES,
    RIDER_HELD_STATES,
    TRANSITION_ROLES,
    OrderStatus,
    PaymentMethod,
)
from modules.orders.dtos import RestaurantSummaryDTO
from modules.orders.events import OrderCancelled, OrderCreated, OrderStatusChanged
from modules.orders.exceptions import (
    IllegalOrderTransition,
    NotAssignedRider,
    OrderNotFound,
    UnauthorizedTransition,
)
from shared.domain.actors import ActorDTO, ActorRole
from shared.domain.exceptions import AlreadyAssigned

if TYPE_CHECKING:
    from modules.assignments.repositories.interfaces import IProposalRepository
    from modules.notifications.services import NotificationEmitter
    from modules.orders.dtos import CreateOrderDTO
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.payments.models import Payment
    from modules.payments.services import PaymentLedger
    from modules.riders.repositories.interfaces import IRiderRepository

logger = structlog.get_logger(__name__)

SYSTEM = ActorDTO.internal(ActorRole.SYSTEM)
PAYMENT_GATE = ActorDTO.internal(ActorRole.PAYMENT_GATE)
COORDINATOR = ActorDTO.internal(ActorRole.COORDINATOR)

_CENT = Decimal("0.01")


class OrderService:
    """Application service for Order use-cases.

    Receives repositories and the notification emitter via constructor
    injection (DIP).
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        rider_repository: IRiderRepository,
        payment_ledger: PaymentLedger,
        proposal_repository: IProposalRepository,
        notifier: NotificationEmitter,
    ) -> None:
        self._order_repo = order_repository
        self._rider_repo = rider_repository
        self._payments = payment_ledger
        self._proposal_repo = proposal_repository
        self._notifier = notifier

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    @transaction.atomic
    def create_order(self, dto: CreateOrderDTO) -> Order:
        """Create a new order and start its payment flow.

        Online methods move the order to ``payment_pending`` right away;
        cash on delivery records a settled COD payment and skips straight
        to ``confirmed``.  Idempotent on ``idempotency_key``.
        """
        log = logger.bind(
            customer_id=str(dto.customer_id), restaurant_id=str(dto.restaurant_id)
        )
        log.info("order.creation_started")

        if dto.idempotency_key:
            existing = self._order_repo.get_by_idempotency_key(dto.idempotency_key)
            if existing:
                log.info(
                    "order.idempotency_hit",
                    order_id=str(existing.id),
                    key=dto.idempotency_key,
                )
                return existing

        try:
            with transaction.atomic():
                order = self._order_repo.create(_order_fields(dto))
        except IntegrityError:
            existing = (
                self._order_repo.get_by_idempotency_key(dto.idempotency_key)
                if dto.idempotency_key
                else None
            )
            if not existing:
                raise
            log.info("order.idempotency_race", order_id=str(existing.id))
            return existing

        order.add_domain_event(
            OrderCreated(
                aggregate_id=order.id,
                customer_id=str(order.customer_id),
                restaurant_id=str(order.restaurant_id),
                payment_method=order.payment_method,
                total_amount=str(order.total_amount),
            )
        )
        self._order_repo.publish_events(order)
        self._order_repo.add_history(
            order_id=order.id,
            new_status=OrderStatus.CREATED,
            actor=ActorDTO(actor_id=order.customer_id, role=ActorRole.CUSTOMER),
            notes="Order created",
        )
        log.info(
            "order.created",
            order_id=str(order.id),
            total_amount=str(order.total_amount),
        )

        if order.payment_method == PaymentMethod.COD:
            self.settle_cash_on_delivery(order.id)
        else:
            self._transition(
                order.id,
                OrderStatus.PAYMENT_PENDING,
                SYSTEM,
                notes="Awaiting payment",
            )
        return self.get_order(order.id)

    # ------------------------------------------------------------------
    # Transitions fired by external actors
    # ------------------------------------------------------------------

    def update_status(
        self, order_id: UUID, new_status: str, actor: ActorDTO, notes: str = ""
    ) -> Order:
        """Generic entry point for restaurant, rider, customer and admin actions.

        Internal components call their dedicated methods instead.

        Raises:
            OrderNotFound, IllegalOrderTransition, UnauthorizedTransition,
            NotAssignedRider.
        """
        if actor.is_internal:
            raise UnauthorizedTransition(
                f"Internal role {actor.role.value} must use its dedicated operation."
            )
        handlers = {
            OrderStatus.PREPARING: self.start_preparing,
            OrderStatus.READY_FOR_PICKUP: self.mark_ready,
            OrderStatus.PICKED_UP: self.mark_picked_up,
            OrderStatus.DELIVERED: self.mark_delivered,
            OrderStatus.CANCELLED: self.cancel_order,
        }
        handler = handlers.get(new_status)
        if handler is None:
            # Payment, assignment and unknown targets: the generic checks
            # produce IllegalOrderTransition / UnauthorizedTransition.
            return self._transition(order_id, new_status, actor, notes)
        return handler(order_id, actor, notes)

    def start_preparing(self, order_id: UUID, actor: ActorDTO, notes: str = "") -> Order:
        return self._transition(order_id, OrderStatus.PREPARING, actor, notes)

    def mark_ready(self, order_id: UUID, actor: ActorDTO, notes: str = "") -> Order:
        """``preparing -> ready_for_pickup``; stamps ``ready_at`` for FIFO."""
        return self._transition(
            order_id,
            OrderStatus.READY_FOR_PICKUP,
            actor,
            notes,
            changes={"ready_at": timezone.now()},
        )

    @transaction.atomic
    def mark_picked_up(self, order_id: UUID, actor: ActorDTO, notes: str = "") -> Order:
        """Assigned rider collects the order.

        Picking up implicitly accepts a still-pending proposal.
        """
        order = self._transition(order_id, OrderStatus.PICKED_UP, actor, notes)
        if self._proposal_repo.accept_pending(order.id, order.rider_id):
            logger.info(
                "assignment.accepted_on_pickup",
                order_id=str(order.id),
                rider_id=str(order.rider_id),
            )
        return order

    @transaction.atomic
    def mark_delivered(self, order_id: UUID, actor: ActorDTO, notes: str = "") -> Order:
        order = self._transition(order_id, OrderStatus.DELIVERED, actor, notes)
        self._release_rider_hold(order.rider_id, order.id)
        return order

    @transaction.atomic
    def cancel_order(self, order_id: UUID, actor: ActorDTO, notes: str = "") -> Order:
        """Cancel an order from any non-terminal state.

        Cancelling a rider-held order releases the rider; any pending
        proposal is cancelled.  The rider to release is read from the row the
        conditional update committed against.
        """
        order = self._transition(
            order_id, OrderStatus.CANCELLED, actor, notes or "Order cancelled"
        )
        self._release_rider_hold(order.rider_id, order.id)
        self._proposal_repo.cancel_open(order.id)
        return order

    # ------------------------------------------------------------------
    # Transitions fired by internal components
    # ------------------------------------------------------------------

    @transaction.atomic
    def confirm_payment(self, order_id: UUID, notes: str = "") -> Order:
        """Payment settled: ``payment_pending`` (or ``created`` for COD) -> ``confirmed``.

        Raises:
            UnauthorizedTransition: the order has no ``success`` payment.
        """
        if not self._payments.settled_payment(order_id):
            logger.warning("order.confirm_without_payment", order_id=str(order_id))
            raise UnauthorizedTransition(
                f"Order {order_id} has no settled payment to confirm."
            )
        return self._transition(
            order_id, OrderStatus.CONFIRMED, PAYMENT_GATE, notes or "Payment settled"
        )

    @transaction.atomic
    def settle_cash_on_delivery(
        self, order_id: UUID, payer_id: Optional[UUID] = None
    ) -> Payment:
        """Record a settled COD payment and confirm the order.

        Idempotent: an order that already has a settled payment returns it.
        """
        order = self._get(order_id)
        settled = self._payments.settled_payment(order.id)
        if settled:
            return settled
        if order.status not in (OrderStatus.CREATED, OrderStatus.PAYMENT_PENDING):
            raise IllegalOrderTransition(
                f"Cannot settle cash on delivery for order in status {order.status}."
            )

        payment = self._payments.record_cash_settlement(order, payer_id)
        self.confirm_payment(order.id, notes="Cash on delivery")
        return payment

    @transaction.atomic
    def assign_rider(
        self,
        order_id: UUID,
        rider_id: UUID,
        notes: str = "",
        allow_escalated: bool = False,
    ) -> Order:
        """Claim compare-and-set: ``ready_for_pickup`` + no rider -> ``assigned``.

        Raises:
            OrderNotFound: order does not exist.
            AlreadyAssigned: another rider holds (or held) the order.
            IllegalOrderTransition: the order left the assignable pool for
                another reason (cancelled, escalated, not ready yet).
        """
        if self._order_repo.claim(order_id, rider_id, allow_escalated):
            order = self._get(order_id)
            self._record(
                order, OrderStatus.READY_FOR_PICKUP, OrderStatus.ASSIGNED, COORDINATOR, notes
            )
            return order

        order = self._get(order_id)
        log = logger.bind(
            order_id=str(order_id), rider_id=str(rider_id), current_status=order.status
        )
        if order.rider_id or order.status in (
            OrderStatus.ASSIGNED,
            OrderStatus.PICKED_UP,
            OrderStatus.DELIVERED,
        ):
            log.info("order.claim_lost", winner_id=str(order.rider_id))
            raise AlreadyAssigned(f"Order {order_id} is already assigned.")
        log.warning("order.claim_rejected")
        raise IllegalOrderTransition(
            f"Order {order_id} is not assignable (status {order.status})."
        )

    @transaction.atomic
    def release_rider(self, order_id: UUID, rider_id: UUID, notes: str = "") -> Order:
        """Reverse compare-and-set: ``assigned`` -> ``ready_for_pickup``.

        Applies only while *rider_id* still holds the order; counts the
        release in ``failed_proposals``.
        """
        if not self._order_repo.release_claim(order_id, rider_id):
            order = self._get(order_id)
            raise IllegalOrderTransition(
                f"Order {order_id} is not held by rider {rider_id} "
                f"(status {order.status})."
            )
        order = self._get(order_id)
        self._record(
            order,
            OrderStatus.ASSIGNED,
            OrderStatus.READY_FOR_PICKUP,
            COORDINATOR,
            notes,
            rider_id=rider_id,
        )
        return order

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: UUID) -> Order:
        """Raises ``OrderNotFound`` if the order does not exist."""
        return self._get(order_id)

    def list_orders(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """Return a list of orders, optionally filtered."""
        return self._order_repo.list(filters)

    def list_customer_orders(
        self, customer_id: UUID, status: Optional[str] = None
    ) -> List[Order]:
        return self._order_repo.list(_with_status({"customer_id": customer_id}, status))

    def list_restaurant_orders(
        self, restaurant_id: UUID, status: Optional[str] = None
    ) -> List[Order]:
        return self._order_repo.list(
            _with_status({"restaurant_id": restaurant_id}, status)
        )

    def list_rider_orders(self, rider_id: UUID, active_only: bool = False) -> List[Order]:
        filters: Dict[str, Any] = {"rider_id": rider_id}
        if active_only:
            filters["status__in"] = sorted(RIDER_HELD_STATES)
        return self._order_repo.list(filters)

    def restaurant_summary(self, restaurant_id: UUID) -> RestaurantSummaryDTO:
        """Dashboard metrics; revenue counts delivered orders only."""
        start_of_day = timezone.make_aware(
            datetime.combine(timezone.localdate(), time.min)
        )
        data = self._order_repo.summary(restaurant_id, start_of_day)
        revenue = Decimal(str(data["total_revenue"] or 0)).quantize(_CENT)
        average = Decimal(str(data["average_order_value"] or 0)).quantize(
            _CENT, rounding=ROUND_HALF_UP
        )
        return RestaurantSummaryDTO(
            restaurant_id=restaurant_id,
            total_orders=data["total_orders"],
            today_orders=data["today_orders"],
            pending_orders=data["pending_orders"],
            active_orders=data["active_orders"],
            delivered_orders=data["delivered_orders"],
            cancelled_orders=data["cancelled_orders"],
            total_revenue=revenue,
            average_order_value=average,
            unique_customers=data["unique_customers"],
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get(self, order_id: UUID) -> Order:
        order = self._order_repo.get_by_id(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def _authorize(self, order: Order, new_status: str, actor: ActorDTO) -> None:
        log = logger.bind(
            order_id=str(order.id),
            current_status=order.status,
            new_status=new_status,
            actor_role=actor.role.value,
        )
        if not order.can_transition_to(new_status):
            log.warning("order.invalid_transition")
            raise IllegalOrderTransition(
                f"Cannot transition from {order.status} to {new_status}."
            )
        if actor.role not in TRANSITION_ROLES[(order.status, new_status)]:
            log.warning("order.unauthorized_transition")
            raise UnauthorizedTransition(
                f"Role {actor.role.value} may not move an order from "
                f"{order.status} to {new_status}."
            )
        if actor.role == ActorRole.RIDER and order.rider_id != actor.actor_id:
            log.warning("order.not_assigned_rider", actor_id=str(actor.actor_id))
            raise NotAssignedRider(
                f"Rider {actor.actor_id} is not assigned to order {order.id}."
            )
        if actor.role == ActorRole.RESTAURANT and order.restaurant_id != actor.actor_id:
            log.warning("order.not_owner", actor_id=str(actor.actor_id))
            raise UnauthorizedTransition(
                f"Restaurant {actor.actor_id} does not own order {order.id}."
            )
        if actor.role == ActorRole.CUSTOMER and (
            order.customer_id != actor.actor_id
            or order.status not in CUSTOMER_CANCELLABLE_STATES
        ):
            log.warning("order.customer_cancel_rejected", actor_id=str(actor.actor_id))
            raise UnauthorizedTransition(
                "Customers may cancel only their own orders before rider assignment."
            )

    @transaction.atomic
    def _transition(
        self,
        order_id: UUID,
        new_status: str,
        actor: ActorDTO,
        notes: str = "",
        changes: Optional[Dict[str, Any]] = None,
    ) -> Order:
        order = self._get(order_id)
        old_status = order.status
        self._authorize(order, new_status, actor)

        expected: Dict[str, Any] = {"status": old_status}
        if actor.role == ActorRole.RIDER:
            expected["rider_id"] = actor.actor_id
        applied = self._order_repo.compare_and_set(
            order.id,
            expected=expected,
            changes={"status": new_status, **(changes or {})},
        )
        if not applied:
            logger.warning(
                "order.transition_lost_race",
                order_id=str(order_id),
                expected_status=old_status,
                new_status=new_status,
            )
            raise IllegalOrderTransition(
                f"Order {order_id} is no longer in status {old_status}."
            )

        order = self._get(order_id)
        self._record(order, old_status, new_status, actor, notes)
        return order

    def _record(
        self,
        order: Order,
        old_status: str,
        new_status: str,
        actor: ActorDTO,
        notes: str = "",
        rider_id: Optional[UUID] = None,
    ) -> None:
        """History row, domain event and notification for one accepted transition."""
        from modules.notifications.constants import NotificationType

        self._order_repo.add_history(
            order_id=order.id,
            new_status=new_status,
            actor=actor,
            notes=notes,
            old_status=old_status,
        )

        rider = rider_id or order.rider_id
        if new_status == OrderStatus.CANCELLED:
            event = OrderCancelled(
                aggregate_id=order.id,
                old_status=old_status,
                actor_role=actor.role.value,
                rider_id=str(rider) if rider else None,
            )
        else:
            event = OrderStatusChanged(
                aggregate_id=order.id,
                old_status=old_status,
                new_status=new_status,
                actor_role=actor.role.value,
                rider_id=str(rider) if rider else None,
            )
        order.add_domain_event(event)
        self._order_repo.publish_events(order)

        if new_status == OrderStatus.CONFIRMED:
            self._notifier.emit(
                order,
                NotificationType.NEW_ORDER,
                f"New order #{order.order_number} received with "
                f"{order.item_count} item(s) for "
                f"{settings.PAYMENT_CURRENCY} {order.total_amount}.",
            )
        else:
            self._notifier.emit(
                order,
                NotificationType.ORDER_UPDATE,
                f"Order #{order.order_number} moved from {old_status} to {new_status}.",
            )

        logger.info(
            "order.status_updated",
            order_id=str(order.id),
            old_status=old_status,
            new_status=new_status,
            actor_role=actor.role.value,
        )

    def _release_rider_hold(self, rider_id: Optional[UUID], order_id: UUID) -> None:
        """Drop the order from its rider's active set under a row lock."""
        if not rider_id:
            return
        rider = self._rider_repo.get_for_update(str(rider_id))
        if rider and rider.holds_order(order_id):
            self._rider_repo.release_order(rider, order_id)


def _order_fields(dto: CreateOrderDTO) -> Dict[str, Any]:
    address = dto.address
    return {
        "customer_id": dto.customer_id,
        "restaurant_id": dto.restaurant_id,
        "payment_method": dto.payment_method,
        "street": address.street,
        "city": address.city,
        "state": address.state,
        "country": address.country,
        "pincode": address.pincode,
        "delivery_longitude": address.longitude,
        "delivery_latitude": address.latitude,
        "pickup_longitude": dto.pickup_longitude,
        "pickup_latitude": dto.pickup_latitude,
        "contact_number": dto.contact_number,
        "delivery_fee": dto.delivery_fee,
        "notes": dto.notes or "",
        "idempotency_key": dto.idempotency_key,
        "items": [
            {
                "item_id": item.item_id,
                "item_name": item.item_name,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
            }
            for item in dto.items
        ],
    }


def _with_status(filters: Dict[str, Any], status: Optional[str]) -> Dict[str, Any]:
    if status:
        filters["status"] = status
    return filters
