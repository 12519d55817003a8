"""Payment verification gate (Use Cases).

States ``pending -> success | failed`` (terminal).  The gate is the only
component allowed to fire the order's payment-confirmed transition.

Business rules enforced:
- The asserted amount must equal the order total.
- Cash on delivery bypasses the gateway and settles immediately.
- Online payments open a gateway order first; the HTTP call is made
  before any transaction is opened, so no row lock is held across it.
- Settlement is a single conditional update from ``pending``; replays of
  an already-resolved payment return the stored result with no effects.
- A failed payment never touches the order; the customer retries with a
  fresh payment row.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, List, Optional
from uuid import UUID

import structlog
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from modules.orders.constants import OrderStatus, PaymentMethod
from modules.orders.exceptions import IllegalOrderTransition, OrderNotFound
from modules.payments.constants import PaymentStatus
from modules.payments.events import PaymentFailed, PaymentInitiated, PaymentSettled
from modules.payments.exceptions import (
    AmountMismatch,
    GatewayOrderMismatch,
    PaymentNotFound,
)
from shared.domain.exceptions import ValidationError

if TYPE_CHECKING:
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.orders.services import OrderService
    from modules.payments.dtos import GatewayCallbackDTO, GatewayOrderDTO
    from modules.payments.gateway import PaymentGatewayClient
    from modules.payments.models import Payment
    from modules.payments.repositories.interfaces import IPaymentRepository

logger = structlog.get_logger(__name__)


class PaymentGate:
    """Application service for payment initiation and verification.

    Receives repositories, the order service and the gateway client via
    constructor injection (DIP).
    """

    def __init__(
        self,
        payment_repository: IPaymentRepository,
        order_repository: IOrderRepository,
        order_service: OrderService,
        gateway_client: PaymentGatewayClient,
    ) -> None:
        self._payment_repo = payment_repository
        self._order_repo = order_repository
        self._order_service = order_service
        self._gateway = gateway_client

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def initiate(
        self,
        order_id: UUID,
        method: str,
        amount: Decimal,
        payer_id: Optional[UUID] = None,
    ) -> Payment:
        """Open a payment for an order.

        Returns the settled COD payment, or the ``pending`` online payment
        carrying the gateway order reference.

        Raises:
            ValidationError: unknown method or non-numeric amount.
            AmountMismatch: ``amount`` differs from the order total.
            OrderNotFound: order does not exist.
            IllegalOrderTransition: the order is not awaiting payment.
            UpstreamUnavailable: the gateway could not be reached.
        """
        if method not in PaymentMethod.values:
            raise ValidationError(f"Unknown payment method {method!r}.")
        order = self._order_repo.get_by_id(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")

        log = logger.bind(order_id=str(order.id), method=method)
        asserted = _to_amount(amount)
        if asserted != order.total_amount:
            log.warning(
                "payment.amount_mismatch",
                asserted=str(asserted),
                expected=str(order.total_amount),
            )
            raise AmountMismatch(
                f"Amount {asserted} does not match order total {order.total_amount}."
            )

        if method == PaymentMethod.COD:
            return self._order_service.settle_cash_on_delivery(order.id, payer_id)

        if order.status != OrderStatus.PAYMENT_PENDING:
            log.warning("payment.order_not_awaiting_payment", order_status=order.status)
            raise IllegalOrderTransition(
                f"Order {order.id} is not awaiting payment (status {order.status})."
            )

        gateway_order = self._gateway.create_order(
            order.total_amount, settings.PAYMENT_CURRENCY, receipt=order.order_number
        )
        payment = self._open_payment(order, method, payer_id, gateway_order)
        log.info(
            "payment.initiated",
            payment_id=str(payment.id),
            gateway_order_id=gateway_order.id,
        )
        return payment

    @transaction.atomic
    def verify(
        self,
        payment_id: UUID,
        gateway_order_id: str,
        gateway_payment_id: str,
        signature: str,
    ) -> Payment:
        """Check the gateway signature and resolve the payment once.

        On a match the payment becomes ``success`` and the order moves to
        ``confirmed`` in the same transaction.  On a mismatch the payment
        becomes ``failed`` and is returned; the order is left untouched.

        Raises:
            PaymentNotFound: payment does not exist.
            GatewayOrderMismatch: *gateway_order_id* is not this payment's.
        """
        payment = self._get(payment_id)
        log = logger.bind(payment_id=str(payment.id), order_id=str(payment.order_id))

        if payment.is_resolved:
            log.info("payment.verify_replayed", status=payment.status)
            return payment
        if payment.gateway_order_id != gateway_order_id:
            log.warning("payment.gateway_order_mismatch")
            raise GatewayOrderMismatch(
                f"Gateway order {gateway_order_id} does not belong to payment "
                f"{payment.id}."
            )

        if self._gateway.signature_matches(
            gateway_order_id, gateway_payment_id, signature
        ):
            return self._settle(payment, gateway_payment_id)
        return self._fail(payment)

    def handle_gateway_callback(self, callback: GatewayCallbackDTO) -> Payment:
        """Resolve the payment named by an inbound gateway callback."""
        payment = self._payment_repo.get_by_gateway_order(callback.gateway_order_id)
        if not payment:
            raise PaymentNotFound(
                f"No payment for gateway order {callback.gateway_order_id}."
            )
        return self.verify(
            payment.id,
            callback.gateway_order_id,
            callback.gateway_payment_id,
            callback.signature,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_payment(self, payment_id: UUID) -> Payment:
        return self._get(payment_id)

    def list_payments(self, order_id: UUID) -> List[Payment]:
        return self._payment_repo.list_for_order(order_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get(self, payment_id: UUID) -> Payment:
        payment = self._payment_repo.get_by_id(str(payment_id))
        if not payment:
            raise PaymentNotFound(f"Payment {payment_id} not found.")
        return payment

    @transaction.atomic
    def _open_payment(
        self,
        order: Order,
        method: str,
        payer_id: Optional[UUID],
        gateway_order: GatewayOrderDTO,
    ) -> Payment:
        payment = self._payment_repo.create(
            order_id=order.id,
            payer_id=payer_id or order.customer_id,
            amount=order.total_amount,
            method=method,
            status=PaymentStatus.PENDING,
            gateway_order_id=gateway_order.id,
        )
        payment.add_domain_event(
            PaymentInitiated(
                aggregate_id=payment.id,
                order_id=str(order.id),
                method=method,
                amount=str(payment.amount),
                gateway_order_id=gateway_order.id,
            )
        )
        self._payment_repo.publish_events(payment)
        return payment

    def _settle(self, payment: Payment, gateway_payment_id: str) -> Payment:
        log = logger.bind(payment_id=str(payment.id), order_id=str(payment.order_id))
        won = self._payment_repo.resolve(
            payment.id,
            PaymentStatus.SUCCESS,
            {"gateway_payment_id": gateway_payment_id, "settled_at": timezone.now()},
        )
        if not won:
            log.info("payment.verify_lost_race")
            return self._get(payment.id)

        payment = self._get(payment.id)
        payment.add_domain_event(
            PaymentSettled(
                aggregate_id=payment.id,
                order_id=str(payment.order_id),
                method=payment.method,
                amount=str(payment.amount),
            )
        )
        self._payment_repo.publish_events(payment)

        try:
            with transaction.atomic():
                self._order_service.confirm_payment(
                    payment.order_id, notes=f"Payment {payment.id} verified"
                )
        except IllegalOrderTransition:
            # Order was cancelled (or confirmed by another payment) meanwhile.
            log.warning("payment.settled_without_transition")
        log.info("payment.verified")
        return payment

    def _fail(self, payment: Payment) -> Payment:
        log = logger.bind(payment_id=str(payment.id), order_id=str(payment.order_id))
        if not self._payment_repo.resolve(payment.id, PaymentStatus.FAILED, {}):
            log.info("payment.verify_lost_race")
            return self._get(payment.id)

        payment = self._get(payment.id)
        payment.add_domain_event(
            PaymentFailed(
                aggregate_id=payment.id,
                order_id=str(payment.order_id),
                method=payment.method,
            )
        )
        self._payment_repo.publish_events(payment)
        log.warning("payment.signature_mismatch")
        return payment


class PaymentLedger:
    """Payment-side records the order state machine relies on.

    ``OrderService`` asks the ledger whether an order is paid before it
    confirms it, and records cash-on-delivery settlements through it, so
    Payment rows are only ever written by this module.
    """

    def __init__(self, payment_repository: IPaymentRepository) -> None:
        self._payment_repo = payment_repository

    def settled_payment(self, order_id: UUID) -> Optional[Payment]:
        return self._payment_repo.get_settled(order_id)

    def record_cash_settlement(
        self, order: Order, payer_id: Optional[UUID] = None
    ) -> Payment:
        """Create the ``success`` COD payment row and its ``PaymentSettled`` event."""
        payment = self._payment_repo.create(
            order_id=order.id,
            payer_id=payer_id or order.customer_id,
            amount=order.total_amount,
            method=PaymentMethod.COD,
            status=PaymentStatus.SUCCESS,
            settled_at=timezone.now(),
        )
        payment.add_domain_event(
            PaymentSettled(
                aggregate_id=payment.id,
                order_id=str(order.id),
                method=PaymentMethod.COD,
                amount=str(payment.amount),
            )
        )
        self._payment_repo.publish_events(payment)
        logger.info(
            "payment.cod_settled", order_id=str(order.id), payment_id=str(payment.id)
        )
        return payment


def _to_amount(amount: object) -> Decimal:
    try:
        return Decimal(str(amount))
    except InvalidOperation as exc:
        raise ValidationError(f"Amount {amount!r} is not a number.") from exc
