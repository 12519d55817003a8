"""Event handlers for Payments domain events."""

from __future__ import annotations

import structlog

from modules.payments.events import PaymentFailed, PaymentInitiated, PaymentSettled
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


class PaymentInitiatedHandler(IEventHandler[PaymentInitiated]):
    def handle(self, event: PaymentInitiated) -> None:
        logger.info(
            f"Payment {event.aggregate_id} awaiting gateway confirmation",
            payment_id=str(event.aggregate_id),
            order_id=event.order_id,
            method=event.method,
        )


class PaymentSettledHandler(IEventHandler[PaymentSettled]):
    def handle(self, event: PaymentSettled) -> None:
        logger.info(
            f"Payment {event.aggregate_id} settled",
            payment_id=str(event.aggregate_id),
            order_id=event.order_id,
            method=event.method,
            amount=event.amount,
        )


class PaymentFailedHandler(IEventHandler[PaymentFailed]):
    def handle(self, event: PaymentFailed) -> None:
        logger.warning(
            f"Payment {event.aggregate_id} failed verification",
            payment_id=str(event.aggregate_id),
            order_id=event.order_id,
        )


payment_initiated_handler = PaymentInitiatedHandler()
payment_settled_handler = PaymentSettledHandler()
payment_failed_handler = PaymentFailedHandler()
