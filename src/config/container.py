"""Composition root: wires repositories into the application services.

Callers (Celery tasks, the request layer, tests) obtain services here
instead of constructing repositories themselves.
"""

from __future__ import annotations

from typing import Optional

from modules.assignments.repositories import ProposalDjangoRepository
from modules.assignments.services import AssignmentCoordinator
from modules.notifications.repositories import NotificationDjangoRepository
from modules.notifications.services import NotificationEmitter
from modules.orders.repositories import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.payments.gateway import PaymentGatewayClient
from modules.payments.repositories import PaymentDjangoRepository
from modules.payments.services import PaymentGate, PaymentLedger
from modules.riders.repositories import RiderDjangoRepository
from modules.riders.services import RiderDirectory


def notification_emitter() -> NotificationEmitter:
    return NotificationEmitter(NotificationDjangoRepository())


def order_service() -> OrderService:
    return OrderService(
        order_repository=OrderDjangoRepository(),
        rider_repository=RiderDjangoRepository(),
        payment_ledger=PaymentLedger(PaymentDjangoRepository()),
        proposal_repository=ProposalDjangoRepository(),
        notifier=notification_emitter(),
    )


def rider_directory() -> RiderDirectory:
    return RiderDirectory(RiderDjangoRepository(), OrderDjangoRepository())


def payment_gate(gateway_client: Optional[PaymentGatewayClient] = None) -> PaymentGate:
    return PaymentGate(
        payment_repository=PaymentDjangoRepository(),
        order_repository=OrderDjangoRepository(),
        order_service=order_service(),
        gateway_client=gateway_client or PaymentGatewayClient(),
    )


def assignment_coordinator() -> AssignmentCoordinator:
    return AssignmentCoordinator(
        order_repository=OrderDjangoRepository(),
        rider_repository=RiderDjangoRepository(),
        proposal_repository=ProposalDjangoRepository(),
        order_service=order_service(),
        rider_directory=rider_directory(),
    )
