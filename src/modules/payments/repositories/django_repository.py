"""Django ORM implementation of the Payment repository.

``resolve`` is the settlement primitive: ``UPDATE payments SET status=?
WHERE id=? AND status='pending'``.  Two concurrent verifications of the
same payment cannot both see ``pending`` and both settle it.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction

from modules.core.outbox import flush_domain_events
from modules.core.repositories.django_repository import CompareAndSetMixin
from modules.payments.constants import PaymentStatus
from modules.payments.models import Payment
from modules.payments.repositories.interfaces import IPaymentRepository

logger = structlog.get_logger(__name__)


class PaymentDjangoRepository(CompareAndSetMixin, IPaymentRepository):
    """Concrete Payment repository backed by Django ORM."""

    model = Payment

    def create(
        self,
        order_id: UUID,
        payer_id: Optional[UUID],
        amount: Decimal,
        method: str,
        status: str,
        gateway_order_id: Optional[str] = None,
        settled_at: Optional[datetime] = None,
    ) -> Payment:
        payment = Payment.objects.create(
            order_id=order_id,
            payer_id=payer_id,
            amount=amount,
            method=method,
            status=status,
            gateway_order_id=gateway_order_id,
            settled_at=settled_at,
        )
        logger.info(
            "payment.created",
            payment_id=str(payment.id),
            order_id=str(order_id),
            method=method,
            status=status,
        )
        return payment

    def get_by_id(self, id: str) -> Optional[Payment]:
        try:
            return Payment.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_by_gateway_order(self, gateway_order_id: str) -> Optional[Payment]:
        return Payment.objects.filter(gateway_order_id=gateway_order_id).first()

    def get_settled(self, order_id: UUID) -> Optional[Payment]:
        return Payment.objects.filter(
            order_id=order_id, status=PaymentStatus.SUCCESS
        ).first()

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Payment]:
        queryset = Payment.objects.all()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def list_for_order(self, order_id: UUID) -> List[Payment]:
        return list(Payment.objects.filter(order_id=order_id))

    @transaction.atomic
    def save(self, entity: Payment) -> Payment:
        entity.save()
        flush_domain_events(entity, topic="payments")
        return entity

    def publish_events(self, payment: Payment) -> int:
        return flush_domain_events(payment, topic="payments")

    def resolve(
        self, payment_id: UUID, outcome: str, changes: Mapping[str, Any]
    ) -> bool:
        return self.compare_and_set(
            payment_id,
            expected={"status": PaymentStatus.PENDING},
            changes={"status": outcome, **changes},
        )
