"""Django ORM implementation of the assignment proposal repository."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from modules.assignments.constants import ProposalStatus
from modules.assignments.models import AssignmentProposal
from modules.assignments.repositories.interfaces import IProposalRepository
from modules.core.outbox import flush_domain_events
from modules.core.repositories.django_repository import CompareAndSetMixin

logger = structlog.get_logger(__name__)


class ProposalDjangoRepository(CompareAndSetMixin, IProposalRepository):
    """Concrete proposal repository backed by Django ORM."""

    model = AssignmentProposal

    def create(
        self,
        order_id: UUID,
        rider_id: UUID,
        source: str,
        status: str,
        expires_at: Optional[datetime],
    ) -> AssignmentProposal:
        return AssignmentProposal.objects.create(
            order_id=order_id,
            rider_id=rider_id,
            source=source,
            status=status,
            expires_at=expires_at,
            responded_at=timezone.now() if status != ProposalStatus.PENDING else None,
        )

    def get_by_id(self, id: str) -> Optional[AssignmentProposal]:
        try:
            return AssignmentProposal.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_pending(
        self, order_id: UUID, rider_id: Optional[UUID] = None
    ) -> Optional[AssignmentProposal]:
        queryset = AssignmentProposal.objects.filter(
            order_id=order_id, status=ProposalStatus.PENDING
        )
        if rider_id is not None:
            queryset = queryset.filter(rider_id=rider_id)
        return queryset.first()

    def list(
        self, filters: Optional[Dict[str, Any]] = None
    ) -> List[AssignmentProposal]:
        queryset = AssignmentProposal.objects.all()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def list_for_order(self, order_id: UUID) -> List[AssignmentProposal]:
        return list(AssignmentProposal.objects.filter(order_id=order_id))

    def list_expired(self, now: datetime, limit: int) -> List[AssignmentProposal]:
        return list(
            AssignmentProposal.objects.filter(
                status=ProposalStatus.PENDING, expires_at__lte=now
            ).order_by("expires_at")[:limit]
        )

    @transaction.atomic
    def save(self, entity: AssignmentProposal) -> AssignmentProposal:
        entity.save()
        flush_domain_events(entity, topic="assignments")
        return entity

    def publish_events(self, proposal: AssignmentProposal) -> int:
        return flush_domain_events(proposal, topic="assignments")

    def resolve(self, proposal_id: UUID, outcome: str, responded_at: datetime) -> bool:
        return self.compare_and_set(
            proposal_id,
            expected={"status": ProposalStatus.PENDING},
            changes={"status": outcome, "responded_at": responded_at},
        )

    def accept_pending(self, order_id: UUID, rider_id: UUID) -> bool:
        now = timezone.now()
        updated = AssignmentProposal.objects.filter(
            order_id=order_id, rider_id=rider_id, status=ProposalStatus.PENDING
        ).update(status=ProposalStatus.ACCEPTED, responded_at=now, updated_at=now)
        return updated > 0

    def cancel_open(self, order_id: UUID) -> int:
        now = timezone.now()
        updated = AssignmentProposal.objects.filter(
            order_id=order_id, status=ProposalStatus.PENDING
        ).update(status=ProposalStatus.CANCELLED, responded_at=now, updated_at=now)
        if updated:
            logger.info(
                "assignment.proposals_cancelled", order_id=str(order_id), count=updated
            )
        return updated
