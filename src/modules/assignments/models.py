"""AssignmentProposal model.

One row per attempt to put a rider on an order.  A ``proposal`` row starts
``pending`` with an acceptance deadline; a ``claim`` row is recorded
``accepted`` immediately.  Resolution is a conditional update from
``pending`` so accept, decline and expiry cannot all win.
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from modules.assignments.constants import ProposalSource, ProposalStatus
from modules.core.models import BaseModel
from shared.domain.events import DomainEventMixin


class AssignmentProposal(DomainEventMixin, BaseModel):
    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="proposals",
    )
    rider: models.ForeignKey = models.ForeignKey(
        "riders.Rider",
        on_delete=models.CASCADE,
        related_name="proposals",
    )
    source: models.CharField = models.CharField(
        max_length=20, choices=ProposalSource.choices
    )
    status: models.CharField = models.CharField(
        max_length=20,
        choices=ProposalStatus.choices,
        default=ProposalStatus.PENDING,
    )
    expires_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)
    responded_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "assignment_proposals"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["status", "expires_at"],
                name="proposal_status_expiry_idx",
            ),
            models.Index(
                fields=["order", "status"],
                name="proposal_order_status_idx",
            ),
        ]

    def is_expired(self, now=None) -> bool:
        now = now or timezone.now()
        return self.expires_at is not None and self.expires_at <= now

    def __str__(self) -> str:
        return f"{self.source} {self.order_id} -> {self.rider_id} ({self.status})"
