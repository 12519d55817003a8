"""Assignment domain constants."""

from django.db import models


class ProposalStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    ACCEPTED = "accepted", "Accepted"
    DECLINED = "declined", "Declined"
    EXPIRED = "expired", "Expired"
    CANCELLED = "cancelled", "Cancelled"


class ProposalSource(models.TextChoices):
    PROPOSAL = "proposal", "Proposed by restaurant/admin"
    CLAIM = "claim", "Claimed by rider"


# Outcomes that hand the order back to the assignable pool.
RELEASE_OUTCOMES: frozenset = frozenset(
    {ProposalStatus.DECLINED, ProposalStatus.EXPIRED}
)
