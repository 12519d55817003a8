"""Assignment coordinator exceptions.

``AlreadyAssigned`` (lost claim race) lives in ``shared.domain.exceptions``
because callers treat it as its own category.
"""

from __future__ import annotations

from shared.domain.exceptions import IllegalTransition, NotFound


class ProposalNotFound(NotFound):
    """No pending proposal exists for this order and rider."""


class ProposalExpired(IllegalTransition):
    """The acceptance window of the proposal has elapsed."""


class AssignmentEscalated(IllegalTransition):
    """The order needs manual assignment by an admin."""
