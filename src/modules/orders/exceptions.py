"""Order domain exceptions.

Raised by the Service Layer when business rules are violated.  Each
subclasses a category from ``shared.domain.exceptions`` so collaborators
can react by kind (refresh and retry, surface, back off).
"""

from __future__ import annotations

from shared.domain.exceptions import IllegalTransition, NotFound, ValidationError


class OrderNotFound(NotFound):
    """The requested order does not exist."""


class InvalidOrderData(ValidationError):
    """Order creation input is malformed (no items, bad coordinates, ...)."""


class IllegalOrderTransition(IllegalTransition):
    """The order is not in the predecessor state the transition requires."""


class UnauthorizedTransition(IllegalTransition):
    """The acting role (or owner) may not fire this transition."""


class NotAssignedRider(IllegalTransition):
    """A rider other than the order's assigned rider attempted a rider-only step."""
