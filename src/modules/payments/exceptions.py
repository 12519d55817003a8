"""Payment gate exceptions."""

from __future__ import annotations

from shared.domain.exceptions import NotFound, ValidationError


class PaymentNotFound(NotFound):
    """The requested payment does not exist."""


class AmountMismatch(ValidationError):
    """The asserted amount differs from the order total."""


class GatewayOrderMismatch(ValidationError):
    """The gateway order reference does not belong to this payment."""
