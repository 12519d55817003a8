"""HTTP adapter for the (Razorpay-compatible) payment gateway.

Sole responsibility: talk to the gateway and verify its signatures.
It holds no payment rules.  Amounts cross this boundary in minor units.
"""

from __future__ import annotations

import hashlib
import hmac
from decimal import Decimal
from typing import Optional

import requests
import structlog
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from pydantic import ValidationError as PydanticValidationError

from modules.payments.constants import MINOR_UNITS_PER_MAJOR
from modules.payments.dtos import GatewayOrderDTO
from shared.domain.exceptions import UpstreamUnavailable

logger = structlog.get_logger(__name__)


class PaymentGatewayClient:
    """Gateway client configured from settings unless overridden."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        key_id: Optional[str] = None,
        key_secret: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = (base_url or settings.PAYMENT_GATEWAY_BASE_URL).rstrip("/")
        self.key_id = key_id if key_id is not None else settings.PAYMENT_GATEWAY_KEY_ID
        self.key_secret = (
            key_secret if key_secret is not None else settings.PAYMENT_GATEWAY_KEY_SECRET
        )
        self.timeout = timeout or settings.PAYMENT_GATEWAY_TIMEOUT
        self.session = session or requests.Session()

    # ------------------------------------------------------------------
    # Orders API
    # ------------------------------------------------------------------

    def create_order(self, amount: Decimal, currency: str, receipt: str) -> GatewayOrderDTO:
        """Open a gateway order for ``amount`` (major units).

        Raises:
            UpstreamUnavailable: timeout, connection failure, non-2xx
                response or an unparseable body.
        """
        minor_amount = int((Decimal(amount) * MINOR_UNITS_PER_MAJOR).to_integral_value())
        log = logger.bind(receipt=receipt, amount=minor_amount, currency=currency)

        try:
            response = self.session.post(
                f"{self.base_url}/orders",
                json={"amount": minor_amount, "currency": currency, "receipt": receipt},
                auth=(self.key_id, self._secret()),
                timeout=self.timeout,
            )
            response.raise_for_status()
            gateway_order = GatewayOrderDTO.model_validate(response.json())
        except requests.RequestException as exc:
            log.error("payment.gateway_unreachable", error=str(exc))
            raise UpstreamUnavailable(f"Payment gateway unavailable: {exc}") from exc
        except (ValueError, PydanticValidationError) as exc:
            log.error("payment.gateway_bad_response", error=str(exc))
            raise UpstreamUnavailable("Payment gateway returned a malformed order.") from exc

        log.info("payment.gateway_order_created", gateway_order_id=gateway_order.id)
        return gateway_order

    # ------------------------------------------------------------------
    # Signatures
    # ------------------------------------------------------------------

    def expected_signature(self, gateway_order_id: str, gateway_payment_id: str) -> str:
        """Hex HMAC-SHA256 of ``"{gateway_order_id}|{gateway_payment_id}"``."""
        message = f"{gateway_order_id}|{gateway_payment_id}".encode()
        return hmac.new(self._secret().encode(), message, hashlib.sha256).hexdigest()

    def signature_matches(
        self, gateway_order_id: str, gateway_payment_id: str, signature: str
    ) -> bool:
        """Constant-time comparison against the expected signature."""
        expected = self.expected_signature(gateway_order_id, gateway_payment_id)
        return hmac.compare_digest(expected.encode(), (signature or "").encode())

    def _secret(self) -> str:
        if not self.key_secret:
            raise ImproperlyConfigured("PAYMENT_GATEWAY_KEY_SECRET is not set.")
        return self.key_secret
