"""Payment domain constants.

Payment methods are shared with the Order model and live in
``modules.orders.constants.PaymentMethod``.
"""

from django.db import models


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    SUCCESS = "success", "Success"
    FAILED = "failed", "Failed"


TERMINAL_PAYMENT_STATES: set[str] = {PaymentStatus.SUCCESS, PaymentStatus.FAILED}

# The gateway takes amounts in the currency's minor unit (paise for INR).
MINOR_UNITS_PER_MAJOR = 100
