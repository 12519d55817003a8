from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.payments"
    label = "payments"

    def ready(self) -> None:
        from modules.payments.events import (
            PaymentFailed,
            PaymentInitiated,
            PaymentSettled,
        )
        from modules.payments.handlers import (
            payment_failed_handler,
            payment_initiated_handler,
            payment_settled_handler,
        )
        from shared.infrastructure.bus import event_bus

        event_bus.subscribe(PaymentInitiated, payment_initiated_handler)
        event_bus.subscribe(PaymentSettled, payment_settled_handler)
        event_bus.subscribe(PaymentFailed, payment_failed_handler)
