from django.apps import AppConfig


class RidersConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.riders"
    label = "riders"

    def ready(self) -> None:
        from modules.riders.events import RiderLocationUpdated, RiderStatusChanged
        from modules.riders.handlers import (
            rider_location_updated_handler,
            rider_status_changed_handler,
        )
        from shared.infrastructure.bus import event_bus

        event_bus.subscribe(RiderLocationUpdated, rider_location_updated_handler)
        event_bus.subscribe(RiderStatusChanged, rider_status_changed_handler)
