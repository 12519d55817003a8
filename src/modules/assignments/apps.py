from django.apps import AppConfig


class AssignmentsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.assignments"
    label = "assignments"

    def ready(self) -> None:
        from modules.assignments.events import (
            AssignmentReleased,
            OrderEscalated,
            RiderAssigned,
        )
        from modules.assignments.handlers import (
            assignment_released_handler,
            order_escalated_handler,
            rider_assigned_handler,
        )
        from shared.infrastructure.bus import event_bus

        event_bus.subscribe(RiderAssigned, rider_assigned_handler)
        event_bus.subscribe(AssignmentReleased, assignment_released_handler)
        event_bus.subscribe(OrderEscalated, order_escalated_handler)
