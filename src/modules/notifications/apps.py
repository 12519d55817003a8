from django.apps import AppConfig


class NotificationsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.notifications"
    label = "notifications"

    def ready(self) -> None:
        from modules.notifications.events import NotificationCreated
        from modules.notifications.handlers import notification_created_handler
        from shared.infrastructure.bus import event_bus

        event_bus.subscribe(NotificationCreated, notification_created_handler)
