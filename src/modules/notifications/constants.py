"""Notification domain constants."""

from django.db import models


class NotificationType(models.TextChoices):
    NEW_ORDER = "new_order", "New order"
    ORDER_UPDATE = "order_update", "Order update"
    OTHER = "other", "Other"


class NotificationStatus(models.TextChoices):
    UNREAD = "unread", "Unread"
    READ = "read", "Read"
