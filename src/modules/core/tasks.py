"""Celery tasks of the core module."""

from __future__ import annotations

import structlog
from celery import shared_task
from django.conf import settings
from django.db import transaction
from django.db.models import Q

from modules.core.models import EventStatus, OutboxEvent
from shared.domain.events import DomainEvent
from shared.infrastructure.bus import event_bus

logger = structlog.get_logger(__name__)


@shared_task(name="core.relay_outbox_events")
def relay_outbox_events(batch_size: int | None = None) -> dict:
    """Publish pending (and retryable failed) outbox events on the event bus.

    Rows are locked with ``SKIP LOCKED`` so concurrent relays never publish
    the same event twice.
    """
    batch_size = batch_size or settings.OUTBOX_RELAY_BATCH_SIZE
    published = failed = 0

    with transaction.atomic():
        events = list(
            OutboxEvent.objects.select_for_update(skip_locked=True)
            .filter(
                Q(status=EventStatus.PENDING)
                | Q(
                    status=EventStatus.FAILED,
                    retry_count__lt=settings.OUTBOX_MAX_RETRIES,
                )
            )
            .order_by("created_at")[:batch_size]
        )
        for record in events:
            log = logger.bind(
                outbox_id=str(record.id),
                event_type=record.event_type,
                aggregate_id=record.aggregate_id,
            )
            try:
                event = DomainEvent.from_payload(record.event_type, record.payload)
                event_bus.publish(event)
            except Exception as exc:
                record.mark_as_failed(str(exc))
                failed += 1
                log.error(
                    "outbox.publish_failed",
                    error=str(exc),
                    retry_count=record.retry_count,
                )
                continue
            record.mark_as_published()
            published += 1

    if published or failed:
        logger.info("outbox.relayed", published=published, failed=failed)
    return {"published": published, "failed": failed}
