"""Outbox helpers shared by the Django repositories."""

from __future__ import annotations

from typing import Iterable, List

import structlog
from django.db import transaction

from modules.core.models import OutboxEvent
from shared.domain.events import DomainEvent, DomainEventMixin

logger = structlog.get_logger(__name__)


@transaction.atomic
def write_events(events: Iterable[DomainEvent], topic: str) -> List[OutboxEvent]:
    """Persist *events* as ``PENDING`` outbox rows in the current transaction."""
    records = [
        OutboxEvent.objects.create(
            event_type=event.event_name,
            aggregate_id=str(event.aggregate_id),
            payload=event.to_payload(),
            topic=topic,
        )
        for event in events
    ]
    return records


def flush_domain_events(aggregate: DomainEventMixin, topic: str) -> int:
    """Move the aggregate's collected events into the outbox and clear them."""
    events = aggregate.domain_events
    if not events:
        return 0
    write_events(events, topic)
    aggregate.clear_domain_events()
    logger.debug("outbox.events_written", topic=topic, event_count=len(events))
    return len(events)
