"""Celery tasks for the Assignments bounded context."""

from __future__ import annotations

import structlog
from celery import shared_task

logger = structlog.get_logger(__name__)


@shared_task(name="assignments.expire_stale_proposals")
def expire_stale_proposals() -> int:
    """Release every proposal whose acceptance window has elapsed."""
    from config.container import assignment_coordinator

    released = assignment_coordinator().expire_stale_proposals()
    logger.info("task.proposals_expired", count=released)
    return released
