"""Celery tasks for the targets module."""
from __future__ import annotations

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, default_retry_delay=30)
def auto_reset_targets(self):
    """Scheduled daily (Celery Beat). Retire targets whose window has ended."""
    from targets.services import auto_reset_targets as sweep

    try:
        changes = sweep()
    except Exception as exc:
        logger.exception("auto_reset_targets failed: %s", exc)
        raise self.retry(exc=exc)
    if changes:
        logger.info("auto_reset_targets: %d targets deactivated", len(changes))
    return f"{len(changes)} targets deactivated"


@shared_task
def recompute_active_targets():
    """Scheduled hourly. Overwrite incremented values that drifted from the sources."""
    from targets.engine import TargetProgressEngine
    from targets.models import Target

    engine = TargetProgressEngine()
    count = failed = 0
    targets = Target.objects.filter(is_active=True, team__isnull=True).select_related("assigned_to")
    for target in targets.iterator():
        try:
            engine.recompute(target, refresh_team=False)
            count += 1
        except Exception as exc:
            failed += 1
            logger.warning("recompute failed for target=%s: %s", target.pk, exc, exc_info=True)
    logger.info("recompute_active_targets: %d recomputed, %d failed", count, failed)
    return f"{count} targets recomputed"
