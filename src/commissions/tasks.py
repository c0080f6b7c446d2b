"""Celery tasks for the commissions module."""
from __future__ import annotations

import logging

from celery import shared_task
from django.conf import settings

logger = logging.getLogger(__name__)


def apply_commission_increments(commission) -> list:
    """Bump the payee's targets for ``commission`` and refresh their team rollups."""
    from commissions.rules import CATEGORY_BY_TYPE
    from targets.engine import TargetProgressEngine
    from targets.models import Target
    from targets.services import increment_target

    category = CATEGORY_BY_TYPE.get(commission.type)
    if category is None:
        return []

    touched = increment_target(category, commission.employee, commission.period)
    engine = TargetProgressEngine()
    for target_type in Target.Type.values:
        engine.refresh_team_rollup(commission.employee, category, target_type)
    return touched


@shared_task(bind=True, max_retries=3, default_retry_delay=30)
def increment_targets_for_commission(self, *, commission_id: str):
    """Fast path run after a ledger write is committed."""
    from commissions.models import Commission
    from core.exceptions import TransientStoreError

    commission = Commission.objects.select_related("employee").filter(pk=commission_id).first()
    if commission is None:
        logger.warning("increment_targets_for_commission: commission %s not found", commission_id)
        return "0 targets incremented"
    try:
        touched = apply_commission_increments(commission)
    except TransientStoreError as exc:
        logger.warning("increment_targets_for_commission will retry: %s", exc)
        raise self.retry(exc=exc)
    return f"{len(touched)} targets incremented"


@shared_task(bind=True, max_retries=3, default_retry_delay=30)
def backfill_missing_commissions(self):
    """Scheduled (Celery Beat). Re-derive missed commissions from visits."""
    from commissions.rules import backfill_missing_commissions as backfill

    if not getattr(settings, "COMMISSION_BACKFILL_ENABLED", True):
        logger.debug("backfill_missing_commissions: disabled")
        return "backfill disabled"
    try:
        created = backfill()
    except Exception as exc:
        logger.exception("backfill_missing_commissions failed: %s", exc)
        raise self.retry(exc=exc)
    return f"{sum(created.values())} commissions created"
