"""Signals: turn clinical events into commissions and commissions into target progress."""
from __future__ import annotations

import logging

from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from clinic.events import visit_recorded, visit_speciality_added

logger = logging.getLogger(__name__)


@receiver(visit_recorded)
def on_visit_recorded(sender, fact, **kwargs):
    from commissions.rules import process_visit

    process_visit(fact)


@receiver(visit_speciality_added)
def on_visit_speciality_added(sender, visit_speciality, **kwargs):
    from commissions.rules import process_visit_speciality

    process_visit_speciality(visit_speciality)


def _queue_increment(commission_id) -> None:
    def _dispatch() -> None:
        try:
            from commissions.tasks import increment_targets_for_commission

            increment_targets_for_commission.delay(commission_id=str(commission_id))
            return
        except Exception as exc:
            logger.warning("target increment dispatch failed: %s", exc, exc_info=True)

        # Workers unavailable: keep targets moving in-process.
        try:
            from commissions.models import Commission
            from commissions.tasks import apply_commission_increments

            commission = Commission.objects.select_related("employee").filter(pk=commission_id).first()
            if commission is not None:
                apply_commission_increments(commission)
        except Exception as exc:
            logger.error("target increment failed for commission=%s: %s", commission_id, exc, exc_info=True)

    # Run after commit so a rolled back ledger write never moves a target.
    try:
        transaction.on_commit(_dispatch)
    except Exception:
        _dispatch()


@receiver(post_save, sender="commissions.Commission")
def on_commission_recorded(sender, instance, created, **kwargs):
    from commissions.rules import CATEGORY_BY_TYPE

    if not created or instance.type not in CATEGORY_BY_TYPE:
        return
    _queue_increment(instance.pk)
