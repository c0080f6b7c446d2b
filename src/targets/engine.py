"""Target progress engine.

Two paths maintain ``Target.current_value``:

- the increment path (:meth:`TargetProgressEngine.increment`) bumps matching
  targets right after a commission is recorded;
- the recompute path (:meth:`TargetProgressEngine.recompute`) re-derives the
  value from the ledger or the clinical history and overwrites drift.

Recompute is idempotent and is the correctness backstop. Completion
(``completed_at``) is set once and never cleared by either path.
"""
from __future__ import annotations

import logging
from datetime import date

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from core.db import with_db_retry
from targets.calculators import calculator_for
from targets.models import Target, TargetProgress

logger = logging.getLogger(__name__)


class TargetProgressEngine:
    """Recompute or increment targets."""

    def __init__(self, today: date | None = None) -> None:
        self.today = today or timezone.localdate()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def recompute(self, target: Target, *, refresh_team: bool = True) -> Target:
        """Re-derive ``current_value`` and persist it if it changed.

        Team targets are delegated to the team aggregator. For individual
        targets, the team rollup the employee contributes to is refreshed
        afterwards on a best-effort basis.
        """
        if target.is_team_target:
            from teams.aggregator import TeamAggregator

            return TeamAggregator(target.team).refresh_target(target)

        calculator = calculator_for(target.category, target.assigned_to)
        if calculator.recomputes:
            value = with_db_retry(
                lambda: calculator.compute(
                    target.assigned_to,
                    target.start_date,
                    target.end_date,
                    target=target,
                ),
                "calculate_target_progress",
            )
            self.write_value(target, value)

        if refresh_team:
            self.refresh_team_rollup(target.assigned_to, target.category, target.type)
        return target

    def recompute_many(self, targets) -> int:
        """Recompute an iterable of targets. Returns the number of targets processed."""
        count = 0
        for target in targets:
            self.recompute(target)
            count += 1
        return count

    def increment(self, category: str, actor, day: date | None = None) -> list[tuple[Target, TargetProgress]]:
        """Bump every active individual target of ``actor`` covering ``day``."""
        day = day or self.today
        matches = list(
            Target.objects.filter(
                assigned_to=actor,
                category=category,
                is_active=True,
                team__isnull=True,
                start_date__lte=day,
                end_date__gte=day,
            )
        )
        if not matches:
            logger.debug(
                "No active %s target for employee=%s on %s", category, getattr(actor, "pk", actor), day
            )
            return []

        results = []
        for target in matches:
            results.append(with_db_retry(lambda t=target: self._increment_one(t, day), "increment_target"))
        return results

    def write_value(self, target: Target, value: int) -> Target:
        changed = target.apply_value(value)
        if changed:
            with_db_retry(
                lambda: target.save(update_fields=[*changed, "updated_at"]),
                "save_target_progress",
            )
            logger.info(
                "Target %s %s -> %s%s",
                target.pk,
                target.category,
                target.current_value,
                " (completed)" if "completed_at" in changed else "",
            )
        return target

    def refresh_team_rollup(self, employee, category: str, target_type: str) -> Target | None:
        """Refresh the team target matching the employee's category and type.

        Leadership takes precedence over membership. Failures are logged and
        swallowed.
        """
        from teams.aggregator import TeamAggregator
        from teams.models import Team

        try:
            team = with_db_retry(lambda: Team.objects.active_for_employee(employee), "active_team_lookup")
            if team is None:
                return None
            team_target = team.targets.filter(
                category=category,
                type=target_type,
                is_active=True,
            ).first()
            if team_target is None:
                return None
            return TeamAggregator(team).refresh_target(team_target)
        except Exception as exc:
            logger.warning("team rollup refresh failed for employee=%s: %s", getattr(employee, "pk", employee), exc, exc_info=True)
            return None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _increment_one(self, target: Target, day: date) -> tuple[Target, TargetProgress]:
        with transaction.atomic():
            progress, created = TargetProgress.objects.get_or_create(
                target=target,
                date=day,
                defaults={"progress": 1},
            )
            if not created:
                TargetProgress.objects.filter(pk=progress.pk).update(progress=F("progress") + 1)
                progress.refresh_from_db(fields=["progress"])

            Target.objects.filter(pk=target.pk).update(current_value=F("current_value") + 1)
            target.refresh_from_db(fields=["current_value", "completed_at"])
            if target.completed_at is None and target.current_value >= target.target_value:
                target.completed_at = timezone.now()
                Target.objects.filter(pk=target.pk, completed_at__isnull=True).update(
                    completed_at=target.completed_at
                )
        return target, progress
