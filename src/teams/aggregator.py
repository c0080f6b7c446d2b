"""Team rollup: a team target's value is the sum of its people's live progress."""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import date

from core.db import with_db_retry
from targets.calculators import compute_progress
from targets.models import Target

logger = logging.getLogger(__name__)


@dataclass
class TeamMemberProgress:
    employee_id: str
    employee_name: str
    role: str  # "leader" | "member"
    category: str
    progress: int
    target_value: int
    window_start: date
    window_end: date

    def as_dict(self) -> dict:
        return asdict(self)


class TeamAggregator:
    """Compute and persist team target rollups for one team."""

    def __init__(self, team) -> None:
        self.team = team

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def participants(self) -> list[tuple[object, str]]:
        """Leader first, then active members."""
        people = [(self.team.leader, "leader")]
        for membership in self.team.active_members():
            if membership.employee_id == self.team.leader_id:
                continue
            people.append((membership.employee, "member"))
        return people

    def members_progress(
        self,
        team_target: Target,
        window_start: date | None = None,
        window_end: date | None = None,
    ) -> list[TeamMemberProgress]:
        """Live per-person breakdown of ``team_target``.

        Each person is measured over their own individual target's window for
        the same category and type when they have one, else over the team
        target's window. An explicit window overrides both.
        """
        return with_db_retry(
            lambda: self._measure(team_target, window_start, window_end),
            "team_members_progress",
        )

    def compute(self, team_target: Target, window_start=None, window_end=None) -> int:
        return sum(row.progress for row in self.members_progress(team_target, window_start, window_end))

    def refresh_target(self, team_target: Target) -> Target:
        """Recompute the rollup over each person's own window and persist it."""
        from targets.engine import TargetProgressEngine

        value = self.compute(team_target)
        TargetProgressEngine().write_value(team_target, value)
        logger.debug("Team %s %s rollup=%s", self.team.pk, team_target.category, value)
        return team_target

    def _measure(self, team_target, window_start, window_end) -> list[TeamMemberProgress]:
        rows = []
        for employee, role in self.participants():
            individual = self._individual_target(employee, team_target)
            start, end = self._window(team_target, individual, window_start, window_end)
            value = compute_progress(
                employee,
                team_target.category,
                start,
                end,
                target=individual,
            )
            rows.append(
                TeamMemberProgress(
                    employee_id=str(employee.pk),
                    employee_name=employee.get_full_name() or employee.email,
                    role=role,
                    category=team_target.category,
                    progress=value,
                    target_value=individual.target_value if individual else 0,
                    window_start=start,
                    window_end=end,
                )
            )
        return rows

    def category_progress(self, category: str, window_start=None, window_end=None) -> dict:
        """Progress summary of the team's active target for ``category``.

        Without an explicit window the computed value is written back onto
        the team target.
        """
        team_target = self.active_target(category)
        if team_target is None:
            return {"category": category, "current_value": 0, "target_value": 0, "progress": 0.0}

        if window_start is None and window_end is None:
            self.refresh_target(team_target)
            value = team_target.current_value
        else:
            value = self.compute(team_target, window_start, window_end)

        return {
            "category": category,
            "target_id": str(team_target.pk),
            "current_value": value,
            "target_value": team_target.target_value,
            "progress": round(value / team_target.target_value * 100, 2) if team_target.target_value else 0.0,
            "completed_at": team_target.completed_at,
        }

    def active_target(self, category: str) -> Target | None:
        return (
            self.team.targets.filter(category=category, is_active=True)
            .order_by("-start_date")
            .first()
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _individual_target(employee, team_target: Target) -> Target | None:
        return (
            Target.objects.filter(
                assigned_to=employee,
                category=team_target.category,
                type=team_target.type,
                is_active=True,
                team__isnull=True,
                start_date__lte=team_target.end_date,
                end_date__gte=team_target.start_date,
            )
            .order_by("start_date")
            .first()
        )

    @staticmethod
    def _window(team_target, individual, window_start, window_end) -> tuple[date, date]:
        if window_start is not None or window_end is not None:
            return window_start or team_target.start_date, window_end or team_target.end_date
        if individual is not None:
            return individual.start_date, individual.end_date
        return team_target.start_date, team_target.end_date
