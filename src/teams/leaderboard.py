"""Monthly team analysis and ranking."""
from __future__ import annotations

import logging
from calendar import monthrange
from datetime import date

from django.utils import timezone

from core.exceptions import ValidationError

logger = logging.getLogger(__name__)


def _status(completion_rate: float) -> str:
    if completion_rate >= 100:
        return "completed"
    if completion_rate > 0:
        return "in_progress"
    return "not_started"


class TeamLeaderboardEngine:
    """Rank active teams by completion over a calendar month."""

    def __init__(self, today: date | None = None) -> None:
        self.today = today or timezone.localdate()

    def month_window(self, month: int | None = None, year: int | None = None) -> tuple[date, date]:
        month = month or self.today.month
        year = year or self.today.year
        if not 1 <= int(month) <= 12:
            raise ValidationError("Mois invalide.", details={"month": month})
        last_day = monthrange(int(year), int(month))[1]
        return date(int(year), int(month), 1), date(int(year), int(month), last_day)

    def analyse(self, month: int | None = None, year: int | None = None) -> dict:
        """One entry per team and active target, sorted by completion rate."""
        from teams.aggregator import TeamAggregator
        from teams.models import Team

        start, end = self.month_window(month, year)
        teams = (
            Team.objects.filter(is_active=True)
            .select_related("leader")
            .prefetch_related("memberships__employee")
            .order_by("name")
        )

        entries = []
        total_members = 0
        for team in teams:
            aggregator = TeamAggregator(team)
            participants = aggregator.participants()
            total_members += len(participants)
            base = {
                "team_id": str(team.pk),
                "team_name": team.name,
                "leader_name": team.leader_display_name,
                "total_members": len(participants),
                "sales_count": sum(1 for person, _ in participants if person.has_role("SALES")),
                "coordinator_count": sum(1 for person, _ in participants if person.has_role("COORDINATOR")),
            }

            team_targets = list(team.targets.filter(is_active=True).order_by("created_at"))
            if not team_targets:
                entries.append(
                    {
                        **base,
                        "target_category": "N/A",
                        "target_value": 0,
                        "current_value": 0,
                        "completion_rate": 0.0,
                        "average_progress": 0.0,
                        "status": "not_started",
                    }
                )
                continue

            for team_target in team_targets:
                rows = aggregator.members_progress(team_target, start, end)
                current = sum(row.progress for row in rows)
                rate = (
                    min(100.0, round(current / team_target.target_value * 100, 2))
                    if team_target.target_value
                    else 0.0
                )
                average = round(current / len(rows), 2) if rows else 0.0
                entries.append(
                    {
                        **base,
                        "target_category": team_target.category,
                        "target_value": team_target.target_value,
                        "current_value": current,
                        "completion_rate": rate,
                        "average_progress": average,
                        "status": _status(rate),
                    }
                )

        entries.sort(key=lambda e: e["completion_rate"], reverse=True)
        for rank, entry in enumerate(entries, start=1):
            entry["rank"] = rank

        total_target_value = sum(e["target_value"] for e in entries)
        total_current_value = sum(e["current_value"] for e in entries)
        summary = {
            "total_teams": len(teams),
            "total_members": total_members,
            "total_target_value": total_target_value,
            "total_current_value": total_current_value,
            "overall_completion_rate": (
                round(total_current_value / total_target_value * 100, 2) if total_target_value else 0.0
            ),
            "completed_teams": sum(1 for e in entries if e["status"] == "completed"),
            "in_progress_teams": sum(1 for e in entries if e["status"] == "in_progress"),
            "not_started_teams": sum(1 for e in entries if e["status"] == "not_started"),
        }
        logger.debug("Team analysis %s..%s: %s entries", start, end, len(entries))
        return {
            "period": {"start": start, "end": end},
            "teams": entries,
            "summary": summary,
        }
