"""Celery tasks for the teams module."""
from __future__ import annotations

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def refresh_team_targets():
    """Scheduled hourly. Rewrite every active team target from its members' progress."""
    from teams.aggregator import TeamAggregator
    from teams.models import Team

    count = 0
    for team in Team.objects.filter(is_active=True).select_related("leader"):
        aggregator = TeamAggregator(team)
        for team_target in team.targets.filter(is_active=True):
            try:
                aggregator.refresh_target(team_target)
                count += 1
            except Exception as exc:
                logger.warning("team target %s refresh failed: %s", team_target.pk, exc, exc_info=True)
    return f"{count} team targets refreshed"
