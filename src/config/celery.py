"""Celery configuration."""
import os

from celery import Celery
from celery.schedules import crontab

os.environ.setdefault(
    "DJANGO_SETTINGS_MODULE",
    os.getenv("DJANGO_SETTINGS_MODULE", "config.settings.dev"),
)

app = Celery("clinic")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()

# Beat schedule
app.conf.beat_schedule = {
    "targets-auto-reset": {
        "task": "targets.tasks.auto_reset_targets",
        "schedule": crontab(minute=5, hour=0),  # Daily just after midnight
    },
    "targets-recompute-active": {
        "task": "targets.tasks.recompute_active_targets",
        "schedule": crontab(minute=0),  # Every hour
    },
    "teams-refresh-targets": {
        "task": "teams.tasks.refresh_team_targets",
        "schedule": crontab(minute=10),  # Every hour, after the recompute
    },
    "commissions-backfill": {
        "task": "commissions.tasks.backfill_missing_commissions",
        "schedule": crontab(minute="*/15"),  # Every 15 minutes
    },
}
