"""Development settings."""
from .base import *  # noqa: F401,F403

DEBUG = True

# CELERY_TASK_ALWAYS_EAGER=true runs tasks without a worker.
CELERY_TASK_ALWAYS_EAGER = env.bool("CELERY_TASK_ALWAYS_EAGER", default=False)  # noqa: F405

# Logging
LOGGING["root"]["level"] = "DEBUG"  # noqa: F405
