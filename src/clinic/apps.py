"""App config for the clinical records read by the incentive engine."""
from django.apps import AppConfig


class ClinicConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "clinic"
    verbose_name = "Dossiers cliniques"
