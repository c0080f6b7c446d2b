"""Models for recurring performance targets."""
from __future__ import annotations

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from core.models import TimeStampedModel


class Target(TimeStampedModel):
    """A windowed numeric goal for one employee, or for a team.

    Team targets are owned by the team leader and carry ``team``; their
    ``current_value`` is the rollup of the leader and every active member.
    """

    class Type(models.TextChoices):
        DAILY = "daily", "Quotidien"
        WEEKLY = "weekly", "Hebdomadaire"
        MONTHLY = "monthly", "Mensuel"

    class Category(models.TextChoices):
        NEW_PATIENTS = "new_patients", "Nouveaux patients"
        FOLLOW_UP_PATIENTS = "follow_up_patients", "Patients suivis"
        SPECIALTIES = "specialties", "Specialites"
        NOMINATIONS = "nominations", "Recommandations"
        CUSTOM = "custom", "Personnalise"

    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="targets",
        verbose_name="assigne a",
    )
    assigned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_targets",
        verbose_name="assigne par",
    )
    team = models.ForeignKey(
        "teams.Team",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="targets",
        verbose_name="equipe",
    )
    type = models.CharField("type", max_length=10, choices=Type.choices)
    category = models.CharField("categorie", max_length=30, choices=Category.choices)
    description = models.TextField("description", blank=True)
    target_value = models.PositiveIntegerField(
        "valeur cible",
        validators=[MinValueValidator(1)],
    )
    current_value = models.PositiveIntegerField("valeur actuelle", default=0)
    start_date = models.DateField("debut")
    end_date = models.DateField("fin")
    is_active = models.BooleanField("actif", default=True, db_index=True)
    completed_at = models.DateTimeField("atteint le", null=True, blank=True)

    class Meta:
        verbose_name = "objectif"
        verbose_name_plural = "objectifs"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["assigned_to", "category", "is_active"]),
            models.Index(fields=["team", "category"]),
            models.Index(fields=["end_date", "is_active"]),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(end_date__gte=F("start_date")), name="target_window_ordered"),
            models.CheckConstraint(condition=Q(target_value__gte=1), name="target_value_positive"),
        ]

    def __str__(self) -> str:
        return f"{self.get_category_display()} {self.get_type_display()} - {self.assigned_to}"

    def clean(self) -> None:
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValidationError("La date de fin doit etre posterieure ou egale a la date de debut.")
        if self.target_value is not None and self.target_value < 1:
            raise ValidationError("La valeur cible doit etre au moins 1.")

    @property
    def is_team_target(self) -> bool:
        return self.team_id is not None

    @property
    def progress_percent(self) -> float:
        if not self.target_value:
            return 0.0
        return round(self.current_value / self.target_value * 100, 2)

    def is_overdue(self, today=None) -> bool:
        today = today or timezone.localdate()
        return self.is_active and self.completed_at is None and today > self.end_date

    def apply_value(self, value: int, *, now=None) -> list[str]:
        """Set ``current_value`` and mark completion once reached.

        Completion is never cleared. Returns the changed field names.
        """
        changed = []
        if value != self.current_value:
            self.current_value = value
            changed.append("current_value")
        if self.completed_at is None and self.current_value >= self.target_value:
            self.completed_at = now or timezone.now()
            changed.append("completed_at")
        return changed


class TargetProgress(TimeStampedModel):
    """Per-day progress bucket of a target, used for trend charts."""

    target = models.ForeignKey(
        Target,
        on_delete=models.CASCADE,
        related_name="progress_entries",
    )
    date = models.DateField("jour")
    progress = models.IntegerField("progression", default=0)
    notes = models.TextField("notes", blank=True)

    class Meta:
        verbose_name = "progression journaliere"
        verbose_name_plural = "progressions journalieres"
        ordering = ["-date"]
        constraints = [
            models.UniqueConstraint(
                fields=["target", "date"],
                name="uniq_target_progress_day",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.target_id} {self.date}: {self.progress}"
