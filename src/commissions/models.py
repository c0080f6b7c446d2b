"""Append-only commission ledger."""
from __future__ import annotations

import re

from django.conf import settings
from django.db import models

from core.models import TimeStampedModel

VISIT_REFERENCE_RE = re.compile(r"\(Visit: ([0-9a-fA-F-]+)\)")


class Commission(TimeStampedModel):
    """One earned incentive.

    Rows are never updated in normal operation. ``dedup_key`` is the
    idempotency key of the rule that produced the row; it is null for
    manual adjustments.
    """

    class Type(models.TextChoices):
        PATIENT_CREATION = "PATIENT_CREATION", "Nouveau patient"
        FOLLOW_UP = "FOLLOW_UP", "Suivi"
        NOMINATION_CONVERSION = "NOMINATION_CONVERSION", "Conversion de recommandation"
        VISIT_SPECIALITY_ADDITION = "VISIT_SPECIALITY_ADDITION", "Ajout de specialite"
        MANUAL_ADJUSTMENT = "MANUAL_ADJUSTMENT", "Ajustement manuel"

    employee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="commissions",
        verbose_name="employe",
    )
    patient = models.ForeignKey(
        "clinic.Patient",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="commissions",
    )
    type = models.CharField(
        "type",
        max_length=40,
        choices=Type.choices,
        db_index=True,
    )
    amount = models.IntegerField("montant", default=1)
    period = models.DateField("periode", db_index=True)
    description = models.TextField("description", blank=True)
    visit = models.ForeignKey(
        "clinic.Visit",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="commissions",
    )
    hospital = models.ForeignKey(
        "clinic.Hospital",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="commissions",
    )
    visit_speciality = models.ForeignKey(
        "clinic.VisitSpeciality",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="commissions",
    )
    dedup_key = models.CharField(
        "cle d'unicite",
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        editable=False,
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    class Meta:
        verbose_name = "commission"
        verbose_name_plural = "commissions"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["employee", "type", "created_at"]),
            models.Index(fields=["patient", "type"]),
        ]

    def __str__(self) -> str:
        return f"{self.get_type_display()} - {self.employee} ({self.period})"

    @property
    def referenced_visit_id(self) -> str | None:
        """Visit id embedded in a follow-up description, if any."""
        if self.visit_id:
            return str(self.visit_id)
        match = VISIT_REFERENCE_RE.search(self.description or "")
        return match.group(1) if match else None
