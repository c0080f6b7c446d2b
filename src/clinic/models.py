"""Clinical records read by the incentive engine.

These rows are owned by the appointment / visit workflow. The engine only
reads them, except for the follow-up task status it approves when a
follow-up commission is issued.
"""
from __future__ import annotations

from django.conf import settings
from django.db import models

from core.models import TimeStampedModel


class Hospital(TimeStampedModel):
    name = models.CharField("nom", max_length=200, unique=True)
    city = models.CharField("ville", max_length=120, blank=True)
    is_active = models.BooleanField("actif", default=True)

    class Meta:
        verbose_name = "hopital"
        verbose_name_plural = "hopitaux"
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class Speciality(TimeStampedModel):
    name = models.CharField("nom", max_length=150, unique=True)
    is_active = models.BooleanField("actif", default=True)

    class Meta:
        verbose_name = "specialite"
        verbose_name_plural = "specialites"
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class Patient(TimeStampedModel):
    full_name = models.CharField("nom complet", max_length=200)
    phone = models.CharField("telephone", max_length=30, blank=True)
    sales_person = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_patients",
        verbose_name="commercial",
    )

    class Meta:
        verbose_name = "patient"
        verbose_name_plural = "patients"
        ordering = ["full_name"]

    def __str__(self) -> str:
        return self.full_name


class FollowUpTask(TimeStampedModel):
    """Call-back task assigned to a coordinator after a visit."""

    class Status(models.TextChoices):
        PENDING = "pending", "En attente"
        IN_PROGRESS = "in_progress", "En cours"
        APPROVED = "approved", "Approuvee"
        REJECTED = "rejected", "Rejetee"
        CANCELLED = "cancelled", "Annulee"

    patient = models.ForeignKey(
        Patient,
        on_delete=models.CASCADE,
        related_name="follow_up_tasks",
    )
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="follow_up_tasks",
        verbose_name="assigne a",
    )
    status = models.CharField(
        "statut",
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )
    notes = models.TextField("notes", blank=True)

    class Meta:
        verbose_name = "tache de suivi"
        verbose_name_plural = "taches de suivi"

    def __str__(self) -> str:
        return f"Suivi {self.patient} ({self.get_status_display()})"


class Appointment(TimeStampedModel):
    class Status(models.TextChoices):
        SCHEDULED = "scheduled", "Planifie"
        ASSIGNED = "assigned", "Assigne"
        COMPLETED = "completed", "Termine"
        CANCELLED = "cancelled", "Annule"
        NO_SHOW = "no_show", "Absent"

    patient = models.ForeignKey(
        Patient,
        on_delete=models.CASCADE,
        related_name="appointments",
    )
    hospital = models.ForeignKey(
        Hospital,
        on_delete=models.PROTECT,
        related_name="appointments",
    )
    sales_person = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="sales_appointments",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_appointments",
    )
    created_from_follow_up_task = models.ForeignKey(
        FollowUpTask,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="appointments",
        verbose_name="cree depuis la tache de suivi",
    )
    scheduled_date = models.DateField("date prevue")
    status = models.CharField(
        "statut",
        max_length=20,
        choices=Status.choices,
        default=Status.SCHEDULED,
    )
    specialities = models.ManyToManyField(
        Speciality,
        blank=True,
        related_name="appointments",
    )
    # Older appointments stored a comma separated list instead of relations.
    speciality = models.CharField("specialite (ancien format)", max_length=255, blank=True)

    class Meta:
        verbose_name = "rendez-vous"
        verbose_name_plural = "rendez-vous"
        ordering = ["-scheduled_date"]

    def __str__(self) -> str:
        return f"{self.patient} @ {self.hospital} ({self.scheduled_date})"

    @property
    def legacy_speciality_names(self) -> list[str]:
        return [name.strip() for name in self.speciality.split(",") if name.strip()]

    def has_speciality(self) -> bool:
        return bool(self.legacy_speciality_names) or self.specialities.exists()


class Visit(TimeStampedModel):
    patient = models.ForeignKey(
        Patient,
        on_delete=models.CASCADE,
        related_name="visits",
    )
    hospital = models.ForeignKey(
        Hospital,
        on_delete=models.PROTECT,
        related_name="visits",
    )
    appointment = models.OneToOneField(
        Appointment,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="visit",
    )
    visit_date = models.DateField("date de visite", db_index=True)
    coordinator = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="coordinated_visits",
    )
    sales_person = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="sales_visits",
    )

    class Meta:
        verbose_name = "visite"
        verbose_name_plural = "visites"
        ordering = ["visit_date", "created_at"]
        indexes = [
            models.Index(fields=["patient", "hospital"]),
        ]

    def __str__(self) -> str:
        return f"{self.patient} @ {self.hospital} ({self.visit_date})"


class VisitSpeciality(TimeStampedModel):
    """A speciality seen during a visit.

    ``APPOINTED`` rows are copied from the appointment; ``ADDED`` rows are
    extra specialities the coordinator sold during the visit.
    """

    class Kind(models.TextChoices):
        APPOINTED = "appointed", "Prevue"
        ADDED = "added", "Ajoutee"

    visit = models.ForeignKey(
        Visit,
        on_delete=models.CASCADE,
        related_name="visit_specialities",
    )
    speciality = models.ForeignKey(
        Speciality,
        on_delete=models.PROTECT,
        related_name="visit_specialities",
    )
    kind = models.CharField(
        "type",
        max_length=20,
        choices=Kind.choices,
        default=Kind.ADDED,
    )
    details = models.TextField("details", blank=True)

    class Meta:
        verbose_name = "specialite de visite"
        verbose_name_plural = "specialites de visite"
        ordering = ["created_at"]

    def __str__(self) -> str:
        return f"{self.speciality} ({self.visit_id})"


class Nomination(TimeStampedModel):
    """A referral brought in by a coordinator."""

    class Status(models.TextChoices):
        NEW = "new", "Nouvelle"
        CONTACTED = "contacted", "Contactee"
        CONVERTED = "converted", "Convertie"
        REJECTED = "rejected", "Rejetee"

    coordinator = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="nominations",
    )
    nominated_patient_name = models.CharField("nom du patient recommande", max_length=200)
    nominated_patient_phone = models.CharField("telephone", max_length=30, blank=True)
    status = models.CharField(
        "statut",
        max_length=20,
        choices=Status.choices,
        default=Status.NEW,
    )
    converted_to_patient = models.ForeignKey(
        Patient,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="nominations",
    )

    class Meta:
        verbose_name = "recommandation"
        verbose_name_plural = "recommandations"

    def __str__(self) -> str:
        return self.nominated_patient_name
