"""Sales / coordination teams."""
from __future__ import annotations

from django.conf import settings
from django.db import models

from core.models import TimeStampedModel


class TeamManager(models.Manager):
    def active_for_employee(self, employee):
        """Active team the employee leads, else the one they are a member of."""
        employee_id = getattr(employee, "pk", employee)
        team = self.filter(leader_id=employee_id, is_active=True).order_by("created_at").first()
        if team is not None:
            return team
        return (
            self.filter(
                is_active=True,
                memberships__employee_id=employee_id,
                memberships__is_active=True,
            )
            .order_by("created_at")
            .first()
        )


class Team(TimeStampedModel):
    name = models.CharField("nom", max_length=120, unique=True)
    leader = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="led_teams",
        verbose_name="chef d'equipe",
    )
    is_active = models.BooleanField("active", default=True, db_index=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    objects = TeamManager()

    class Meta:
        verbose_name = "equipe"
        verbose_name_plural = "equipes"
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name

    @property
    def leader_display_name(self) -> str:
        """Leader name as shown while leading: "<Team Name> <Full Name>"."""
        full_name = self.leader.get_full_name() or self.leader.email
        if not self.is_active:
            return full_name
        return f"{self.name} {full_name}"

    def active_members(self):
        return self.memberships.filter(is_active=True).select_related("employee")


class TeamMember(models.Model):
    team = models.ForeignKey(
        Team,
        on_delete=models.CASCADE,
        related_name="memberships",
    )
    employee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="team_memberships",
        verbose_name="employe",
    )
    is_active = models.BooleanField("actif", default=True)
    joined_at = models.DateTimeField("rejoint le", auto_now_add=True)

    class Meta:
        verbose_name = "membre d'equipe"
        verbose_name_plural = "membres d'equipe"
        ordering = ["joined_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["team", "employee"],
                name="uniq_team_member",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.employee} ({self.team})"
