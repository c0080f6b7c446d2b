"""Team management and team progress services."""
from __future__ import annotations

import logging
from typing import Iterable

from django.db import IntegrityError, transaction
from django.db.models import Q

from core.db import with_db_retry
from core.exceptions import NotFound, ValidationError
from teams.aggregator import TeamAggregator
from teams.models import Team, TeamMember

logger = logging.getLogger(__name__)

ELIGIBLE_ROLES = ("SALES", "COORDINATOR")


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def _is_eligible(employee) -> bool:
    return any(employee.has_role(role) for role in ELIGIBLE_ROLES)


def _ensure_eligible(employee, message: str) -> None:
    if not _is_eligible(employee):
        raise ValidationError(message, details={"employee": str(employee.pk)})


def _active_membership(employee, *, exclude_team=None):
    qs = TeamMember.objects.filter(employee=employee, is_active=True, team__is_active=True)
    if exclude_team is not None:
        qs = qs.exclude(team=exclude_team)
    return qs.select_related("team").first()


def _active_team_of(employee, *, exclude_team=None) -> Team | None:
    """Active team the employee leads or belongs to, if any."""
    qs = Team.objects.filter(is_active=True).filter(
        Q(leader=employee) | Q(memberships__employee=employee, memberships__is_active=True)
    )
    if exclude_team is not None:
        qs = qs.exclude(pk=exclude_team.pk)
    return with_db_retry(lambda: qs.distinct().order_by("created_at").first(), "active_team_lookup")


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------

@transaction.atomic
def create_team(*, name: str, leader, targets: Iterable[dict] = (), created_by=None) -> Team:
    """Create a team and its shared targets, owned by the leader."""
    from targets.services import create_target

    name = (name or "").strip()
    if not name:
        raise ValidationError("Le nom de l'equipe est obligatoire.")
    if leader is None:
        raise ValidationError("Le chef d'equipe est obligatoire.")
    _ensure_eligible(leader, "Le chef d'equipe doit etre commercial ou coordinateur.")
    current = _active_team_of(leader)
    if current is not None:
        raise ValidationError(
            "Le chef d'equipe appartient deja a une autre equipe.",
            details={"team": str(current.pk)},
        )
    if Team.objects.filter(name__iexact=name).exists():
        raise ValidationError("Une equipe porte deja ce nom.", details={"name": name})

    team = Team.objects.create(name=name, leader=leader, created_by=created_by)
    for data in targets:
        create_target(assigned_to=leader, assigned_by=created_by, team=team, **data)
    logger.info("Team %s created (leader=%s)", team.pk, leader.pk)
    return team


def get_team(team_id) -> Team:
    team = Team.objects.select_related("leader").filter(pk=team_id).first()
    if team is None:
        raise NotFound("Equipe", team_id)
    return team


def list_teams(*, include_inactive: bool = False):
    qs = Team.objects.select_related("leader").prefetch_related("memberships__employee", "targets")
    if not include_inactive:
        qs = qs.filter(is_active=True)
    return qs.order_by("name")


def get_teams_by_leader(leader):
    return list(list_teams().filter(leader=leader))


def get_team_by_member(employee) -> Team | None:
    membership = _active_membership(employee)
    return membership.team if membership else None


@transaction.atomic
def update_team(team: Team, *, name: str | None = None, leader=None, is_active: bool | None = None) -> Team:
    """Rename, change leader or toggle the team.

    A new leader takes over the team's active targets.
    """
    update_fields = []
    if name is not None and name.strip() != team.name:
        name = name.strip()
        if not name:
            raise ValidationError("Le nom de l'equipe est obligatoire.")
        if Team.objects.filter(name__iexact=name).exclude(pk=team.pk).exists():
            raise ValidationError("Une equipe porte deja ce nom.", details={"name": name})
        team.name = name
        update_fields.append("name")

    if leader is not None and leader.pk != team.leader_id:
        _ensure_eligible(leader, "Le chef d'equipe doit etre commercial ou coordinateur.")
        current = _active_team_of(leader, exclude_team=team)
        if current is not None:
            raise ValidationError(
                "Le nouveau chef d'equipe appartient deja a une autre equipe.",
                details={"team": str(current.pk)},
            )
        team.memberships.filter(employee=leader, is_active=True).update(is_active=False)
        team.leader = leader
        update_fields.append("leader")
        team.targets.filter(is_active=True).update(assigned_to=leader)

    if is_active is not None and is_active != team.is_active:
        team.is_active = is_active
        update_fields.append("is_active")

    if update_fields:
        try:
            with transaction.atomic():
                team.save(update_fields=[*update_fields, "updated_at"])
        except IntegrityError as exc:
            raise ValidationError("Une equipe porte deja ce nom.") from exc
    return team


def delete_team(team: Team) -> Team:
    """Soft delete."""
    team.is_active = False
    team.save(update_fields=["is_active", "updated_at"])
    logger.info("Team %s deactivated", team.pk)
    return team


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

@transaction.atomic
def add_team_member(team: Team, employee) -> TeamMember:
    if team.leader_id == employee.pk:
        raise ValidationError("Le chef d'equipe ne peut pas etre ajoute comme membre.")
    current = _active_team_of(employee)
    if current is not None:
        raise ValidationError(
            "L'employe appartient deja a une equipe.",
            details={"team": str(current.pk)},
        )
    _ensure_eligible(employee, "Seuls les commerciaux et coordinateurs peuvent etre membres d'une equipe.")

    member, created = TeamMember.objects.get_or_create(
        team=team,
        employee=employee,
        defaults={"is_active": True},
    )
    if not created and not member.is_active:
        member.is_active = True
        member.save(update_fields=["is_active"])
    return member


def remove_team_member(team: Team, employee) -> int:
    return TeamMember.objects.filter(team=team, employee=employee, is_active=True).update(is_active=False)


@transaction.atomic
def update_team_targets(team: Team, targets: Iterable[dict], *, assigned_by=None) -> list:
    """Upsert the team's active target per category."""
    from targets.services import create_target, update_target

    results = []
    for data in targets:
        data = dict(data)
        category = data.pop("category", None)
        existing = team.targets.filter(category=category, is_active=True).first() if category else None
        if existing is not None:
            results.append(update_target(existing, **data))
        else:
            results.append(
                create_target(
                    assigned_to=team.leader,
                    assigned_by=assigned_by,
                    team=team,
                    category=category,
                    **data,
                )
            )
    return results


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------

def team_progress(team: Team, category: str | None = None, window_start=None, window_end=None) -> dict:
    """Progress of one category; defaults to the team's first active target."""
    if category is None:
        first = team.targets.filter(is_active=True).order_by("created_at").first()
        if first is None:
            return {"category": None, "current_value": 0, "target_value": 0, "progress": 0.0}
        category = first.category
    return TeamAggregator(team).category_progress(category, window_start, window_end)


def all_team_progress(team: Team, window_start=None, window_end=None) -> list[dict]:
    aggregator = TeamAggregator(team)
    categories = (
        team.targets.filter(is_active=True)
        .order_by("created_at")
        .values_list("category", flat=True)
        .distinct()
    )
    return [aggregator.category_progress(category, window_start, window_end) for category in categories]


def members_progress(team: Team, category: str | None = None, window_start=None, window_end=None) -> list[dict]:
    """Live per-person breakdown, leader first."""
    aggregator = TeamAggregator(team)
    qs = team.targets.filter(is_active=True)
    if category:
        qs = qs.filter(category=category)
    team_target = qs.order_by("created_at").first()
    if team_target is None:
        return []
    return [row.as_dict() for row in aggregator.members_progress(team_target, window_start, window_end)]


def teams_analysis(month: int | None = None, year: int | None = None) -> dict:
    from teams.leaderboard import TeamLeaderboardEngine

    return TeamLeaderboardEngine().analyse(month=month, year=year)
