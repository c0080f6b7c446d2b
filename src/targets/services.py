"""Target lifecycle operations.

State machine: active -> completed (``completed_at`` set, still active) ->
retired (``is_active`` false, only by :func:`auto_reset_targets` once the
window has ended). Nothing here recreates the next cycle's target.
"""
from __future__ import annotations

import logging
from datetime import date, timedelta

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from core.db import with_db_retry
from core.exceptions import NotFound, ValidationError
from targets.engine import TargetProgressEngine
from targets.models import Target, TargetProgress

logger = logging.getLogger(__name__)

CATEGORY_DESCRIPTIONS = {
    Target.Category.NEW_PATIENTS: "Premieres visites de patients (ou premiere visite dans un nouvel hopital).",
    Target.Category.FOLLOW_UP_PATIENTS: "Rendez-vous de suivi convertis en visite.",
    Target.Category.SPECIALTIES: "Specialites ajoutees pendant les visites.",
    Target.Category.NOMINATIONS: "Recommandations converties en patients.",
    Target.Category.CUSTOM: "Objectif personnalise, progression saisie manuellement.",
}

TYPE_DESCRIPTIONS = {
    Target.Type.DAILY: "Remis a zero chaque jour.",
    Target.Type.WEEKLY: "Remis a zero chaque lundi.",
    Target.Type.MONTHLY: "Remis a zero le 1er de chaque mois.",
}

UPDATABLE_FIELDS = (
    "type",
    "category",
    "description",
    "target_value",
    "start_date",
    "end_date",
    "is_active",
)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def _validate_choice(value, choices, label: str) -> None:
    if value not in choices.values:
        raise ValidationError(
            f"{label} invalide : {value}.",
            details={label.lower(): value, "allowed": list(choices.values)},
        )


def _validate_window(start_date: date, end_date: date) -> None:
    if start_date is None or end_date is None:
        raise ValidationError("Les dates de debut et de fin sont obligatoires.")
    if end_date < start_date:
        raise ValidationError(
            "La date de fin doit etre posterieure ou egale a la date de debut.",
            details={"start_date": str(start_date), "end_date": str(end_date)},
        )


def _validate_target_value(target_value) -> None:
    if target_value is None or int(target_value) < 1:
        raise ValidationError("La valeur cible doit etre au moins 1.", details={"target_value": target_value})


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------

def create_target(
    *,
    assigned_to,
    type: str,
    category: str,
    target_value: int,
    start_date: date,
    end_date: date,
    description: str = "",
    assigned_by=None,
    team=None,
) -> Target:
    """Create an active target with a zero running total."""
    if assigned_to is None:
        raise ValidationError("L'employe assigne est obligatoire.")
    _validate_choice(type, Target.Type, "Type")
    _validate_choice(category, Target.Category, "Categorie")
    _validate_target_value(target_value)
    _validate_window(start_date, end_date)

    target = Target.objects.create(
        assigned_to=assigned_to,
        assigned_by=assigned_by,
        team=team,
        type=type,
        category=category,
        description=description,
        target_value=target_value,
        current_value=0,
        start_date=start_date,
        end_date=end_date,
        is_active=True,
    )
    logger.info(
        "Target %s created for employee=%s category=%s type=%s value=%s",
        target.pk,
        assigned_to.pk,
        category,
        type,
        target_value,
    )
    return target


def get_target(target_id) -> Target:
    target = with_db_retry(
        lambda: Target.objects.select_related("assigned_to", "assigned_by", "team").filter(pk=target_id).first(),
        "get_target",
    )
    if target is None:
        raise NotFound("Objectif", target_id)
    return target


def update_target(target: Target, **changes) -> Target:
    """Partial update of the editable fields."""
    unknown = set(changes) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(
            "Champs non modifiables.",
            details={"fields": sorted(unknown)},
        )
    if "type" in changes:
        _validate_choice(changes["type"], Target.Type, "Type")
    if "category" in changes:
        _validate_choice(changes["category"], Target.Category, "Categorie")
    if "target_value" in changes:
        _validate_target_value(changes["target_value"])
    _validate_window(
        changes.get("start_date", target.start_date),
        changes.get("end_date", target.end_date),
    )

    for field, value in changes.items():
        setattr(target, field, value)
    update_fields = list(changes)
    if target.completed_at is None and target.current_value >= target.target_value:
        target.completed_at = timezone.now()
        update_fields.append("completed_at")
    target.save(update_fields=[*update_fields, "updated_at"])
    return target


def delete_target(target: Target) -> None:
    target_id = target.pk
    target.delete()
    logger.info("Target %s deleted", target_id)


def list_targets(
    *,
    employee=None,
    category: str | None = None,
    type: str | None = None,
    is_active: bool | None = None,
    recompute: bool = True,
):
    """Filtered targets, optionally recomputed so listings show live values."""
    qs = Target.objects.select_related("assigned_to", "assigned_by", "team")
    if employee is not None:
        qs = qs.filter(assigned_to=employee)
    if category:
        _validate_choice(category, Target.Category, "Categorie")
        qs = qs.filter(category=category)
    if type:
        _validate_choice(type, Target.Type, "Type")
        qs = qs.filter(type=type)
    if is_active is not None:
        qs = qs.filter(is_active=is_active)

    targets = with_db_retry(lambda: list(qs.order_by("-created_at")), "list_targets")
    if recompute:
        recompute_targets(targets)
    return targets


def recompute_targets(targets) -> list[Target]:
    """Refresh listed targets from their sources. Failures are logged per target."""
    engine = TargetProgressEngine()
    for target in targets:
        try:
            engine.recompute(target, refresh_team=False)
        except Exception as exc:
            logger.warning("recompute failed for target=%s: %s", target.pk, exc, exc_info=True)
    return targets


def get_employee_targets(employee, *, type: str | None = None, category: str | None = None):
    """Active targets of an employee, each with its recent daily progress."""
    qs = Target.objects.filter(assigned_to=employee, is_active=True)
    if type:
        _validate_choice(type, Target.Type, "Type")
        qs = qs.filter(type=type)
    if category:
        _validate_choice(category, Target.Category, "Categorie")
        qs = qs.filter(category=category)
    history_days = getattr(settings, "TARGET_PROGRESS_HISTORY_DAYS", 30)

    def _load():
        targets = list(qs.order_by("-created_at"))
        for target in targets:
            target.recent_progress = list(target.progress_entries.order_by("-date")[:history_days])
        return targets

    return with_db_retry(_load, "get_employee_targets")


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------

@transaction.atomic
def update_target_progress(target: Target, progress: int, notes: str | None = None) -> tuple[Target, TargetProgress]:
    """Manually set the running total and record it in today's bucket."""
    if progress is None or int(progress) < 0:
        raise ValidationError("La progression doit etre un entier positif.", details={"progress": progress})
    progress = int(progress)
    today = timezone.localdate()

    entry, _ = TargetProgress.objects.update_or_create(
        target=target,
        date=today,
        defaults={"progress": progress, "notes": notes or ""},
    )
    engine = TargetProgressEngine(today=today)
    engine.write_value(target, progress)
    if not target.is_team_target:
        engine.refresh_team_rollup(target.assigned_to, target.category, target.type)
    return target, entry


def calculate_target_progress(target: Target) -> int:
    """Recompute ``current_value`` from source data and return it."""
    TargetProgressEngine().recompute(target)
    return target.current_value


def increment_target(category: str, actor, day: date | None = None) -> list[tuple[Target, TargetProgress]]:
    """Fast path run right after a commission is recorded.

    Returns the touched ``(target, day_bucket)`` pairs; an empty list when the
    actor has no active target covering ``day``.
    """
    _validate_choice(category, Target.Category, "Categorie")
    return TargetProgressEngine().increment(category, actor, day)


def get_target_progress_history(target: Target, days: int | None = None):
    days = days or getattr(settings, "TARGET_PROGRESS_HISTORY_DAYS", 30)
    since = timezone.localdate() - timedelta(days=days)
    return with_db_retry(
        lambda: list(target.progress_entries.filter(date__gte=since).order_by("date")),
        "get_target_progress_history",
    )


def get_target_stats(employee=None) -> dict:
    qs = Target.objects.all()
    if employee is not None:
        qs = qs.filter(assigned_to=employee)
    today = timezone.localdate()

    rows = with_db_retry(
        lambda: list(qs.only("target_value", "current_value", "end_date", "is_active", "completed_at")),
        "get_target_stats",
    )
    total = active = completed = overdue = 0
    total_progress = total_target_value = 0
    for target in rows:
        total += 1
        if target.is_active and target.completed_at is None:
            active += 1
        if target.completed_at is not None:
            completed += 1
        if target.is_overdue(today):
            overdue += 1
        total_progress += target.current_value
        total_target_value += target.target_value

    average = (total_progress / total_target_value * 100) if total_target_value else 0
    return {
        "total_targets": total,
        "active_targets": active,
        "completed_targets": completed,
        "overdue_targets": overdue,
        "total_progress": total_progress,
        "average_progress": round(average, 2),
    }


# ---------------------------------------------------------------------------
# Sweeper
# ---------------------------------------------------------------------------

def auto_reset_targets(today: date | None = None) -> list[dict]:
    """Retire every active target whose window ended before ``today``.

    Safe to run repeatedly: a second run finds nothing to change.
    """
    today = today or timezone.localdate()
    expired = with_db_retry(
        lambda: list(Target.objects.filter(is_active=True, end_date__lt=today).values("pk", "current_value")),
        "auto_reset_targets",
    )
    if not expired:
        return []

    with_db_retry(
        lambda: Target.objects.filter(pk__in=[row["pk"] for row in expired], is_active=True).update(
            is_active=False,
            updated_at=timezone.now(),
        ),
        "auto_reset_targets",
    )
    return [
        {"target_id": str(row["pk"]), "action": "inactivated", "previous_value": row["current_value"]}
        for row in expired
    ]


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------

def target_categories() -> list[dict]:
    return [
        {"value": value, "label": label, "description": CATEGORY_DESCRIPTIONS[value]}
        for value, label in Target.Category.choices
    ]


def target_types() -> list[dict]:
    return [
        {"value": value, "label": label, "description": TYPE_DESCRIPTIONS[value]}
        for value, label in Target.Type.choices
    ]
