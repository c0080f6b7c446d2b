"""Commission ledger writes and reads.

Every write goes through :func:`record_commission`. Idempotency is enforced
by the unique ``dedup_key`` column: the row is inserted inside a savepoint and
a conflict on the key is reported as :class:`DuplicateCommission`, so two
concurrent conversions of the same event cannot both pay out.
"""
from __future__ import annotations

import logging
from datetime import date

from django.db import IntegrityError, transaction
from django.db.models import Count, F, Sum
from django.utils import timezone

from commissions.models import Commission
from core.db import with_db_retry
from core.exceptions import DuplicateCommission, ValidationError

logger = logging.getLogger(__name__)


def build_dedup_key(
    commission_type: str,
    *,
    employee_id=None,
    patient_id=None,
    period: date | None = None,
    hospital_id=None,
    visit_id=None,
    visit_speciality_id=None,
) -> str | None:
    """Idempotency key of a rule-issued commission.

    ``None`` means the type has no key (manual adjustments).
    """
    Type = Commission.Type
    if commission_type == Type.PATIENT_CREATION:
        return f"{commission_type}:{employee_id}:{patient_id}:{period.isoformat()}:{hospital_id}"
    if commission_type == Type.FOLLOW_UP:
        return f"{commission_type}:{employee_id}:{patient_id}:{visit_id}"
    if commission_type == Type.NOMINATION_CONVERSION:
        return f"{commission_type}:{patient_id}"
    if commission_type == Type.VISIT_SPECIALITY_ADDITION:
        return f"{commission_type}:{visit_speciality_id}"
    return None


def _legacy_follow_up_exists(employee_id, patient_id, visit_id) -> bool:
    """Older follow-up rows carry the visit only inside their description."""
    return Commission.objects.filter(
        employee_id=employee_id,
        patient_id=patient_id,
        type=Commission.Type.FOLLOW_UP,
        dedup_key__isnull=True,
        description__contains=f"(Visit: {visit_id})",
    ).exists()


def record_commission(
    employee,
    commission_type: str,
    period: date,
    description: str = "",
    *,
    patient=None,
    visit=None,
    hospital=None,
    visit_speciality=None,
    amount: int = 1,
    created_by=None,
) -> Commission:
    """Append one entry to the ledger and bump the employee's counter.

    Parameters
    ----------
    employee : accounts.User
        The payee.
    commission_type : str
        One of ``Commission.Type``.
    period : date
        Business date the entry is attributed to.
    description : str
        Human readable text. Follow-up entries embed ``(Visit: <id>)``.
    patient, visit, hospital, visit_speciality : optional
        Source records; they also feed the idempotency key.
    amount : int
        1 for rule-issued entries, free for manual adjustments.

    Returns
    -------
    Commission
        The newly created entry.

    Raises
    ------
    DuplicateCommission
        An entry with the same idempotency key already exists.
    """
    from accounts.models import User

    if commission_type not in Commission.Type.values:
        raise ValidationError(
            f"Type de commission inconnu : {commission_type}.",
            details={"type": commission_type},
        )

    patient_id = getattr(patient, "pk", None)
    visit_id = getattr(visit, "pk", None)
    dedup_key = build_dedup_key(
        commission_type,
        employee_id=employee.pk,
        patient_id=patient_id,
        period=period,
        hospital_id=getattr(hospital, "pk", None),
        visit_id=visit_id,
        visit_speciality_id=getattr(visit_speciality, "pk", None),
    )

    if commission_type == Commission.Type.FOLLOW_UP and _legacy_follow_up_exists(
        employee.pk, patient_id, visit_id
    ):
        raise DuplicateCommission(commission_type, dedup_key)

    def _insert() -> Commission:
        with transaction.atomic():
            entry = Commission.objects.create(
                employee=employee,
                patient=patient,
                type=commission_type,
                amount=amount,
                period=period,
                description=description,
                visit=visit,
                hospital=hospital,
                visit_speciality=visit_speciality,
                dedup_key=dedup_key,
                created_by=created_by,
            )
            User.objects.filter(pk=employee.pk).update(
                commission_count=F("commission_count") + amount
            )
        return entry

    try:
        commission = with_db_retry(_insert, "record_commission")
    except IntegrityError as exc:
        if dedup_key and Commission.objects.filter(dedup_key=dedup_key).exists():
            raise DuplicateCommission(commission_type, dedup_key) from exc
        raise

    logger.info(
        "Commission %s recorded for employee=%s patient=%s period=%s",
        commission_type,
        employee.pk,
        patient_id,
        period,
    )
    return commission


def create_manual_adjustment(employee, description: str, amount: int = 1, *, created_by=None) -> Commission:
    """Record a MANUAL_ADJUSTMENT entry dated today."""
    if not description or not description.strip():
        raise ValidationError("La description est obligatoire pour un ajustement manuel.")
    if amount == 0:
        raise ValidationError("Le montant d'un ajustement ne peut pas etre nul.")
    return record_commission(
        employee,
        Commission.Type.MANUAL_ADJUSTMENT,
        timezone.localdate(),
        description.strip(),
        amount=amount,
        created_by=created_by,
    )


def list_commissions(*, employee=None, commission_type=None, start=None, end=None, patient=None):
    qs = Commission.objects.select_related("employee", "patient")
    if employee is not None:
        qs = qs.filter(employee=employee)
    if commission_type:
        qs = qs.filter(type=commission_type)
    if patient is not None:
        qs = qs.filter(patient=patient)
    if start:
        qs = qs.filter(period__gte=start)
    if end:
        qs = qs.filter(period__lte=end)
    return qs


def commission_summary(*, employee=None, start=None, end=None) -> dict:
    """Entry counts and amounts per type over an optional period range."""
    qs = list_commissions(employee=employee, start=start, end=end)
    rows = qs.order_by().values("type").annotate(count=Count("id"), amount=Sum("amount"))
    by_type = {value: {"count": 0, "amount": 0} for value in Commission.Type.values}
    for row in rows:
        by_type[row["type"]] = {"count": row["count"], "amount": row["amount"] or 0}
    return {
        "total_entries": sum(item["count"] for item in by_type.values()),
        "total_amount": sum(item["amount"] for item in by_type.values()),
        "by_type": by_type,
    }
