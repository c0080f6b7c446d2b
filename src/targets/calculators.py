"""Per-category progress calculators.

Each target category has one or more calculator classes registered below.
:func:`calculator_for` picks the first registered calculator that applies to
the employee, so ``new_patients`` resolves to the clinical-history
calculator for sales people and to the ledger count for everybody else.

``trusts_increments`` tells callers whether the incrementally maintained
``current_value`` may be kept as is. It is false for the clinical-history
calculator: that value is always re-derived and overwritten on recompute.
"""
from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, time, timezone as dt_timezone

from targets.models import Target


_REGISTRY: dict[str, list["ProgressCalculator"]] = defaultdict(list)


def register(cls):
    _REGISTRY[cls.category].append(cls())
    return cls


def utc_window(window_start: date, window_end: date) -> tuple[datetime, datetime]:
    """Clamp an inclusive date window to full UTC days."""
    return (
        datetime.combine(window_start, time.min, tzinfo=dt_timezone.utc),
        datetime.combine(window_end, time.max, tzinfo=dt_timezone.utc),
    )


class ProgressCalculator:
    category: str = ""
    authoritative_source: str = "ledger"
    trusts_increments: bool = True
    recomputes: bool = True

    def applies_to(self, employee) -> bool:
        return True

    def compute(self, employee, window_start: date, window_end: date, *, target=None) -> int:
        raise NotImplementedError


class LedgerCountCalculator(ProgressCalculator):
    """Count the employee's commissions of one type created inside the window."""

    commission_type: str = ""

    def compute(self, employee, window_start, window_end, *, target=None) -> int:
        from commissions.models import Commission

        start, end = utc_window(window_start, window_end)
        return Commission.objects.filter(
            employee=employee,
            type=self.commission_type,
            created_at__gte=start,
            created_at__lte=end,
        ).count()


@register
class SalesNewPatientVisitsCalculator(ProgressCalculator):
    """New-patient visits re-derived from the clinical history of a sales person's patients."""

    category = Target.Category.NEW_PATIENTS
    authoritative_source = "clinical_history"
    trusts_increments = False

    def applies_to(self, employee) -> bool:
        return employee.is_sales

    def compute(self, employee, window_start, window_end, *, target=None) -> int:
        return len(actual_new_patient_visit_ids(employee, window_start, window_end))


@register
class PatientCreationLedgerCalculator(LedgerCountCalculator):
    category = Target.Category.NEW_PATIENTS
    commission_type = "PATIENT_CREATION"


@register
class FollowUpCalculator(LedgerCountCalculator):
    category = Target.Category.FOLLOW_UP_PATIENTS
    commission_type = "FOLLOW_UP"


@register
class SpecialtiesCalculator(LedgerCountCalculator):
    category = Target.Category.SPECIALTIES
    commission_type = "VISIT_SPECIALITY_ADDITION"


@register
class NominationsCalculator(LedgerCountCalculator):
    category = Target.Category.NOMINATIONS
    commission_type = "NOMINATION_CONVERSION"


@register
class CustomCalculator(ProgressCalculator):
    """Manually maintained; the stored value is the progress."""

    category = Target.Category.CUSTOM
    authoritative_source = "manual"
    recomputes = False

    def compute(self, employee, window_start, window_end, *, target=None) -> int:
        return target.current_value if target is not None else 0


def calculator_for(category: str, employee) -> ProgressCalculator:
    from core.exceptions import ValidationError

    for calculator in _REGISTRY.get(category, ()):
        if calculator.applies_to(employee):
            return calculator
    raise ValidationError(
        f"Categorie d'objectif inconnue : {category}.",
        details={"category": category},
    )


def compute_progress(employee, category: str, window_start: date, window_end: date, *, target=None) -> int:
    return calculator_for(category, employee).compute(
        employee, window_start, window_end, target=target
    )


# ---------------------------------------------------------------------------
# Clinical history
# ---------------------------------------------------------------------------

def actual_new_patient_visit_ids(employee, window_start: date | None = None, window_end: date | None = None) -> list:
    """Visits of the employee's patients that count as a new patient.

    A visit counts when it carries at least one speciality and is either the
    patient's first visit ever or their first visit to that hospital. Every
    earlier visit, including specialty-less legacy ones, is considered when
    deciding "first". The window filter on ``visit_date`` is applied last.
    """
    from clinic.models import Patient, Visit, VisitSpeciality

    patient_ids = list(
        Patient.objects.filter(sales_person=employee).values_list("pk", flat=True)
    )
    if not patient_ids:
        return []

    visits = (
        Visit.objects.filter(patient_id__in=patient_ids)
        .order_by("created_at", "visit_date", "pk")
        .values("pk", "patient_id", "hospital_id", "visit_date")
    )
    with_speciality = set(
        VisitSpeciality.objects.filter(visit__patient_id__in=patient_ids)
        .values_list("visit_id", flat=True)
        .distinct()
    )

    seen_any: set = set()
    seen_hospitals: dict = defaultdict(set)
    qualifying = []
    for visit in visits:
        patient_id = visit["patient_id"]
        hospital_id = visit["hospital_id"]
        is_first_ever = patient_id not in seen_any
        is_first_to_hospital = hospital_id not in seen_hospitals[patient_id]
        if visit["pk"] in with_speciality and (is_first_ever or is_first_to_hospital):
            qualifying.append(visit)
        seen_any.add(patient_id)
        seen_hospitals[patient_id].add(hospital_id)

    return [
        visit["pk"]
        for visit in qualifying
        if (window_start is None or visit["visit_date"] >= window_start)
        and (window_end is None or visit["visit_date"] <= window_end)
    ]
