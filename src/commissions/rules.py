"""Commission-creation rules run when an appointment becomes a visit.

Each rule decides whether a visit earns a commission and who is paid. Rules
run in their own savepoint so that one failing rule neither blocks the others
nor the clinical conversion that published the fact. Target increments are
not triggered here: they follow every committed ledger write (see
:mod:`commissions.signals`).
"""
from __future__ import annotations

import logging

from django.db import transaction

from commissions.ledger import record_commission
from commissions.models import Commission
from core.exceptions import DuplicateCommission

logger = logging.getLogger(__name__)


CATEGORY_BY_TYPE = {
    Commission.Type.PATIENT_CREATION: "new_patients",
    Commission.Type.FOLLOW_UP: "follow_up_patients",
    Commission.Type.NOMINATION_CONVERSION: "nominations",
    Commission.Type.VISIT_SPECIALITY_ADDITION: "specialties",
}


def resolve_visit_coordinator(appointment):
    """Coordinator credited for a visit.

    Fallback order: the appointment creator when the appointment came from a
    follow-up task and the creator coordinates, then the sales person when
    they coordinate, then any active coordinator.
    """
    from accounts.models import User

    coordinator_role = User.Role.COORDINATOR
    creator = appointment.created_by
    if appointment.created_from_follow_up_task_id and creator and creator.has_role(coordinator_role):
        return creator
    sales_person = appointment.sales_person
    if sales_person is not None and sales_person.has_role(coordinator_role):
        return sales_person
    return User.objects.with_role(coordinator_role).order_by("date_joined").first()


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

def patient_creation_rule(fact) -> Commission | None:
    """First visit ever, or first visit to a new hospital, of a patient.

    Only visits recorded before this one count, so the rule gives the same
    answer when replayed by the backfill.
    """
    from clinic.models import Visit

    patient = fact.patient
    sales_person = patient.sales_person
    if sales_person is None or not fact.has_speciality:
        return None

    other_visits = (
        Visit.objects.filter(patient=patient)
        .exclude(pk=fact.visit.pk)
        .exclude(created_at__gt=fact.visit.created_at)
    )
    if not other_visits.exists():
        suffix = ""
    elif not other_visits.filter(hospital=fact.hospital).exists():
        suffix = " to new hospital"
    else:
        return None

    return record_commission(
        sales_person,
        Commission.Type.PATIENT_CREATION,
        fact.visit_date,
        f"Patient creation commission for {patient.full_name} (first visit{suffix})",
        patient=patient,
        hospital=fact.hospital,
    )


def follow_up_rule(fact) -> Commission | None:
    """A follow-up task whose appointment converted to a visit."""
    from clinic.models import FollowUpTask

    task = fact.appointment.created_from_follow_up_task if fact.appointment else None
    if task is None or task.assigned_to_id is None:
        return None

    commission = record_commission(
        task.assigned_to,
        Commission.Type.FOLLOW_UP,
        fact.visit_date,
        f"Follow-up completed for patient {fact.patient.full_name} (Visit: {fact.visit.pk})",
        patient=fact.patient,
        visit=fact.visit,
        hospital=fact.hospital,
    )
    FollowUpTask.objects.filter(pk=task.pk).update(status=FollowUpTask.Status.APPROVED)
    return commission


def nomination_conversion_rule(fact) -> Commission | None:
    """Nominated patient's very first visit pays the nominating coordinator."""
    from clinic.models import Nomination, Visit

    patient = fact.patient
    nomination = (
        Nomination.objects.filter(converted_to_patient=patient, coordinator__isnull=False)
        .select_related("coordinator")
        .order_by("created_at")
        .first()
    )
    if nomination is None:
        return None
    if Visit.objects.filter(patient=patient).exclude(pk=fact.visit.pk).exists():
        return None
    if Commission.objects.filter(patient=patient, type=Commission.Type.NOMINATION_CONVERSION).exists():
        return None

    return record_commission(
        nomination.coordinator,
        Commission.Type.NOMINATION_CONVERSION,
        fact.visit_date,
        f"Nomination conversion commission for {nomination.nominated_patient_name} (first visit)",
        patient=patient,
        hospital=fact.hospital,
    )


def visit_speciality_rule(visit_speciality) -> Commission | None:
    """A speciality added during a visit pays the visit's coordinator."""
    from clinic.models import VisitSpeciality

    if visit_speciality.kind != VisitSpeciality.Kind.ADDED:
        return None
    visit = visit_speciality.visit
    if visit.coordinator_id is None:
        logger.debug("Visit %s has no coordinator, speciality not credited", visit.pk)
        return None

    return record_commission(
        visit.coordinator,
        Commission.Type.VISIT_SPECIALITY_ADDITION,
        visit.visit_date,
        f"Added speciality {visit_speciality.speciality_id} during visit {visit.pk}",
        patient=visit.patient,
        visit=visit,
        hospital=visit.hospital,
        visit_speciality=visit_speciality,
    )


VISIT_RULES = (
    patient_creation_rule,
    follow_up_rule,
    nomination_conversion_rule,
)


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def _run_rule(rule, payload) -> Commission | None:
    try:
        with transaction.atomic():
            return rule(payload)
    except DuplicateCommission as exc:
        logger.info("%s skipped: %s", rule.__name__, exc.message)
    except Exception as exc:
        logger.warning("%s failed: %s", rule.__name__, exc, exc_info=True)
    return None


def process_visit(fact) -> list[Commission]:
    """Apply every visit rule to a qualifying visit. Never raises."""
    created = []
    for rule in VISIT_RULES:
        commission = _run_rule(rule, fact)
        if commission is not None:
            created.append(commission)
    return created


def process_visit_speciality(visit_speciality) -> Commission | None:
    return _run_rule(visit_speciality_rule, visit_speciality)


# ---------------------------------------------------------------------------
# Backfill
# ---------------------------------------------------------------------------

def backfill_missing_commissions() -> dict:
    """Insert PATIENT_CREATION and FOLLOW_UP entries missing from the ledger.

    Derived from the clinical history; existing entries are left alone.
    Returns the number of entries created per type.
    """
    from accounts.models import User
    from clinic.events import QualifyingVisit
    from clinic.models import Appointment, Visit
    from targets.calculators import actual_new_patient_visit_ids

    created = {"patient_creation": 0, "follow_up": 0}

    for sales_person in User.objects.with_role(User.Role.SALES):
        visit_ids = actual_new_patient_visit_ids(sales_person)
        if not visit_ids:
            continue
        visits = Visit.objects.filter(pk__in=visit_ids).select_related(
            "patient", "hospital", "appointment"
        )
        for visit in visits:
            if _run_rule(patient_creation_rule, QualifyingVisit.from_visit(visit)) is not None:
                created["patient_creation"] += 1

    appointments = (
        Appointment.objects.filter(
            created_from_follow_up_task__isnull=False,
            visit__isnull=False,
        )
        .select_related("visit", "created_from_follow_up_task", "patient", "hospital")
    )
    for appointment in appointments:
        fact = QualifyingVisit.from_visit(appointment.visit)
        if _run_rule(follow_up_rule, fact) is not None:
            created["follow_up"] += 1

    if any(created.values()):
        logger.info(
            "Backfill created %s patient creation and %s follow-up commissions",
            created["patient_creation"],
            created["follow_up"],
        )
    return created
