"""Appointment to visit conversion.

The clinical record is written first; incentive accounting listens on
:mod:`clinic.events` and must never make the conversion fail.
"""
from __future__ import annotations

import logging

from django.db import transaction

from clinic.events import QualifyingVisit, visit_recorded, visit_speciality_added
from clinic.models import Appointment, Speciality, Visit, VisitSpeciality
from core.exceptions import ValidationError

logger = logging.getLogger(__name__)


def _publish(signal, **kwargs) -> None:
    for receiver, response in signal.send_robust(sender=Visit, **kwargs):
        if isinstance(response, Exception):
            logger.error(
                "visit event receiver %s failed: %s",
                getattr(receiver, "__qualname__", receiver),
                response,
                exc_info=response,
            )


@transaction.atomic
def convert_appointment_to_visit(appointment: Appointment, *, actor=None) -> Visit:
    """Create the visit for a completed appointment and publish the fact.

    Converting the same appointment twice returns the existing visit and
    republishes it; consumers are expected to be idempotent.
    """
    from commissions.rules import resolve_visit_coordinator

    appointment = (
        Appointment.objects.select_for_update()
        .select_related("patient", "hospital", "created_from_follow_up_task")
        .get(pk=appointment.pk)
    )
    if appointment.status != Appointment.Status.COMPLETED:
        raise ValidationError(
            "Seuls les rendez-vous termines peuvent etre convertis en visite.",
            details={"appointment": str(appointment.pk), "status": appointment.status},
        )

    visit = Visit.objects.filter(appointment=appointment).first()
    if visit is not None:
        logger.info("Appointment %s already converted to visit %s", appointment.pk, visit.pk)
    else:
        visit = Visit.objects.create(
            patient=appointment.patient,
            hospital=appointment.hospital,
            appointment=appointment,
            visit_date=appointment.scheduled_date,
            coordinator=resolve_visit_coordinator(appointment),
            sales_person=appointment.sales_person,
        )
        _copy_appointment_specialities(appointment, visit)
        logger.info(
            "Converted appointment %s to visit %s (actor=%s)",
            appointment.pk,
            visit.pk,
            getattr(actor, "pk", None),
        )

    _publish(visit_recorded, fact=QualifyingVisit.from_visit(visit))
    return visit


def _copy_appointment_specialities(appointment: Appointment, visit: Visit) -> None:
    specialities = list(appointment.specialities.all())
    for name in appointment.legacy_speciality_names:
        speciality, _ = Speciality.objects.get_or_create(name=name)
        specialities.append(speciality)
    seen = set()
    for speciality in specialities:
        if speciality.pk in seen:
            continue
        seen.add(speciality.pk)
        VisitSpeciality.objects.create(
            visit=visit,
            speciality=speciality,
            kind=VisitSpeciality.Kind.APPOINTED,
            details=f"Converti depuis le rendez-vous {appointment.pk}",
        )


@transaction.atomic
def add_visit_specialities(visit: Visit, specialities, *, details: str = "") -> list[VisitSpeciality]:
    """Record specialities sold during ``visit`` and publish one event each."""
    created = [
        VisitSpeciality.objects.create(
            visit=visit,
            speciality=speciality,
            kind=VisitSpeciality.Kind.ADDED,
            details=details,
        )
        for speciality in specialities
    ]
    for visit_speciality in created:
        _publish(visit_speciality_added, visit_speciality=visit_speciality)
    return created
