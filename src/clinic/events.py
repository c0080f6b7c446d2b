"""Facts published by the clinical workflow for downstream consumers."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING

from django.dispatch import Signal

if TYPE_CHECKING:
    from clinic.models import Appointment, Hospital, Patient, Visit

# Sent with ``fact=QualifyingVisit`` once an appointment became a visit.
visit_recorded = Signal()

# Sent with ``visit_speciality=VisitSpeciality`` for each speciality added
# during a visit.
visit_speciality_added = Signal()


@dataclass(frozen=True)
class QualifyingVisit:
    """A visit produced by an appointment conversion."""

    visit: "Visit"
    appointment: "Appointment"
    patient: "Patient"
    hospital: "Hospital"
    visit_date: date
    has_speciality: bool

    @classmethod
    def from_visit(cls, visit: "Visit") -> "QualifyingVisit":
        appointment = visit.appointment
        return cls(
            visit=visit,
            appointment=appointment,
            patient=visit.patient,
            hospital=visit.hospital,
            visit_date=visit.visit_date,
            has_speciality=appointment.has_speciality() if appointment else False,
        )

