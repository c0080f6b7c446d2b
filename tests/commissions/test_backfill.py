import pytest

from clinic.models import Visit, VisitSpeciality
from commissions.models import Commission
from commissions.rules import backfill_missing_commissions
from commissions.tasks import backfill_missing_commissions as backfill_task


def _legacy_visit(appointment, speciality=None):
    """A visit written before commissions existed: no events, no ledger rows."""
    visit = Visit.objects.create(
        patient=appointment.patient,
        hospital=appointment.hospital,
        appointment=appointment,
        visit_date=appointment.scheduled_date,
    )
    if speciality is not None:
        VisitSpeciality.objects.create(visit=visit, speciality=speciality, kind=VisitSpeciality.Kind.APPOINTED)
    return visit


@pytest.mark.django_db
class TestBackfill:
    def test_recreates_missing_patient_creation_and_follow_up(
        self, make_appointment, patient, hospital, other_hospital, speciality, follow_up_task, sales_user
    ):
        _legacy_visit(make_appointment(patient, hospital, specialities=[speciality]), speciality)
        _legacy_visit(make_appointment(patient, hospital, specialities=[speciality]), speciality)
        _legacy_visit(make_appointment(patient, other_hospital, specialities=[speciality]), speciality)
        _legacy_visit(make_appointment(patient, hospital, created_from_follow_up_task=follow_up_task))

        created = backfill_missing_commissions()

        assert created == {"patient_creation": 2, "follow_up": 1}
        assert Commission.objects.filter(employee=sales_user, type="PATIENT_CREATION").count() == 2
        assert Commission.objects.filter(employee=sales_user, type="FOLLOW_UP").count() == 1

    def test_second_run_creates_nothing(self, make_appointment, patient, hospital, speciality):
        _legacy_visit(make_appointment(patient, hospital, specialities=[speciality]), speciality)

        backfill_missing_commissions()
        assert backfill_missing_commissions() == {"patient_creation": 0, "follow_up": 0}
        assert Commission.objects.count() == 1

    def test_task_respects_setting(self, settings, make_appointment, patient, hospital, speciality):
        _legacy_visit(make_appointment(patient, hospital, specialities=[speciality]), speciality)

        settings.COMMISSION_BACKFILL_ENABLED = False
        assert backfill_task.delay().get() == "backfill disabled"
        assert not Commission.objects.exists()

        settings.COMMISSION_BACKFILL_ENABLED = True
        assert backfill_task.delay().get() == "1 commissions created"
