from datetime import timedelta

import pytest

from clinic.models import Visit, VisitSpeciality
from commissions.ledger import record_commission
from core.exceptions import ValidationError
from targets.calculators import (
    CustomCalculator,
    PatientCreationLedgerCalculator,
    SalesNewPatientVisitsCalculator,
    actual_new_patient_visit_ids,
    calculator_for,
    compute_progress,
)


def _visit(patient, hospital, day, speciality=None):
    visit = Visit.objects.create(patient=patient, hospital=hospital, visit_date=day)
    if speciality is not None:
        VisitSpeciality.objects.create(visit=visit, speciality=speciality)
    return visit


@pytest.mark.django_db
class TestNewPatientVisits:
    def test_first_visit_and_first_visit_to_new_hospital(
        self, sales_user, patient, hospital, other_hospital, speciality, today
    ):
        first = _visit(patient, hospital, today, speciality)
        _visit(patient, hospital, today, speciality)
        new_hospital = _visit(patient, other_hospital, today, speciality)

        assert actual_new_patient_visit_ids(sales_user) == [first.pk, new_hospital.pk]

    def test_earlier_visit_without_speciality_still_counts_as_seen(
        self, sales_user, patient, hospital, speciality, today
    ):
        _visit(patient, hospital, today - timedelta(days=30))
        _visit(patient, hospital, today, speciality)

        assert actual_new_patient_visit_ids(sales_user) == []

    def test_window_is_applied_after_history(self, sales_user, patient, hospital, other_hospital, speciality, today):
        _visit(patient, hospital, today - timedelta(days=40), speciality)
        recent = _visit(patient, other_hospital, today, speciality)

        assert actual_new_patient_visit_ids(sales_user, today - timedelta(days=7), today) == [recent.pk]

    def test_other_sales_people_patients_are_ignored(self, second_sales_user, patient, hospital, speciality, today):
        _visit(patient, hospital, today, speciality)
        assert actual_new_patient_visit_ids(second_sales_user) == []


@pytest.mark.django_db
class TestCalculatorDispatch:
    def test_sales_people_use_clinical_history(self, sales_user):
        calculator = calculator_for("new_patients", sales_user)
        assert isinstance(calculator, SalesNewPatientVisitsCalculator)
        assert calculator.authoritative_source == "clinical_history"
        assert calculator.trusts_increments is False

    def test_other_roles_use_the_ledger(self, coordinator_user):
        calculator = calculator_for("new_patients", coordinator_user)
        assert isinstance(calculator, PatientCreationLedgerCalculator)
        assert calculator.trusts_increments is True

    def test_custom_is_manual(self, sales_user):
        assert isinstance(calculator_for("custom", sales_user), CustomCalculator)

    def test_unknown_category(self, sales_user):
        with pytest.raises(ValidationError):
            calculator_for("revenue", sales_user)


@pytest.mark.django_db
def test_ledger_categories_count_entries_created_in_window(coordinator_user, patient, hospital, today):
    record_commission(coordinator_user, "NOMINATION_CONVERSION", today, patient=patient, hospital=hospital)

    assert compute_progress(coordinator_user, "nominations", today, today) == 1
    assert compute_progress(coordinator_user, "nominations", today + timedelta(days=1), today + timedelta(days=7)) == 0
    assert compute_progress(coordinator_user, "follow_up_patients", today, today) == 0
