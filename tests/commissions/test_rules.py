import pytest

from clinic.models import FollowUpTask, Nomination, VisitSpeciality
from clinic.services import add_visit_specialities
from commissions import rules
from commissions.models import Commission
from commissions.rules import resolve_visit_coordinator


@pytest.mark.django_db
class TestPatientCreationRule:
    def test_first_visit_pays_sales_person(self, convert, patient, hospital, speciality, sales_user):
        convert(patient, hospital, specialities=[speciality])

        commission = Commission.objects.get(type=Commission.Type.PATIENT_CREATION)
        assert commission.employee == sales_user
        assert commission.description == "Patient creation commission for Jean Patient (first visit)"

    def test_legacy_speciality_text_counts(self, convert, patient, hospital):
        convert(patient, hospital, legacy="Cardiologie, Pediatrie")
        assert Commission.objects.filter(type=Commission.Type.PATIENT_CREATION).count() == 1

    def test_visit_without_speciality_earns_nothing(self, convert, patient, hospital):
        convert(patient, hospital)
        assert not Commission.objects.filter(type=Commission.Type.PATIENT_CREATION).exists()

    def test_repeat_visit_to_same_hospital_earns_nothing(self, convert, patient, hospital, speciality):
        convert(patient, hospital, specialities=[speciality])
        convert(patient, hospital, specialities=[speciality])
        assert Commission.objects.filter(type=Commission.Type.PATIENT_CREATION).count() == 1

    def test_new_hospital_is_described(self, convert, patient, hospital, other_hospital, speciality):
        convert(patient, hospital, specialities=[speciality])
        convert(patient, other_hospital, specialities=[speciality])

        descriptions = list(
            Commission.objects.filter(type=Commission.Type.PATIENT_CREATION)
            .order_by("created_at")
            .values_list("description", flat=True)
        )
        assert descriptions[1].endswith("(first visit to new hospital)")


@pytest.mark.django_db
class TestFollowUpRule:
    def test_pays_task_assignee_and_approves_task(
        self, convert, patient, hospital, follow_up_task, second_sales_user
    ):
        follow_up_task.assigned_to = second_sales_user
        follow_up_task.save()

        visit = convert(patient, hospital, created_from_follow_up_task=follow_up_task)

        commission = Commission.objects.get(type=Commission.Type.FOLLOW_UP)
        follow_up_task.refresh_from_db()
        assert commission.employee == second_sales_user
        assert commission.visit == visit
        assert commission.referenced_visit_id == str(visit.pk)
        assert follow_up_task.status == FollowUpTask.Status.APPROVED

    def test_plain_appointment_is_not_a_follow_up(self, convert, patient, hospital):
        convert(patient, hospital)
        assert not Commission.objects.filter(type=Commission.Type.FOLLOW_UP).exists()


@pytest.mark.django_db
class TestNominationRule:
    def test_first_visit_pays_nominating_coordinator(
        self, convert, patient, hospital, other_hospital, coordinator_user
    ):
        Nomination.objects.create(
            coordinator=coordinator_user,
            nominated_patient_name="Jean Patient",
            status=Nomination.Status.CONVERTED,
            converted_to_patient=patient,
        )
        convert(patient, hospital)
        convert(patient, other_hospital)

        commissions = Commission.objects.filter(type=Commission.Type.NOMINATION_CONVERSION)
        assert commissions.count() == 1
        assert commissions.get().employee == coordinator_user


@pytest.mark.django_db
class TestVisitSpecialityRule:
    def test_added_speciality_pays_visit_coordinator(
        self, convert, patient, hospital, speciality, other_speciality, coordinator_user,
        django_capture_on_commit_callbacks,
    ):
        visit = convert(patient, hospital, specialities=[speciality])
        assert visit.coordinator == coordinator_user
        # specialities copied from the appointment earn nothing
        assert not Commission.objects.filter(type=Commission.Type.VISIT_SPECIALITY_ADDITION).exists()

        with django_capture_on_commit_callbacks(execute=True):
            added = add_visit_specialities(visit, [other_speciality])

        commission = Commission.objects.get(type=Commission.Type.VISIT_SPECIALITY_ADDITION)
        assert commission.employee == coordinator_user
        assert commission.visit_speciality == added[0]

    def test_visit_without_coordinator_is_skipped(self, convert, patient, hospital, speciality):
        visit = convert(patient, hospital)
        assert visit.coordinator is None
        add_visit_specialities(visit, [speciality])
        assert VisitSpeciality.objects.filter(visit=visit, kind=VisitSpeciality.Kind.ADDED).count() == 1
        assert not Commission.objects.filter(type=Commission.Type.VISIT_SPECIALITY_ADDITION).exists()


@pytest.mark.django_db
class TestCoordinatorResolution:
    def test_follow_up_creator_with_coordinator_role_wins(
        self, make_appointment, patient, hospital, follow_up_task, coordinator_user, sales_coordinator
    ):
        appointment = make_appointment(
            patient,
            hospital,
            created_by=coordinator_user,
            created_from_follow_up_task=follow_up_task,
            sales_person=sales_coordinator,
        )
        assert resolve_visit_coordinator(appointment) == coordinator_user

    def test_sales_person_holding_coordinator_role(
        self, make_appointment, patient, hospital, coordinator_user, sales_coordinator
    ):
        appointment = make_appointment(
            patient, hospital, created_by=coordinator_user, sales_person=sales_coordinator
        )
        assert resolve_visit_coordinator(appointment) == sales_coordinator

    def test_falls_back_to_any_coordinator(self, make_appointment, patient, hospital, coordinator_user):
        appointment = make_appointment(patient, hospital)
        assert resolve_visit_coordinator(appointment) == coordinator_user

    def test_no_coordinator_at_all(self, make_appointment, patient, hospital):
        assert resolve_visit_coordinator(make_appointment(patient, hospital)) is None


@pytest.mark.django_db
def test_failing_rule_does_not_block_others_or_the_visit(
    monkeypatch, convert, patient, hospital, follow_up_task
):
    def broken_rule(fact):
        raise RuntimeError("boom")

    monkeypatch.setattr(rules, "VISIT_RULES", (broken_rule, rules.follow_up_rule))

    visit = convert(patient, hospital, created_from_follow_up_task=follow_up_task)

    assert visit.pk is not None
    assert Commission.objects.filter(type=Commission.Type.FOLLOW_UP).count() == 1
