from datetime import timedelta

import pytest
from django.utils import timezone

from accounts.models import EmployeeRole, User
from clinic.models import Appointment, FollowUpTask, Hospital, Patient, Speciality


@pytest.fixture
def today():
    return timezone.localdate()


@pytest.fixture
def admin_user(db):
    return User.objects.create_user(
        email="admin@test.com",
        password="testpass123",
        first_name="Admin",
        last_name="User",
        role=User.Role.ADMIN,
    )


@pytest.fixture
def manager_user(db):
    return User.objects.create_user(
        email="manager@test.com",
        password="testpass123",
        first_name="Manager",
        last_name="User",
        role=User.Role.MANAGER,
    )


@pytest.fixture
def sales_user(db):
    return User.objects.create_user(
        email="sales@test.com",
        password="testpass123",
        first_name="Sales",
        last_name="User",
        role=User.Role.SALES,
    )


@pytest.fixture
def second_sales_user(db):
    return User.objects.create_user(
        email="sales2@test.com",
        password="testpass123",
        first_name="Second",
        last_name="Seller",
        role=User.Role.SALES,
    )


@pytest.fixture
def coordinator_user(db):
    return User.objects.create_user(
        email="coordinator@test.com",
        password="testpass123",
        first_name="Coord",
        last_name="User",
        role=User.Role.COORDINATOR,
    )


@pytest.fixture
def receptionist_user(db):
    return User.objects.create_user(
        email="reception@test.com",
        password="testpass123",
        first_name="Reception",
        last_name="User",
        role=User.Role.RECEPTIONIST,
    )


@pytest.fixture
def sales_coordinator(db):
    """Sales person who also coordinates visits."""
    user = User.objects.create_user(
        email="hybrid@test.com",
        password="testpass123",
        first_name="Hybrid",
        last_name="User",
        role=User.Role.SALES,
    )
    EmployeeRole.objects.create(user=user, role=User.Role.COORDINATOR)
    return user


@pytest.fixture
def hospital(db):
    return Hospital.objects.create(name="Hopital Central", city="Douala")


@pytest.fixture
def other_hospital(db):
    return Hospital.objects.create(name="Clinique du Lac", city="Yaounde")


@pytest.fixture
def speciality(db):
    return Speciality.objects.create(name="Cardiologie")


@pytest.fixture
def other_speciality(db):
    return Speciality.objects.create(name="Dermatologie")


@pytest.fixture
def patient(sales_user):
    return Patient.objects.create(
        full_name="Jean Patient",
        phone="+237600000001",
        sales_person=sales_user,
    )


@pytest.fixture
def follow_up_task(patient, sales_user):
    return FollowUpTask.objects.create(patient=patient, assigned_to=sales_user)


@pytest.fixture
def make_appointment(sales_user, today):
    """Completed appointment factory; pass ``specialities=[]`` for none."""

    def _make(patient, hospital, *, specialities=None, legacy="", scheduled_date=None, **extra):
        extra.setdefault("sales_person", patient.sales_person or sales_user)
        appointment = Appointment.objects.create(
            patient=patient,
            hospital=hospital,
            scheduled_date=scheduled_date or today,
            status=Appointment.Status.COMPLETED,
            speciality=legacy,
            **extra,
        )
        if specialities:
            appointment.specialities.set(specialities)
        return appointment

    return _make


@pytest.fixture
def convert(make_appointment, django_capture_on_commit_callbacks):
    """Convert a fresh completed appointment into a visit, running after-commit hooks."""
    from clinic.services import convert_appointment_to_visit

    def _convert(patient, hospital, **kwargs):
        appointment = make_appointment(patient, hospital, **kwargs)
        with django_capture_on_commit_callbacks(execute=True):
            return convert_appointment_to_visit(appointment)

    return _convert


@pytest.fixture
def week_window(today):
    return today - timedelta(days=today.weekday()), today - timedelta(days=today.weekday()) + timedelta(days=6)


@pytest.fixture
def team(sales_user, second_sales_user):
    from teams.models import Team, TeamMember

    team = Team.objects.create(name="Equipe Littoral", leader=sales_user)
    TeamMember.objects.create(team=team, employee=second_sales_user)
    return team


@pytest.fixture
def record_follow_up(patient, hospital, today):
    """Record a FOLLOW_UP ledger entry on a fresh visit."""
    from clinic.models import Visit
    from commissions.ledger import record_commission

    def _record(employee):
        visit = Visit.objects.create(patient=patient, hospital=hospital, visit_date=today)
        return record_commission(
            employee,
            "FOLLOW_UP",
            today,
            patient=patient,
            visit=visit,
            hospital=hospital,
        )

    return _record
