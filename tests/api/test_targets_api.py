from datetime import timedelta

import pytest

from targets.models import Target
from targets.services import create_target


def _unwrap_results(payload):
    if isinstance(payload, dict) and "results" in payload:
        return payload["results"]
    return payload


@pytest.fixture
def custom_target(sales_user, today):
    return create_target(
        assigned_to=sales_user,
        type=Target.Type.WEEKLY,
        category=Target.Category.CUSTOM,
        target_value=3,
        start_date=today,
        end_date=today + timedelta(days=6),
    )


def _payload(employee, today, **overrides):
    return {
        "assigned_to": str(employee.pk),
        "type": "daily",
        "category": "follow_up_patients",
        "target_value": 2,
        "start_date": today.isoformat(),
        "end_date": today.isoformat(),
        **overrides,
    }


@pytest.mark.django_db
def test_anonymous_requests_are_rejected(client):
    response = client.get("/api/v1/targets/")
    assert response.status_code == 403


@pytest.mark.django_db
def test_manager_creates_target(client, manager_user, sales_user, today):
    client.force_login(manager_user)

    response = client.post("/api/v1/targets/", data=_payload(sales_user, today), content_type="application/json")

    assert response.status_code == 201
    body = response.json()
    assert body["current_value"] == 0
    assert body["assigned_to_name"] == "Sales User"
    assert body["is_team_target"] is False
    assert Target.objects.get(pk=body["id"]).assigned_by == manager_user


@pytest.mark.django_db
def test_sales_person_cannot_create_targets(client, sales_user, today):
    client.force_login(sales_user)
    response = client.post("/api/v1/targets/", data=_payload(sales_user, today), content_type="application/json")
    assert response.status_code == 403


@pytest.mark.django_db
def test_inverted_window_is_rejected(client, manager_user, sales_user, today):
    client.force_login(manager_user)
    payload = _payload(sales_user, today, end_date=(today - timedelta(days=1)).isoformat())

    response = client.post("/api/v1/targets/", data=payload, content_type="application/json")

    assert response.status_code == 400
    assert "end_date" in response.json()


@pytest.mark.django_db
def test_employees_only_list_their_own_targets(client, custom_target, second_sales_user, manager_user):
    client.force_login(second_sales_user)
    assert _unwrap_results(client.get("/api/v1/targets/").json()) == []

    client.force_login(manager_user)
    results = _unwrap_results(client.get("/api/v1/targets/").json())
    assert [row["id"] for row in results] == [str(custom_target.pk)]


@pytest.mark.django_db
def test_assignee_records_manual_progress(client, custom_target, sales_user, today):
    client.force_login(sales_user)

    response = client.post(
        f"/api/v1/targets/{custom_target.pk}/progress/",
        data={"progress": 3, "notes": "Appels termines"},
        content_type="application/json",
    )

    assert response.status_code == 200
    body = response.json()
    assert body["target"]["current_value"] == 3
    assert body["target"]["completed_at"] is not None
    assert body["progress"]["date"] == today.isoformat()

    history = client.get(f"/api/v1/targets/{custom_target.pk}/progress/").json()
    assert [row["progress"] for row in history] == [3]


@pytest.mark.django_db
def test_negative_progress_is_rejected(client, custom_target, sales_user):
    client.force_login(sales_user)
    response = client.post(
        f"/api/v1/targets/{custom_target.pk}/progress/",
        data={"progress": -2},
        content_type="application/json",
    )
    assert response.status_code == 400


@pytest.mark.django_db
def test_progress_history_rejects_malformed_days(client, custom_target, sales_user):
    client.force_login(sales_user)
    base = f"/api/v1/targets/{custom_target.pk}/progress/"

    assert client.get(base, {"days": "abc"}).status_code == 400
    assert client.get(base, {"days": "0"}).status_code == 400
    assert client.get(base, {"days": "7"}).status_code == 200


@pytest.mark.django_db
def test_calculate_reports_unavailable_store(client, manager_user, sales_user, today, monkeypatch, settings):
    from django.db import OperationalError

    from commissions.models import Commission

    target = create_target(
        assigned_to=sales_user,
        type=Target.Type.DAILY,
        category=Target.Category.FOLLOW_UP_PATIENTS,
        target_value=1,
        start_date=today,
        end_date=today,
    )
    settings.DB_RETRY_ATTEMPTS = 2

    def unavailable(*args, **kwargs):
        raise OperationalError("could not connect to server")

    monkeypatch.setattr(Commission.objects, "filter", unavailable)
    client.force_login(manager_user)

    response = client.post(f"/api/v1/targets/{target.pk}/calculate/")
    assert response.status_code == 503
    assert response.json()["code"] == "STORE_UNAVAILABLE"


@pytest.mark.django_db
def test_unknown_target_returns_404(client, manager_user):
    client.force_login(manager_user)
    response = client.get("/api/v1/targets/00000000-0000-0000-0000-000000000000/")
    assert response.status_code == 404


@pytest.mark.django_db
def test_stats_and_reference_data(client, custom_target, sales_user):
    client.force_login(sales_user)

    stats = client.get("/api/v1/targets/stats/").json()
    assert stats["total_targets"] == 1
    assert stats["active_targets"] == 1

    categories = client.get("/api/v1/targets/categories/").json()
    assert "new_patients" in {row["value"] for row in categories}
    types = client.get("/api/v1/targets/types/").json()
    assert [row["value"] for row in types] == ["daily", "weekly", "monthly"]


@pytest.mark.django_db
def test_mine_returns_active_targets_with_history(client, custom_target, sales_user):
    client.force_login(sales_user)
    response = client.get("/api/v1/targets/mine/")
    assert response.status_code == 200
    assert response.json()[0]["recent_progress"] == []


@pytest.mark.django_db
def test_auto_reset_requires_manager(client, sales_user, manager_user, today):
    create_target(
        assigned_to=sales_user, type="daily", category="custom", target_value=1,
        start_date=today - timedelta(days=2), end_date=today - timedelta(days=2),
    )
    client.force_login(sales_user)
    assert client.post("/api/v1/targets/auto-reset/").status_code == 403

    client.force_login(manager_user)
    response = client.post("/api/v1/targets/auto-reset/")
    assert response.status_code == 200
    assert response.json()["count"] == 1
