import uuid
from datetime import timedelta

import pytest

from core.exceptions import NotFound, ValidationError
from targets.models import Target
from teams import services
from teams.models import Team, TeamMember


@pytest.fixture
def team_target_data(today):
    return {
        "type": "monthly",
        "category": "follow_up_patients",
        "target_value": 10,
        "start_date": today.replace(day=1),
        "end_date": today + timedelta(days=30),
    }


@pytest.mark.django_db
class TestCreateTeam:
    def test_creates_team_with_leader_owned_targets(self, sales_user, manager_user, team_target_data):
        team = services.create_team(
            name="  Equipe Centre ",
            leader=sales_user,
            targets=[team_target_data],
            created_by=manager_user,
        )

        assert team.name == "Equipe Centre"
        target = team.targets.get()
        assert target.assigned_to == sales_user
        assert target.assigned_by == manager_user
        assert target.is_team_target

    def test_leader_must_be_sales_or_coordinator(self, receptionist_user):
        with pytest.raises(ValidationError):
            services.create_team(name="Accueil", leader=receptionist_user)

    def test_coordinator_can_lead(self, coordinator_user):
        assert services.create_team(name="Coordination", leader=coordinator_user).leader == coordinator_user

    def test_leader_already_member_elsewhere(self, team, second_sales_user):
        with pytest.raises(ValidationError):
            services.create_team(name="Equipe Sud", leader=second_sales_user)

    def test_employee_cannot_lead_two_active_teams(self, team, sales_user):
        with pytest.raises(ValidationError) as excinfo:
            services.create_team(name="Equipe Sud", leader=sales_user)
        assert excinfo.value.details == {"team": str(team.pk)}

    def test_leader_of_retired_team_can_lead_again(self, team, sales_user):
        services.delete_team(team)
        assert services.create_team(name="Equipe Sud", leader=sales_user).leader == sales_user

    def test_duplicate_name_is_case_insensitive(self, team, coordinator_user):
        with pytest.raises(ValidationError):
            services.create_team(name="equipe littoral", leader=coordinator_user)

    def test_invalid_target_rolls_back_team(self, coordinator_user, team_target_data):
        with pytest.raises(ValidationError):
            services.create_team(
                name="Equipe Est",
                leader=coordinator_user,
                targets=[{**team_target_data, "target_value": 0}],
            )
        assert not Team.objects.filter(name="Equipe Est").exists()


@pytest.mark.django_db
class TestMembership:
    def test_add_member(self, team, coordinator_user):
        member = services.add_team_member(team, coordinator_user)
        assert member.is_active
        assert coordinator_user in [m.employee for m in team.active_members()]

    def test_employee_in_one_active_team_only(self, team, second_sales_user, coordinator_user):
        other = services.create_team(name="Equipe Ouest", leader=coordinator_user)
        with pytest.raises(ValidationError):
            services.add_team_member(other, second_sales_user)

    def test_leader_cannot_join_another_team(self, team, sales_user, coordinator_user):
        other = services.create_team(name="Equipe Ouest", leader=coordinator_user)
        with pytest.raises(ValidationError) as excinfo:
            services.add_team_member(other, sales_user)
        assert excinfo.value.details == {"team": str(team.pk)}
        assert not TeamMember.objects.filter(team=other, employee=sales_user).exists()

    def test_ineligible_employee(self, team, receptionist_user):
        with pytest.raises(ValidationError):
            services.add_team_member(team, receptionist_user)

    def test_leader_cannot_be_member(self, team, sales_user):
        with pytest.raises(ValidationError):
            services.add_team_member(team, sales_user)

    def test_remove_then_re_add_reactivates(self, team, second_sales_user):
        assert services.remove_team_member(team, second_sales_user) == 1
        assert services.remove_team_member(team, second_sales_user) == 0

        member = services.add_team_member(team, second_sales_user)
        assert member.is_active
        assert TeamMember.objects.filter(team=team, employee=second_sales_user).count() == 1

    def test_lookup_by_member_and_leader(self, team, sales_user, second_sales_user):
        assert services.get_team_by_member(second_sales_user) == team
        assert services.get_teams_by_leader(sales_user) == [team]
        assert services.get_team_by_member(sales_user) is None


@pytest.mark.django_db
class TestUpdateTeam:
    def test_new_leader_takes_over_targets(self, team, coordinator_user, team_target_data):
        services.update_team_targets(team, [team_target_data])
        services.update_team(team, leader=coordinator_user)

        team.refresh_from_db()
        assert team.leader == coordinator_user
        assert team.targets.get().assigned_to == coordinator_user

    def test_new_leader_cannot_lead_another_team(self, team, coordinator_user):
        services.create_team(name="Equipe Plateau", leader=coordinator_user)
        with pytest.raises(ValidationError):
            services.update_team(team, leader=coordinator_user)

    def test_member_can_be_promoted_within_team(self, team, second_sales_user):
        services.update_team(team, leader=second_sales_user)

        team.refresh_from_db()
        assert team.leader == second_sales_user
        assert second_sales_user not in [m.employee for m in team.active_members()]

    def test_rename_conflict(self, team, coordinator_user):
        services.create_team(name="Equipe Plateau", leader=coordinator_user)
        with pytest.raises(ValidationError):
            services.update_team(team, name="EQUIPE PLATEAU")

    def test_update_targets_upserts_by_category(self, team, team_target_data):
        first = services.update_team_targets(team, [team_target_data])[0]
        again = services.update_team_targets(team, [{**team_target_data, "target_value": 15}])[0]

        assert again.pk == first.pk
        assert Target.objects.get(pk=first.pk).target_value == 15

    def test_soft_delete(self, team):
        services.delete_team(team)
        assert Team.objects.filter(pk=team.pk, is_active=False).exists()
        assert team not in services.list_teams()
        assert team in services.list_teams(include_inactive=True)

    def test_get_team_not_found(self, db):
        with pytest.raises(NotFound):
            services.get_team(uuid.uuid4())


@pytest.mark.django_db
def test_leader_display_name(team, sales_user):
    assert team.leader_display_name == "Equipe Littoral Sales User"
    services.delete_team(team)
    assert team.leader_display_name == "Sales User"
