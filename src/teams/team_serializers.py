"""DRF Serializers for the teams module."""
from __future__ import annotations

from rest_framework import serializers

from accounts.models import User
from targets.models import Target
from targets.target_serializers import TargetSerializer
from teams.models import Team, TeamMember


class TeamMemberSerializer(serializers.ModelSerializer):
    employee_name = serializers.SerializerMethodField()
    role = serializers.CharField(source="employee.role", read_only=True)

    class Meta:
        model = TeamMember
        fields = ["id", "employee", "employee_name", "role", "is_active", "joined_at"]
        read_only_fields = fields

    def get_employee_name(self, obj):
        return obj.employee.get_full_name() or obj.employee.email


class TeamSerializer(serializers.ModelSerializer):
    leader_name = serializers.CharField(source="leader_display_name", read_only=True)
    members = serializers.SerializerMethodField()
    targets = serializers.SerializerMethodField()

    class Meta:
        model = Team
        fields = [
            "id", "name", "leader", "leader_name", "is_active",
            "members", "targets", "created_at", "updated_at",
        ]
        read_only_fields = fields

    def get_members(self, obj):
        return TeamMemberSerializer(obj.active_members(), many=True).data

    def get_targets(self, obj):
        return TargetSerializer(obj.targets.filter(is_active=True), many=True).data


class TeamTargetInputSerializer(serializers.Serializer):
    category = serializers.ChoiceField(choices=Target.Category.choices)
    type = serializers.ChoiceField(choices=Target.Type.choices)
    target_value = serializers.IntegerField(min_value=1)
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    description = serializers.CharField(required=False, allow_blank=True, default="")

    def validate(self, attrs):
        if attrs["end_date"] < attrs["start_date"]:
            raise serializers.ValidationError(
                {"end_date": "La date de fin doit etre posterieure ou egale a la date de debut."}
            )
        return attrs


class TeamCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=120)
    leader = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(is_active=True))
    targets = TeamTargetInputSerializer(many=True, required=False, default=list)


class TeamUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=120, required=False)
    leader = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(is_active=True), required=False)
    is_active = serializers.BooleanField(required=False)


class TeamMemberInputSerializer(serializers.Serializer):
    employee = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(is_active=True))


class TeamTargetsInputSerializer(serializers.Serializer):
    targets = TeamTargetInputSerializer(many=True)


class WindowQuerySerializer(serializers.Serializer):
    category = serializers.ChoiceField(choices=Target.Category.choices, required=False)
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)


class AnalysisQuerySerializer(serializers.Serializer):
    month = serializers.IntegerField(min_value=1, max_value=12, required=False)
    year = serializers.IntegerField(min_value=2000, max_value=2100, required=False)
