"""DRF Serializers for the targets module."""
from __future__ import annotations

from rest_framework import serializers

from accounts.models import User
from targets.models import Target, TargetProgress


# ────────────────────────────────────────────────────────────
# Read
# ────────────────────────────────────────────────────────────

class TargetProgressSerializer(serializers.ModelSerializer):
    class Meta:
        model = TargetProgress
        fields = ["id", "date", "progress", "notes", "updated_at"]


class TargetSerializer(serializers.ModelSerializer):
    assigned_to_name = serializers.SerializerMethodField()
    progress_percent = serializers.FloatField(read_only=True)
    is_team_target = serializers.BooleanField(read_only=True)

    class Meta:
        model = Target
        fields = [
            "id", "assigned_to", "assigned_to_name", "assigned_by", "team",
            "type", "category", "description", "target_value", "current_value",
            "progress_percent", "is_team_target", "start_date", "end_date",
            "is_active", "completed_at", "created_at", "updated_at",
        ]
        read_only_fields = fields

    def get_assigned_to_name(self, obj):
        return obj.assigned_to.display_name


class EmployeeTargetSerializer(TargetSerializer):
    recent_progress = TargetProgressSerializer(many=True, read_only=True)

    class Meta(TargetSerializer.Meta):
        fields = [*TargetSerializer.Meta.fields, "recent_progress"]
        read_only_fields = fields


# ────────────────────────────────────────────────────────────
# Write
# ────────────────────────────────────────────────────────────

class TargetWriteSerializer(serializers.Serializer):
    assigned_to = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(is_active=True))
    type = serializers.ChoiceField(choices=Target.Type.choices)
    category = serializers.ChoiceField(choices=Target.Category.choices)
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


class TargetUpdateSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=Target.Type.choices, required=False)
    category = serializers.ChoiceField(choices=Target.Category.choices, required=False)
    target_value = serializers.IntegerField(min_value=1, required=False)
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    is_active = serializers.BooleanField(required=False)


class ProgressInputSerializer(serializers.Serializer):
    progress = serializers.IntegerField(min_value=0)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class ProgressHistoryQuerySerializer(serializers.Serializer):
    days = serializers.IntegerField(min_value=1, max_value=365, required=False)


class TargetStatsSerializer(serializers.Serializer):
    total_targets = serializers.IntegerField()
    active_targets = serializers.IntegerField()
    completed_targets = serializers.IntegerField()
    overdue_targets = serializers.IntegerField()
    total_progress = serializers.IntegerField()
    average_progress = serializers.FloatField()
