"""DRF Serializers for the commissions module."""
from __future__ import annotations

from rest_framework import serializers

from accounts.models import User
from commissions.models import Commission


class CommissionSerializer(serializers.ModelSerializer):
    employee_name = serializers.SerializerMethodField()
    patient_name = serializers.CharField(source="patient.full_name", read_only=True, default=None)
    type_display = serializers.CharField(source="get_type_display", read_only=True)

    class Meta:
        model = Commission
        fields = [
            "id", "employee", "employee_name", "patient", "patient_name",
            "type", "type_display", "amount", "period", "description",
            "visit", "hospital", "visit_speciality", "created_by", "created_at",
        ]
        read_only_fields = fields

    def get_employee_name(self, obj):
        return obj.employee.get_full_name() or obj.employee.email


class ManualAdjustmentSerializer(serializers.Serializer):
    employee = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(is_active=True))
    amount = serializers.IntegerField(default=1)
    description = serializers.CharField(max_length=500)

    def validate_amount(self, value):
        if value == 0:
            raise serializers.ValidationError("Le montant d'un ajustement ne peut pas etre nul.")
        return value
