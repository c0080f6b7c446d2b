"""API views for the commission ledger."""
from __future__ import annotations

from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from accounts.models import User
from api.v1.pagination import StandardResultsSetPagination
from api.v1.permissions import IsAdminOrManager, is_admin_or_manager
from commissions.commission_serializers import CommissionSerializer, ManualAdjustmentSerializer
from commissions.filters import CommissionFilter
from commissions.ledger import commission_summary, create_manual_adjustment
from commissions.models import Commission


class CommissionViewSet(viewsets.ReadOnlyModelViewSet):
    """Read-only ledger. Entries are written by the rules and manual adjustments only."""

    serializer_class = CommissionSerializer
    queryset = Commission.objects.select_related("employee", "patient")
    pagination_class = StandardResultsSetPagination
    filterset_class = CommissionFilter
    ordering_fields = ["created_at", "period", "amount"]
    ordering = ["-created_at"]

    def get_permissions(self):
        if self.action == "manual_adjustment":
            return [permissions.IsAuthenticated(), IsAdminOrManager()]
        return [permissions.IsAuthenticated()]

    def get_queryset(self):
        qs = self.queryset
        if not is_admin_or_manager(self.request.user):
            qs = qs.filter(employee=self.request.user)
        return qs

    @action(detail=False, methods=["get"])
    def summary(self, request):
        employee = request.user
        if is_admin_or_manager(request.user):
            employee_id = request.query_params.get("employee")
            employee = User.objects.filter(pk=employee_id).first() if employee_id else None
        filters = CommissionFilter(request.query_params, queryset=Commission.objects.none())
        filters.is_valid()
        data = filters.form.cleaned_data
        return Response(
            commission_summary(employee=employee, start=data.get("start"), end=data.get("end"))
        )

    @action(detail=False, methods=["post"], url_path="manual-adjustment")
    def manual_adjustment(self, request):
        serializer = ManualAdjustmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        commission = create_manual_adjustment(
            serializer.validated_data["employee"],
            serializer.validated_data["description"],
            serializer.validated_data["amount"],
            created_by=request.user,
        )
        return Response(CommissionSerializer(commission).data, status=status.HTTP_201_CREATED)
