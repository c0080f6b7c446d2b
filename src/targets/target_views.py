"""API views for the targets module."""
from __future__ import annotations

import logging

from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from accounts.models import User
from api.v1.pagination import StandardResultsSetPagination
from api.v1.permissions import IsAdminOrManager, is_admin_or_manager
from targets import services
from targets.filters import TargetFilter
from targets.models import Target
from targets.target_serializers import (
    EmployeeTargetSerializer,
    ProgressHistoryQuerySerializer,
    ProgressInputSerializer,
    TargetProgressSerializer,
    TargetSerializer,
    TargetStatsSerializer,
    TargetUpdateSerializer,
    TargetWriteSerializer,
)

logger = logging.getLogger(__name__)


class TargetViewSet(viewsets.ModelViewSet):
    """CRUD for targets plus progress, stats and sweeper endpoints.

    Listings recompute the returned page so values reflect the sources.
    Employees without a management role only see their own targets.
    """

    serializer_class = TargetSerializer
    queryset = Target.objects.select_related("assigned_to", "assigned_by", "team")
    pagination_class = StandardResultsSetPagination
    filterset_class = TargetFilter
    ordering_fields = ["created_at", "start_date", "end_date", "current_value"]
    ordering = ["-created_at"]

    MANAGER_ACTIONS = ("create", "update", "partial_update", "destroy", "auto_reset")

    def get_permissions(self):
        if self.action in self.MANAGER_ACTIONS:
            return [permissions.IsAuthenticated(), IsAdminOrManager()]
        return [permissions.IsAuthenticated()]

    def get_queryset(self):
        qs = self.queryset
        if not is_admin_or_manager(self.request.user):
            qs = qs.filter(assigned_to=self.request.user)
        return qs

    # ── CRUD ────────────────────────────────────────────────

    def list(self, request, *args, **kwargs):
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        targets = services.recompute_targets(list(page if page is not None else queryset))
        serializer = self.get_serializer(targets, many=True)
        if page is not None:
            return self.get_paginated_response(serializer.data)
        return Response(serializer.data)

    def create(self, request, *args, **kwargs):
        serializer = TargetWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        target = services.create_target(assigned_by=request.user, **serializer.validated_data)
        return Response(TargetSerializer(target).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        target = self.get_object()
        serializer = TargetUpdateSerializer(data=request.data, partial=kwargs.get("partial", False))
        serializer.is_valid(raise_exception=True)
        target = services.update_target(target, **serializer.validated_data)
        return Response(TargetSerializer(target).data)

    def perform_destroy(self, instance):
        services.delete_target(instance)

    # ── Actions ─────────────────────────────────────────────

    @action(detail=True, methods=["get", "post"])
    def progress(self, request, pk=None):
        target = self.get_object()
        if request.method == "GET":
            query = ProgressHistoryQuerySerializer(data=request.query_params)
            query.is_valid(raise_exception=True)
            history = services.get_target_progress_history(target, query.validated_data.get("days"))
            return Response(TargetProgressSerializer(history, many=True).data)

        if target.assigned_to_id != request.user.pk and not is_admin_or_manager(request.user):
            return Response(
                {"code": "FORBIDDEN", "message": "Seul l'employe assigne peut saisir la progression."},
                status=status.HTTP_403_FORBIDDEN,
            )
        serializer = ProgressInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        target, entry = services.update_target_progress(target, **serializer.validated_data)
        return Response(
            {"target": TargetSerializer(target).data, "progress": TargetProgressSerializer(entry).data}
        )

    @action(detail=True, methods=["post"])
    def calculate(self, request, pk=None):
        target = self.get_object()
        services.calculate_target_progress(target)
        return Response(TargetSerializer(target).data)

    @action(detail=False, methods=["get"])
    def stats(self, request):
        employee = request.user
        employee_id = request.query_params.get("employee")
        if is_admin_or_manager(request.user):
            employee = User.objects.filter(pk=employee_id).first() if employee_id else None
        return Response(TargetStatsSerializer(services.get_target_stats(employee)).data)

    @action(detail=False, methods=["post"], url_path="auto-reset")
    def auto_reset(self, request):
        changes = services.auto_reset_targets()
        return Response({"count": len(changes), "changes": changes})

    @action(detail=False, methods=["get"])
    def categories(self, request):
        return Response(services.target_categories())

    @action(detail=False, methods=["get"])
    def types(self, request):
        return Response(services.target_types())

    @action(detail=False, methods=["get"])
    def mine(self, request):
        targets = services.get_employee_targets(
            request.user,
            type=request.query_params.get("type"),
            category=request.query_params.get("category"),
        )
        return Response(EmployeeTargetSerializer(targets, many=True).data)
