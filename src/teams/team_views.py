"""API views for the teams module."""
from __future__ import annotations

import logging

from django.db.models import Q
from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from accounts.models import User
from api.v1.permissions import IsAdminOrManager
from core.exceptions import NotFound
from targets.target_serializers import TargetSerializer
from teams import services
from teams.models import Team
from teams.team_serializers import (
    AnalysisQuerySerializer,
    TeamCreateSerializer,
    TeamMemberInputSerializer,
    TeamMemberSerializer,
    TeamSerializer,
    TeamTargetsInputSerializer,
    TeamUpdateSerializer,
    WindowQuerySerializer,
)

logger = logging.getLogger(__name__)


class TeamViewSet(viewsets.ModelViewSet):
    """Team CRUD (soft delete), membership, shared targets and progress."""

    serializer_class = TeamSerializer
    queryset = Team.objects.select_related("leader").prefetch_related("memberships__employee")
    filterset_fields = ["is_active", "leader"]
    search_fields = ["name"]

    READ_ACTIONS = ("list", "retrieve", "progress", "members_progress", "mine")

    def get_permissions(self):
        if self.action in self.READ_ACTIONS:
            return [permissions.IsAuthenticated()]
        return [permissions.IsAuthenticated(), IsAdminOrManager()]

    def create(self, request, *args, **kwargs):
        serializer = TeamCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        team = services.create_team(created_by=request.user, **serializer.validated_data)
        return Response(TeamSerializer(team).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        team = self.get_object()
        serializer = TeamUpdateSerializer(data=request.data, partial=kwargs.get("partial", False))
        serializer.is_valid(raise_exception=True)
        team = services.update_team(team, **serializer.validated_data)
        return Response(TeamSerializer(team).data)

    def destroy(self, request, *args, **kwargs):
        services.delete_team(self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)

    # ── Members ─────────────────────────────────────────────

    @action(detail=True, methods=["post"])
    def members(self, request, pk=None):
        team = self.get_object()
        serializer = TeamMemberInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        member = services.add_team_member(team, serializer.validated_data["employee"])
        return Response(TeamMemberSerializer(member).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["delete"], url_path=r"members/(?P<employee_id>[^/.]+)")
    def remove_member(self, request, pk=None, employee_id=None):
        team = self.get_object()
        employee = User.objects.filter(pk=employee_id).first()
        if employee is None:
            raise NotFound("Employe", employee_id)
        if not services.remove_team_member(team, employee):
            raise NotFound("Membre d'equipe", employee_id)
        return Response(status=status.HTTP_204_NO_CONTENT)

    # ── Targets & progress ──────────────────────────────────

    @action(detail=True, methods=["put"])
    def targets(self, request, pk=None):
        team = self.get_object()
        serializer = TeamTargetsInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        targets = services.update_team_targets(
            team,
            serializer.validated_data["targets"],
            assigned_by=request.user,
        )
        return Response(TargetSerializer(targets, many=True).data)

    @action(detail=True, methods=["get"])
    def progress(self, request, pk=None):
        team = self.get_object()
        query = WindowQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data
        start, end = params.get("start_date"), params.get("end_date")
        if params.get("category"):
            return Response(services.team_progress(team, params["category"], start, end))
        return Response(services.all_team_progress(team, start, end))

    @action(detail=True, methods=["get"], url_path="members-progress")
    def members_progress(self, request, pk=None):
        team = self.get_object()
        query = WindowQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data
        rows = services.members_progress(
            team,
            params.get("category"),
            params.get("start_date"),
            params.get("end_date"),
        )
        return Response(rows)

    @action(detail=False, methods=["get"])
    def analysis(self, request):
        query = AnalysisQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        return Response(services.teams_analysis(**query.validated_data))

    @action(detail=False, methods=["get"])
    def mine(self, request):
        teams = (
            self.get_queryset()
            .filter(is_active=True)
            .filter(
                Q(leader=request.user)
                | Q(memberships__employee=request.user, memberships__is_active=True)
            )
            .distinct()
        )
        return Response(TeamSerializer(teams, many=True).data)
