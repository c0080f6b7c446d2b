"""Main API URL router for /api/v1/."""
from django.urls import include, path
from rest_framework.routers import DefaultRouter

from commissions import commission_views
from targets import target_views
from teams import team_views

router = DefaultRouter()
router.register(r"targets", target_views.TargetViewSet, basename="target")
router.register(r"teams", team_views.TeamViewSet, basename="team")
router.register(r"commissions", commission_views.CommissionViewSet, basename="commission")

urlpatterns = [
    path("", include(router.urls)),
]
