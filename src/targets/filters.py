"""FilterSets for target listings."""
import django_filters

from targets.models import Target


class TargetFilter(django_filters.FilterSet):
    employee = django_filters.UUIDFilter(field_name="assigned_to_id")
    team = django_filters.UUIDFilter(field_name="team_id")
    active_on = django_filters.DateFilter(method="filter_active_on")

    class Meta:
        model = Target
        fields = ["employee", "team", "category", "type", "is_active"]

    def filter_active_on(self, queryset, name, value):
        return queryset.filter(start_date__lte=value, end_date__gte=value)
