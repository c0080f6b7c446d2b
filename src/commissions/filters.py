"""FilterSets for the commission ledger."""
import django_filters

from commissions.models import Commission


class CommissionFilter(django_filters.FilterSet):
    employee = django_filters.UUIDFilter(field_name="employee_id")
    patient = django_filters.UUIDFilter(field_name="patient_id")
    start = django_filters.DateFilter(field_name="period", lookup_expr="gte")
    end = django_filters.DateFilter(field_name="period", lookup_expr="lte")

    class Meta:
        model = Commission
        fields = ["employee", "patient", "type", "start", "end"]
