"""Django admin for the commission ledger (read-only)."""
from django.contrib import admin

from commissions.models import Commission


@admin.register(Commission)
class CommissionAdmin(admin.ModelAdmin):
    list_display = ("employee", "type", "amount", "period", "patient", "created_at")
    list_filter = ("type", "period")
    search_fields = ("employee__email", "employee__last_name", "patient__full_name", "description")
    date_hierarchy = "period"
    readonly_fields = [f.name for f in Commission._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
