"""Django admin for the targets module."""
from django.contrib import admin

from targets.models import Target, TargetProgress


class TargetProgressInline(admin.TabularInline):
    model = TargetProgress
    extra = 0
    ordering = ("-date",)
    fields = ("date", "progress", "notes")


@admin.register(Target)
class TargetAdmin(admin.ModelAdmin):
    list_display = (
        "assigned_to", "team", "category", "type",
        "progress_display", "start_date", "end_date", "is_active",
    )
    list_filter = ("is_active", "category", "type")
    search_fields = ("assigned_to__email", "assigned_to__last_name", "team__name")
    readonly_fields = ("current_value", "completed_at", "created_at", "updated_at")
    inlines = [TargetProgressInline]
    actions = ["recompute_selected"]

    def progress_display(self, obj):
        return f"{obj.current_value}/{obj.target_value}"

    progress_display.short_description = "progression"

    @admin.action(description="Recalculer la progression")
    def recompute_selected(self, request, queryset):
        from targets.engine import TargetProgressEngine

        count = TargetProgressEngine().recompute_many(queryset.select_related("assigned_to", "team"))
        self.message_user(request, f"{count} objectif(s) recalcule(s).")
