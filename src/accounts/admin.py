from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.translation import gettext_lazy as _

from .models import EmployeeRole, User


class EmployeeRoleInline(admin.TabularInline):
    model = EmployeeRole
    extra = 0
    fields = ("role", "is_active")


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Admin configuration for clinic employees."""

    # ------------------------------------------------------------------
    # List view
    # ------------------------------------------------------------------
    list_display = (
        "email",
        "first_name",
        "last_name",
        "role",
        "other_roles",
        "led_team",
        "commission_count",
        "is_active",
    )
    list_filter = ("role", "extra_roles__role", "is_active")
    search_fields = ("email", "first_name", "last_name", "phone")
    ordering = ("last_name", "first_name")
    actions = ("activate_users", "deactivate_users")
    inlines = [EmployeeRoleInline]

    # ------------------------------------------------------------------
    # Detail / edit view
    # ------------------------------------------------------------------
    fieldsets = (
        (None, {"fields": ("email", "password")}),
        (
            _("Informations personnelles"),
            {"fields": ("first_name", "last_name", "phone")},
        ),
        (
            _("Role et incentives"),
            {
                "fields": (
                    "role",
                    "commission_count",
                    "is_active",
                    "is_staff",
                    "is_superuser",
                ),
            },
        ),
        (
            _("Dates importantes"),
            {"fields": ("last_login", "date_joined")},
        ),
    )

    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": (
                    "email",
                    "first_name",
                    "last_name",
                    "role",
                    "password1",
                    "password2",
                ),
            },
        ),
    )

    readonly_fields = ("date_joined", "last_login", "commission_count")

    @admin.action(description="Activer les employes selectionnes")
    def activate_users(self, request, queryset):
        queryset.update(is_active=True)

    @admin.action(description="Desactiver les employes selectionnes")
    def deactivate_users(self, request, queryset):
        queryset.update(is_active=False)

    @admin.display(description="Autres roles")
    def other_roles(self, obj):
        return ", ".join(sorted(obj.role_codes() - {obj.role})) or "-"

    @admin.display(description="Equipe dirigee")
    def led_team(self, obj):
        team = obj.led_teams.filter(is_active=True).first()
        return team.name if team else "-"
