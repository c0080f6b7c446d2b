"""Django admin for the teams module."""
from django.contrib import admin

from teams.models import Team, TeamMember


class TeamMemberInline(admin.TabularInline):
    model = TeamMember
    extra = 0
    fields = ("employee", "is_active", "joined_at")
    readonly_fields = ("joined_at",)


@admin.register(Team)
class TeamAdmin(admin.ModelAdmin):
    list_display = ("name", "leader", "member_count", "is_active", "created_at")
    list_filter = ("is_active",)
    search_fields = ("name", "leader__email", "leader__last_name")
    inlines = [TeamMemberInline]

    def member_count(self, obj):
        return obj.memberships.filter(is_active=True).count()

    member_count.short_description = "membres"
