"""Django admin for clinical records."""
from django.contrib import admin

from clinic.models import (
    Appointment,
    FollowUpTask,
    Hospital,
    Nomination,
    Patient,
    Speciality,
    Visit,
    VisitSpeciality,
)


@admin.register(Hospital)
class HospitalAdmin(admin.ModelAdmin):
    list_display = ("name", "city", "is_active")
    list_filter = ("is_active",)
    search_fields = ("name", "city")


@admin.register(Speciality)
class SpecialityAdmin(admin.ModelAdmin):
    list_display = ("name", "is_active")
    search_fields = ("name",)


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ("full_name", "phone", "sales_person", "created_at")
    search_fields = ("full_name", "phone")
    raw_id_fields = ("sales_person",)


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ("patient", "hospital", "scheduled_date", "status", "sales_person")
    list_filter = ("status", "hospital")
    search_fields = ("patient__full_name",)
    raw_id_fields = ("patient", "sales_person", "created_by", "created_from_follow_up_task")


class VisitSpecialityInline(admin.TabularInline):
    model = VisitSpeciality
    extra = 0
    fields = ("speciality", "kind", "details")


@admin.register(Visit)
class VisitAdmin(admin.ModelAdmin):
    list_display = ("patient", "hospital", "visit_date", "coordinator", "sales_person")
    list_filter = ("hospital",)
    search_fields = ("patient__full_name",)
    raw_id_fields = ("patient", "appointment", "coordinator", "sales_person")
    inlines = [VisitSpecialityInline]


@admin.register(FollowUpTask)
class FollowUpTaskAdmin(admin.ModelAdmin):
    list_display = ("patient", "assigned_to", "status", "created_at")
    list_filter = ("status",)
    raw_id_fields = ("patient", "assigned_to")


@admin.register(Nomination)
class NominationAdmin(admin.ModelAdmin):
    list_display = ("nominated_patient_name", "coordinator", "status", "converted_to_patient")
    list_filter = ("status",)
    raw_id_fields = ("coordinator", "converted_to_patient")
