from django.contrib import admin
from .models import ClinicalParameter, DoctorLeave, DoctorSchedule, PatientDemographics


@admin.register(DoctorSchedule)
class DoctorScheduleAdmin(admin.ModelAdmin):
    list_display = ['doctor_id', 'day_of_week', 'start_time', 'end_time', 'effective_from', 'effective_until', 'is_active']
    list_filter = ['day_of_week', 'is_active']
    search_fields = ['doctor_id']
    readonly_fields = ['id', 'created_at', 'updated_at']

    fieldsets = (
        ('Window', {
            'fields': ('id', 'doctor_id', 'day_of_week', 'start_time', 'end_time')
        }),
        ('Break', {
            'fields': ('break_start', 'break_end')
        }),
        ('Validity', {
            'fields': ('effective_from', 'effective_until', 'is_active')
        }),
        ('Audit', {
            'fields': ('created_at', 'updated_at')
        }),
    )


@admin.register(DoctorLeave)
class DoctorLeaveAdmin(admin.ModelAdmin):
    list_display = ['doctor_id', 'leave_type', 'from_date', 'to_date', 'status']
    list_filter = ['leave_type', 'status']
    search_fields = ['doctor_id']
    readonly_fields = ['id', 'created_at', 'updated_at']


@admin.register(ClinicalParameter)
class ClinicalParameterAdmin(admin.ModelAdmin):
    list_display = ['name', 'display_name', 'kind', 'default_unit', 'is_active']
    list_filter = ['kind', 'is_active']
    search_fields = ['name', 'display_name']
    readonly_fields = ['id', 'created_at', 'updated_at']


@admin.register(PatientDemographics)
class PatientDemographicsAdmin(admin.ModelAdmin):
    list_display = ['patient_id', 'birth_date', 'gender', 'updated_at']
    list_filter = ['gender']
    readonly_fields = ['updated_at']
