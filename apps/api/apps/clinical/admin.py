from django.contrib import admin
from .models import CriticalAlert, LabResult, VitalObservation


class ObservationAdmin(admin.ModelAdmin):
    """Observations are immutable: view-only in the admin."""
    list_display = ['parameter_name', 'value', 'unit', 'verdict', 'requires_review', 'recorded_at']
    list_filter = ['verdict', 'requires_review', 'parameter_name']
    search_fields = ['patient_id', 'parameter_name']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


admin.site.register(VitalObservation, ObservationAdmin)
admin.site.register(LabResult, ObservationAdmin)


@admin.register(CriticalAlert)
class CriticalAlertAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'severity', 'parameter_name', 'parameter_value', 'status', 'notification_status']
    list_filter = ['severity', 'status', 'alert_type', 'notification_status']
    search_fields = ['patient_id', 'parameter_name']
    readonly_fields = [
        'id', 'alert_type', 'severity', 'patient_id', 'source_type', 'source_observation_id',
        'parameter_name', 'parameter_value', 'threshold_value', 'verdict', 'message', 'details',
        'status', 'acknowledged_at', 'acknowledged_by', 'resolved_at', 'resolved_by',
        'notification_status', 'notification_attempted_at', 'notification_error',
        'created_at', 'updated_at',
    ]

    def has_delete_permission(self, request, obj=None):
        return False
