from django.contrib import admin
from .models import Appointment, QueueEntry


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    """Read-mostly: status changes belong to the scheduling services."""
    list_display = ['appointment_date', 'appointment_time', 'doctor_id', 'patient_id', 'appointment_type', 'status']
    list_filter = ['status', 'appointment_type', 'priority', 'appointment_date']
    search_fields = ['doctor_id', 'patient_id']
    readonly_fields = [
        'id', 'status', 'rescheduled_from', 'rescheduled_to',
        'checked_in_at', 'checked_in_by', 'consultation_started_at', 'consultation_ended_at',
        'cancelled_at', 'cancelled_by', 'created_by', 'created_at', 'updated_at',
    ]

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(QueueEntry)
class QueueEntryAdmin(admin.ModelAdmin):
    list_display = ['queue_date', 'doctor_id', 'queue_number', 'status', 'priority']
    list_filter = ['status', 'queue_date']
    search_fields = ['doctor_id']
    readonly_fields = [
        'id', 'appointment', 'doctor_id', 'queue_date', 'queue_number', 'sort_key', 'status',
        'called_at', 'started_at', 'completed_at', 'created_at', 'updated_at',
    ]

    def has_delete_permission(self, request, obj=None):
        return False
