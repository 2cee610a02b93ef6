"""
Scheduling serializers.

Input serializers only check shape; scheduling rules (duration limits,
past dates, slot availability) are enforced by the services.
"""
from rest_framework import serializers

from .models import (
    Appointment,
    AppointmentTypeChoices,
    PriorityChoices,
    QueueEntry,
)
from .services import GENERIC_TRANSITION_TARGETS


class AppointmentSerializer(serializers.ModelSerializer):
    """Read representation of an appointment."""

    class Meta:
        model = Appointment
        fields = [
            'id',
            'patient_id',
            'doctor_id',
            'appointment_date',
            'appointment_time',
            'duration_minutes',
            'appointment_type',
            'priority',
            'status',
            'reason_for_visit',
            'rescheduled_from',
            'rescheduled_to',
            'checked_in_at',
            'consultation_started_at',
            'consultation_ended_at',
            'cancelled_at',
            'cancellation_reason',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class BookAppointmentSerializer(serializers.Serializer):
    patient_id = serializers.UUIDField()
    doctor_id = serializers.UUIDField()
    appointment_date = serializers.DateField()
    appointment_time = serializers.TimeField()
    appointment_type = serializers.ChoiceField(
        choices=AppointmentTypeChoices.choices,
        default=AppointmentTypeChoices.CONSULTATION
    )
    priority = serializers.ChoiceField(choices=PriorityChoices.choices, default=PriorityChoices.NORMAL)
    duration_minutes = serializers.IntegerField(required=False)
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class AppointmentTransitionSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[(value, value) for value in GENERIC_TRANSITION_TARGETS])
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class CancelAppointmentSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class RescheduleAppointmentSerializer(serializers.Serializer):
    appointment_date = serializers.DateField()
    appointment_time = serializers.TimeField()
    duration_minutes = serializers.IntegerField(required=False)


class AvailabilityQuerySerializer(serializers.Serializer):
    date = serializers.DateField()
    duration = serializers.IntegerField(required=False)


class QueueDateQuerySerializer(serializers.Serializer):
    date = serializers.DateField(required=False)


class QueueEntrySerializer(serializers.ModelSerializer):
    appointment_id = serializers.UUIDField(read_only=True)
    patient_id = serializers.UUIDField(source='appointment.patient_id', read_only=True)

    class Meta:
        model = QueueEntry
        fields = [
            'id',
            'appointment_id',
            'patient_id',
            'doctor_id',
            'queue_date',
            'queue_number',
            'status',
            'priority',
            'called_at',
            'started_at',
            'completed_at',
            'created_at',
        ]
        read_only_fields = fields


class QueuePositionSerializer(serializers.Serializer):
    entry = QueueEntrySerializer(read_only=True)
    ahead = serializers.IntegerField(read_only=True)
    estimated_wait_minutes = serializers.IntegerField(read_only=True)
