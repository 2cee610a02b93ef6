"""
Clinical serializers: observation input/outcome and critical alerts.
"""
from rest_framework import serializers

from apps.reference.models import ParameterKindChoices

from .models import AlertStatusChoices, CriticalAlert


class RecordObservationSerializer(serializers.Serializer):
    """
    Shape of a measurement. Parameter existence, value range and timestamp
    rules are checked by ObservationService.
    """
    observation_id = serializers.UUIDField(required=False)
    patient_id = serializers.UUIDField()
    parameter = serializers.SlugField(max_length=64)
    value = serializers.DecimalField(max_digits=20, decimal_places=6)
    unit = serializers.CharField(max_length=20, required=False, allow_blank=True, default='')
    recorded_at = serializers.DateTimeField()
    kind = serializers.ChoiceField(choices=ParameterKindChoices.choices, default=ParameterKindChoices.VITAL)


class ObservationResultSerializer(serializers.Serializer):
    observation_id = serializers.UUIDField(source='observation.id')
    patient_id = serializers.UUIDField(source='observation.patient_id')
    parameter = serializers.CharField(source='observation.parameter_name')
    value = serializers.DecimalField(source='observation.value', max_digits=12, decimal_places=4)
    unit = serializers.CharField(source='observation.unit')
    recorded_at = serializers.DateTimeField(source='observation.recorded_at')
    verdict = serializers.CharField(allow_null=True)
    bucket = serializers.CharField(source='observation.bucket')
    requires_review = serializers.BooleanField()
    review_reason = serializers.CharField(source='observation.review_reason')
    alert_id = serializers.UUIDField(allow_null=True)
    alert_severity = serializers.SerializerMethodField()

    def get_alert_severity(self, obj):
        return obj.alert.severity if obj.alert else None


class ReviewObservationSerializer(serializers.Serializer):
    """Row of the manual review list."""
    kind = serializers.CharField()
    id = serializers.UUIDField(source='observation.id')
    patient_id = serializers.UUIDField(source='observation.patient_id')
    parameter = serializers.CharField(source='observation.parameter_name')
    value = serializers.DecimalField(source='observation.value', max_digits=12, decimal_places=4)
    unit = serializers.CharField(source='observation.unit')
    recorded_at = serializers.DateTimeField(source='observation.recorded_at')
    review_reason = serializers.CharField(source='observation.review_reason')


class CriticalAlertSerializer(serializers.ModelSerializer):

    class Meta:
        model = CriticalAlert
        fields = [
            'id',
            'alert_type',
            'severity',
            'patient_id',
            'source_type',
            'source_observation_id',
            'parameter_name',
            'parameter_value',
            'threshold_value',
            'verdict',
            'message',
            'details',
            'status',
            'acknowledged_at',
            'acknowledged_by',
            'resolved_at',
            'resolved_by',
            'resolution_notes',
            'notification_status',
            'notification_attempted_at',
            'created_at',
        ]
        read_only_fields = fields


class ResolveAlertSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class AlertQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=AlertStatusChoices.choices, required=False)
    patient_id = serializers.UUIDField(required=False)
