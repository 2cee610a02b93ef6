"""
Clinical measurements and the critical alerts they raise.
"""
import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from apps.core.state_machine import StateMachine

from .evaluator import VerdictChoices


class AlertTypeChoices(models.TextChoices):
    VITAL_SIGN = 'vital_sign', 'Vital Sign'
    LAB_RESULT = 'lab_result', 'Lab Result'


class AlertSourceChoices(models.TextChoices):
    VITAL_OBSERVATION = 'vital_observation', 'Vital Observation'
    LAB_RESULT = 'lab_result', 'Lab Result'


class SeverityChoices(models.TextChoices):
    WARNING = 'warning', 'Warning'
    CRITICAL = 'critical', 'Critical'
    EMERGENCY = 'emergency', 'Emergency'


class AlertStatusChoices(models.TextChoices):
    OPEN = 'open', 'Open'
    ACKNOWLEDGED = 'acknowledged', 'Acknowledged'
    RESOLVED = 'resolved', 'Resolved'


class NotificationStatusChoices(models.TextChoices):
    PENDING = 'pending', 'Pending'
    SENT = 'sent', 'Sent'
    FAILED = 'failed', 'Failed'


ALERT_MACHINE = StateMachine(
    'critical_alert',
    AlertStatusChoices.values,
    {
        AlertStatusChoices.OPEN: [AlertStatusChoices.ACKNOWLEDGED],
        AlertStatusChoices.ACKNOWLEDGED: [AlertStatusChoices.RESOLVED],
    },
)


class Observation(models.Model):
    """
    A recorded measurement. Immutable: corrections are new rows.

    ``verdict`` is null when the value could not be evaluated; such rows
    carry ``requires_review`` and a ``review_reason`` for manual review.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient_id = models.UUIDField(db_index=True)
    parameter_name = models.SlugField(max_length=64)
    value = models.DecimalField(max_digits=12, decimal_places=4)
    unit = models.CharField(max_length=20, blank=True, default='')
    recorded_at = models.DateTimeField()

    verdict = models.CharField(max_length=20, choices=VerdictChoices.choices, blank=True, null=True)
    bucket = models.CharField(max_length=20, blank=True, default='')
    requires_review = models.BooleanField(default=False)
    review_reason = models.TextField(blank=True, default='')

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        abstract = True
        ordering = ['-recorded_at']

    def __str__(self):
        return f"{self.parameter_name}={self.value}{self.unit} ({self.verdict or 'not evaluated'})"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError('Observations are immutable; record a correction instead')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError('Observations cannot be deleted')


class VitalObservation(Observation):
    recorded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='recorded_vitals'
    )

    class Meta(Observation.Meta):
        db_table = 'vital_observation'
        verbose_name = 'Vital Observation'
        verbose_name_plural = 'Vital Observations'
        indexes = [
            models.Index(fields=['patient_id', 'recorded_at'], name='idx_vital_patient_recorded'),
            models.Index(fields=['requires_review'], name='idx_vital_review'),
        ]


class LabResult(Observation):
    recorded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='recorded_lab_results'
    )

    class Meta(Observation.Meta):
        db_table = 'lab_result'
        verbose_name = 'Lab Result'
        verbose_name_plural = 'Lab Results'
        indexes = [
            models.Index(fields=['patient_id', 'recorded_at'], name='idx_lab_patient_recorded'),
            models.Index(fields=['requires_review'], name='idx_lab_review'),
        ]


class CriticalAlert(models.Model):
    """
    One alert per triggering observation.

    The observation reference is non-owning (id only). Alerts are never
    deleted and never auto-resolved: staff acknowledge, then resolve.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    alert_type = models.CharField(max_length=20, choices=AlertTypeChoices.choices)
    severity = models.CharField(max_length=20, choices=SeverityChoices.choices)
    patient_id = models.UUIDField(db_index=True)

    source_type = models.CharField(max_length=30, choices=AlertSourceChoices.choices)
    source_observation_id = models.UUIDField()
    parameter_name = models.SlugField(max_length=64)
    parameter_value = models.DecimalField(max_digits=12, decimal_places=4)
    threshold_value = models.DecimalField(max_digits=12, decimal_places=4, blank=True, null=True)
    verdict = models.CharField(max_length=20, choices=VerdictChoices.choices)
    message = models.TextField()
    details = models.JSONField(default=dict, blank=True)

    status = models.CharField(
        max_length=20,
        choices=AlertStatusChoices.choices,
        default=AlertStatusChoices.OPEN
    )
    acknowledged_at = models.DateTimeField(blank=True, null=True)
    acknowledged_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='acknowledged_alerts'
    )
    resolved_at = models.DateTimeField(blank=True, null=True)
    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='resolved_alerts'
    )
    resolution_notes = models.TextField(blank=True, default='')

    # Notification bookkeeping
    notification_status = models.CharField(
        max_length=20,
        choices=NotificationStatusChoices.choices,
        default=NotificationStatusChoices.PENDING
    )
    notification_attempted_at = models.DateTimeField(blank=True, null=True)
    notification_error = models.TextField(blank=True, default='')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'critical_alert'
        verbose_name = 'Critical Alert'
        verbose_name_plural = 'Critical Alerts'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'severity'], name='idx_alert_status_severity'),
            models.Index(fields=['patient_id', 'created_at'], name='idx_alert_patient_created'),
        ]
        constraints = [
            # Retried observation writes must not raise a second alert.
            models.UniqueConstraint(
                fields=['source_type', 'source_observation_id'],
                name='uniq_alert_source_observation'
            ),
        ]

    def __str__(self):
        return f"{self.severity.upper()} {self.parameter_name}={self.parameter_value} ({self.status})"
