"""
Scheduling models: appointments and per-doctor daily queues.
"""
import uuid
from datetime import datetime, timedelta

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone

from apps.core.state_machine import StateMachine


class AppointmentStatusChoices(models.TextChoices):
    SCHEDULED = 'scheduled', 'Scheduled'
    CONFIRMED = 'confirmed', 'Confirmed'
    CHECKED_IN = 'checked_in', 'Checked In'
    IN_PROGRESS = 'in_progress', 'In Progress'
    COMPLETED = 'completed', 'Completed'
    CANCELLED = 'cancelled', 'Cancelled'
    NO_SHOW = 'no_show', 'No Show'
    RESCHEDULED = 'rescheduled', 'Rescheduled'


class AppointmentTypeChoices(models.TextChoices):
    CONSULTATION = 'consultation', 'Consultation'
    FOLLOW_UP = 'follow_up', 'Follow-up'
    PROCEDURE = 'procedure', 'Procedure'
    EMERGENCY = 'emergency', 'Emergency'
    TELEMEDICINE = 'telemedicine', 'Telemedicine'
    VACCINATION = 'vaccination', 'Vaccination'
    CHECKUP = 'checkup', 'Checkup'


class PriorityChoices(models.TextChoices):
    LOW = 'low', 'Low'
    NORMAL = 'normal', 'Normal'
    HIGH = 'high', 'High'
    URGENT = 'urgent', 'Urgent'
    EMERGENCY = 'emergency', 'Emergency'
    CRITICAL = 'critical', 'Critical'


class QueueStatusChoices(models.TextChoices):
    WAITING = 'waiting', 'Waiting'
    IN_PROGRESS = 'in_progress', 'In Progress'
    COMPLETED = 'completed', 'Completed'
    SKIPPED = 'skipped', 'Skipped'
    CANCELLED = 'cancelled', 'Cancelled'


_A = AppointmentStatusChoices
_Q = QueueStatusChoices

APPOINTMENT_MACHINE = StateMachine(
    'appointment',
    _A.values,
    {
        _A.SCHEDULED: [_A.CONFIRMED, _A.CANCELLED, _A.NO_SHOW, _A.RESCHEDULED],
        _A.CONFIRMED: [_A.CHECKED_IN, _A.CANCELLED, _A.NO_SHOW, _A.RESCHEDULED],
        _A.CHECKED_IN: [_A.IN_PROGRESS, _A.CANCELLED],
        _A.IN_PROGRESS: [_A.COMPLETED, _A.CANCELLED],
    },
)

QUEUE_MACHINE = StateMachine(
    'queue_entry',
    _Q.values,
    {
        _Q.WAITING: [_Q.IN_PROGRESS, _Q.SKIPPED, _Q.CANCELLED],
        # A skipped patient may be skipped again or called later.
        _Q.SKIPPED: [_Q.IN_PROGRESS, _Q.SKIPPED, _Q.CANCELLED],
        _Q.IN_PROGRESS: [_Q.COMPLETED, _Q.CANCELLED],
    },
)

# Statuses that no longer hold their (doctor, date, time) slot.
RELEASED_STATUSES = (AppointmentStatusChoices.CANCELLED, AppointmentStatusChoices.RESCHEDULED)

# Queue entries still waiting to be called, in sort_key order.
PENDING_QUEUE_STATUSES = (QueueStatusChoices.WAITING, QueueStatusChoices.SKIPPED)


class Appointment(models.Model):
    """
    A booked (doctor, date, time) slot.

    Never deleted: cancellation and rescheduling are statuses. Status only
    changes through ``transition_to``, which consults APPOINTMENT_MACHINE.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient_id = models.UUIDField(db_index=True)
    doctor_id = models.UUIDField(db_index=True)
    appointment_date = models.DateField()
    appointment_time = models.TimeField()
    duration_minutes = models.PositiveSmallIntegerField(
        default=30,
        validators=[MinValueValidator(1), MaxValueValidator(480)]
    )
    appointment_type = models.CharField(
        max_length=20,
        choices=AppointmentTypeChoices.choices,
        default=AppointmentTypeChoices.CONSULTATION
    )
    priority = models.CharField(
        max_length=20,
        choices=PriorityChoices.choices,
        default=PriorityChoices.NORMAL
    )
    status = models.CharField(
        max_length=20,
        choices=AppointmentStatusChoices.choices,
        default=AppointmentStatusChoices.SCHEDULED
    )
    reason_for_visit = models.TextField(blank=True, default='')

    # Rescheduling links (non-owning)
    rescheduled_from = models.ForeignKey(
        'self',
        on_delete=models.PROTECT,
        blank=True,
        null=True,
        related_name='+'
    )
    rescheduled_to = models.ForeignKey(
        'self',
        on_delete=models.PROTECT,
        blank=True,
        null=True,
        related_name='+'
    )

    # Check-in / consultation
    checked_in_at = models.DateTimeField(blank=True, null=True)
    checked_in_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='checked_in_appointments'
    )
    consultation_started_at = models.DateTimeField(blank=True, null=True)
    consultation_ended_at = models.DateTimeField(blank=True, null=True)

    # Cancellation
    cancelled_at = models.DateTimeField(blank=True, null=True)
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='cancelled_appointments'
    )
    cancellation_reason = models.TextField(blank=True, default='')

    # Audit
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='created_appointments'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'appointment'
        verbose_name = 'Appointment'
        verbose_name_plural = 'Appointments'
        ordering = ['appointment_date', 'appointment_time']
        indexes = [
            models.Index(fields=['doctor_id', 'appointment_date'], name='idx_appointment_doctor_date'),
            models.Index(fields=['patient_id'], name='idx_appointment_patient'),
            models.Index(fields=['status'], name='idx_appointment_status'),
        ]
        constraints = [
            # One live booking per slot; the last line of defence against
            # concurrent bookings that all passed the availability pre-check.
            models.UniqueConstraint(
                fields=['doctor_id', 'appointment_date', 'appointment_time'],
                condition=~Q(status__in=['cancelled', 'rescheduled']),
                name='uniq_appointment_doctor_slot'
            ),
            models.CheckConstraint(
                condition=Q(duration_minutes__gte=1) & Q(duration_minutes__lte=480),
                name='appointment_duration_range'
            ),
        ]

    def __str__(self):
        return f"Appointment {self.appointment_date} {self.appointment_time} ({self.status})"

    @property
    def start_datetime(self):
        """Aware start instant in the facility time zone."""
        return timezone.make_aware(
            datetime.combine(self.appointment_date, self.appointment_time),
            timezone.get_current_timezone()
        )

    @property
    def end_datetime(self):
        return self.start_datetime + timedelta(minutes=self.duration_minutes)

    @property
    def is_terminal(self):
        return APPOINTMENT_MACHINE.is_terminal(self.status)

    def transition_to(self, new_status, user=None, reason=None, now=None):
        """
        Move to ``new_status`` and stamp the matching audit fields.

        Does not save. Callers lock the row and save inside their transaction.

        BUSINESS RULES:
        1. Only edges of APPOINTMENT_MACHINE are permitted
        2. no_show only once the appointment start has passed

        Raises:
            InvalidTransition: edge not in the table
            ValidationError: no_show before the appointment time
        """
        now = now or timezone.now()
        APPOINTMENT_MACHINE.check(self.status, new_status)

        if new_status == AppointmentStatusChoices.NO_SHOW and self.start_datetime > now:
            raise ValidationError('Cannot mark as no-show before the appointment time')

        if new_status == AppointmentStatusChoices.CHECKED_IN:
            self.checked_in_at = now
            self.checked_in_by = user
        elif new_status == AppointmentStatusChoices.IN_PROGRESS:
            self.consultation_started_at = now
        elif new_status == AppointmentStatusChoices.COMPLETED:
            self.consultation_ended_at = now
        elif new_status == AppointmentStatusChoices.CANCELLED:
            self.cancelled_at = now
            self.cancelled_by = user
            self.cancellation_reason = reason or ''

        old_status = self.status
        self.status = new_status
        return old_status


class QueueEntry(models.Model):
    """
    A checked-in patient's place in a doctor's queue for one day.

    ``queue_number`` is the gap-free ticket handed out at check-in and never
    changes. ``sort_key`` decides call order; skipping moves it past the
    current tail.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    appointment = models.OneToOneField(
        Appointment,
        on_delete=models.PROTECT,
        related_name='queue_entry'
    )
    doctor_id = models.UUIDField()
    queue_date = models.DateField()
    queue_number = models.PositiveIntegerField()
    sort_key = models.PositiveIntegerField()
    status = models.CharField(
        max_length=20,
        choices=QueueStatusChoices.choices,
        default=QueueStatusChoices.WAITING
    )
    priority = models.CharField(
        max_length=20,
        choices=PriorityChoices.choices,
        default=PriorityChoices.NORMAL
    )
    called_at = models.DateTimeField(blank=True, null=True)
    started_at = models.DateTimeField(blank=True, null=True)
    completed_at = models.DateTimeField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'queue_entry'
        verbose_name = 'Queue Entry'
        verbose_name_plural = 'Queue Entries'
        ordering = ['queue_date', 'sort_key']
        indexes = [
            models.Index(fields=['doctor_id', 'queue_date', 'status'], name='idx_queue_doctor_date_status'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['doctor_id', 'queue_date', 'queue_number'],
                name='uniq_queue_doctor_date_number'
            ),
        ]

    def __str__(self):
        return f"Queue #{self.queue_number} {self.queue_date} ({self.status})"

    def transition_to(self, new_status, now=None):
        """Move to ``new_status`` through QUEUE_MACHINE; does not save."""
        now = now or timezone.now()
        QUEUE_MACHINE.check(self.status, new_status)
        if new_status == QueueStatusChoices.IN_PROGRESS:
            self.called_at = now
            self.started_at = now
        elif new_status == QueueStatusChoices.COMPLETED:
            self.completed_at = now
        old_status = self.status
        self.status = new_status
        return old_status
