"""
Reference data consumed read-only by scheduling and critical-value evaluation.

Maintained by scheduling staff and lab administration through the admin;
the core never writes these tables.
"""
import uuid

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q
from django.utils import timezone


class DayOfWeekChoices(models.IntegerChoices):
    """0 = Sunday ... 6 = Saturday."""
    SUNDAY = 0, 'Sunday'
    MONDAY = 1, 'Monday'
    TUESDAY = 2, 'Tuesday'
    WEDNESDAY = 3, 'Wednesday'
    THURSDAY = 4, 'Thursday'
    FRIDAY = 5, 'Friday'
    SATURDAY = 6, 'Saturday'

    @classmethod
    def for_date(cls, value):
        return cls(value.isoweekday() % 7)


class LeaveTypeChoices(models.TextChoices):
    SICK = 'sick', 'Sick'
    CASUAL = 'casual', 'Casual'
    EMERGENCY = 'emergency', 'Emergency'
    VACATION = 'vacation', 'Vacation'
    CONFERENCE = 'conference', 'Conference'
    MATERNITY = 'maternity', 'Maternity'
    PATERNITY = 'paternity', 'Paternity'


class LeaveStatusChoices(models.TextChoices):
    PENDING = 'pending', 'Pending'
    APPROVED = 'approved', 'Approved'
    REJECTED = 'rejected', 'Rejected'
    CANCELLED = 'cancelled', 'Cancelled'


class ParameterKindChoices(models.TextChoices):
    VITAL = 'vital', 'Vital Sign'
    LAB = 'lab', 'Lab Result'


class GenderChoices(models.TextChoices):
    MALE = 'male', 'Male'
    FEMALE = 'female', 'Female'
    OTHER = 'other', 'Other'
    PREFER_NOT_TO_SAY = 'prefer_not_to_say', 'Prefer not to say'


class DoctorSchedule(models.Model):
    """
    Weekly working window for a doctor.

    Several versions may exist for the same weekday; ``effective_from`` /
    ``effective_until`` decide which one applies on a given date.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    doctor_id = models.UUIDField(db_index=True)
    day_of_week = models.PositiveSmallIntegerField(choices=DayOfWeekChoices.choices)
    start_time = models.TimeField()
    end_time = models.TimeField()
    break_start = models.TimeField(blank=True, null=True)
    break_end = models.TimeField(blank=True, null=True)
    effective_from = models.DateField(default=timezone.localdate)
    effective_until = models.DateField(blank=True, null=True)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'doctor_schedule'
        verbose_name = 'Doctor Schedule'
        verbose_name_plural = 'Doctor Schedules'
        indexes = [
            models.Index(fields=['doctor_id', 'day_of_week'], name='idx_schedule_doctor_day'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(day_of_week__gte=0) & Q(day_of_week__lte=6),
                name='schedule_day_of_week_range'
            ),
            models.CheckConstraint(
                condition=Q(end_time__gt=F('start_time')),
                name='schedule_end_after_start'
            ),
            models.CheckConstraint(
                condition=(
                    Q(break_start__isnull=True, break_end__isnull=True)
                    | Q(
                        break_start__isnull=False,
                        break_end__isnull=False,
                        break_end__gt=F('break_start'),
                        break_start__gte=F('start_time'),
                        break_end__lte=F('end_time'),
                    )
                ),
                name='schedule_break_within_window'
            ),
            models.CheckConstraint(
                condition=Q(effective_until__isnull=True) | Q(effective_until__gte=F('effective_from')),
                name='schedule_effective_range'
            ),
        ]

    def __str__(self):
        return f"{self.doctor_id} {self.get_day_of_week_display()} {self.start_time}-{self.end_time}"

    def clean(self):
        errors = {}
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            errors['end_time'] = 'End time must be after start time'
        if (self.break_start is None) != (self.break_end is None):
            errors['break_end'] = 'Break start and end must be set together'
        elif self.break_start is not None:
            if self.break_end <= self.break_start:
                errors['break_end'] = 'Break end must be after break start'
            elif self.break_start < self.start_time or self.break_end > self.end_time:
                errors['break_start'] = 'Break must lie within the working window'
        if self.effective_until and self.effective_from and self.effective_until < self.effective_from:
            errors['effective_until'] = 'effective_until cannot precede effective_from'
        if errors:
            raise ValidationError(errors)

    def covers(self, on_date):
        """True if this version applies on ``on_date`` (weekday and validity)."""
        if not self.is_active or self.day_of_week != DayOfWeekChoices.for_date(on_date):
            return False
        if self.effective_from and on_date < self.effective_from:
            return False
        return self.effective_until is None or on_date <= self.effective_until


class DoctorLeave(models.Model):
    """Full-day leave. Only approved leave blocks availability."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    doctor_id = models.UUIDField(db_index=True)
    leave_type = models.CharField(max_length=20, choices=LeaveTypeChoices.choices)
    from_date = models.DateField()
    to_date = models.DateField()
    reason = models.TextField(blank=True, default='')
    status = models.CharField(
        max_length=20,
        choices=LeaveStatusChoices.choices,
        default=LeaveStatusChoices.PENDING
    )
    approved_at = models.DateTimeField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'doctor_leave'
        verbose_name = 'Doctor Leave'
        verbose_name_plural = 'Doctor Leaves'
        indexes = [
            models.Index(fields=['doctor_id', 'from_date', 'to_date'], name='idx_leave_doctor_dates'),
            models.Index(fields=['status'], name='idx_leave_status'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(to_date__gte=F('from_date')),
                name='leave_dates_ordered'
            ),
        ]

    def __str__(self):
        return f"{self.doctor_id} {self.leave_type} {self.from_date}..{self.to_date} ({self.status})"

    def clean(self):
        if self.from_date and self.to_date and self.to_date < self.from_date:
            raise ValidationError({'to_date': 'Leave cannot end before it starts'})


class ClinicalParameter(models.Model):
    """
    A measurable parameter (vital sign or lab analyte) and its reference ranges.

    ``reference_ranges`` keeps the externally supplied document shape, keyed
    by population bucket:

        {
            "adult_male": {"min": 13.5, "max": 17.5, "unit": "g/dL",
                           "critical_low": 7.0, "critical_high": 20.0},
            "child": {...},
            "default": {...}
        }

    It is only ever read through ``ReferenceDataStore.get_reference_range``,
    which validates the bucket before use.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.SlugField(max_length=64, unique=True)
    display_name = models.CharField(max_length=128)
    kind = models.CharField(max_length=10, choices=ParameterKindChoices.choices)
    default_unit = models.CharField(max_length=20, blank=True, default='')
    reference_ranges = models.JSONField(default=dict, blank=True)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'clinical_parameter'
        verbose_name = 'Clinical Parameter'
        verbose_name_plural = 'Clinical Parameters'
        ordering = ['name']

    def __str__(self):
        return f"{self.display_name} ({self.name})"


class PatientDemographics(models.Model):
    """
    Read-only projection of the patient registry: what bucket selection needs.
    """
    patient_id = models.UUIDField(primary_key=True)
    birth_date = models.DateField(blank=True, null=True)
    gender = models.CharField(max_length=20, choices=GenderChoices.choices, blank=True, default='')

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'patient_demographics'
        verbose_name = 'Patient Demographics'
        verbose_name_plural = 'Patient Demographics'

    def __str__(self):
        return str(self.patient_id)
