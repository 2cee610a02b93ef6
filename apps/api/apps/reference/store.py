"""
Reference Data Store: typed, read-only lookups over schedules, leave,
reference ranges and patient demographics.

Callers get plain frozen dataclasses, never model instances, so the
availability resolver and the critical value evaluator stay independent of
how reference data is persisted.
"""
from dataclasses import dataclass
from datetime import date, time
from decimal import Decimal, InvalidOperation
from typing import Optional

from django.db import models

from apps.core.exceptions import NotEvaluable

from .models import (
    ClinicalParameter,
    DayOfWeekChoices,
    DoctorLeave,
    DoctorSchedule,
    LeaveStatusChoices,
    PatientDemographics,
)


class PopulationBucket(models.TextChoices):
    """Reference range segments, in selection priority order."""
    INFANT = 'infant', 'Infant (< 1 year)'
    CHILD = 'child', 'Child (< 18 years)'
    ADULT_MALE = 'adult_male', 'Adult male'
    ADULT_FEMALE = 'adult_female', 'Adult female'
    DEFAULT = 'default', 'Default'


@dataclass(frozen=True)
class Schedule:
    doctor_id: object
    day_of_week: int
    start_time: time
    end_time: time
    break_start: Optional[time] = None
    break_end: Optional[time] = None

    @property
    def has_break(self):
        return self.break_start is not None and self.break_end is not None


@dataclass(frozen=True)
class ReferenceRange:
    parameter: str
    bucket: str
    min: Decimal
    max: Decimal
    critical_low: Optional[Decimal]
    critical_high: Optional[Decimal]
    unit: str


@dataclass(frozen=True)
class Demographics:
    patient_id: object
    birth_date: Optional[date]
    gender: str

    def age_on(self, on_date) -> Optional[int]:
        """Completed years on ``on_date``; None if the birth date is unknown."""
        if self.birth_date is None:
            return None
        before_birthday = (on_date.month, on_date.day) < (self.birth_date.month, self.birth_date.day)
        return on_date.year - self.birth_date.year - int(before_birthday)


def _as_decimal(parameter, bucket, key, value):
    if isinstance(value, bool) or value is None:
        raise NotEvaluable(f'{parameter}/{bucket}: {key} is not a number')
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        raise NotEvaluable(f'{parameter}/{bucket}: {key} is not a number')
    if not number.is_finite():
        raise NotEvaluable(f'{parameter}/{bucket}: {key} is not finite')
    return number


def parse_reference_range(parameter, bucket, raw, default_unit='') -> ReferenceRange:
    """
    Validate one bucket of a reference range document.

    ``min`` and ``max`` are required; critical bounds are optional. Bounds
    must nest: critical_low <= min <= max <= critical_high.

    Raises:
        NotEvaluable: bucket is not an object, misses a bound, holds a
            non-numeric bound, or has bounds out of order.
    """
    if not isinstance(raw, dict):
        raise NotEvaluable(f'{parameter}/{bucket}: bucket is not an object')

    for key in ('min', 'max'):
        if key not in raw:
            raise NotEvaluable(f'{parameter}/{bucket}: missing {key}')

    low = _as_decimal(parameter, bucket, 'min', raw['min'])
    high = _as_decimal(parameter, bucket, 'max', raw['max'])
    critical_low = raw.get('critical_low')
    critical_high = raw.get('critical_high')
    if critical_low is not None:
        critical_low = _as_decimal(parameter, bucket, 'critical_low', critical_low)
    if critical_high is not None:
        critical_high = _as_decimal(parameter, bucket, 'critical_high', critical_high)

    if low > high:
        raise NotEvaluable(f'{parameter}/{bucket}: min is above max')
    if critical_low is not None and critical_low > low:
        raise NotEvaluable(f'{parameter}/{bucket}: critical_low is above min')
    if critical_high is not None and critical_high < high:
        raise NotEvaluable(f'{parameter}/{bucket}: critical_high is below max')

    return ReferenceRange(
        parameter=parameter,
        bucket=bucket,
        min=low,
        max=high,
        critical_low=critical_low,
        critical_high=critical_high,
        unit=str(raw.get('unit') or default_unit or ''),
    )


class ReferenceDataStore:
    """Database-backed implementation of the reference data collaborator."""

    def get_schedule(self, doctor_id, on_date) -> Optional[Schedule]:
        """
        Schedule version effective on ``on_date``, or None without coverage.

        When several active versions cover the date the most recently
        effective one wins.
        """
        candidates = DoctorSchedule.objects.filter(
            doctor_id=doctor_id,
            day_of_week=DayOfWeekChoices.for_date(on_date),
            is_active=True,
            effective_from__lte=on_date,
        ).order_by('-effective_from', '-created_at')

        for row in candidates:
            if row.covers(on_date):
                return Schedule(
                    doctor_id=row.doctor_id,
                    day_of_week=row.day_of_week,
                    start_time=row.start_time,
                    end_time=row.end_time,
                    break_start=row.break_start,
                    break_end=row.break_end,
                )
        return None

    def is_on_leave(self, doctor_id, on_date) -> bool:
        return DoctorLeave.objects.filter(
            doctor_id=doctor_id,
            status=LeaveStatusChoices.APPROVED,
            from_date__lte=on_date,
            to_date__gte=on_date,
        ).exists()

    def get_parameter(self, name) -> Optional[ClinicalParameter]:
        return ClinicalParameter.objects.filter(name=name, is_active=True).first()

    def get_reference_range(self, parameter, bucket) -> Optional[ReferenceRange]:
        """
        Typed bucket lookup.

        Returns None when the parameter is unknown or has no such bucket.

        Raises:
            NotEvaluable: the bucket exists but is malformed.
        """
        definition = self.get_parameter(parameter)
        if definition is None:
            return None
        document = definition.reference_ranges
        if not isinstance(document, dict):
            raise NotEvaluable(f'{parameter}: reference ranges are not keyed by bucket')
        if bucket not in document:
            return None
        return parse_reference_range(parameter, bucket, document[bucket], definition.default_unit)

    def get_patient_demographics(self, patient_id) -> Optional[Demographics]:
        row = PatientDemographics.objects.filter(patient_id=patient_id).first()
        if row is None:
            return None
        return Demographics(patient_id=row.patient_id, birth_date=row.birth_date, gender=row.gender)
