"""
Availability Resolver.

Computes free slots for a doctor on a date from the effective schedule,
approved leave and existing bookings. Read-only: safe to call repeatedly,
and used both for the client-facing slot list and the booking pre-check.
"""
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List, Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from django.utils import timezone

from apps.core.exceptions import SlotConflict
from apps.core.observability import metrics
from apps.reference.store import ReferenceDataStore

from .models import RELEASED_STATUSES, Appointment


@dataclass(frozen=True)
class TimeSlot:
    start: time
    end: time

    def as_dict(self):
        return {'start': self.start.strftime('%H:%M'), 'end': self.end.strftime('%H:%M')}


def default_slot_minutes() -> int:
    return getattr(settings, 'SCHEDULING_DEFAULT_SLOT_MINUTES', 30)


def max_appointment_minutes() -> int:
    return getattr(settings, 'SCHEDULING_MAX_APPOINTMENT_MINUTES', 480)


def validate_duration(duration_minutes):
    if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int):
        raise ValidationError({'duration_minutes': 'Duration must be a whole number of minutes'})
    limit = max_appointment_minutes()
    if not 1 <= duration_minutes <= limit:
        raise ValidationError({'duration_minutes': f'Duration must be between 1 and {limit} minutes'})


class AvailabilityService:
    """
    Free-slot calculation for a single doctor and date.

    Busy periods are the schedule break plus every appointment that still
    holds its slot (anything not cancelled or rescheduled). Slots are laid
    out from the start of the working window in steps of the requested
    duration; on overlap the cursor jumps to the end of the busy period.
    """

    def __init__(self, store: Optional[ReferenceDataStore] = None):
        self.store = store or ReferenceDataStore()

    @metrics.track_duration(metrics.availability_duration_seconds)
    def get_availability(
        self,
        doctor_id,
        on_date: date,
        duration_minutes: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> List[TimeSlot]:
        """
        Ordered free slots for ``doctor_id`` on ``on_date``.

        Returns an empty list, not an error, when the doctor has no schedule
        coverage or is on approved leave. Slots starting before ``now`` are
        left out.
        """
        duration = default_slot_minutes() if duration_minutes is None else duration_minutes
        validate_duration(duration)
        schedule = self.store.get_schedule(doctor_id, on_date)
        if schedule is None or self.store.is_on_leave(doctor_id, on_date):
            return []

        now = now or timezone.now()
        tz = timezone.get_current_timezone()
        work_start = datetime.combine(on_date, schedule.start_time)
        work_end = datetime.combine(on_date, schedule.end_time)
        busy_periods = self._busy_periods(doctor_id, on_date, schedule)

        free_slots = []
        slot_delta = timedelta(minutes=duration)
        current = work_start

        while current + slot_delta <= work_end:
            slot_end = current + slot_delta

            if timezone.make_aware(current, tz) < now:
                current += slot_delta
                continue

            is_busy = False
            for busy_start, busy_end in busy_periods:
                # Overlap: slot_start < busy_end AND busy_start < slot_end
                if current < busy_end and busy_start < slot_end:
                    is_busy = True
                    current = busy_end
                    break

            if not is_busy:
                free_slots.append(TimeSlot(start=current.time(), end=slot_end.time()))
                current += slot_delta

        return free_slots

    def find_conflict(
        self,
        doctor_id,
        on_date: date,
        at_time: time,
        duration_minutes: int,
        exclude_appointment_id=None
    ) -> Optional[str]:
        """
        Advisory check of one interval.

        Returns None when the interval is free, otherwise a SlotConflict
        reason. May be stale under concurrent bookings; the slot uniqueness
        constraint remains the authoritative check.
        """
        schedule = self.store.get_schedule(doctor_id, on_date)
        if schedule is None:
            return SlotConflict.OUTSIDE_SCHEDULE
        if self.store.is_on_leave(doctor_id, on_date):
            return SlotConflict.ON_LEAVE

        start = datetime.combine(on_date, at_time)
        end = start + timedelta(minutes=duration_minutes)
        if start < datetime.combine(on_date, schedule.start_time) or end > datetime.combine(on_date, schedule.end_time):
            return SlotConflict.OUTSIDE_SCHEDULE

        if schedule.has_break:
            break_start = datetime.combine(on_date, schedule.break_start)
            break_end = datetime.combine(on_date, schedule.break_end)
            if start < break_end and break_start < end:
                return SlotConflict.OUTSIDE_SCHEDULE

        for busy_start, busy_end in self._booked_periods(doctor_id, on_date, exclude_appointment_id):
            if start < busy_end and busy_start < end:
                return SlotConflict.ALREADY_BOOKED

        return None

    def _busy_periods(self, doctor_id, on_date, schedule):
        periods = self._booked_periods(doctor_id, on_date)
        if schedule.has_break:
            periods.append((
                datetime.combine(on_date, schedule.break_start),
                datetime.combine(on_date, schedule.break_end),
            ))
        periods.sort(key=lambda period: period[0])
        return periods

    def _booked_periods(self, doctor_id, on_date, exclude_appointment_id=None):
        appointments = Appointment.objects.filter(
            doctor_id=doctor_id,
            appointment_date=on_date,
        ).exclude(status__in=RELEASED_STATUSES)
        if exclude_appointment_id is not None:
            appointments = appointments.exclude(pk=exclude_appointment_id)

        periods = []
        for appointment_time, duration in appointments.values_list('appointment_time', 'duration_minutes'):
            start = datetime.combine(on_date, appointment_time)
            periods.append((start, start + timedelta(minutes=duration)))
        return periods
