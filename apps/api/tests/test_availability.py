"""
Tests for the Availability Resolver.

Test Coverage:
1. Full window split into slots of the requested duration
2. Booked appointments and breaks are skipped
3. Cancelled and rescheduled appointments release their slot
4. No schedule or approved leave yields no slots (not an error)
5. Slots already in the past are left out
6. Interval pre-check reasons
"""
import uuid
from datetime import datetime, time

import pytest
from django.core.exceptions import ValidationError
from django.utils import timezone

from apps.core.exceptions import SlotConflict
from apps.scheduling.availability import AvailabilityService
from apps.scheduling.models import AppointmentStatusChoices


def starts(slots):
    return [slot.start.strftime('%H:%M') for slot in slots]


@pytest.mark.django_db
class TestGetAvailability:

    def test_full_window_no_appointments(self, monday_schedule, doctor_id, clinic_day):
        """
        Given: Monday 09:00-12:00, nothing booked
        When: Availability for 30 minutes
        Then: Six consecutive slots
        """
        slots = AvailabilityService().get_availability(doctor_id, clinic_day, 30)

        assert starts(slots) == ['09:00', '09:30', '10:00', '10:30', '11:00', '11:30']
        assert slots[-1].as_dict() == {'start': '11:30', 'end': '12:00'}

    def test_booked_slot_excluded(self, monday_schedule, appointment_factory, doctor_id, clinic_day):
        appointment_factory(doctor_id, time(10, 0))

        slots = AvailabilityService().get_availability(doctor_id, clinic_day, 30)

        assert '10:00' not in starts(slots)
        assert len(slots) == 5

    def test_cursor_jumps_past_busy_period(self, monday_schedule, appointment_factory, doctor_id, clinic_day):
        """A 45 minute booking at 09:15 pushes the next slot to 10:00."""
        appointment_factory(doctor_id, time(9, 15), duration_minutes=45)

        slots = AvailabilityService().get_availability(doctor_id, clinic_day, 30)

        assert starts(slots) == ['10:00', '10:30', '11:00', '11:30']

    @pytest.mark.parametrize('released_status', [
        AppointmentStatusChoices.CANCELLED,
        AppointmentStatusChoices.RESCHEDULED,
    ])
    def test_released_appointment_frees_slot(
        self, monday_schedule, appointment_factory, doctor_id, clinic_day, released_status
    ):
        appointment_factory(doctor_id, time(10, 0), status=released_status)

        slots = AvailabilityService().get_availability(doctor_id, clinic_day, 30)

        assert '10:00' in starts(slots)

    def test_break_excluded(self, schedule_factory, doctor_id, clinic_day):
        schedule_factory(
            doctor_id,
            end_time=time(14, 0),
            break_start=time(12, 0),
            break_end=time(13, 0),
        )

        slots = AvailabilityService().get_availability(doctor_id, clinic_day, 60)

        assert starts(slots) == ['09:00', '10:00', '11:00', '13:00']

    def test_other_doctor_bookings_ignored(self, monday_schedule, appointment_factory, doctor_id, clinic_day):
        appointment_factory(uuid.uuid4(), time(9, 0))

        slots = AvailabilityService().get_availability(doctor_id, clinic_day, 30)

        assert len(slots) == 6

    def test_no_schedule_returns_empty(self, doctor_id, clinic_day, db):
        assert AvailabilityService().get_availability(doctor_id, clinic_day, 30) == []

    def test_leave_returns_empty(self, monday_schedule, leave_factory, doctor_id, clinic_day):
        leave_factory(doctor_id, clinic_day)

        assert AvailabilityService().get_availability(doctor_id, clinic_day, 30) == []

    def test_past_slots_left_out(self, monday_schedule, doctor_id, clinic_day):
        now = timezone.make_aware(datetime.combine(clinic_day, time(10, 10)))

        slots = AvailabilityService().get_availability(doctor_id, clinic_day, 30, now=now)

        assert starts(slots) == ['10:30', '11:00', '11:30']

    def test_duration_longer_than_window(self, monday_schedule, doctor_id, clinic_day):
        assert AvailabilityService().get_availability(doctor_id, clinic_day, 240) == []

    @pytest.mark.parametrize('duration', [0, -30, 481])
    def test_invalid_duration(self, monday_schedule, doctor_id, clinic_day, duration):
        with pytest.raises(ValidationError):
            AvailabilityService().get_availability(doctor_id, clinic_day, duration)

    def test_default_slot_size_from_settings(self, monday_schedule, doctor_id, clinic_day, settings):
        settings.SCHEDULING_DEFAULT_SLOT_MINUTES = 60

        slots = AvailabilityService().get_availability(doctor_id, clinic_day)

        assert starts(slots) == ['09:00', '10:00', '11:00']


@pytest.mark.django_db
class TestFindConflict:

    def test_free_interval(self, monday_schedule, doctor_id, clinic_day):
        assert AvailabilityService().find_conflict(doctor_id, clinic_day, time(9, 0), 30) is None

    def test_outside_window(self, monday_schedule, doctor_id, clinic_day):
        service = AvailabilityService()

        assert service.find_conflict(doctor_id, clinic_day, time(8, 30), 30) == SlotConflict.OUTSIDE_SCHEDULE
        assert service.find_conflict(doctor_id, clinic_day, time(11, 45), 30) == SlotConflict.OUTSIDE_SCHEDULE

    def test_no_schedule(self, doctor_id, clinic_day, db):
        assert AvailabilityService().find_conflict(doctor_id, clinic_day, time(9, 0), 30) == SlotConflict.OUTSIDE_SCHEDULE

    def test_on_leave(self, monday_schedule, leave_factory, doctor_id, clinic_day):
        leave_factory(doctor_id, clinic_day)

        assert AvailabilityService().find_conflict(doctor_id, clinic_day, time(9, 0), 30) == SlotConflict.ON_LEAVE

    def test_overlapping_booking(self, monday_schedule, appointment_factory, doctor_id, clinic_day):
        appointment_factory(doctor_id, time(9, 0), duration_minutes=60)

        assert AvailabilityService().find_conflict(doctor_id, clinic_day, time(9, 30), 30) == SlotConflict.ALREADY_BOOKED

    def test_adjacent_booking_is_free(self, monday_schedule, appointment_factory, doctor_id, clinic_day):
        appointment_factory(doctor_id, time(9, 0), duration_minutes=30)

        assert AvailabilityService().find_conflict(doctor_id, clinic_day, time(9, 30), 30) is None

    def test_excluded_appointment_ignored(self, monday_schedule, appointment_factory, doctor_id, clinic_day):
        appointment = appointment_factory(doctor_id, time(9, 0), duration_minutes=60)

        assert AvailabilityService().find_conflict(
            doctor_id, clinic_day, time(9, 30), 30, exclude_appointment_id=appointment.id
        ) is None
