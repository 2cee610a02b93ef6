"""
Tests for the appointment and queue state machines.

Every status change goes through the transition table; anything else is
rejected without touching the row.
"""
from datetime import date, time

import pytest
from django.core.exceptions import ValidationError

from apps.core.exceptions import InvalidTransition
from apps.core.state_machine import StateMachine
from apps.scheduling.models import (
    APPOINTMENT_MACHINE,
    QUEUE_MACHINE,
    Appointment,
    AppointmentStatusChoices,
    QueueStatusChoices,
)
from apps.scheduling.services import BookingService, QueueService

S = AppointmentStatusChoices


class TestStateMachine:

    def test_rejects_unknown_state_in_table(self):
        with pytest.raises(ValueError):
            StateMachine('broken', ['a', 'b'], {'a': ['c']})

    def test_terminal_states(self):
        assert APPOINTMENT_MACHINE.terminal_states == {S.COMPLETED, S.CANCELLED, S.NO_SHOW, S.RESCHEDULED}
        assert QUEUE_MACHINE.terminal_states == {QueueStatusChoices.COMPLETED, QueueStatusChoices.CANCELLED}

    def test_check_reports_edge(self):
        with pytest.raises(InvalidTransition) as exc_info:
            APPOINTMENT_MACHINE.check(S.COMPLETED, S.SCHEDULED)

        assert exc_info.value.current == S.COMPLETED
        assert exc_info.value.target == S.SCHEDULED
        assert exc_info.value.machine == 'appointment'

    def test_invalid_transition_is_validation_error(self):
        with pytest.raises(ValidationError):
            QUEUE_MACHINE.check(QueueStatusChoices.COMPLETED, QueueStatusChoices.WAITING)

    @pytest.mark.parametrize('current,target', [
        (S.SCHEDULED, S.CONFIRMED),
        (S.SCHEDULED, S.CANCELLED),
        (S.CONFIRMED, S.CHECKED_IN),
        (S.CHECKED_IN, S.IN_PROGRESS),
        (S.IN_PROGRESS, S.COMPLETED),
        (S.IN_PROGRESS, S.CANCELLED),
    ])
    def test_allowed_edges(self, current, target):
        assert APPOINTMENT_MACHINE.can_transition(current, target)

    @pytest.mark.parametrize('current,target', [
        (S.SCHEDULED, S.CHECKED_IN),
        (S.SCHEDULED, S.COMPLETED),
        (S.CHECKED_IN, S.CONFIRMED),
        (S.CHECKED_IN, S.NO_SHOW),
        (S.COMPLETED, S.CANCELLED),
        (S.CANCELLED, S.SCHEDULED),
        (S.NO_SHOW, S.CONFIRMED),
        (S.RESCHEDULED, S.CONFIRMED),
    ])
    def test_forbidden_edges(self, current, target):
        assert not APPOINTMENT_MACHINE.can_transition(current, target)


@pytest.mark.django_db
class TestTransitionAppointment:

    def test_confirm(self, appointment_factory, doctor_id):
        appointment = appointment_factory(doctor_id)

        appointment = BookingService().transition_appointment(appointment.id, S.CONFIRMED)

        assert appointment.status == S.CONFIRMED

    def test_full_visit_lifecycle(self, appointment_factory, doctor_id):
        appointment = appointment_factory(doctor_id, status=S.CONFIRMED)
        service = BookingService()

        QueueService().check_in(appointment.id)
        service.transition_appointment(appointment.id, S.IN_PROGRESS)
        appointment = service.transition_appointment(appointment.id, S.COMPLETED)

        assert appointment.status == S.COMPLETED
        assert appointment.checked_in_at is not None
        assert appointment.consultation_started_at is not None
        assert appointment.consultation_ended_at is not None
        assert appointment.queue_entry.status == QueueStatusChoices.COMPLETED

    def test_start_moves_queue_entry(self, appointment_factory, doctor_id):
        appointment = appointment_factory(doctor_id, status=S.CONFIRMED)
        entry = QueueService().check_in(appointment.id)

        BookingService().transition_appointment(appointment.id, S.IN_PROGRESS)

        entry.refresh_from_db()
        assert entry.status == QueueStatusChoices.IN_PROGRESS
        assert entry.called_at is not None

    def test_rejected_edge_leaves_row_untouched(self, appointment_factory, doctor_id):
        appointment = appointment_factory(doctor_id, status=S.COMPLETED)

        with pytest.raises(InvalidTransition):
            BookingService().transition_appointment(appointment.id, S.CONFIRMED)

        appointment.refresh_from_db()
        assert appointment.status == S.COMPLETED

    @pytest.mark.parametrize('target', [S.CHECKED_IN, S.CANCELLED, S.RESCHEDULED, S.SCHEDULED])
    def test_dedicated_operations_not_reachable(self, appointment_factory, doctor_id, target):
        appointment = appointment_factory(doctor_id, status=S.CONFIRMED)

        with pytest.raises(ValidationError) as exc_info:
            BookingService().transition_appointment(appointment.id, target)

        assert not isinstance(exc_info.value, InvalidTransition)
        appointment.refresh_from_db()
        assert appointment.status == S.CONFIRMED

    def test_no_show_after_start(self, appointment_factory, doctor_id):
        appointment = appointment_factory(doctor_id, on_date=date(2024, 3, 4), at_time=time(9, 0), status=S.CONFIRMED)

        appointment = BookingService().transition_appointment(appointment.id, S.NO_SHOW)

        assert appointment.status == S.NO_SHOW

    def test_no_show_before_start_rejected(self, appointment_factory, doctor_id):
        appointment = appointment_factory(doctor_id, status=S.CONFIRMED)

        with pytest.raises(ValidationError) as exc_info:
            BookingService().transition_appointment(appointment.id, S.NO_SHOW)

        assert not isinstance(exc_info.value, InvalidTransition)
        appointment.refresh_from_db()
        assert appointment.status == S.CONFIRMED

    def test_no_show_after_check_in_rejected(self, appointment_factory, doctor_id):
        appointment = appointment_factory(doctor_id, on_date=date(2024, 3, 4), status=S.CHECKED_IN)

        with pytest.raises(InvalidTransition):
            BookingService().transition_appointment(appointment.id, S.NO_SHOW)


class TestTransitionAudit:
    """Model-level stamping; nothing is saved."""

    def test_cancel_stamps_time_and_reason(self):
        appointment = Appointment(
            doctor_id='00000000-0000-0000-0000-000000000001',
            patient_id='00000000-0000-0000-0000-000000000002',
            appointment_date=date(2030, 1, 7),
            appointment_time=time(9, 0),
            status=S.SCHEDULED,
        )

        old_status = appointment.transition_to(S.CANCELLED, reason='Clinic closed')

        assert old_status == S.SCHEDULED
        assert appointment.status == S.CANCELLED
        assert appointment.cancellation_reason == 'Clinic closed'
        assert appointment.cancelled_at is not None
