"""
Booking Engine and Queue Manager.

Every operation is one unit of work inside ``transaction.atomic``. Rows that
change status are locked with ``select_for_update``. Inserts guarded by a
uniqueness constraint run in a nested savepoint so the ``IntegrityError`` can
be translated into ``SlotConflict`` without breaking the outer transaction.
"""
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import List, Optional

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import Max
from django.utils import timezone

from apps.core.exceptions import InvalidTransition, SlotConflict
from apps.core.observability import log_domain_event, metrics
from apps.core.observability.events import (
    log_appointment_transition,
    log_queue_event,
    log_slot_conflict,
)
from apps.core.observability.logging import get_sanitized_logger
from apps.core.observability.tracing import trace_span

from .availability import AvailabilityService, default_slot_minutes, validate_duration
from .models import (
    APPOINTMENT_MACHINE,
    PENDING_QUEUE_STATUSES,
    QUEUE_MACHINE,
    Appointment,
    AppointmentStatusChoices,
    AppointmentTypeChoices,
    PriorityChoices,
    QueueEntry,
    QueueStatusChoices,
)

logger = get_sanitized_logger(__name__)


# ============================================================================
# BOOKING ENGINE
# ============================================================================

# Targets reachable through the generic transition operation. Check-in,
# cancellation and rescheduling have their own operations.
GENERIC_TRANSITION_TARGETS = (
    AppointmentStatusChoices.CONFIRMED,
    AppointmentStatusChoices.IN_PROGRESS,
    AppointmentStatusChoices.COMPLETED,
    AppointmentStatusChoices.NO_SHOW,
)


class BookingService:
    """
    Validates and commits appointments and drives their state machine.

    Booking is two-phase: an advisory availability pre-check followed by an
    insert guarded by the (doctor, date, time) uniqueness constraint. Only
    the constraint is authoritative.
    """

    def __init__(self, availability: Optional[AvailabilityService] = None):
        self.availability = availability or AvailabilityService()

    def book_appointment(
        self,
        patient_id,
        doctor_id,
        appointment_date: date,
        appointment_time: time,
        appointment_type: str = AppointmentTypeChoices.CONSULTATION,
        reason: str = '',
        duration_minutes: Optional[int] = None,
        priority: str = PriorityChoices.NORMAL,
        created_by=None,
        now: Optional[datetime] = None
    ) -> Appointment:
        """
        Book a slot.

        Raises:
            ValidationError: bad duration, type or priority, or a start in the past
            SlotConflict: pre-check rejected the slot or the insert lost the race
        """
        duration = default_slot_minutes() if duration_minutes is None else duration_minutes
        with trace_span('book_appointment', attributes={'doctor_id': str(doctor_id)}):
            try:
                self._validate_request(appointment_date, appointment_time, duration,
                                       appointment_type, priority, now)
            except ValidationError:
                metrics.appointments_booked_total.labels(result='invalid').inc()
                raise

            with transaction.atomic():
                self._precheck(doctor_id, appointment_date, appointment_time, duration)
                appointment = self._insert(
                    patient_id=patient_id,
                    doctor_id=doctor_id,
                    appointment_date=appointment_date,
                    appointment_time=appointment_time,
                    duration_minutes=duration,
                    appointment_type=appointment_type,
                    priority=priority,
                    reason_for_visit=reason or '',
                    created_by=created_by,
                )

        metrics.appointments_booked_total.labels(result='success').inc()
        log_domain_event(
            'appointment_booked',
            entity_type='Appointment',
            entity_id=str(appointment.id),
            entity_ids={
                'doctor_id': str(doctor_id),
                'patient_id': str(patient_id),
            },
            appointment_date=appointment_date.isoformat(),
            appointment_time=appointment_time.isoformat(),
            duration_minutes=duration,
            appointment_type=appointment_type,
        )
        return appointment

    @transaction.atomic
    def cancel_appointment(self, appointment_id, reason: str = '', user=None) -> Appointment:
        """
        Cancel an appointment and its queue entry.

        Cancelling an already-cancelled appointment returns it unchanged and
        emits nothing.

        Raises:
            Appointment.DoesNotExist: unknown id
            InvalidTransition: appointment is in another terminal status
        """
        appointment = Appointment.objects.select_for_update().get(pk=appointment_id)
        if appointment.status == AppointmentStatusChoices.CANCELLED:
            return appointment

        old_status = self._transition(appointment, AppointmentStatusChoices.CANCELLED, user=user, reason=reason)

        entry = QueueEntry.objects.select_for_update().filter(appointment=appointment).first()
        if entry is not None and not QUEUE_MACHINE.is_terminal(entry.status):
            entry.transition_to(QueueStatusChoices.CANCELLED)
            entry.save()
            log_queue_event('queue_entry_cancelled', entry)

        log_domain_event(
            'appointment_cancelled',
            entity_type='Appointment',
            entity_id=str(appointment.id),
            entity_ids={'doctor_id': str(appointment.doctor_id)},
            from_status=old_status,
            cancellation_reason=reason,
        )
        return appointment

    def reschedule_appointment(
        self,
        appointment_id,
        new_date: date,
        new_time: time,
        duration_minutes: Optional[int] = None,
        user=None,
        now: Optional[datetime] = None
    ) -> Appointment:
        """
        Replace an appointment with a new one at another slot.

        The original row keeps its date and time, moves to ``rescheduled`` and
        links forward to the new row, which links back. Returns the new
        appointment.

        Raises:
            InvalidTransition: original is not scheduled or confirmed
            ValidationError: invalid duration or new slot in the past
            SlotConflict: new slot unavailable
        """
        with transaction.atomic():
            original = Appointment.objects.select_for_update().get(pk=appointment_id)
            APPOINTMENT_MACHINE.check(original.status, AppointmentStatusChoices.RESCHEDULED)

            duration = original.duration_minutes if duration_minutes is None else duration_minutes
            self._validate_request(new_date, new_time, duration,
                                   original.appointment_type, original.priority, now)
            self._precheck(original.doctor_id, new_date, new_time, duration,
                           exclude_appointment_id=original.id)

            self._transition(original, AppointmentStatusChoices.RESCHEDULED, user=user)

            replacement = self._insert(
                patient_id=original.patient_id,
                doctor_id=original.doctor_id,
                appointment_date=new_date,
                appointment_time=new_time,
                duration_minutes=duration,
                appointment_type=original.appointment_type,
                priority=original.priority,
                reason_for_visit=original.reason_for_visit,
                rescheduled_from=original,
                created_by=user,
            )
            original.rescheduled_to = replacement
            original.save(update_fields=['rescheduled_to', 'updated_at'])

        log_domain_event(
            'appointment_rescheduled',
            entity_type='Appointment',
            entity_id=str(replacement.id),
            entity_ids={
                'doctor_id': str(original.doctor_id),
                'rescheduled_from_id': str(original.id),
            },
            appointment_date=new_date.isoformat(),
            appointment_time=new_time.isoformat(),
        )
        return replacement

    @transaction.atomic
    def transition_appointment(self, appointment_id, new_status: str, user=None, reason: str = '') -> Appointment:
        """
        Confirm, start, complete or mark no-show.

        Starting or completing an appointment that sits in a queue moves its
        queue entry along with it.

        Raises:
            ValidationError: target must go through a dedicated operation
            InvalidTransition: edge not in the transition table
        """
        if new_status not in GENERIC_TRANSITION_TARGETS:
            raise ValidationError({
                'status': f'Use the dedicated operation to move an appointment to "{new_status}"'
            })

        appointment = Appointment.objects.select_for_update().get(pk=appointment_id)
        self._transition(appointment, new_status, user=user, reason=reason)

        entry = QueueEntry.objects.select_for_update().filter(appointment=appointment).first()
        if entry is not None:
            if new_status == AppointmentStatusChoices.IN_PROGRESS and entry.status in PENDING_QUEUE_STATUSES:
                entry.transition_to(QueueStatusChoices.IN_PROGRESS)
                entry.save()
            elif new_status == AppointmentStatusChoices.COMPLETED and entry.status == QueueStatusChoices.IN_PROGRESS:
                entry.transition_to(QueueStatusChoices.COMPLETED)
                entry.save()

        return appointment

    # ------------------------------------------------------------------------

    def _validate_request(self, on_date, at_time, duration, appointment_type, priority, now=None):
        validate_duration(duration)
        errors = {}
        if appointment_type not in AppointmentTypeChoices.values:
            errors['appointment_type'] = f'Unknown appointment type "{appointment_type}"'
        if priority not in PriorityChoices.values:
            errors['priority'] = f'Unknown priority "{priority}"'
        start = timezone.make_aware(datetime.combine(on_date, at_time), timezone.get_current_timezone())
        if start < (now or timezone.now()):
            errors['appointment_date'] = 'Cannot book an appointment in the past'
        if errors:
            raise ValidationError(errors)

    def _precheck(self, doctor_id, on_date, at_time, duration, exclude_appointment_id=None):
        reason = self.availability.find_conflict(
            doctor_id, on_date, at_time, duration,
            exclude_appointment_id=exclude_appointment_id
        )
        if reason is not None:
            self._conflict(doctor_id, on_date, at_time, 'precheck', reason)

    def _insert(self, **fields):
        try:
            with transaction.atomic():
                return Appointment.objects.create(**fields)
        except IntegrityError:
            self._conflict(fields['doctor_id'], fields['appointment_date'], fields['appointment_time'],
                           'constraint', SlotConflict.ALREADY_BOOKED)

    def _conflict(self, doctor_id, on_date, at_time, source, reason):
        metrics.appointments_booked_total.labels(result='conflict').inc()
        metrics.slot_conflicts_total.labels(source=source, reason=reason).inc()
        log_slot_conflict(doctor_id, on_date, at_time, source, reason)
        raise SlotConflict(reason)

    def _transition(self, appointment, new_status, user=None, reason=None):
        old_status = appointment.status
        try:
            appointment.transition_to(new_status, user=user, reason=reason)
        except ValidationError:
            metrics.appointment_transitions_total.labels(
                from_status=old_status, to_status=new_status, result='rejected'
            ).inc()
            log_appointment_transition(appointment, old_status, new_status, result='blocked')
            raise
        appointment.save()
        metrics.appointment_transitions_total.labels(
            from_status=old_status, to_status=new_status, result='success'
        ).inc()
        log_appointment_transition(appointment, old_status, new_status)
        return old_status


# ============================================================================
# QUEUE MANAGER
# ============================================================================

@dataclass(frozen=True)
class QueuePosition:
    entry: QueueEntry
    ahead: int
    estimated_wait_minutes: int


class QueueService:
    """
    Per-doctor, per-day queues.

    Positions are always derived from persisted rows; nothing about a queue
    is cached in process.
    """

    @transaction.atomic
    def check_in(self, appointment_id, user=None, now: Optional[datetime] = None) -> QueueEntry:
        """
        Check a confirmed appointment in and hand out the next queue number.

        Raises:
            InvalidTransition: appointment is not confirmed (including a
                second check-in)
            SlotConflict: a concurrent check-in took the same queue number
        """
        with trace_span('queue_check_in', attributes={'appointment_id': str(appointment_id)}):
            appointment = Appointment.objects.select_for_update().get(pk=appointment_id)
            old_status = appointment.status
            try:
                appointment.transition_to(AppointmentStatusChoices.CHECKED_IN, user=user, now=now)
            except InvalidTransition:
                metrics.queue_operations_total.labels(operation='check_in', result='rejected').inc()
                raise
            appointment.save()
            log_appointment_transition(appointment, old_status, AppointmentStatusChoices.CHECKED_IN)

            last = QueueEntry.objects.filter(
                doctor_id=appointment.doctor_id,
                queue_date=appointment.appointment_date,
            ).aggregate(last_number=Max('queue_number'), last_sort_key=Max('sort_key'))

            try:
                with transaction.atomic():
                    entry = QueueEntry.objects.create(
                        appointment=appointment,
                        doctor_id=appointment.doctor_id,
                        queue_date=appointment.appointment_date,
                        queue_number=(last['last_number'] or 0) + 1,
                        sort_key=(last['last_sort_key'] or 0) + 1,
                        priority=appointment.priority,
                    )
            except IntegrityError:
                metrics.queue_operations_total.labels(operation='check_in', result='conflict').inc()
                metrics.slot_conflicts_total.labels(
                    source='queue', reason=SlotConflict.QUEUE_NUMBER_TAKEN
                ).inc()
                log_slot_conflict(
                    appointment.doctor_id, appointment.appointment_date, None,
                    'queue', SlotConflict.QUEUE_NUMBER_TAKEN
                )
                raise SlotConflict(SlotConflict.QUEUE_NUMBER_TAKEN)

        metrics.queue_operations_total.labels(operation='check_in', result='success').inc()
        log_queue_event('queue_checked_in', entry)
        return entry

    @transaction.atomic
    def advance_queue(self, doctor_id, on_date: date, now: Optional[datetime] = None) -> Optional[QueueEntry]:
        """
        Complete whoever is being seen and call the next pending entry.

        Returns the entry now in progress, or None when nobody is waiting.
        """
        now = now or timezone.now()
        entries = QueueEntry.objects.select_for_update().filter(doctor_id=doctor_id, queue_date=on_date)

        for current in entries.filter(status=QueueStatusChoices.IN_PROGRESS).order_by('sort_key'):
            current.transition_to(QueueStatusChoices.COMPLETED, now=now)
            current.save()
            self._move_appointment(current, AppointmentStatusChoices.IN_PROGRESS,
                                   AppointmentStatusChoices.COMPLETED, now)

        next_entry = entries.filter(status__in=PENDING_QUEUE_STATUSES).order_by('sort_key').first()
        if next_entry is not None:
            next_entry.transition_to(QueueStatusChoices.IN_PROGRESS, now=now)
            next_entry.save()
            self._move_appointment(next_entry, AppointmentStatusChoices.CHECKED_IN,
                                   AppointmentStatusChoices.IN_PROGRESS, now)
            log_queue_event('queue_advanced', next_entry)
            metrics.queue_operations_total.labels(operation='advance', result='success').inc()
        else:
            metrics.queue_operations_total.labels(operation='advance', result='empty').inc()

        metrics.queue_waiting.set(entries.filter(status__in=PENDING_QUEUE_STATUSES).count())
        return next_entry

    @transaction.atomic
    def skip(self, entry_id) -> QueueEntry:
        """
        Move a pending entry behind everyone currently in the queue.

        Its queue number is unchanged; only the call order moves.

        Raises:
            InvalidTransition: entry is in progress or finished
        """
        entry = QueueEntry.objects.select_for_update().get(pk=entry_id)
        try:
            entry.transition_to(QueueStatusChoices.SKIPPED)
        except InvalidTransition:
            metrics.queue_operations_total.labels(operation='skip', result='rejected').inc()
            raise

        tail = QueueEntry.objects.filter(
            doctor_id=entry.doctor_id,
            queue_date=entry.queue_date,
        ).aggregate(last_sort_key=Max('sort_key'))['last_sort_key']
        entry.sort_key = (tail or 0) + 1
        entry.save()

        metrics.queue_operations_total.labels(operation='skip', result='success').inc()
        log_queue_event('queue_skipped', entry)
        return entry

    def position(self, entry_id) -> QueuePosition:
        """Pending entries ahead of this one and the estimated wait."""
        entry = QueueEntry.objects.select_related('appointment').get(pk=entry_id)
        if entry.status not in PENDING_QUEUE_STATUSES:
            return QueuePosition(entry=entry, ahead=0, estimated_wait_minutes=0)

        ahead = QueueEntry.objects.filter(
            doctor_id=entry.doctor_id,
            queue_date=entry.queue_date,
            status__in=PENDING_QUEUE_STATUSES,
            sort_key__lt=entry.sort_key,
        ).count()
        return QueuePosition(
            entry=entry,
            ahead=ahead,
            estimated_wait_minutes=ahead * default_slot_minutes(),
        )

    def queue_for(self, doctor_id, on_date: date) -> List[QueueEntry]:
        return list(
            QueueEntry.objects.filter(doctor_id=doctor_id, queue_date=on_date)
            .select_related('appointment')
            .order_by('sort_key')
        )

    def _move_appointment(self, entry, expected_status, new_status, now):
        appointment = Appointment.objects.select_for_update().get(pk=entry.appointment_id)
        if appointment.status != expected_status:
            logger.warning(
                'Queue entry and appointment out of step',
                extra={
                    'event': 'queue_appointment_mismatch',
                    'queue_entry_id': str(entry.id),
                    'appointment_id': str(appointment.id),
                    'appointment_status': appointment.status,
                }
            )
            return
        appointment.transition_to(new_status, now=now)
        appointment.save()
        log_appointment_transition(appointment, expected_status, new_status)
