"""
Error taxonomy for the scheduling and critical-alerting core.

Malformed input is reported with Django's ``ValidationError`` directly.
Everything here is a per-request failure; none of these is process-fatal.
"""
from django.core.exceptions import ValidationError


class SlotConflict(Exception):
    """
    Raised when a booking or queue number cannot be allocated.

    The client is expected to re-query availability and pick a new slot,
    so this is never retried server-side.

    Reasons:
        outside_schedule: doctor has no schedule coverage for the interval
        on_leave: doctor has approved leave on that date
        already_booked: slot taken (pre-check or storage constraint)
        queue_number_taken: concurrent check-in won the same queue number
    """

    OUTSIDE_SCHEDULE = 'outside_schedule'
    ON_LEAVE = 'on_leave'
    ALREADY_BOOKED = 'already_booked'
    QUEUE_NUMBER_TAKEN = 'queue_number_taken'

    def __init__(self, reason, message=None):
        self.reason = reason
        self.message = message or f'Slot not available: {reason}'
        super().__init__(self.message)


class InvalidTransition(ValidationError):
    """Raised when a status change is not an edge of the transition table."""

    def __init__(self, machine, current, target):
        self.machine = machine
        self.current = current
        self.target = target
        super().__init__(
            f'{machine}: transition {current} -> {target} is not allowed',
            code='invalid_transition',
        )


class NotEvaluable(Exception):
    """
    Raised when an observation cannot be compared to a reference range.

    The observation is still stored, flagged for manual clinical review.
    """

    def __init__(self, reason):
        self.reason = reason
        super().__init__(reason)


class NotificationDeliveryFailure(Exception):
    """Raised by notification backends; logged, never rolls back the alert."""
    pass
