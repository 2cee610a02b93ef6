"""
Domain events logging helpers.

Provides structured event logging for scheduling and alerting operations.
"""
from typing import Dict, Optional

from .logging import get_sanitized_logger, sanitize_dict

logger = get_sanitized_logger(__name__)


def log_domain_event(
    event_name: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    entity_ids: Optional[Dict[str, str]] = None,
    result: str = 'success',
    **extra_fields
):
    """
    Log a domain event with structured data.

    Args:
        event_name: Name of the event (e.g., 'appointment_booked', 'critical_alert_raised')
        entity_type: Type of entity (e.g., 'Appointment', 'CriticalAlert')
        entity_id: ID of primary entity
        entity_ids: Dictionary of related entity IDs
        result: Result of operation (success, failure, conflict, ...)
        **extra_fields: Additional fields to log (will be sanitized)

    Example:
        log_domain_event(
            'appointment_booked',
            entity_type='Appointment',
            entity_id=str(appointment.id),
            entity_ids={'doctor_id': str(appointment.doctor_id)},
            appointment_date=appointment.appointment_date.isoformat(),
        )
    """
    event_data = {
        'event': event_name,
        'result': result,
    }

    if entity_type:
        event_data['entity_type'] = entity_type

    if entity_id:
        event_data['entity_id'] = entity_id

    if entity_ids:
        event_data.update(entity_ids)

    event_data.update(sanitize_dict(extra_fields))

    if result in ['failure', 'error']:
        logger.error(f'Domain event: {event_name}', extra=event_data)
    elif result in ['warning', 'blocked', 'conflict', 'review']:
        logger.warning(f'Domain event: {event_name}', extra=event_data)
    else:
        logger.info(f'Domain event: {event_name}', extra=event_data)


def log_appointment_transition(appointment, from_status, to_status, result='success', **extra):
    """Log appointment status transition event."""
    log_domain_event(
        'appointment_transition',
        entity_type='Appointment',
        entity_id=str(appointment.id),
        entity_ids={'doctor_id': str(appointment.doctor_id)},
        result=result,
        from_status=from_status,
        to_status=to_status,
        **extra
    )


def log_slot_conflict(doctor_id, on_date, at_time, source, reason):
    """Log a booking or queue allocation rejected as a slot conflict."""
    log_domain_event(
        'appointment_slot_conflict',
        entity_type='Appointment',
        entity_ids={'doctor_id': str(doctor_id)},
        result='conflict',
        appointment_date=on_date.isoformat(),
        appointment_time=at_time.isoformat() if at_time else None,
        source=source,
        conflict_reason=reason,
    )


def log_queue_event(event_name, entry, **extra):
    """Log queue manager operations (check-in, advance, skip)."""
    log_domain_event(
        event_name,
        entity_type='QueueEntry',
        entity_id=str(entry.id),
        entity_ids={
            'appointment_id': str(entry.appointment_id),
            'doctor_id': str(entry.doctor_id),
        },
        queue_date=entry.queue_date.isoformat(),
        queue_number=entry.queue_number,
        queue_status=entry.status,
        **extra
    )


def log_alert_event(event_name, alert, result='success', **extra):
    """Log critical alert lifecycle events."""
    log_domain_event(
        event_name,
        entity_type='CriticalAlert',
        entity_id=str(alert.id),
        entity_ids={
            'patient_id': str(alert.patient_id),
            'observation_id': str(alert.source_observation_id),
        },
        result=result,
        severity=alert.severity,
        alert_status=alert.status,
        **extra
    )
