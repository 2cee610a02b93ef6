"""
Prometheus metrics for the scheduling and critical-alerting core.
"""
import time
from functools import wraps

from prometheus_client import Counter, Gauge, Histogram


class MetricsRegistry:
    """
    Central metrics registry.

    Provides typed access to all application metrics. Instantiated once per
    process (see ``metrics`` below); prometheus_client rejects duplicate
    registration.
    """

    def __init__(self):
        self._setup_metrics()

    def _setup_metrics(self):
        # ===================================================================
        # HTTP Metrics
        # ===================================================================
        self.http_requests_total = Counter(
            'http_requests_total',
            'Total HTTP requests',
            ['path', 'method', 'status']
        )

        self.exceptions_total = Counter(
            'exceptions_total',
            'Total exceptions',
            ['exception_type', 'location']
        )

        # ===================================================================
        # Scheduling Metrics
        # ===================================================================
        self.availability_duration_seconds = Histogram(
            'scheduling_availability_duration_seconds',
            'Availability computation duration',
            buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
        )

        self.appointments_booked_total = Counter(
            'scheduling_appointments_booked_total',
            'Booking attempts',
            ['result']  # success, conflict, invalid
        )

        self.slot_conflicts_total = Counter(
            'scheduling_slot_conflicts_total',
            'Slot conflicts surfaced to clients',
            ['source', 'reason']  # source: precheck, constraint, queue
        )

        self.appointment_transitions_total = Counter(
            'scheduling_appointment_transitions_total',
            'Appointment status transitions',
            ['from_status', 'to_status', 'result']
        )

        self.queue_operations_total = Counter(
            'scheduling_queue_operations_total',
            'Queue operations',
            ['operation', 'result']  # check_in, advance, skip
        )

        self.queue_waiting = Gauge(
            'scheduling_queue_waiting',
            'Entries waiting in the most recently touched queue',
        )

        # ===================================================================
        # Clinical Metrics
        # ===================================================================
        self.observations_recorded_total = Counter(
            'clinical_observations_recorded_total',
            'Observations recorded',
            ['kind', 'verdict']  # verdict includes not_evaluable
        )

        self.critical_alerts_total = Counter(
            'clinical_critical_alerts_total',
            'Critical alerts raised',
            ['alert_type', 'severity']
        )

        self.critical_alert_duplicates_total = Counter(
            'clinical_critical_alert_duplicates_total',
            'Alert creation attempts deduplicated by observation'
        )

        self.alert_notifications_total = Counter(
            'clinical_alert_notifications_total',
            'Alert notification attempts',
            ['result']  # sent, failed
        )

        self.alert_lifecycle_total = Counter(
            'clinical_alert_lifecycle_total',
            'Alert acknowledgments and resolutions',
            ['to_status']
        )

    def track_duration(self, histogram_metric):
        """
        Decorator to track function duration.

        Usage:
            @metrics.track_duration(metrics.availability_duration_seconds)
            def get_availability(doctor_id, on_date):
                ...
        """
        def decorator(func):
            @wraps(func)
            def wrapper(*args, **kwargs):
                start_time = time.time()
                try:
                    return func(*args, **kwargs)
                finally:
                    histogram_metric.observe(time.time() - start_time)
            return wrapper
        return decorator


# Global metrics instance
metrics = MetricsRegistry()
