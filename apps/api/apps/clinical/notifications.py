"""
Notification collaborators for critical alerts.

The dispatcher loads the backend named by
``settings.CLINICAL_ALERT_NOTIFICATION_BACKEND`` and calls ``dispatch(alert)``.
Backends report failure by raising NotificationDeliveryFailure; the
dispatcher records and logs it and never propagates it.
"""
import logging

from celery.exceptions import CeleryError
from django.conf import settings
from django.utils.module_loading import import_string
from kombu.exceptions import OperationalError

from apps.core.exceptions import NotificationDeliveryFailure

logger = logging.getLogger(__name__)

DEFAULT_BACKEND = 'apps.clinical.notifications.CeleryNotificationBackend'


class BaseNotificationBackend:
    def dispatch(self, alert):
        raise NotImplementedError


class CeleryNotificationBackend(BaseNotificationBackend):
    """Hands the alert to a worker; success means the broker accepted it."""

    def dispatch(self, alert):
        from .tasks import deliver_critical_alert

        try:
            deliver_critical_alert.delay(str(alert.id))
        except (OperationalError, CeleryError) as e:
            raise NotificationDeliveryFailure(f'Could not enqueue alert delivery: {e}') from e


class LoggingNotificationBackend(BaseNotificationBackend):
    """Development backend: writes the alert to the log."""

    def dispatch(self, alert):
        logger.warning(
            'Critical alert notification',
            extra={
                'event': 'critical_alert_notification_logged',
                'alert_id': str(alert.id),
                'severity': alert.severity,
                'parameter_name': alert.parameter_name,
            }
        )


def get_notification_backend():
    path = getattr(settings, 'CLINICAL_ALERT_NOTIFICATION_BACKEND', DEFAULT_BACKEND)
    return import_string(path)()
