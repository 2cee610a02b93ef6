"""
Celery tasks for critical alert delivery.
"""
from celery import shared_task

from apps.core.observability.events import log_alert_event


@shared_task(name='apps.clinical.tasks.deliver_critical_alert')
def deliver_critical_alert(alert_id):
    """
    Worker-side delivery of one critical alert.

    Args:
        alert_id: CriticalAlert UUID (string)
    """
    from .models import CriticalAlert

    alert = CriticalAlert.objects.filter(pk=alert_id).first()
    if alert is None:
        return f"Alert {alert_id} not found"

    log_alert_event('critical_alert_delivered', alert)
    return f"Alert {alert_id} delivered"
