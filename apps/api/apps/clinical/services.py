"""
Observation recording and the Alert Dispatcher.

The clinical write path is: validate, evaluate (pure), then persist the
observation and any alert in one transaction. Notification happens after
commit and can never roll the write back.
"""
import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.core.exceptions import NotEvaluable, NotificationDeliveryFailure
from apps.core.observability import log_domain_event, metrics
from apps.core.observability.events import log_alert_event
from apps.core.observability.tracing import trace_span
from apps.reference.models import ParameterKindChoices
from apps.reference.store import ReferenceDataStore

from .evaluator import (
    Evaluation,
    FixedBreach,
    VerdictChoices,
    evaluate,
    fixed_threshold_applies,
    fixed_unit_mismatch_reason,
    fixed_vital_breach,
    has_fixed_threshold,
)
from .models import (
    ALERT_MACHINE,
    AlertSourceChoices,
    AlertStatusChoices,
    AlertTypeChoices,
    CriticalAlert,
    LabResult,
    NotificationStatusChoices,
    SeverityChoices,
    VitalObservation,
)
from .notifications import get_notification_backend

# Matches the DecimalField(max_digits=12, decimal_places=4) columns.
MAX_VALUE = Decimal('100000000')
VALUE_QUANTUM = Decimal('0.0001')

OBSERVATION_MODELS = {
    ParameterKindChoices.VITAL: VitalObservation,
    ParameterKindChoices.LAB: LabResult,
}

ALERT_SOURCES = {
    ParameterKindChoices.VITAL: (AlertSourceChoices.VITAL_OBSERVATION, AlertTypeChoices.VITAL_SIGN),
    ParameterKindChoices.LAB: (AlertSourceChoices.LAB_RESULT, AlertTypeChoices.LAB_RESULT),
}


@dataclass(frozen=True)
class ObservationResult:
    observation: object
    verdict: Optional[str]
    alert: Optional[CriticalAlert]
    requires_review: bool
    replayed: bool = False

    @property
    def alert_id(self):
        return self.alert.id if self.alert else None


@dataclass(frozen=True)
class AlertDecision:
    """Why an observation is critical: bucketed range, fixed vital rule, or both."""
    evaluation: Optional[Evaluation]
    breach: Optional[FixedBreach]

    @property
    def range_critical(self):
        return self.evaluation is not None and self.evaluation.is_critical

    @property
    def is_critical(self):
        return self.range_critical or self.breach is not None

    @property
    def severity(self):
        if self.range_critical and self.breach is not None:
            return SeverityChoices.EMERGENCY
        return SeverityChoices.CRITICAL

    @property
    def verdict(self):
        if self.range_critical:
            return self.evaluation.verdict
        return self.breach.verdict

    @property
    def threshold(self):
        if self.range_critical:
            return self.evaluation.threshold
        return self.breach.threshold


def _as_value(value) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValidationError({'value': 'A numeric value is required'})
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError({'value': 'Value must be finite'})
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError({'value': 'A numeric value is required'})
    if not number.is_finite():
        raise ValidationError({'value': 'Value must be finite'})
    if abs(number) >= MAX_VALUE:
        raise ValidationError({'value': 'Value is out of range'})
    return number.quantize(VALUE_QUANTUM)


# ============================================================================
# OBSERVATIONS
# ============================================================================

class ObservationService:
    """
    recordObservation: store a measurement, classify it, raise alerts.
    """

    def __init__(self, store: Optional[ReferenceDataStore] = None, dispatcher=None):
        self.store = store or ReferenceDataStore()
        self.dispatcher = dispatcher or AlertDispatcher()

    def record_observation(
        self,
        patient_id,
        parameter: str,
        value,
        unit: str,
        recorded_at: datetime,
        recorded_by=None,
        kind: str = ParameterKindChoices.VITAL,
        observation_id=None,
        now: Optional[datetime] = None
    ) -> ObservationResult:
        """
        Record one measurement and return its verdict and alert, if any.

        Replaying a known ``observation_id`` returns the stored outcome and
        writes nothing. An observation that cannot be evaluated is still
        stored, with ``requires_review`` set instead of a verdict.

        Raises:
            ValidationError: unknown parameter or kind, non-numeric value,
                timestamp in the future
        """
        if kind not in OBSERVATION_MODELS:
            raise ValidationError({'kind': f'Unknown observation kind "{kind}"'})
        model = OBSERVATION_MODELS[kind]

        if observation_id is not None:
            existing = model.objects.filter(pk=observation_id).first()
            if existing is not None:
                return self._replay(existing, kind)

        number = _as_value(value)
        if timezone.is_naive(recorded_at):
            raise ValidationError({'recorded_at': 'Observation timestamp must include a time zone'})
        if recorded_at > (now or timezone.now()):
            raise ValidationError({'recorded_at': 'Observation timestamp is in the future'})

        definition = self.store.get_parameter(parameter)
        if definition is None and not has_fixed_threshold(parameter):
            raise ValidationError({'parameter': f'Unknown parameter "{parameter}"'})

        with trace_span('record_observation', attributes={'parameter': parameter, 'kind': kind}):
            evaluation, review_reason = self._evaluate(definition, parameter, number, unit, patient_id, recorded_at)
            breach = fixed_vital_breach(parameter, number, unit)
            decision = AlertDecision(evaluation=evaluation, breach=breach)

            if evaluation is not None:
                verdict = evaluation.verdict
            elif definition is None and not fixed_threshold_applies(parameter, unit):
                verdict = None
                review_reason = fixed_unit_mismatch_reason(parameter, unit)
            elif definition is None:
                # Fixed-rule-only vital: the fixed rule is its whole classification.
                verdict = breach.verdict if breach else VerdictChoices.NORMAL
            else:
                verdict = None

            fields = dict(
                patient_id=patient_id,
                parameter_name=parameter,
                value=number,
                unit=unit or '',
                recorded_at=recorded_at,
                recorded_by=recorded_by,
                verdict=verdict,
                bucket=evaluation.bucket if evaluation else '',
                requires_review=verdict is None,
                review_reason=review_reason or '',
            )
            if observation_id is not None:
                fields['id'] = observation_id

            try:
                with transaction.atomic():
                    observation = model.objects.create(**fields)
                    alert = None
                    if decision.is_critical:
                        alert = self.dispatcher.raise_alert(observation, kind, decision)
            except IntegrityError:
                # A concurrent write with the same observation id won.
                existing = model.objects.filter(pk=observation_id).first() if observation_id else None
                if existing is None:
                    raise
                return self._replay(existing, kind)

        metrics.observations_recorded_total.labels(kind=kind, verdict=verdict or 'not_evaluable').inc()
        log_domain_event(
            'observation_recorded' if verdict else 'observation_not_evaluable',
            entity_type=model.__name__,
            entity_id=str(observation.id),
            entity_ids={'patient_id': str(patient_id)},
            result='success' if verdict else 'review',
            parameter_name=parameter,
            verdict=verdict,
            bucket=observation.bucket,
            alert_id=str(alert.id) if alert else None,
            review_reason=review_reason,
        )
        return ObservationResult(
            observation=observation,
            verdict=verdict,
            alert=alert,
            requires_review=observation.requires_review,
        )

    def _evaluate(self, definition, parameter, value, unit, patient_id, recorded_at):
        """Returns (evaluation, review_reason); exactly one is set when ranges exist."""
        if definition is None:
            return None, None

        demographics = self.store.get_patient_demographics(patient_id)
        age = demographics.age_on(timezone.localdate(recorded_at)) if demographics else None
        gender = demographics.gender if demographics else ''

        try:
            evaluation = evaluate(
                parameter, value, unit, age, gender,
                lambda bucket: self.store.get_reference_range(parameter, bucket),
            )
        except NotEvaluable as e:
            return None, e.reason
        return evaluation, None

    def _replay(self, observation, kind):
        source_type, _ = ALERT_SOURCES[kind]
        alert = CriticalAlert.objects.filter(
            source_type=source_type,
            source_observation_id=observation.id,
        ).first()
        return ObservationResult(
            observation=observation,
            verdict=observation.verdict,
            alert=alert,
            requires_review=observation.requires_review,
            replayed=True,
        )

    @staticmethod
    def pending_review(limit=200):
        """Observations awaiting manual review, newest first, across kinds."""
        rows = []
        for kind, model in OBSERVATION_MODELS.items():
            for observation in model.objects.filter(requires_review=True).order_by('-recorded_at')[:limit]:
                rows.append((kind, observation))
        rows.sort(key=lambda row: row[1].recorded_at, reverse=True)
        return rows[:limit]


# ============================================================================
# ALERT DISPATCHER
# ============================================================================

class AlertDispatcher:
    """
    Turns critical decisions into exactly one CriticalAlert per observation
    and forwards it to the notification collaborator after commit.
    """

    def raise_alert(self, observation, kind: str, decision: AlertDecision) -> CriticalAlert:
        """
        Create the alert for ``observation`` or return the existing one.

        Must run inside the observation's transaction.
        """
        source_type, alert_type = ALERT_SOURCES[kind]
        existing = CriticalAlert.objects.filter(
            source_type=source_type,
            source_observation_id=observation.id,
        ).first()
        if existing is not None:
            self._duplicate(existing)
            return existing

        try:
            with transaction.atomic():
                alert = CriticalAlert.objects.create(
                    alert_type=alert_type,
                    severity=decision.severity,
                    patient_id=observation.patient_id,
                    source_type=source_type,
                    source_observation_id=observation.id,
                    parameter_name=observation.parameter_name,
                    parameter_value=observation.value,
                    threshold_value=decision.threshold,
                    verdict=decision.verdict,
                    message=self._message(observation, decision),
                    details=self._details(decision),
                )
        except IntegrityError:
            existing = CriticalAlert.objects.get(source_type=source_type, source_observation_id=observation.id)
            self._duplicate(existing)
            return existing

        metrics.critical_alerts_total.labels(alert_type=alert_type, severity=alert.severity).inc()
        log_alert_event('critical_alert_raised', alert, result='warning', verdict=alert.verdict)
        transaction.on_commit(lambda: self.notify(alert.pk), robust=True)
        return alert

    def notify(self, alert_id):
        """
        Forward one alert to the notification backend.

        Any delivery failure, including a misconfigured backend, is recorded
        on the alert and logged; it never propagates.
        """
        alert = CriticalAlert.objects.get(pk=alert_id)
        attempted_at = timezone.now()
        try:
            get_notification_backend().dispatch(alert)
        except Exception as e:
            if isinstance(e, NotificationDeliveryFailure):
                error = str(e)
            else:
                error = f'{type(e).__name__}: {e}'
            CriticalAlert.objects.filter(pk=alert.pk).update(
                notification_status=NotificationStatusChoices.FAILED,
                notification_attempted_at=attempted_at,
                notification_error=error,
            )
            metrics.alert_notifications_total.labels(result='failed').inc()
            log_alert_event(
                'critical_alert_notification_failed', alert,
                result='failure', error=error, error_type=type(e).__name__,
            )
            return False

        CriticalAlert.objects.filter(pk=alert.pk).update(
            notification_status=NotificationStatusChoices.SENT,
            notification_attempted_at=attempted_at,
            notification_error='',
        )
        metrics.alert_notifications_total.labels(result='sent').inc()
        log_alert_event('critical_alert_notified', alert)
        return True

    def _duplicate(self, alert):
        metrics.critical_alert_duplicates_total.inc()
        log_alert_event('critical_alert_duplicate', alert, result='skipped')

    @staticmethod
    def _message(observation, decision):
        direction = 'below' if decision.verdict == VerdictChoices.CRITICAL_LOW else 'above'
        unit = f' {observation.unit}' if observation.unit else ''
        return (
            f'{decision.severity.upper()}: {observation.parameter_name} {observation.value}{unit} '
            f'is {direction} critical threshold {decision.threshold}'
        )

    @staticmethod
    def _details(decision):
        details = {}
        if decision.evaluation is not None:
            reference_range = decision.evaluation.reference_range
            details['bucket'] = decision.evaluation.bucket
            details['range_verdict'] = decision.evaluation.verdict
            details['reference_range'] = {
                'min': str(reference_range.min),
                'max': str(reference_range.max),
                'critical_low': str(reference_range.critical_low) if reference_range.critical_low is not None else None,
                'critical_high': str(reference_range.critical_high) if reference_range.critical_high is not None else None,
                'unit': reference_range.unit,
            }
        if decision.breach is not None:
            details['fixed_threshold'] = {
                'verdict': decision.breach.verdict,
                'threshold': str(decision.breach.threshold),
            }
        return details


# ============================================================================
# ALERT LIFECYCLE
# ============================================================================

@transaction.atomic
def acknowledge_alert(alert_id, user) -> CriticalAlert:
    """
    open -> acknowledged. Acknowledging again is a no-op.

    Raises:
        CriticalAlert.DoesNotExist: unknown id
    """
    alert = CriticalAlert.objects.select_for_update().get(pk=alert_id)
    if alert.status != AlertStatusChoices.OPEN:
        return alert

    alert.status = AlertStatusChoices.ACKNOWLEDGED
    alert.acknowledged_at = timezone.now()
    alert.acknowledged_by = user
    alert.save(update_fields=['status', 'acknowledged_at', 'acknowledged_by', 'updated_at'])

    metrics.alert_lifecycle_total.labels(to_status=alert.status).inc()
    log_alert_event('critical_alert_acknowledged', alert)
    return alert


@transaction.atomic
def resolve_alert(alert_id, user, notes: str = '') -> CriticalAlert:
    """
    acknowledged -> resolved. Resolving a resolved alert is a no-op.

    Raises:
        InvalidTransition: alert has not been acknowledged yet
    """
    alert = CriticalAlert.objects.select_for_update().get(pk=alert_id)
    if alert.status == AlertStatusChoices.RESOLVED:
        return alert

    ALERT_MACHINE.check(alert.status, AlertStatusChoices.RESOLVED)
    alert.status = AlertStatusChoices.RESOLVED
    alert.resolved_at = timezone.now()
    alert.resolved_by = user
    alert.resolution_notes = notes or ''
    alert.save(update_fields=['status', 'resolved_at', 'resolved_by', 'resolution_notes', 'updated_at'])

    metrics.alert_lifecycle_total.labels(to_status=alert.status).inc()
    log_alert_event('critical_alert_resolved', alert)
    return alert
