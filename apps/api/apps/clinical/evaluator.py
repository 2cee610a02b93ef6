"""
Critical Value Evaluator.

Pure functions: no database access and no side effects. The caller supplies
the reference range lookup, so the same (value, age, gender, ranges) always
yields the same verdict.

Two independent rule sets exist:

- Bucketed reference ranges (age/gender segments) loaded from the reference
  data store, used for labs and for vitals that have ranges configured.
- Fixed critical vital thresholds (SpO2, heart rate, temperature, systolic
  blood pressure) that apply regardless of bucket resolution.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, List, Optional, Tuple

from django.db import models

from apps.core.exceptions import NotEvaluable
from apps.reference.models import GenderChoices
from apps.reference.store import PopulationBucket, ReferenceRange


class VerdictChoices(models.TextChoices):
    NORMAL = 'normal', 'Normal'
    LOW = 'low', 'Low'
    HIGH = 'high', 'High'
    CRITICAL_LOW = 'critical_low', 'Critical Low'
    CRITICAL_HIGH = 'critical_high', 'Critical High'


CRITICAL_VERDICTS = (VerdictChoices.CRITICAL_LOW, VerdictChoices.CRITICAL_HIGH)

INFANT_MAX_AGE = 1
CHILD_MAX_AGE = 18

RangeLookup = Callable[[str], Optional[ReferenceRange]]


@dataclass(frozen=True)
class Evaluation:
    verdict: str
    bucket: str
    reference_range: ReferenceRange

    @property
    def is_critical(self):
        return self.verdict in CRITICAL_VERDICTS

    @property
    def threshold(self) -> Optional[Decimal]:
        """Bound that produced the verdict, None when normal."""
        return {
            VerdictChoices.CRITICAL_LOW: self.reference_range.critical_low,
            VerdictChoices.CRITICAL_HIGH: self.reference_range.critical_high,
            VerdictChoices.LOW: self.reference_range.min,
            VerdictChoices.HIGH: self.reference_range.max,
        }.get(self.verdict)


def bucket_candidates(age: Optional[int], gender: str = '') -> List[str]:
    """
    Buckets to try, most specific first.

    Age decides before gender: under 1 is infant, under 18 is child. Adults
    use their gender bucket. Every list ends with the default bucket.
    """
    if age is not None:
        if age < INFANT_MAX_AGE:
            return [PopulationBucket.INFANT, PopulationBucket.DEFAULT]
        if age < CHILD_MAX_AGE:
            return [PopulationBucket.CHILD, PopulationBucket.DEFAULT]
        if gender == GenderChoices.MALE:
            return [PopulationBucket.ADULT_MALE, PopulationBucket.DEFAULT]
        if gender == GenderChoices.FEMALE:
            return [PopulationBucket.ADULT_FEMALE, PopulationBucket.DEFAULT]
    return [PopulationBucket.DEFAULT]


def select_range(parameter: str, age: Optional[int], gender: str, lookup: RangeLookup) -> Tuple[str, ReferenceRange]:
    """
    First bucket present for this patient.

    A malformed bucket stops the search (the lookup raises NotEvaluable);
    only a missing bucket falls through to the next candidate.

    Raises:
        NotEvaluable: no candidate bucket exists, or the chosen one is malformed
    """
    candidates = bucket_candidates(age, gender)
    for bucket in candidates:
        reference_range = lookup(bucket)
        if reference_range is not None:
            return bucket, reference_range
    raise NotEvaluable(f'{parameter}: no reference range for buckets {", ".join(candidates)}')


def classify(value: Decimal, reference_range: ReferenceRange) -> str:
    """
    Compare against critical bounds first, then the normal range.

    Critical bounds are inclusive: a value equal to ``critical_low`` is
    critical_low, never low.
    """
    if reference_range.critical_low is not None and value <= reference_range.critical_low:
        return VerdictChoices.CRITICAL_LOW
    if reference_range.critical_high is not None and value >= reference_range.critical_high:
        return VerdictChoices.CRITICAL_HIGH
    if value < reference_range.min:
        return VerdictChoices.LOW
    if value > reference_range.max:
        return VerdictChoices.HIGH
    return VerdictChoices.NORMAL


def _same_unit(left: str, right: str) -> bool:
    return left.strip().lower() == right.strip().lower()


def evaluate(
    parameter: str,
    value: Decimal,
    unit: str,
    age: Optional[int],
    gender: str,
    lookup: RangeLookup
) -> Evaluation:
    """
    Verdict for one measurement.

    Raises:
        NotEvaluable: no usable bucket, or the measurement unit differs from
            the range unit
    """
    bucket, reference_range = select_range(parameter, age, gender, lookup)
    if unit and reference_range.unit and not _same_unit(unit, reference_range.unit):
        raise NotEvaluable(
            f'{parameter}: unit {unit!r} does not match reference unit {reference_range.unit!r}'
        )
    return Evaluation(
        verdict=classify(value, reference_range),
        bucket=bucket,
        reference_range=reference_range,
    )


# ============================================================================
# FIXED CRITICAL VITAL THRESHOLDS
# ============================================================================

@dataclass(frozen=True)
class FixedThreshold:
    """Critical when value < low or value > high (strict)."""
    parameter: str
    low: Optional[Decimal]
    high: Optional[Decimal]
    units: Tuple[str, ...]


@dataclass(frozen=True)
class FixedBreach:
    parameter: str
    verdict: str
    threshold: Decimal


FIXED_VITAL_THRESHOLDS = {
    threshold.parameter: threshold
    for threshold in (
        FixedThreshold('spo2', Decimal('90'), None, ('%', 'percent')),
        FixedThreshold('heart_rate', Decimal('40'), Decimal('140'), ('bpm', '/min')),
        FixedThreshold('temperature', Decimal('35.0'), Decimal('39.5'), ('°c', 'c', 'celsius')),
        FixedThreshold('bp_systolic', Decimal('90'), Decimal('180'), ('mmhg',)),
    )
}


def fixed_vital_breach(parameter: str, value: Decimal, unit: str = '') -> Optional[FixedBreach]:
    """
    Check the fixed vital thresholds.

    Returns None for parameters without a fixed rule, for values inside the
    rule, and for measurements in a unit the rule is not written in.
    """
    threshold = FIXED_VITAL_THRESHOLDS.get(parameter)
    if threshold is None or not fixed_threshold_applies(parameter, unit):
        return None
    if threshold.low is not None and value < threshold.low:
        return FixedBreach(parameter, VerdictChoices.CRITICAL_LOW, threshold.low)
    if threshold.high is not None and value > threshold.high:
        return FixedBreach(parameter, VerdictChoices.CRITICAL_HIGH, threshold.high)
    return None


def has_fixed_threshold(parameter: str) -> bool:
    return parameter in FIXED_VITAL_THRESHOLDS


def fixed_threshold_applies(parameter: str, unit: str = '') -> bool:
    """True when ``parameter`` has a fixed rule written in ``unit`` (empty unit counts)."""
    threshold = FIXED_VITAL_THRESHOLDS.get(parameter)
    if threshold is None:
        return False
    return not unit or unit.strip().lower() in threshold.units


def fixed_unit_mismatch_reason(parameter: str, unit: str) -> str:
    units = ', '.join(repr(u) for u in FIXED_VITAL_THRESHOLDS[parameter].units)
    return f'{parameter}: unit {unit!r} does not match fixed threshold units ({units})'
