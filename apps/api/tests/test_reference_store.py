"""
Tests for the Reference Data Store.

Coverage:
1. Schedule lookup honours weekday, validity window and active flag
2. Most recently effective schedule wins
3. Only approved leave counts
4. Reference range parsing fails closed on malformed buckets
5. Demographics projection and age calculation
"""
import uuid
from datetime import date, time
from decimal import Decimal

import pytest

from apps.core.exceptions import NotEvaluable
from apps.reference.models import ClinicalParameter, LeaveStatusChoices, ParameterKindChoices
from apps.reference.store import Demographics, ReferenceDataStore, parse_reference_range


@pytest.mark.django_db
class TestScheduleLookup:

    def test_returns_schedule_for_matching_weekday(self, schedule_factory, doctor_id, clinic_day):
        schedule_factory(doctor_id)

        schedule = ReferenceDataStore().get_schedule(doctor_id, clinic_day)

        assert schedule is not None
        assert schedule.start_time == time(9, 0)
        assert schedule.end_time == time(12, 0)
        assert not schedule.has_break

    def test_no_schedule_on_other_weekday(self, schedule_factory, doctor_id):
        schedule_factory(doctor_id)

        # 2030-01-08 is a Tuesday
        assert ReferenceDataStore().get_schedule(doctor_id, date(2030, 1, 8)) is None

    def test_inactive_or_expired_schedule_ignored(self, schedule_factory, doctor_id, clinic_day):
        schedule_factory(doctor_id, is_active=False)
        schedule_factory(doctor_id, effective_until=date(2029, 12, 31))

        assert ReferenceDataStore().get_schedule(doctor_id, clinic_day) is None

    def test_latest_effective_version_wins(self, schedule_factory, doctor_id, clinic_day):
        schedule_factory(doctor_id, effective_from=date(2025, 1, 1))
        schedule_factory(doctor_id, effective_from=date(2029, 6, 1), start_time=time(14, 0), end_time=time(18, 0))

        schedule = ReferenceDataStore().get_schedule(doctor_id, clinic_day)

        assert schedule.start_time == time(14, 0)

    def test_future_version_not_yet_effective(self, schedule_factory, doctor_id, clinic_day):
        schedule_factory(doctor_id, effective_from=date(2031, 1, 1))

        assert ReferenceDataStore().get_schedule(doctor_id, clinic_day) is None


@pytest.mark.django_db
class TestLeaveLookup:

    def test_approved_leave_blocks(self, leave_factory, doctor_id, clinic_day):
        leave_factory(doctor_id, date(2030, 1, 6), date(2030, 1, 10))

        assert ReferenceDataStore().is_on_leave(doctor_id, clinic_day) is True

    @pytest.mark.parametrize('leave_status', [
        LeaveStatusChoices.PENDING,
        LeaveStatusChoices.REJECTED,
        LeaveStatusChoices.CANCELLED,
    ])
    def test_unapproved_leave_ignored(self, leave_factory, doctor_id, clinic_day, leave_status):
        leave_factory(doctor_id, clinic_day, status=leave_status)

        assert ReferenceDataStore().is_on_leave(doctor_id, clinic_day) is False

    def test_other_doctor_leave_ignored(self, leave_factory, doctor_id, clinic_day):
        leave_factory(uuid.uuid4(), clinic_day)

        assert ReferenceDataStore().is_on_leave(doctor_id, clinic_day) is False


class TestParseReferenceRange:
    """Bucket validation is pure; no database needed."""

    def test_parses_full_bucket(self):
        reference_range = parse_reference_range(
            'hemoglobin', 'adult_male',
            {'min': 13.5, 'max': 17.5, 'critical_low': 7, 'critical_high': 20, 'unit': 'g/dL'},
        )

        assert reference_range.min == Decimal('13.5')
        assert reference_range.max == Decimal('17.5')
        assert reference_range.critical_low == Decimal('7')
        assert reference_range.critical_high == Decimal('20')
        assert reference_range.unit == 'g/dL'

    def test_critical_bounds_optional_and_unit_defaults(self):
        reference_range = parse_reference_range('potassium', 'default', {'min': '3.5', 'max': '5.0'}, 'mmol/L')

        assert reference_range.critical_low is None
        assert reference_range.critical_high is None
        assert reference_range.unit == 'mmol/L'

    @pytest.mark.parametrize('raw', [
        'not-a-bucket',
        {'max': 5},
        {'min': 3},
        {'min': 'low', 'max': 5},
        {'min': True, 'max': 5},
        {'min': 'NaN', 'max': 5},
        {'min': 6, 'max': 5},
        {'min': 3, 'max': 5, 'critical_low': 4},
        {'min': 3, 'max': 5, 'critical_high': 4.5},
    ])
    def test_malformed_bucket_not_evaluable(self, raw):
        with pytest.raises(NotEvaluable):
            parse_reference_range('potassium', 'default', raw)


@pytest.mark.django_db
class TestReferenceRangeLookup:

    def test_missing_bucket_is_none(self, hemoglobin_parameter):
        assert ReferenceDataStore().get_reference_range('hemoglobin', 'infant') is None

    def test_unknown_parameter_is_none(self):
        assert ReferenceDataStore().get_reference_range('unobtainium', 'default') is None

    def test_inactive_parameter_is_unknown(self, hemoglobin_parameter):
        hemoglobin_parameter.is_active = False
        hemoglobin_parameter.save()

        store = ReferenceDataStore()
        assert store.get_parameter('hemoglobin') is None
        assert store.get_reference_range('hemoglobin', 'default') is None

    def test_bucket_inherits_parameter_unit(self, hemoglobin_parameter):
        reference_range = ReferenceDataStore().get_reference_range('hemoglobin', 'adult_male')

        assert reference_range.unit == 'g/dL'
        assert reference_range.bucket == 'adult_male'

    def test_document_not_keyed_by_bucket(self, db):
        ClinicalParameter.objects.create(
            name='sodium',
            display_name='Sodium',
            kind=ParameterKindChoices.LAB,
            reference_ranges=[{'min': 135, 'max': 145}],
        )

        with pytest.raises(NotEvaluable):
            ReferenceDataStore().get_reference_range('sodium', 'default')


@pytest.mark.django_db
class TestDemographics:

    def test_projection(self, adult_male_patient):
        demographics = ReferenceDataStore().get_patient_demographics(adult_male_patient.patient_id)

        assert demographics.gender == 'male'
        assert demographics.birth_date == date(1980, 5, 17)

    def test_unknown_patient(self):
        assert ReferenceDataStore().get_patient_demographics(uuid.uuid4()) is None

    @pytest.mark.parametrize('on_date,expected', [
        (date(2024, 5, 16), 43),
        (date(2024, 5, 17), 44),
        (date(2024, 12, 31), 44),
    ])
    def test_age_counts_completed_years(self, on_date, expected):
        demographics = Demographics(patient_id=uuid.uuid4(), birth_date=date(1980, 5, 17), gender='male')

        assert demographics.age_on(on_date) == expected

    def test_age_unknown_without_birth_date(self):
        demographics = Demographics(patient_id=uuid.uuid4(), birth_date=None, gender='')

        assert demographics.age_on(date(2024, 1, 1)) is None
