"""
Global test fixtures for pytest.

Provides reusable fixtures for API and service testing:
- Users and authenticated API clients by role
- Doctor schedules, leave, clinical parameters and demographics
- A recording notification backend for the alert dispatcher
"""
import uuid
from datetime import date, time, timedelta
from unittest.mock import patch

import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.utils import timezone
from rest_framework.test import APIClient

from apps.core.exceptions import NotificationDeliveryFailure
from apps.core.permissions import RoleChoices
from apps.reference.models import (
    ClinicalParameter,
    DoctorLeave,
    DoctorSchedule,
    LeaveStatusChoices,
    LeaveTypeChoices,
    ParameterKindChoices,
    PatientDemographics,
)
from apps.scheduling.models import Appointment, AppointmentStatusChoices

User = get_user_model()

# A Monday far enough ahead that nothing is "in the past".
CLINIC_DAY = date(2030, 1, 7)


def create_user_with_role(username, role_name=None, **kwargs):
    """Create a user and put it in the role group."""
    user = User.objects.create_user(username=username, password='testpass123', **kwargs)
    if role_name:
        group, _ = Group.objects.get_or_create(name=role_name)
        user.groups.add(group)
    return user


def client_for(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


# ============================================================================
# Users and API clients
# ============================================================================

@pytest.fixture
def api_client():
    """Unauthenticated DRF API client."""
    return APIClient()


@pytest.fixture
def admin_user(db):
    return create_user_with_role('admin', is_superuser=True, is_staff=True)


@pytest.fixture
def doctor_user(db):
    return create_user_with_role('doctor', RoleChoices.DOCTOR)


@pytest.fixture
def nurse_user(db):
    return create_user_with_role('nurse', RoleChoices.NURSE)


@pytest.fixture
def reception_user(db):
    return create_user_with_role('reception', RoleChoices.RECEPTION)


@pytest.fixture
def lab_user(db):
    return create_user_with_role('lab', RoleChoices.LAB)


@pytest.fixture
def admin_client(admin_user):
    return client_for(admin_user)


@pytest.fixture
def doctor_client(doctor_user):
    return client_for(doctor_user)


@pytest.fixture
def nurse_client(nurse_user):
    return client_for(nurse_user)


@pytest.fixture
def reception_client(reception_user):
    return client_for(reception_user)


@pytest.fixture
def lab_client(lab_user):
    return client_for(lab_user)


# ============================================================================
# Reference data
# ============================================================================

@pytest.fixture
def clinic_day():
    return CLINIC_DAY


@pytest.fixture
def doctor_id():
    return uuid.uuid4()


@pytest.fixture
def patient_id():
    return uuid.uuid4()


@pytest.fixture
def schedule_factory(db):
    """
    Factory fixture for doctor schedules.

    Defaults to a Monday 09:00-12:00 window without a break.
    """
    def _create_schedule(doctor_id, **kwargs):
        defaults = {
            'day_of_week': 1,
            'start_time': time(9, 0),
            'end_time': time(12, 0),
            'effective_from': date(2025, 1, 1),
        }
        defaults.update(kwargs)
        return DoctorSchedule.objects.create(doctor_id=doctor_id, **defaults)

    return _create_schedule


@pytest.fixture
def monday_schedule(schedule_factory, doctor_id):
    return schedule_factory(doctor_id)


@pytest.fixture
def leave_factory(db):
    def _create_leave(doctor_id, from_date, to_date=None, **kwargs):
        defaults = {
            'leave_type': LeaveTypeChoices.VACATION,
            'status': LeaveStatusChoices.APPROVED,
        }
        defaults.update(kwargs)
        return DoctorLeave.objects.create(
            doctor_id=doctor_id,
            from_date=from_date,
            to_date=to_date or from_date,
            **defaults
        )

    return _create_leave


@pytest.fixture
def appointment_factory(db):
    """
    Factory fixture for appointments written straight to the table.

    Bypasses the booking engine so tests can set up any status or date.
    """
    def _create_appointment(doctor_id, at_time=time(9, 0), on_date=CLINIC_DAY, **kwargs):
        defaults = {
            'patient_id': uuid.uuid4(),
            'duration_minutes': 30,
            'status': AppointmentStatusChoices.SCHEDULED,
        }
        defaults.update(kwargs)
        return Appointment.objects.create(
            doctor_id=doctor_id,
            appointment_date=on_date,
            appointment_time=at_time,
            **defaults
        )

    return _create_appointment


@pytest.fixture
def temperature_parameter(db):
    """Temperature with a child bucket stricter than the fixed vital rule."""
    return ClinicalParameter.objects.create(
        name='temperature',
        display_name='Body temperature',
        kind=ParameterKindChoices.VITAL,
        default_unit='°C',
        reference_ranges={
            'child': {'min': 36.0, 'max': 37.5, 'critical_low': 35.0, 'critical_high': 39.0},
            'default': {'min': 36.1, 'max': 37.2, 'critical_low': 35.0, 'critical_high': 40.0},
        },
    )


@pytest.fixture
def hemoglobin_parameter(db):
    return ClinicalParameter.objects.create(
        name='hemoglobin',
        display_name='Hemoglobin',
        kind=ParameterKindChoices.LAB,
        default_unit='g/dL',
        reference_ranges={
            'adult_male': {'min': 13.5, 'max': 17.5, 'critical_low': 7.0, 'critical_high': 20.0},
            'adult_female': {'min': 12.0, 'max': 15.5, 'critical_low': 7.0, 'critical_high': 20.0},
            'default': {'min': 12.0, 'max': 17.5},
        },
    )


@pytest.fixture
def child_patient(db):
    """Born 2018: in the child bucket for years to come."""
    return PatientDemographics.objects.create(
        patient_id=uuid.uuid4(),
        birth_date=date(2018, 1, 1),
        gender='female',
    )


@pytest.fixture
def adult_male_patient(db):
    return PatientDemographics.objects.create(
        patient_id=uuid.uuid4(),
        birth_date=date(1980, 5, 17),
        gender='male',
    )


@pytest.fixture
def recorded_at():
    """An observation timestamp safely in the past."""
    return timezone.now() - timedelta(minutes=5)


# ============================================================================
# Notifications
# ============================================================================

class RecordingNotificationBackend:
    """Collects dispatched alert ids; fails on demand."""

    def __init__(self):
        self.dispatched = []
        self.fail = False

    def dispatch(self, alert):
        if self.fail:
            raise NotificationDeliveryFailure('pager gateway unavailable')
        self.dispatched.append(alert.id)


@pytest.fixture
def notifications():
    """Replaces the configured notification backend for the test."""
    backend = RecordingNotificationBackend()
    with patch('apps.clinical.services.get_notification_backend', return_value=backend):
        yield backend
