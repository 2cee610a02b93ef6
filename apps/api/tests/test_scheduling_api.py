"""
API tests for availability, booking, appointment lifecycle and queues.

Endpoints:
- GET  /api/v1/scheduling/doctors/{id}/availability/
- GET/POST /api/v1/scheduling/appointments/
- POST /api/v1/scheduling/appointments/{id}/transition|cancel|reschedule|check-in/
- GET  /api/v1/scheduling/doctors/{id}/queue/
- POST /api/v1/scheduling/doctors/{id}/queue/advance/
- POST /api/v1/scheduling/queue/{id}/skip/
- GET  /api/v1/scheduling/queue/{id}/position/
"""
import uuid
from datetime import time

import pytest
from rest_framework import status

from apps.scheduling.models import Appointment, AppointmentStatusChoices

APPOINTMENTS_URL = '/api/v1/scheduling/appointments/'


def availability_url(doctor_id):
    return f'/api/v1/scheduling/doctors/{doctor_id}/availability/'


def queue_url(doctor_id):
    return f'/api/v1/scheduling/doctors/{doctor_id}/queue/'


def booking_payload(doctor_id, on_date, at_time='09:00', **overrides):
    payload = {
        'patient_id': str(uuid.uuid4()),
        'doctor_id': str(doctor_id),
        'appointment_date': on_date.isoformat(),
        'appointment_time': at_time,
        'reason': 'Annual check',
    }
    payload.update(overrides)
    return payload


@pytest.mark.django_db
class TestAvailabilityEndpoint:

    def test_returns_slots(self, reception_client, monday_schedule, doctor_id, clinic_day):
        response = reception_client.get(availability_url(doctor_id), {'date': clinic_day.isoformat(), 'duration': 60})

        assert response.status_code == status.HTTP_200_OK
        assert response.data['duration'] == 60
        assert response.data['date'] == '2030-01-07'
        assert response.data['slots'] == [
            {'start': '09:00', 'end': '10:00'},
            {'start': '10:00', 'end': '11:00'},
            {'start': '11:00', 'end': '12:00'},
        ]

    def test_default_duration(self, reception_client, monday_schedule, doctor_id, clinic_day):
        response = reception_client.get(availability_url(doctor_id), {'date': clinic_day.isoformat()})

        assert response.data['duration'] == 30
        assert len(response.data['slots']) == 6

    def test_missing_date(self, reception_client, doctor_id):
        response = reception_client.get(availability_url(doctor_id))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'date' in response.data

    def test_zero_duration_is_validation_error(self, reception_client, monday_schedule, doctor_id, clinic_day):
        response = reception_client.get(availability_url(doctor_id), {'date': clinic_day.isoformat(), 'duration': 0})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error']['code'] == 'validation_error'

    def test_lab_forbidden(self, lab_client, doctor_id, clinic_day):
        response = lab_client.get(availability_url(doctor_id), {'date': clinic_day.isoformat()})

        assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestBookingEndpoint:

    def test_book_returns_201(self, reception_client, reception_user, monday_schedule, doctor_id, clinic_day):
        response = reception_client.post(APPOINTMENTS_URL, booking_payload(doctor_id, clinic_day), format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['status'] == 'scheduled'
        assert response.data['duration_minutes'] == 30
        assert response.data['reason_for_visit'] == 'Annual check'
        assert Appointment.objects.get(pk=response.data['id']).created_by == reception_user

    def test_taken_slot_conflict_envelope(self, reception_client, monday_schedule, doctor_id, clinic_day):
        reception_client.post(APPOINTMENTS_URL, booking_payload(doctor_id, clinic_day), format='json')

        response = reception_client.post(APPOINTMENTS_URL, booking_payload(doctor_id, clinic_day), format='json')

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['error']['code'] == 'slot_conflict'
        assert response.data['error']['details'] == {'reason': 'already_booked'}

    def test_outside_schedule_conflict(self, reception_client, monday_schedule, doctor_id, clinic_day):
        response = reception_client.post(
            APPOINTMENTS_URL, booking_payload(doctor_id, clinic_day, at_time='17:00'), format='json'
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['error']['details'] == {'reason': 'outside_schedule'}

    def test_bad_duration_is_400(self, reception_client, monday_schedule, doctor_id, clinic_day):
        response = reception_client.post(
            APPOINTMENTS_URL, booking_payload(doctor_id, clinic_day, duration_minutes=0), format='json'
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'duration_minutes' in response.data['error']['details']

    def test_unknown_type_rejected_by_serializer(self, reception_client, doctor_id, clinic_day):
        response = reception_client.post(
            APPOINTMENTS_URL, booking_payload(doctor_id, clinic_day, appointment_type='spa_day'), format='json'
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'appointment_type' in response.data

    def test_list_is_paginated_and_filtered(self, reception_client, appointment_factory, doctor_id):
        appointment_factory(doctor_id, time(9, 0))
        appointment_factory(doctor_id, time(10, 0), status=AppointmentStatusChoices.CANCELLED)
        appointment_factory(uuid.uuid4(), time(9, 0))

        response = reception_client.get(APPOINTMENTS_URL, {'doctor_id': str(doctor_id), 'status': 'scheduled'})

        assert response.status_code == status.HTTP_200_OK
        assert response.data['count'] == 1
        assert response.data['results'][0]['appointment_time'] == '09:00:00'

    def test_unknown_appointment_404(self, reception_client, db):
        response = reception_client.get(f'{APPOINTMENTS_URL}{uuid.uuid4()}/')

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_no_direct_delete(self, admin_client, appointment_factory, doctor_id):
        appointment = appointment_factory(doctor_id)

        response = admin_client.delete(f'{APPOINTMENTS_URL}{appointment.id}/')

        assert response.status_code == status.HTTP_405_METHOD_NOT_ALLOWED


@pytest.mark.django_db
class TestLifecycleEndpoints:

    def test_confirm(self, nurse_client, appointment_factory, doctor_id):
        appointment = appointment_factory(doctor_id)

        response = nurse_client.post(
            f'{APPOINTMENTS_URL}{appointment.id}/transition/', {'status': 'confirmed'}, format='json'
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data['status'] == 'confirmed'

    def test_invalid_edge_conflict_envelope(self, nurse_client, appointment_factory, doctor_id):
        appointment = appointment_factory(doctor_id, status=AppointmentStatusChoices.COMPLETED)

        response = nurse_client.post(
            f'{APPOINTMENTS_URL}{appointment.id}/transition/', {'status': 'confirmed'}, format='json'
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['error']['code'] == 'invalid_transition'
        assert response.data['error']['details'] == {'current': 'completed', 'target': 'confirmed'}

    def test_dedicated_status_not_accepted(self, nurse_client, appointment_factory, doctor_id):
        appointment = appointment_factory(doctor_id)

        response = nurse_client.post(
            f'{APPOINTMENTS_URL}{appointment.id}/transition/', {'status': 'cancelled'}, format='json'
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'status' in response.data

    def test_cancel_twice(self, reception_client, appointment_factory, doctor_id):
        appointment = appointment_factory(doctor_id)
        url = f'{APPOINTMENTS_URL}{appointment.id}/cancel/'

        first = reception_client.post(url, {'reason': 'Sick'}, format='json')
        second = reception_client.post(url, {'reason': 'Again'}, format='json')

        assert first.status_code == status.HTTP_200_OK
        assert second.status_code == status.HTTP_200_OK
        assert second.data['cancellation_reason'] == 'Sick'

    def test_reschedule(self, reception_client, monday_schedule, appointment_factory, doctor_id, clinic_day):
        appointment = appointment_factory(doctor_id, time(9, 0))

        response = reception_client.post(
            f'{APPOINTMENTS_URL}{appointment.id}/reschedule/',
            {'appointment_date': clinic_day.isoformat(), 'appointment_time': '11:00'},
            format='json'
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert str(response.data['rescheduled_from']) == str(appointment.id)
        appointment.refresh_from_db()
        assert appointment.status == AppointmentStatusChoices.RESCHEDULED

    def test_reschedule_into_taken_slot(
        self, reception_client, monday_schedule, appointment_factory, doctor_id, clinic_day
    ):
        appointment = appointment_factory(doctor_id, time(9, 0))
        appointment_factory(doctor_id, time(11, 0))

        response = reception_client.post(
            f'{APPOINTMENTS_URL}{appointment.id}/reschedule/',
            {'appointment_date': clinic_day.isoformat(), 'appointment_time': '11:00'},
            format='json'
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['error']['details'] == {'reason': 'already_booked'}

    def test_check_in_returns_queue_entry(self, reception_client, appointment_factory, doctor_id):
        appointment = appointment_factory(doctor_id, status=AppointmentStatusChoices.CONFIRMED)

        response = reception_client.post(f'{APPOINTMENTS_URL}{appointment.id}/check-in/')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['queue_number'] == 1
        assert response.data['status'] == 'waiting'

    def test_check_in_unconfirmed_conflicts(self, reception_client, appointment_factory, doctor_id):
        appointment = appointment_factory(doctor_id)

        response = reception_client.post(f'{APPOINTMENTS_URL}{appointment.id}/check-in/')

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['error']['code'] == 'invalid_transition'

    def test_doctor_cannot_check_in(self, doctor_client, appointment_factory, doctor_id):
        appointment = appointment_factory(doctor_id, status=AppointmentStatusChoices.CONFIRMED)

        response = doctor_client.post(f'{APPOINTMENTS_URL}{appointment.id}/check-in/')

        assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestQueueEndpoints:

    @pytest.fixture
    def entries(self, nurse_client, appointment_factory, doctor_id):
        ids = []
        for at_time in (time(9, 0), time(9, 30)):
            appointment = appointment_factory(doctor_id, at_time, status=AppointmentStatusChoices.CONFIRMED)
            response = nurse_client.post(f'{APPOINTMENTS_URL}{appointment.id}/check-in/')
            ids.append(response.data['id'])
        return ids

    def test_queue_listing(self, reception_client, entries, doctor_id, clinic_day):
        response = reception_client.get(queue_url(doctor_id), {'date': clinic_day.isoformat()})

        assert response.status_code == status.HTTP_200_OK
        assert [entry['queue_number'] for entry in response.data['entries']] == [1, 2]

    def test_advance(self, doctor_client, entries, doctor_id, clinic_day):
        response = doctor_client.post(f'{queue_url(doctor_id)}advance/', {'date': clinic_day.isoformat()}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['entry']['queue_number'] == 1
        assert response.data['entry']['status'] == 'in_progress'

    def test_advance_empty_queue(self, doctor_client, doctor_id, clinic_day):
        response = doctor_client.post(f'{queue_url(doctor_id)}advance/', {'date': clinic_day.isoformat()}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {'entry': None}

    def test_reception_cannot_advance(self, reception_client, doctor_id, clinic_day):
        response = reception_client.post(
            f'{queue_url(doctor_id)}advance/', {'date': clinic_day.isoformat()}, format='json'
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_skip_and_position(self, reception_client, entries):
        skipped = reception_client.post(f'/api/v1/scheduling/queue/{entries[0]}/skip/')
        position = reception_client.get(f'/api/v1/scheduling/queue/{entries[0]}/position/')

        assert skipped.status_code == status.HTTP_200_OK
        assert skipped.data['status'] == 'skipped'
        assert skipped.data['queue_number'] == 1
        assert position.data['ahead'] == 1
        assert position.data['estimated_wait_minutes'] == 30

    def test_skip_in_progress_conflicts(self, doctor_client, entries, doctor_id, clinic_day):
        doctor_client.post(f'{queue_url(doctor_id)}advance/', {'date': clinic_day.isoformat()}, format='json')

        response = doctor_client.post(f'/api/v1/scheduling/queue/{entries[0]}/skip/')

        assert response.status_code == status.HTTP_409_CONFLICT

    def test_unknown_entry_404(self, reception_client):
        response = reception_client.get(f'/api/v1/scheduling/queue/{uuid.uuid4()}/position/')

        assert response.status_code == status.HTTP_404_NOT_FOUND
