"""
Scheduling API: availability, booking, appointment lifecycle and queues.
"""
from django.core.exceptions import ValidationError as DjangoValidationError
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.exceptions import SlotConflict
from apps.core.permissions import (
    CheckInPermission,
    QueueAdvancePermission,
    QueueSkipPermission,
    SchedulingPermission,
)
from apps.core.responses import domain_error_response
from apps.core.views import RequestContextMixin

from .availability import AvailabilityService, default_slot_minutes
from .models import Appointment, QueueEntry
from .serializers import (
    AppointmentSerializer,
    AppointmentTransitionSerializer,
    AvailabilityQuerySerializer,
    BookAppointmentSerializer,
    CancelAppointmentSerializer,
    QueueDateQuerySerializer,
    QueueEntrySerializer,
    QueuePositionSerializer,
    RescheduleAppointmentSerializer,
)
from .services import BookingService, QueueService


class DoctorAvailabilityView(RequestContextMixin, APIView):
    """
    GET /api/v1/scheduling/doctors/{doctor_id}/availability/?date=YYYY-MM-DD&duration=30

    Response:
    {
        "doctor_id": "<uuid>",
        "date": "YYYY-MM-DD",
        "duration": 30,
        "slots": [{"start": "09:00", "end": "09:30"}, ...]
    }
    """
    permission_classes = [SchedulingPermission]

    def get(self, request, doctor_id):
        query = AvailabilityQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        on_date = query.validated_data['date']
        duration = query.validated_data.get('duration', default_slot_minutes())

        try:
            slots = AvailabilityService().get_availability(doctor_id, on_date, duration)
        except DjangoValidationError as exc:
            return domain_error_response(exc)

        return Response({
            'doctor_id': str(doctor_id),
            'date': on_date.isoformat(),
            'duration': duration,
            'slots': [slot.as_dict() for slot in slots],
        })


class AppointmentViewSet(RequestContextMixin,
                         mixins.ListModelMixin,
                         mixins.RetrieveModelMixin,
                         viewsets.GenericViewSet):
    """
    Endpoints:
    - GET  /api/v1/scheduling/appointments/
    - POST /api/v1/scheduling/appointments/
    - GET  /api/v1/scheduling/appointments/{id}/
    - POST /api/v1/scheduling/appointments/{id}/transition/
    - POST /api/v1/scheduling/appointments/{id}/cancel/
    - POST /api/v1/scheduling/appointments/{id}/reschedule/
    - POST /api/v1/scheduling/appointments/{id}/check-in/

    Appointments are never edited or deleted directly; every change goes
    through one of the lifecycle actions.
    """
    permission_classes = [SchedulingPermission]
    serializer_class = AppointmentSerializer

    def get_queryset(self):
        """
        Filters:
        - doctor_id, patient_id
        - date: appointment_date
        - status
        """
        queryset = Appointment.objects.all()
        params = self.request.query_params

        doctor_id = params.get('doctor_id')
        if doctor_id:
            queryset = queryset.filter(doctor_id=doctor_id)

        patient_id = params.get('patient_id')
        if patient_id:
            queryset = queryset.filter(patient_id=patient_id)

        on_date = params.get('date')
        if on_date:
            queryset = queryset.filter(appointment_date=on_date)

        status_filter = params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)

        return queryset.order_by('appointment_date', 'appointment_time')

    def create(self, request, *args, **kwargs):
        serializer = BookAppointmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            appointment = BookingService().book_appointment(
                patient_id=data['patient_id'],
                doctor_id=data['doctor_id'],
                appointment_date=data['appointment_date'],
                appointment_time=data['appointment_time'],
                appointment_type=data['appointment_type'],
                reason=data['reason'],
                duration_minutes=data.get('duration_minutes'),
                priority=data['priority'],
                created_by=request.user,
            )
        except (SlotConflict, DjangoValidationError) as exc:
            return domain_error_response(exc)

        return Response(AppointmentSerializer(appointment).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='transition')
    def transition(self, request, pk=None):
        """
        POST /api/v1/scheduling/appointments/{id}/transition/

        Request body:
        {
            "status": "confirmed",   # confirmed | in_progress | completed | no_show
            "reason": ""
        }

        Returns:
            200: transition applied
            400: validation error (e.g. no_show before the appointment time)
            409: edge not allowed from the current status
        """
        appointment = self.get_object()
        serializer = AppointmentTransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            appointment = BookingService().transition_appointment(
                appointment.pk,
                serializer.validated_data['status'],
                user=request.user,
                reason=serializer.validated_data['reason'],
            )
        except DjangoValidationError as exc:
            return domain_error_response(exc)

        return Response(AppointmentSerializer(appointment).data)

    @action(detail=True, methods=['post'], url_path='cancel')
    def cancel(self, request, pk=None):
        """Cancel; repeating the call on a cancelled appointment is a no-op."""
        appointment = self.get_object()
        serializer = CancelAppointmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            appointment = BookingService().cancel_appointment(
                appointment.pk,
                reason=serializer.validated_data['reason'],
                user=request.user,
            )
        except DjangoValidationError as exc:
            return domain_error_response(exc)

        return Response(AppointmentSerializer(appointment).data)

    @action(detail=True, methods=['post'], url_path='reschedule')
    def reschedule(self, request, pk=None):
        """Returns the new appointment (201); the original links to it."""
        appointment = self.get_object()
        serializer = RescheduleAppointmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            replacement = BookingService().reschedule_appointment(
                appointment.pk,
                data['appointment_date'],
                data['appointment_time'],
                duration_minutes=data.get('duration_minutes'),
                user=request.user,
            )
        except (SlotConflict, DjangoValidationError) as exc:
            return domain_error_response(exc)

        return Response(AppointmentSerializer(replacement).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='check-in', permission_classes=[CheckInPermission])
    def check_in(self, request, pk=None):
        appointment = self.get_object()
        try:
            entry = QueueService().check_in(appointment.pk, user=request.user)
        except (SlotConflict, DjangoValidationError) as exc:
            return domain_error_response(exc)

        return Response(QueueEntrySerializer(entry).data, status=status.HTTP_201_CREATED)


class DoctorQueueView(RequestContextMixin, APIView):
    """GET /api/v1/scheduling/doctors/{doctor_id}/queue/?date=YYYY-MM-DD (default today)."""
    permission_classes = [SchedulingPermission]

    def get(self, request, doctor_id):
        query = QueueDateQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        on_date = query.validated_data.get('date') or timezone.localdate()

        entries = QueueService().queue_for(doctor_id, on_date)
        return Response({
            'doctor_id': str(doctor_id),
            'date': on_date.isoformat(),
            'entries': QueueEntrySerializer(entries, many=True).data,
        })


class QueueAdvanceView(RequestContextMixin, APIView):
    """
    POST /api/v1/scheduling/doctors/{doctor_id}/queue/advance/

    Body: {"date": "YYYY-MM-DD"} (optional, default today).
    Returns the entry now being seen, or {"entry": null} when the queue is empty.
    """
    permission_classes = [QueueAdvancePermission]

    def post(self, request, doctor_id):
        query = QueueDateQuerySerializer(data=request.data)
        query.is_valid(raise_exception=True)
        on_date = query.validated_data.get('date') or timezone.localdate()

        try:
            entry = QueueService().advance_queue(doctor_id, on_date)
        except DjangoValidationError as exc:
            return domain_error_response(exc)

        return Response({'entry': QueueEntrySerializer(entry).data if entry else None})


class QueueSkipView(RequestContextMixin, APIView):
    """POST /api/v1/scheduling/queue/{entry_id}/skip/"""
    permission_classes = [QueueSkipPermission]

    def post(self, request, entry_id):
        get_object_or_404(QueueEntry, pk=entry_id)
        try:
            entry = QueueService().skip(entry_id)
        except DjangoValidationError as exc:
            return domain_error_response(exc)

        return Response(QueueEntrySerializer(entry).data)


class QueuePositionView(RequestContextMixin, APIView):
    """GET /api/v1/scheduling/queue/{entry_id}/position/"""
    permission_classes = [SchedulingPermission]

    def get(self, request, entry_id):
        get_object_or_404(QueueEntry, pk=entry_id)
        position = QueueService().position(entry_id)
        return Response(QueuePositionSerializer(position).data)
