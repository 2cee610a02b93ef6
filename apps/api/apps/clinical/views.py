"""
Clinical API: observations, manual review list and critical alerts.
"""
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.permissions import (
    AlertPermission,
    ObservationPermission,
    ObservationReviewPermission,
)
from apps.core.responses import domain_error_response
from apps.core.views import RequestContextMixin

from .models import CriticalAlert
from .serializers import (
    AlertQuerySerializer,
    CriticalAlertSerializer,
    ObservationResultSerializer,
    RecordObservationSerializer,
    ResolveAlertSerializer,
    ReviewObservationSerializer,
)
from .services import ObservationService, acknowledge_alert, resolve_alert


class ObservationView(RequestContextMixin, APIView):
    """
    POST /api/v1/clinical/observations/

    Request body:
    {
        "observation_id": "<uuid>",      # optional, makes retries idempotent
        "patient_id": "<uuid>",
        "parameter": "temperature",
        "value": "40.0",
        "unit": "°C",
        "recorded_at": "2026-01-10T08:30:00Z",
        "kind": "vital"                  # vital | lab
    }

    Returns:
        201: recorded (verdict, alert_id, requires_review)
        200: replay of a known observation_id
        400: unknown parameter, bad value, future timestamp
    """
    permission_classes = [ObservationPermission]

    def post(self, request):
        serializer = RecordObservationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            result = ObservationService().record_observation(
                patient_id=data['patient_id'],
                parameter=data['parameter'],
                value=data['value'],
                unit=data['unit'],
                recorded_at=data['recorded_at'],
                recorded_by=request.user,
                kind=data['kind'],
                observation_id=data.get('observation_id'),
            )
        except DjangoValidationError as exc:
            return domain_error_response(exc)

        return Response(
            ObservationResultSerializer(result).data,
            status=status.HTTP_200_OK if result.replayed else status.HTTP_201_CREATED
        )


class ObservationReviewView(RequestContextMixin, APIView):
    """GET /api/v1/clinical/observations/review/ - observations that could not be evaluated."""
    permission_classes = [ObservationReviewPermission]

    def get(self, request):
        rows = [
            {'kind': kind, 'observation': observation}
            for kind, observation in ObservationService.pending_review()
        ]
        return Response({
            'count': len(rows),
            'results': ReviewObservationSerializer(rows, many=True).data,
        })


class CriticalAlertViewSet(RequestContextMixin,
                           mixins.ListModelMixin,
                           mixins.RetrieveModelMixin,
                           viewsets.GenericViewSet):
    """
    Endpoints:
    - GET  /api/v1/clinical/alerts/?status=open&patient_id=<uuid>
    - GET  /api/v1/clinical/alerts/{id}/
    - POST /api/v1/clinical/alerts/{id}/acknowledge/
    - POST /api/v1/clinical/alerts/{id}/resolve/
    """
    permission_classes = [AlertPermission]
    serializer_class = CriticalAlertSerializer

    def get_queryset(self):
        queryset = CriticalAlert.objects.all()
        if self.action != 'list':
            return queryset

        query = AlertQuerySerializer(data=self.request.query_params)
        query.is_valid(raise_exception=True)
        if 'status' in query.validated_data:
            queryset = queryset.filter(status=query.validated_data['status'])
        if 'patient_id' in query.validated_data:
            queryset = queryset.filter(patient_id=query.validated_data['patient_id'])
        return queryset.order_by('-created_at')

    @action(detail=True, methods=['post'], url_path='acknowledge')
    def acknowledge(self, request, pk=None):
        alert = self.get_object()
        alert = acknowledge_alert(alert.pk, request.user)
        return Response(CriticalAlertSerializer(alert).data)

    @action(detail=True, methods=['post'], url_path='resolve')
    def resolve(self, request, pk=None):
        """Resolving requires a prior acknowledgment (409 otherwise)."""
        alert = self.get_object()
        serializer = ResolveAlertSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            alert = resolve_alert(alert.pk, request.user, notes=serializer.validated_data['notes'])
        except DjangoValidationError as exc:
            return domain_error_response(exc)

        return Response(CriticalAlertSerializer(alert).data)
