"""
Scheduling URLs - availability, appointments, queues.
"""
from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import (
    AppointmentViewSet,
    DoctorAvailabilityView,
    DoctorQueueView,
    QueueAdvanceView,
    QueuePositionView,
    QueueSkipView,
)

router = DefaultRouter()
router.register(r'appointments', AppointmentViewSet, basename='appointment')

urlpatterns = [
    path('doctors/<uuid:doctor_id>/availability/', DoctorAvailabilityView.as_view(), name='doctor-availability'),
    path('doctors/<uuid:doctor_id>/queue/', DoctorQueueView.as_view(), name='doctor-queue'),
    path('doctors/<uuid:doctor_id>/queue/advance/', QueueAdvanceView.as_view(), name='doctor-queue-advance'),
    path('queue/<uuid:entry_id>/skip/', QueueSkipView.as_view(), name='queue-entry-skip'),
    path('queue/<uuid:entry_id>/position/', QueuePositionView.as_view(), name='queue-entry-position'),

    # Standard reads, booking and lifecycle actions via router
    path('', include(router.urls)),
]
