"""
Clinical URLs - observations and critical alerts.
"""
from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import CriticalAlertViewSet, ObservationReviewView, ObservationView

router = DefaultRouter()
router.register(r'alerts', CriticalAlertViewSet, basename='critical-alert')

urlpatterns = [
    path('observations/', ObservationView.as_view(), name='observations'),
    path('observations/review/', ObservationReviewView.as_view(), name='observations-review'),

    path('', include(router.urls)),
]
