"""
Surveillance URLs - plans, alerts, per-patient and per-medication lists.
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import (
    SurveillancePlanViewSet,
    PatientPlanListView,
    MedicationPlanListView,
)

router = DefaultRouter()
router.register(r'plans', SurveillancePlanViewSet, basename='surveillance-plan')

urlpatterns = [
    path('patients/<uuid:patient_id>/plans/', PatientPlanListView.as_view(), name='patient-surveillance-plans'),
    path('medications/<uuid:medication_id>/plans/', MedicationPlanListView.as_view(), name='medication-surveillance-plans'),

    path('', include(router.urls)),
]
