"""
Clinical directory models: patient and medication.

Both tables are owned by the patient/medication directories; the surveillance
engine only references them by foreign key.
"""
import uuid
from django.db import models
from django.conf import settings


# ============================================================================
# Enums
# ============================================================================

class SexChoices(models.TextChoices):
    """Patient sex"""
    FEMALE = 'female', 'Female'
    MALE = 'male', 'Male'
    OTHER = 'other', 'Other'
    UNKNOWN = 'unknown', 'Unknown'


class MedicationStatusChoices(models.TextChoices):
    """Marketing status of a medication"""
    ACTIVE = 'active', 'Active'
    INACTIVE = 'inactive', 'Inactive'
    WITHDRAWN = 'withdrawn', 'Withdrawn'


# Lab parameters implied by a monitoring flag, in display order
HEPATIC_PARAMETERS = ['ASAT', 'ALAT', 'Gamma-GT', 'Bilirubine']
RENAL_PARAMETERS = ['Créatinine', 'Urée', 'Clairance créatinine']

DEFAULT_SURVEILLANCE_FREQUENCY_MONTHS = 3


# ============================================================================
# Models
# ============================================================================

class Patient(models.Model):
    """
    Pharmacy patient (identity and contact only).
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    birth_date = models.DateField(blank=True, null=True)
    sex = models.CharField(
        max_length=20,
        choices=SexChoices.choices,
        blank=True,
        null=True
    )
    phone = models.CharField(max_length=50, blank=True, null=True)
    email = models.EmailField(blank=True, null=True)

    is_deleted = models.BooleanField(default=False)

    created_by_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='created_patients'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'patient'
        verbose_name = 'Patient'
        verbose_name_plural = 'Patients'
        indexes = [
            models.Index(fields=['last_name', 'first_name'], name='idx_patient_name'),
            models.Index(fields=['is_deleted'], name='idx_patient_deleted'),
        ]

    def __str__(self):
        return f"{self.first_name} {self.last_name}"


class Medication(models.Model):
    """
    Medication with its biological monitoring requirements.

    A medication flagged for hepatic and/or renal monitoring supplies the
    defaults of the surveillance plans created for it: the recurrence
    interval and the lab parameters to check.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    brand_name = models.CharField(max_length=200)
    inn = models.CharField(max_length=200, blank=True, help_text="International nonproprietary name (DCI)")
    therapeutic_class = models.CharField(max_length=200, blank=True)

    hepatic_monitoring = models.BooleanField(default=False)
    renal_monitoring = models.BooleanField(default=False)
    monitoring_frequency_months = models.PositiveSmallIntegerField(blank=True, null=True)
    monitoring_parameters = models.JSONField(default=list, blank=True)

    status = models.CharField(
        max_length=20,
        choices=MedicationStatusChoices.choices,
        default=MedicationStatusChoices.ACTIVE
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'medication'
        verbose_name = 'Medication'
        verbose_name_plural = 'Medications'
        indexes = [
            models.Index(fields=['brand_name'], name='idx_medication_brand'),
            models.Index(fields=['inn'], name='idx_medication_inn'),
            models.Index(fields=['status'], name='idx_medication_status'),
        ]

    def __str__(self):
        return self.brand_name

    def requires_surveillance(self):
        return self.hepatic_monitoring or self.renal_monitoring

    def surveillance_frequency_months(self):
        return self.monitoring_frequency_months or DEFAULT_SURVEILLANCE_FREQUENCY_MONTHS

    def surveillance_parameters(self):
        """Flag-implied parameters followed by the custom ones, without duplicates."""
        params = []
        if self.hepatic_monitoring:
            params.extend(HEPATIC_PARAMETERS)
        if self.renal_monitoring:
            params.extend(RENAL_PARAMETERS)
        params.extend(self.monitoring_parameters or [])
        return list(dict.fromkeys(params))
