"""
Surveillance models: surveillance_plan.

One row per recurring biological monitoring obligation (hepatic/renal lab
tests) of a patient, optionally tied to the medication that triggered it.
"""
import uuid
from datetime import date
from typing import Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from .exceptions import InvalidStateError
from .scheduling import UrgencyTier, classify_urgency, days_until


# ============================================================================
# Enums
# ============================================================================

class SurveillanceKindChoices(models.TextChoices):
    """Kind of biological surveillance (fixed at creation)"""
    HEPATIC = 'hepatic', 'Hepatic'
    RENAL = 'renal', 'Renal'
    MIXED = 'mixed', 'Mixed'
    OTHER = 'other', 'Other'


class SurveillanceStatusChoices(models.TextChoices):
    """
    Plan status with allowed transitions:
    - active <-> pending
    - active | pending -> completed | cancelled
    - completed, cancelled are terminal states
    """
    ACTIVE = 'active', 'Active'
    PENDING = 'pending', 'Pending'
    COMPLETED = 'completed', 'Completed'
    CANCELLED = 'cancelled', 'Cancelled'


class SurveillancePriorityChoices(models.TextChoices):
    """Caller-assigned triage severity (never recomputed)"""
    LOW = 'low', 'Low'
    NORMAL = 'normal', 'Normal'
    HIGH = 'high', 'High'
    URGENT = 'urgent', 'Urgent'


# Higher value sorts first among plans with the same urgency and due date
PRIORITY_WEIGHT = {
    SurveillancePriorityChoices.URGENT: 3,
    SurveillancePriorityChoices.HIGH: 2,
    SurveillancePriorityChoices.NORMAL: 1,
    SurveillancePriorityChoices.LOW: 0,
}

TERMINAL_STATUSES = (
    SurveillanceStatusChoices.COMPLETED,
    SurveillanceStatusChoices.CANCELLED,
)


# ============================================================================
# Models
# ============================================================================

class SurveillancePlan(models.Model):
    """
    Recurring biological surveillance plan.

    Fields:
    - id: UUID PK
    - patient_id: FK -> patient (required)
    - medication_id: FK -> medication nullable
    - kind: enum, fixed at creation
    - parameters: ordered list of lab parameter names, non-empty
    - frequency_months: recurrence interval, >= 1
    - start_date: immutable, never in the future
    - next_due_date: managed by the scheduling engine
    - last_analysis_date, last_results: latest recorded analysis, nullable
    - status, priority: enums
    - notes, lab, lab_contact: free text
    - row_version: optimistic concurrency token, bumped on every write
    - created_by_user_id FK -> auth_user nullable
    - created_at, updated_at
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    patient = models.ForeignKey(
        'clinical.Patient',
        on_delete=models.PROTECT,
        related_name='surveillance_plans'
    )
    medication = models.ForeignKey(
        'clinical.Medication',
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='surveillance_plans'
    )

    kind = models.CharField(
        max_length=20,
        choices=SurveillanceKindChoices.choices
    )
    parameters = models.JSONField(default=list)
    frequency_months = models.PositiveSmallIntegerField(default=3)

    # Schedule
    start_date = models.DateField()
    next_due_date = models.DateField()
    last_analysis_date = models.DateField(blank=True, null=True)
    last_results = models.JSONField(blank=True, null=True)

    status = models.CharField(
        max_length=20,
        choices=SurveillanceStatusChoices.choices,
        default=SurveillanceStatusChoices.ACTIVE
    )
    priority = models.CharField(
        max_length=20,
        choices=SurveillancePriorityChoices.choices,
        default=SurveillancePriorityChoices.NORMAL
    )
    cancellation_reason = models.TextField(blank=True, null=True)

    # Free text, no behavioural effect
    notes = models.TextField(blank=True, null=True)
    lab = models.CharField(max_length=150, blank=True, null=True)
    lab_contact = models.CharField(max_length=200, blank=True, null=True)

    # Concurrency control
    row_version = models.IntegerField(default=1)

    # Audit
    created_by_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='created_surveillance_plans'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'surveillance_plan'
        verbose_name = 'Surveillance Plan'
        verbose_name_plural = 'Surveillance Plans'
        indexes = [
            models.Index(fields=['patient'], name='idx_surv_patient'),
            models.Index(fields=['medication'], name='idx_surv_medication'),
            models.Index(fields=['next_due_date'], name='idx_surv_next_due'),
            models.Index(fields=['status'], name='idx_surv_status'),
            models.Index(fields=['kind'], name='idx_surv_kind'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(frequency_months__gte=1),
                name='chk_surv_frequency_positive',
            ),
        ]

    # Allowed status transitions
    _ALLOWED_TRANSITIONS = {
        'active': ['pending', 'completed', 'cancelled'],
        'pending': ['active', 'completed', 'cancelled'],
        'completed': [],  # Terminal state
        'cancelled': [],  # Terminal state
    }

    def __str__(self):
        return f"{self.get_kind_display()} surveillance - {self.patient} (due {self.next_due_date})"

    # ------------------------------------------------------------------
    # Read-only helpers
    # ------------------------------------------------------------------

    @property
    def anchor_date(self) -> date:
        """Date the next due date is computed from."""
        return self.last_analysis_date or self.start_date

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def priority_weight(self) -> int:
        return PRIORITY_WEIGHT.get(self.priority, 0)

    def days_until_due(self, as_of: Optional[date] = None) -> int:
        return days_until(self.next_due_date, as_of or timezone.localdate())

    def urgency(self, as_of: Optional[date] = None) -> UrgencyTier:
        return classify_urgency(self.next_due_date, as_of or timezone.localdate())

    # ------------------------------------------------------------------
    # Validation & transitions
    # ------------------------------------------------------------------

    def clean(self, today: Optional[date] = None):
        """
        Construction invariants.

        1. Patient is required
        2. frequency_months >= 1
        3. parameters is a non-empty list of non-blank names
        4. start_date is not in the future
        5. next_due_date is not before start_date
        6. last_analysis_date is not in the future
        """
        today = today or timezone.localdate()
        errors = {}

        if not self.patient_id:
            errors['patient'] = 'A surveillance plan requires a patient'

        if self.frequency_months is None or self.frequency_months < 1:
            errors['frequency_months'] = 'Frequency must be at least 1 month'

        if (
            not isinstance(self.parameters, list)
            or not self.parameters
            or not all(isinstance(p, str) and p.strip() for p in self.parameters)
        ):
            errors['parameters'] = 'At least one lab parameter name is required'

        if self.start_date and self.start_date > today:
            errors['start_date'] = 'Start date cannot be in the future'

        if self.start_date and self.next_due_date and self.next_due_date < self.start_date:
            errors['next_due_date'] = 'First due date cannot be before the start date'

        if self.last_analysis_date and self.last_analysis_date > today:
            errors['last_analysis_date'] = 'Analysis date cannot be in the future'

        if errors:
            raise ValidationError(errors)

    def transition_status(self, new_status, reason=None):
        """
        Move the plan to ``new_status`` if the transition is allowed.

        Raises:
            InvalidStateError: current status is terminal or the transition is not allowed
        """
        allowed = self._ALLOWED_TRANSITIONS.get(self.status, [])
        if not allowed:
            raise InvalidStateError(
                f'Status "{self.status}" is terminal and cannot be changed',
                plan_id=str(self.pk),
                current_status=self.status,
            )

        if new_status not in allowed:
            raise InvalidStateError(
                f'Transition not allowed: {self.status} -> {new_status}. '
                f'Valid transitions: {", ".join(allowed)}',
                plan_id=str(self.pk),
                current_status=self.status,
            )

        if new_status == SurveillanceStatusChoices.CANCELLED and reason:
            self.cancellation_reason = reason

        old_status = self.status
        self.status = new_status
        return old_status
