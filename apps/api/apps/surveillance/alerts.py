"""
Alert surface: which active plans need attention, most pressing first.

Read-only. Only active plans are considered; pending plans are suspended
and never alert.
"""
from datetime import date, timedelta
from typing import Dict, List, Optional, Tuple

from django.utils import timezone

from .exceptions import ValidationError
from .models import SurveillancePlan, SurveillanceStatusChoices
from .scheduling import UrgencyTier, URGENT_MAX_DAYS, UPCOMING_MAX_DAYS


# Latest due date (relative to today) still inside each tier or a more pressing one
_TIER_HORIZON_DAYS = {
    UrgencyTier.OVERDUE: -1,
    UrgencyTier.URGENT: URGENT_MAX_DAYS,
    UrgencyTier.UPCOMING: UPCOMING_MAX_DAYS,
    UrgencyTier.NORMAL: None,
}


def _parse_tier(min_tier) -> Optional[UrgencyTier]:
    if min_tier in (None, ''):
        return None
    try:
        return UrgencyTier(min_tier)
    except ValueError:
        raise ValidationError({
            'min_tier': f'Unknown urgency tier "{min_tier}". '
                        f'Valid tiers: {", ".join(UrgencyTier.values)}'
        })


def active_plans(patient_id=None, kind: Optional[str] = None):
    """Queryset of active plans, optionally narrowed to a patient and/or kind."""
    qs = SurveillancePlan.objects.filter(
        status=SurveillanceStatusChoices.ACTIVE
    ).select_related('patient', 'medication')

    if patient_id:
        qs = qs.filter(patient_id=patient_id)
    if kind:
        qs = qs.filter(kind=kind)
    return qs


def list_urgent(
    patient_id=None,
    kind: Optional[str] = None,
    min_tier=None,
    today: Optional[date] = None,
) -> List[Tuple[SurveillancePlan, UrgencyTier]]:
    """
    Active plans with their urgency tier, most pressing first.

    Ordering: tier (overdue, urgent, upcoming, normal), then earliest due
    date, then higher priority. An overdue plan always precedes an urgent
    one, whatever their priorities.

    Args:
        patient_id: restrict to one patient
        kind: restrict to one surveillance kind
        min_tier: only return plans at this tier or more pressing
        today: reference date (defaults to the local date)

    Returns:
        List of (plan, tier) tuples

    Raises:
        ValidationError: unknown min_tier
    """
    today = today or timezone.localdate()
    tier_floor = _parse_tier(min_tier)

    qs = active_plans(patient_id=patient_id, kind=kind)

    if tier_floor is not None:
        horizon = _TIER_HORIZON_DAYS[tier_floor]
        if horizon is not None:
            qs = qs.filter(next_due_date__lte=today + timedelta(days=horizon))

    entries = [(plan, plan.urgency(today)) for plan in qs]
    entries.sort(key=lambda entry: (
        entry[1].rank,
        entry[0].next_due_date,
        -entry[0].priority_weight,
    ))
    return entries


def summarize_alerts(
    patient_id=None,
    kind: Optional[str] = None,
    today: Optional[date] = None,
) -> Dict[str, int]:
    """Count of active plans per urgency tier (every tier present, zero included)."""
    counts = {tier.value: 0 for tier in UrgencyTier}
    for _plan, tier in list_urgent(patient_id=patient_id, kind=kind, today=today):
        counts[tier.value] += 1
    return counts
