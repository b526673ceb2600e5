"""
Surveillance service layer - lifecycle of surveillance plans.

- Plan creation with initial due date
- Result recording (rolls the schedule forward)
- Suspend / resume / cancel / complete transitions
- Edition of behaviour-free fields

Every write runs in a transaction, locks the plan row (select_for_update)
and bumps row_version. Callers may pass the row_version they last read as
`expected_row_version`; a mismatch raises ConflictError.
"""
from datetime import date
from typing import Any, Dict, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.core.observability import metrics, get_sanitized_logger
from apps.core.observability.events import (
    log_plan_created,
    log_plan_transition,
    log_result_recorded,
    log_concurrent_write_rejected,
    log_consistency_checkpoint,
)

from .exceptions import (
    ValidationError,
    NotFoundError,
    InvalidStateError,
    FutureDateError,
    ConflictError,
)
from .models import (
    SurveillancePlan,
    SurveillanceKindChoices,
    SurveillanceStatusChoices,
)
from .scheduling import compute_initial_due_date, compute_next_due_date

logger = get_sanitized_logger(__name__)


# Fields a caller may set at creation
CREATE_FIELDS = (
    'patient', 'medication', 'kind', 'parameters', 'frequency_months',
    'start_date', 'priority', 'notes', 'lab', 'lab_contact',
)

# Fields editable after creation (no scheduling effect)
EDITABLE_FIELDS = ('priority', 'notes', 'lab', 'lab_contact', 'medication')

# Relations checked by the database, not by the engine
_RELATION_FIELDS = ['patient', 'medication', 'created_by_user']


def _resolve_today(today: Optional[date]) -> date:
    return today or timezone.localdate()


def suggested_kind_for_medication(medication) -> str:
    """
    Surveillance kind implied by a medication's monitoring flags.

    Both flags -> mixed, one flag -> that kind, none -> other.
    """
    if medication.hepatic_monitoring and medication.renal_monitoring:
        return SurveillanceKindChoices.MIXED
    if medication.hepatic_monitoring:
        return SurveillanceKindChoices.HEPATIC
    if medication.renal_monitoring:
        return SurveillanceKindChoices.RENAL
    return SurveillanceKindChoices.OTHER


def _apply_medication_defaults(fields: Dict[str, Any]) -> None:
    medication = fields.get('medication')
    if medication is None:
        return
    if not fields.get('kind'):
        fields['kind'] = suggested_kind_for_medication(medication)
    if not fields.get('parameters'):
        fields['parameters'] = medication.surveillance_parameters()
    if fields.get('frequency_months') is None:
        fields['frequency_months'] = min(
            medication.surveillance_frequency_months(),
            settings.SURVEILLANCE_MAX_FREQUENCY_MONTHS,
        )


def _lock_plan(plan_id) -> SurveillancePlan:
    """Fetch and row-lock a plan. Must be called inside a transaction."""
    try:
        return SurveillancePlan.objects.select_for_update().get(pk=plan_id)
    except (SurveillancePlan.DoesNotExist, ValidationError, ValueError):
        raise NotFoundError(
            f'Surveillance plan {plan_id} not found',
            plan_id=str(plan_id),
        )


def _check_row_version(plan: SurveillancePlan, expected_row_version: Optional[int], operation: str) -> None:
    if expected_row_version is None or int(expected_row_version) == plan.row_version:
        return

    metrics.surveillance_conflicts_total.labels(operation=operation).inc()
    log_concurrent_write_rejected(
        plan,
        operation=operation,
        expected_row_version=expected_row_version,
        current_row_version=plan.row_version,
    )
    raise ConflictError(
        'The surveillance plan was modified by another user. Reload it and retry.',
        plan_id=str(plan.id),
        current_row_version=plan.row_version,
        provided_row_version=expected_row_version,
    )


def _save(plan: SurveillancePlan, fields) -> None:
    plan.row_version += 1
    plan.save(update_fields=list(fields) + ['row_version', 'updated_at'])


def _count_rejection(exc: Exception, location: str) -> None:
    metrics.exceptions_total.labels(
        exception_type=exc.__class__.__name__,
        location=location,
    ).inc()


# ============================================================================
# Creation
# ============================================================================

def create_plan(
    data: Dict[str, Any],
    created_by=None,
    first_due_date: Optional[date] = None,
    today: Optional[date] = None,
) -> SurveillancePlan:
    """
    Create an active surveillance plan.

    The first analysis is due on the start date unless `first_due_date`
    (not before the start date) is supplied. A start date several cycles in
    the past is caught up to the current window. When a medication is given,
    its monitoring flags fill in missing kind, parameters and frequency.

    Args:
        data: plan fields (patient, medication, kind, parameters,
              frequency_months, start_date, priority, notes, lab, lab_contact)
        created_by: User creating the plan
        first_due_date: optional later first due date
        today: reference date (defaults to the local date)

    Returns:
        The saved SurveillancePlan

    Raises:
        ValidationError: input violates a plan invariant
    """
    today = _resolve_today(today)

    unknown = set(data) - set(CREATE_FIELDS)
    if unknown:
        raise ValidationError({
            field: 'This field cannot be set on creation' for field in sorted(unknown)
        })

    fields = dict(data)
    _apply_medication_defaults(fields)

    plan = SurveillancePlan(
        status=SurveillanceStatusChoices.ACTIVE,
        created_by_user=created_by,
        **fields
    )

    if plan.start_date is None:
        raise ValidationError({'start_date': 'Start date is required'})

    if isinstance(plan.frequency_months, int) and plan.frequency_months >= 1:
        plan.next_due_date = compute_initial_due_date(
            plan.start_date,
            plan.frequency_months,
            as_of_date=today,
            first_due_date=first_due_date,
        )
    else:
        plan.next_due_date = first_due_date or plan.start_date

    try:
        plan.clean_fields(exclude=_RELATION_FIELDS + ['next_due_date'])
        plan.clean(today=today)
    except ValidationError as e:
        _count_rejection(e, 'create_plan')
        logger.info(
            'Surveillance plan rejected',
            extra={'event': 'surveillance_plan_rejected', 'errors': list(e.message_dict)}
        )
        raise

    plan.save()

    metrics.surveillance_plans_created_total.labels(kind=plan.kind).inc()
    log_plan_created(plan, initial_catch_up=plan.next_due_date != plan.start_date)

    return plan


# ============================================================================
# Result recording
# ============================================================================

def record_result(
    plan_id,
    analysis_date: date,
    results: Optional[Dict[str, Any]] = None,
    *,
    expected_row_version: Optional[int] = None,
    complete: bool = False,
    awaiting_confirmation: bool = False,
    today: Optional[date] = None,
) -> SurveillancePlan:
    """
    Record an analysis result and roll the schedule forward.

    The recorded date becomes the new anchor: next_due_date is recomputed
    from it (with catch-up against `today`). Monitoring stays active, unless
    `awaiting_confirmation` parks it in pending or `complete` closes it.

    Re-submitting the analysis already recorded (same date, same results,
    same resulting status) is a no-op returning the plan unchanged, so a
    caller retrying after a ConflictError never advances the schedule twice.

    Raises:
        NotFoundError: unknown plan
        InvalidStateError: plan is completed or cancelled
        FutureDateError: analysis_date after today
        ConflictError: expected_row_version is stale
        ValidationError: results is not an object, or analysis_date is older
                         than the analysis already recorded
    """
    today = _resolve_today(today)

    if complete:
        target_status = SurveillanceStatusChoices.COMPLETED
    elif awaiting_confirmation:
        target_status = SurveillanceStatusChoices.PENDING
    else:
        target_status = SurveillanceStatusChoices.ACTIVE

    with transaction.atomic():
        plan = _lock_plan(plan_id)

        if analysis_date > today:
            metrics.surveillance_results_recorded_total.labels(result='rejected').inc()
            raise FutureDateError(
                f'Analysis date {analysis_date.isoformat()} is after today ({today.isoformat()})',
                plan_id=str(plan.id),
                analysis_date=analysis_date.isoformat(),
            )

        if results is not None and not isinstance(results, dict):
            raise ValidationError({'results': 'Results must be an object of parameter values'})

        if (
            plan.last_analysis_date == analysis_date
            and plan.last_results == results
            and plan.status == target_status
        ):
            metrics.surveillance_results_recorded_total.labels(result='idempotent').inc()
            log_result_recorded(plan, previous_due_date=plan.next_due_date, idempotent=True)
            return plan

        if plan.is_terminal:
            metrics.surveillance_results_recorded_total.labels(result='rejected').inc()
            raise InvalidStateError(
                f'Cannot record a result on a {plan.status} surveillance plan',
                plan_id=str(plan.id),
                current_status=plan.status,
            )

        try:
            _check_row_version(plan, expected_row_version, 'record_result')
        except ConflictError:
            metrics.surveillance_results_recorded_total.labels(result='conflict').inc()
            raise

        if plan.last_analysis_date and analysis_date < plan.last_analysis_date:
            raise ValidationError({
                'analysis_date': (
                    f'An analysis dated {plan.last_analysis_date.isoformat()} is already recorded; '
                    f'older results cannot move the schedule backwards'
                )
            })

        previous_due_date = plan.next_due_date
        previous_status = plan.status

        plan.last_analysis_date = analysis_date
        plan.last_results = results
        plan.next_due_date = compute_next_due_date(analysis_date, plan.frequency_months, today)

        if target_status != plan.status:
            plan.transition_status(target_status)

        _save(plan, ['last_analysis_date', 'last_results', 'next_due_date', 'status'])

        metrics.surveillance_results_recorded_total.labels(result='success').inc()
        log_result_recorded(plan, previous_due_date=previous_due_date)

        if previous_status != plan.status:
            metrics.surveillance_transition_total.labels(
                from_status=previous_status,
                to_status=plan.status,
                result='success',
            ).inc()
            log_plan_transition(plan, previous_status, plan.status, trigger='record_result')

        log_consistency_checkpoint(
            'surveillance_due_date_advanced',
            entity_ids={'plan_id': str(plan.id)},
            checks_passed={
                'due_after_anchor': plan.next_due_date > analysis_date,
                'due_not_in_past': plan.next_due_date >= today,
            },
        )

        return plan


# ============================================================================
# Status transitions
# ============================================================================

def _transition(
    plan_id,
    new_status: str,
    operation: str,
    expected_row_version: Optional[int] = None,
    reason: Optional[str] = None,
    today: Optional[date] = None,
) -> SurveillancePlan:
    with transaction.atomic():
        plan = _lock_plan(plan_id)
        from_status = plan.status

        try:
            plan.transition_status(new_status, reason=reason)
        except InvalidStateError as e:
            metrics.surveillance_transition_total.labels(
                from_status=from_status,
                to_status=new_status,
                result='rejected',
            ).inc()
            _count_rejection(e, operation)
            log_plan_transition(plan, from_status, new_status, result='blocked', trigger=operation)
            raise

        _check_row_version(plan, expected_row_version, operation)

        update_fields = ['status']
        extra = {}

        if new_status == SurveillanceStatusChoices.CANCELLED and reason:
            update_fields.append('cancellation_reason')

        if operation == 'resume':
            # A due date that slipped into the past during the suspension is caught up
            today = _resolve_today(today)
            if plan.next_due_date < today:
                frozen_due_date = plan.next_due_date
                if plan.last_analysis_date:
                    plan.next_due_date = compute_next_due_date(
                        plan.last_analysis_date, plan.frequency_months, today
                    )
                else:
                    plan.next_due_date = compute_initial_due_date(
                        plan.start_date, plan.frequency_months, today
                    )
                update_fields.append('next_due_date')
                extra['frozen_due_date'] = frozen_due_date.isoformat()
                extra['next_due_date'] = plan.next_due_date.isoformat()

        _save(plan, update_fields)

        metrics.surveillance_transition_total.labels(
            from_status=from_status,
            to_status=plan.status,
            result='success',
        ).inc()
        log_plan_transition(plan, from_status, plan.status, trigger=operation, **extra)

        return plan


def suspend_plan(plan_id, expected_row_version: Optional[int] = None) -> SurveillancePlan:
    """Park an active plan in pending; its due date is frozen."""
    return _transition(plan_id, SurveillanceStatusChoices.PENDING, 'suspend', expected_row_version)


def resume_plan(plan_id, expected_row_version: Optional[int] = None, today: Optional[date] = None) -> SurveillancePlan:
    """
    Reactivate a pending plan.

    If its frozen due date is now in the past, the due date is recomputed
    from the existing anchor with catch-up against today.
    """
    return _transition(
        plan_id, SurveillanceStatusChoices.ACTIVE, 'resume', expected_row_version, today=today
    )


def cancel_plan(plan_id, reason: Optional[str] = None, expected_row_version: Optional[int] = None) -> SurveillancePlan:
    """Terminal: stop monitoring without completion."""
    return _transition(
        plan_id, SurveillanceStatusChoices.CANCELLED, 'cancel', expected_row_version, reason=reason
    )


def complete_plan(plan_id, expected_row_version: Optional[int] = None) -> SurveillancePlan:
    """Terminal: monitoring obligation fulfilled."""
    return _transition(plan_id, SurveillanceStatusChoices.COMPLETED, 'complete', expected_row_version)


# ============================================================================
# Edition
# ============================================================================

@transaction.atomic
def update_plan_details(
    plan_id,
    data: Dict[str, Any],
    expected_row_version: Optional[int] = None,
) -> SurveillancePlan:
    """
    Edit the fields that have no scheduling effect.

    Only priority, notes, lab, lab_contact and medication are writable.
    Kind, parameters, frequency, dates and status change only through the
    lifecycle operations.

    Raises:
        NotFoundError, InvalidStateError (terminal plan), ConflictError,
        ValidationError (read-only field or invalid value)
    """
    plan = _lock_plan(plan_id)

    forbidden = set(data) - set(EDITABLE_FIELDS)
    if forbidden:
        raise ValidationError({
            field: 'This field is read-only' for field in sorted(forbidden)
        })

    if plan.is_terminal:
        raise InvalidStateError(
            f'A {plan.status} surveillance plan cannot be edited',
            plan_id=str(plan.id),
            current_status=plan.status,
        )

    _check_row_version(plan, expected_row_version, 'update')

    for field, value in data.items():
        setattr(plan, field, value)

    plan.clean_fields(exclude=_RELATION_FIELDS)

    _save(plan, data.keys())

    logger.info(
        'Surveillance plan updated',
        extra={
            'event': 'surveillance_plan_updated',
            'plan_id': str(plan.id),
            'changed_fields': sorted(data),
            'row_version': plan.row_version,
        }
    )

    return plan
