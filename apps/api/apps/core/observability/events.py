"""
Domain events logging helpers.

Provides structured event logging for business operations.
"""
from typing import Dict, Optional
from .logging import get_sanitized_logger, sanitize_dict

logger = get_sanitized_logger(__name__)


def log_domain_event(
    event_name: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    entity_ids: Optional[Dict[str, str]] = None,
    result: str = 'success',
    **extra_fields
):
    """
    Log a domain event with structured data.

    Args:
        event_name: Name of the event (e.g., 'surveillance_plan_created')
        entity_type: Type of entity (e.g., 'SurveillancePlan')
        entity_id: ID of primary entity
        entity_ids: Dictionary of related entity IDs
        result: Result of operation (success, failure, etc.)
        **extra_fields: Additional fields to log (will be sanitized)

    Example:
        log_domain_event(
            'surveillance_result_recorded',
            entity_type='SurveillancePlan',
            entity_id=str(plan.id),
            entity_ids={'patient_id': str(plan.patient_id)},
            result='success',
            next_due_date='2024-04-12'
        )
    """
    event_data = {
        'event': event_name,
        'result': result,
    }

    if entity_type:
        event_data['entity_type'] = entity_type

    if entity_id:
        event_data['entity_id'] = entity_id

    if entity_ids:
        event_data.update(entity_ids)

    sanitized_extra = sanitize_dict(extra_fields)
    event_data.update(sanitized_extra)

    # Log at appropriate level based on result
    if result in ['failure', 'error']:
        logger.error(f'Domain event: {event_name}', extra=event_data)
    elif result in ['warning', 'blocked', 'conflict']:
        logger.warning(f'Domain event: {event_name}', extra=event_data)
    else:
        logger.info(f'Domain event: {event_name}', extra=event_data)


def log_consistency_checkpoint(
    checkpoint_name: str,
    entity_ids: Dict[str, str],
    checks_passed: Dict[str, bool],
    **extra_fields
):
    """
    Log a consistency checkpoint event.

    Used to verify data integrity at critical points.

    Args:
        checkpoint_name: Name of checkpoint (e.g., 'surveillance_due_date_consistency')
        entity_ids: Dictionary of entity IDs involved
        checks_passed: Dictionary of check results {check_name: passed}
        **extra_fields: Additional context
    """
    all_passed = all(checks_passed.values())

    event_data = {
        'event': 'consistency_checkpoint',
        'checkpoint': checkpoint_name,
        'status': 'passed' if all_passed else 'failed',
        'checks': checks_passed,
    }
    event_data.update(entity_ids)
    event_data.update(sanitize_dict(extra_fields))

    if all_passed:
        logger.info(f'Checkpoint passed: {checkpoint_name}', extra=event_data)
    else:
        logger.error(f'Checkpoint FAILED: {checkpoint_name}', extra=event_data)


def _plan_ids(plan):
    ids = {
        'plan_id': str(plan.id),
        'patient_id': str(plan.patient_id),
    }
    if plan.medication_id:
        ids['medication_id'] = str(plan.medication_id)
    return ids


def log_plan_created(plan, **extra):
    """Log surveillance plan creation."""
    log_domain_event(
        'surveillance_plan_created',
        entity_type='SurveillancePlan',
        entity_id=str(plan.id),
        entity_ids=_plan_ids(plan),
        result='success',
        kind=plan.kind,
        frequency_months=plan.frequency_months,
        next_due_date=plan.next_due_date.isoformat(),
        **extra
    )


def log_plan_transition(plan, from_status, to_status, result='success', **extra):
    """Log surveillance plan status transition."""
    log_domain_event(
        'surveillance_plan_transition',
        entity_type='SurveillancePlan',
        entity_id=str(plan.id),
        entity_ids=_plan_ids(plan),
        result=result,
        from_status=from_status,
        to_status=to_status,
        **extra
    )


def log_result_recorded(plan, previous_due_date, idempotent=False, **extra):
    """Log an analysis result recorded on a plan (results payload is never logged)."""
    log_domain_event(
        'surveillance_result_recorded',
        entity_type='SurveillancePlan',
        entity_id=str(plan.id),
        entity_ids=_plan_ids(plan),
        result='duplicate' if idempotent else 'success',
        analysis_date=plan.last_analysis_date.isoformat() if plan.last_analysis_date else None,
        previous_due_date=previous_due_date.isoformat() if previous_due_date else None,
        next_due_date=plan.next_due_date.isoformat(),
        row_version=plan.row_version,
        **extra
    )


def log_concurrent_write_rejected(plan, operation, expected_row_version, current_row_version):
    """Log a write that lost the race against a concurrent update."""
    log_domain_event(
        'surveillance_concurrent_write_rejected',
        entity_type='SurveillancePlan',
        entity_id=str(plan.id),
        entity_ids=_plan_ids(plan),
        result='conflict',
        operation=operation,
        expected_row_version=expected_row_version,
        current_row_version=current_row_version,
    )


def log_alert_scan(as_of, counts, duration_ms=None):
    """Log the outcome of a surveillance alert scan."""
    extra = {
        'as_of': as_of.isoformat(),
        'tier_counts': counts,
        'total_active': sum(counts.values()),
    }
    if duration_ms is not None:
        extra['duration_ms'] = duration_ms

    log_domain_event(
        'surveillance_alert_scan',
        entity_type='SurveillancePlan',
        result='warning' if counts.get('overdue') else 'success',
        **extra
    )
