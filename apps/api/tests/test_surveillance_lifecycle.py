"""
Lifecycle of surveillance plans: creation, result recording, transitions.

Business rules covered:
- Creation validates the plan and computes its first due date
- Recording a result moves the anchor and reschedules (with catch-up)
- Completed and cancelled plans are terminal
- Stale row_version -> ConflictError; duplicate submission -> no-op
- Analysis dates in the future are rejected
"""
import uuid
from datetime import date
from unittest.mock import patch

import pytest

from apps.surveillance import services
from apps.surveillance.alerts import list_urgent
from apps.surveillance.exceptions import (
    ValidationError,
    NotFoundError,
    InvalidStateError,
    FutureDateError,
    ConflictError,
)
from apps.surveillance.models import SurveillancePlan, SurveillanceStatusChoices
from apps.surveillance.scheduling import UrgencyTier


TODAY = date(2024, 3, 15)


@pytest.mark.django_db
class TestCreatePlan:
    def test_plan_starting_today_is_active_and_due_today(self, make_plan):
        plan = make_plan()

        assert plan.status == SurveillanceStatusChoices.ACTIVE
        assert plan.next_due_date == TODAY
        assert plan.last_analysis_date is None
        assert plan.row_version == 1
        assert plan.urgency(TODAY) == UrgencyTier.URGENT

    def test_start_date_in_the_past_is_caught_up(self, make_plan):
        plan = make_plan(start_date=date(2023, 6, 20))

        assert plan.start_date == date(2023, 6, 20)
        assert plan.next_due_date == date(2024, 3, 20)

    def test_explicit_first_due_date(self, make_plan):
        plan = make_plan(first_due_date=date(2024, 4, 1))
        assert plan.next_due_date == date(2024, 4, 1)

    def test_parameters_order_preserved(self, make_plan):
        plan = make_plan(parameters=['Gamma-GT', 'ALAT', 'ASAT'])
        plan.refresh_from_db()
        assert plan.parameters == ['Gamma-GT', 'ALAT', 'ASAT']

    @pytest.mark.parametrize('overrides,field', [
        ({'frequency_months': 0}, 'frequency_months'),
        ({'parameters': []}, 'parameters'),
        ({'parameters': ['ALAT', '  ']}, 'parameters'),
        ({'start_date': date(2024, 3, 16)}, 'start_date'),
        ({'kind': 'dermatologic'}, 'kind'),
    ])
    def test_invalid_input_rejected(self, make_plan, overrides, field):
        with pytest.raises(ValidationError) as exc_info:
            make_plan(**overrides)

        assert field in exc_info.value.message_dict
        assert SurveillancePlan.objects.count() == 0

    def test_first_due_date_before_start_rejected(self, make_plan):
        with pytest.raises(ValidationError) as exc_info:
            make_plan(start_date=date(2024, 3, 10), first_due_date=date(2024, 3, 1))
        assert 'next_due_date' in exc_info.value.message_dict

    def test_kind_required_without_medication(self, patient):
        with pytest.raises(ValidationError):
            services.create_plan(
                {'patient': patient, 'parameters': ['ALAT'], 'start_date': TODAY},
                today=TODAY,
            )

    def test_unknown_field_rejected(self, make_plan):
        with pytest.raises(ValidationError) as exc_info:
            make_plan(status='completed')
        assert 'status' in exc_info.value.message_dict

    def test_defaults_derived_from_medication(self, patient, mixed_medication):
        plan = services.create_plan(
            {'patient': patient, 'medication': mixed_medication, 'start_date': TODAY},
            today=TODAY,
        )

        assert plan.kind == 'mixed'
        assert plan.frequency_months == 1
        assert plan.parameters == [
            'ASAT', 'ALAT', 'Gamma-GT', 'Bilirubine',
            'Créatinine', 'Urée', 'Clairance créatinine',
            'Kaliémie',
        ]

    def test_explicit_values_win_over_medication(self, patient, hepatic_medication):
        plan = services.create_plan(
            {
                'patient': patient,
                'medication': hepatic_medication,
                'kind': 'other',
                'parameters': ['NFS'],
                'frequency_months': 6,
                'start_date': TODAY,
            },
            today=TODAY,
        )

        assert plan.kind == 'other'
        assert plan.parameters == ['NFS']
        assert plan.frequency_months == 6

    def test_medication_frequency_capped(self, patient, hepatic_medication, settings):
        settings.SURVEILLANCE_MAX_FREQUENCY_MONTHS = 12
        hepatic_medication.monitoring_frequency_months = 24
        hepatic_medication.save()

        plan = services.create_plan(
            {'patient': patient, 'medication': hepatic_medication, 'start_date': TODAY},
            today=TODAY,
        )

        assert plan.frequency_months == 12

    def test_suggested_kind_for_medication(self, hepatic_medication, mixed_medication):
        assert services.suggested_kind_for_medication(hepatic_medication) == 'hepatic'
        assert services.suggested_kind_for_medication(mixed_medication) == 'mixed'

        hepatic_medication.hepatic_monitoring = False
        assert services.suggested_kind_for_medication(hepatic_medication) == 'other'

        hepatic_medication.renal_monitoring = True
        assert services.suggested_kind_for_medication(hepatic_medication) == 'renal'


@pytest.mark.django_db
class TestEndToEndScenario:
    """Plan started 2024-01-10 every 3 months, analysis done 2024-01-12."""

    def test_schedule_follows_recorded_analysis(self, make_plan):
        plan = make_plan(today=date(2024, 1, 10), start_date=date(2024, 1, 10))
        assert plan.next_due_date == date(2024, 1, 10)

        plan = services.record_result(
            plan.id,
            date(2024, 1, 12),
            {'ALAT': 32, 'ASAT': 28},
            today=date(2024, 1, 12),
        )
        assert plan.next_due_date == date(2024, 4, 12)
        assert plan.last_analysis_date == date(2024, 1, 12)
        assert plan.status == SurveillanceStatusChoices.ACTIVE

        entries = list_urgent(today=date(2024, 4, 10))
        assert [(p.id, tier) for p, tier in entries] == [(plan.id, UrgencyTier.URGENT)]
        assert entries[0][0].days_until_due(date(2024, 4, 10)) == 2

        entries = list_urgent(today=date(2024, 4, 20))
        assert [(p.id, tier) for p, tier in entries] == [(plan.id, UrgencyTier.OVERDUE)]
        assert entries[0][0].days_until_due(date(2024, 4, 20)) == -8


@pytest.mark.django_db
class TestRecordResult:
    def test_result_moves_anchor_and_bumps_row_version(self, make_plan):
        plan = make_plan()

        updated = services.record_result(plan.id, TODAY, {'ALAT': 40}, today=TODAY)

        assert updated.next_due_date == date(2024, 6, 15)
        assert updated.last_results == {'ALAT': 40}
        assert updated.row_version == 2

        plan.refresh_from_db()
        assert plan.next_due_date == date(2024, 6, 15)
        assert plan.row_version == 2

    def test_late_analysis_is_caught_up(self, make_plan):
        plan = make_plan(start_date=date(2023, 1, 5), today=date(2023, 1, 5))

        # Analysis finally done a year later, recorded three months after that
        updated = services.record_result(
            plan.id, date(2024, 1, 5), None, today=date(2024, 4, 20)
        )

        assert updated.next_due_date == date(2024, 7, 5)

    def test_result_without_values_accepted(self, make_plan):
        plan = make_plan()
        updated = services.record_result(plan.id, TODAY, None, today=TODAY)
        assert updated.last_results is None
        assert updated.last_analysis_date == TODAY

    def test_awaiting_confirmation_parks_plan_in_pending(self, make_plan):
        plan = make_plan()

        updated = services.record_result(
            plan.id, TODAY, {'ALAT': 120}, awaiting_confirmation=True, today=TODAY
        )

        assert updated.status == SurveillanceStatusChoices.PENDING
        assert updated.next_due_date == date(2024, 6, 15)

    def test_complete_closes_plan(self, make_plan):
        plan = make_plan()
        updated = services.record_result(plan.id, TODAY, {'ALAT': 30}, complete=True, today=TODAY)
        assert updated.status == SurveillanceStatusChoices.COMPLETED

    def test_result_on_pending_plan_reactivates_it(self, make_plan):
        plan = make_plan()
        services.suspend_plan(plan.id)

        updated = services.record_result(plan.id, TODAY, {'ALAT': 30}, today=TODAY)

        assert updated.status == SurveillanceStatusChoices.ACTIVE

    def test_future_analysis_date_rejected_without_change(self, make_plan):
        plan = make_plan()

        with pytest.raises(FutureDateError):
            services.record_result(plan.id, date(2024, 3, 16), {'ALAT': 30}, today=TODAY)

        plan.refresh_from_db()
        assert plan.last_analysis_date is None
        assert plan.next_due_date == TODAY
        assert plan.row_version == 1

    @pytest.mark.parametrize('closing', ['complete_plan', 'cancel_plan'])
    def test_terminal_plan_rejects_results(self, make_plan, closing):
        plan = make_plan()
        getattr(services, closing)(plan.id)

        with pytest.raises(InvalidStateError):
            services.record_result(plan.id, TODAY, {'ALAT': 30}, today=TODAY)

        plan.refresh_from_db()
        assert plan.last_analysis_date is None

    def test_stale_row_version_raises_conflict(self, make_plan):
        plan = make_plan()
        services.record_result(
            plan.id, date(2024, 3, 14), {'ALAT': 30}, expected_row_version=1, today=TODAY
        )

        with pytest.raises(ConflictError) as exc_info:
            services.record_result(
                plan.id, TODAY, {'ALAT': 31}, expected_row_version=1, today=TODAY
            )

        assert exc_info.value.details['current_row_version'] == 2
        plan.refresh_from_db()
        assert plan.last_analysis_date == date(2024, 3, 14)

    def test_duplicate_submission_is_idempotent(self, make_plan):
        plan = make_plan()
        first = services.record_result(
            plan.id, TODAY, {'ALAT': 30}, expected_row_version=1, today=TODAY
        )

        # Retry of the same request with the version it originally read
        with patch('apps.surveillance.services.log_result_recorded') as mock_log:
            second = services.record_result(
                plan.id, TODAY, {'ALAT': 30}, expected_row_version=1, today=TODAY
            )

        assert second.row_version == first.row_version == 2
        assert second.next_due_date == first.next_due_date
        assert mock_log.call_args.kwargs['idempotent'] is True

    def test_retried_completing_result_is_idempotent(self, make_plan):
        plan = make_plan()
        first = services.record_result(
            plan.id, TODAY, {'ALAT': 30}, expected_row_version=1, complete=True, today=TODAY
        )

        with patch('apps.surveillance.services.log_result_recorded') as mock_log:
            second = services.record_result(
                plan.id, TODAY, {'ALAT': 30}, expected_row_version=1, complete=True, today=TODAY
            )

        assert second.status == SurveillanceStatusChoices.COMPLETED
        assert second.row_version == first.row_version == 2
        assert mock_log.call_args.kwargs['idempotent'] is True

    def test_new_result_on_completed_plan_still_rejected(self, make_plan):
        plan = make_plan()
        services.record_result(plan.id, TODAY, {'ALAT': 30}, complete=True, today=TODAY)

        with pytest.raises(InvalidStateError):
            services.record_result(plan.id, TODAY, {'ALAT': 31}, complete=True, today=TODAY)

        plan.refresh_from_db()
        assert plan.last_results == {'ALAT': 30}

    def test_different_results_same_day_is_not_a_duplicate(self, make_plan):
        plan = make_plan()
        services.record_result(plan.id, TODAY, {'ALAT': 30}, today=TODAY)

        corrected = services.record_result(plan.id, TODAY, {'ALAT': 35}, today=TODAY)

        assert corrected.last_results == {'ALAT': 35}
        assert corrected.row_version == 3

    def test_older_analysis_than_recorded_rejected(self, make_plan):
        plan = make_plan()
        services.record_result(plan.id, TODAY, {'ALAT': 30}, today=TODAY)

        with pytest.raises(ValidationError):
            services.record_result(plan.id, date(2024, 3, 1), {'ALAT': 29}, today=TODAY)

    def test_results_must_be_an_object(self, make_plan):
        plan = make_plan()
        with pytest.raises(ValidationError):
            services.record_result(plan.id, TODAY, ['ALAT', 30], today=TODAY)

    @pytest.mark.parametrize('plan_id', [uuid.uuid4(), 'not-a-uuid'])
    def test_unknown_plan(self, plan_id):
        with pytest.raises(NotFoundError):
            services.record_result(plan_id, TODAY, None, today=TODAY)


@pytest.mark.django_db
class TestTransitions:
    def test_suspend_freezes_due_date(self, make_plan):
        plan = make_plan(first_due_date=date(2024, 4, 1))

        suspended = services.suspend_plan(plan.id)

        assert suspended.status == SurveillanceStatusChoices.PENDING
        assert suspended.next_due_date == date(2024, 4, 1)
        assert suspended.row_version == 2

    def test_suspended_plan_never_alerts(self, make_plan):
        plan = make_plan()
        services.suspend_plan(plan.id)

        assert list_urgent(today=date(2025, 1, 1)) == []

    def test_resume_keeps_due_date_still_ahead(self, make_plan):
        plan = make_plan(first_due_date=date(2024, 4, 1))
        services.suspend_plan(plan.id)

        resumed = services.resume_plan(plan.id, today=date(2024, 3, 20))

        assert resumed.status == SurveillanceStatusChoices.ACTIVE
        assert resumed.next_due_date == date(2024, 4, 1)

    def test_resume_catches_up_from_last_analysis(self, make_plan):
        plan = make_plan()
        services.record_result(plan.id, TODAY, {'ALAT': 30}, today=TODAY)
        services.suspend_plan(plan.id)

        resumed = services.resume_plan(plan.id, today=date(2024, 11, 2))

        # 2024-03-15 + 3k months, first on or after 2024-11-02
        assert resumed.next_due_date == date(2024, 12, 15)

    def test_resume_catches_up_from_start_date(self, make_plan):
        plan = make_plan()
        services.suspend_plan(plan.id)

        resumed = services.resume_plan(plan.id, today=date(2024, 5, 1))

        assert resumed.next_due_date == date(2024, 6, 15)

    def test_resume_active_plan_rejected(self, make_plan):
        plan = make_plan()
        with pytest.raises(InvalidStateError):
            services.resume_plan(plan.id, today=TODAY)

    def test_suspend_pending_plan_rejected(self, make_plan):
        plan = make_plan()
        services.suspend_plan(plan.id)
        with pytest.raises(InvalidStateError):
            services.suspend_plan(plan.id)

    def test_cancel_records_reason(self, make_plan):
        plan = make_plan()

        cancelled = services.cancel_plan(plan.id, reason='Treatment stopped')

        assert cancelled.status == SurveillanceStatusChoices.CANCELLED
        assert cancelled.cancellation_reason == 'Treatment stopped'

    def test_pending_plan_can_be_completed(self, make_plan):
        plan = make_plan()
        services.suspend_plan(plan.id)

        assert services.complete_plan(plan.id).status == SurveillanceStatusChoices.COMPLETED

    @pytest.mark.parametrize('operation', ['suspend_plan', 'resume_plan', 'cancel_plan', 'complete_plan'])
    def test_terminal_states_are_absorbing(self, make_plan, operation):
        plan = make_plan()
        services.complete_plan(plan.id)

        with pytest.raises(InvalidStateError):
            getattr(services, operation)(plan.id)

        plan.refresh_from_db()
        assert plan.status == SurveillanceStatusChoices.COMPLETED

    def test_transition_with_stale_version_raises_conflict(self, make_plan):
        plan = make_plan()
        services.suspend_plan(plan.id, expected_row_version=1)

        with pytest.raises(ConflictError):
            services.cancel_plan(plan.id, expected_row_version=1)

        plan.refresh_from_db()
        assert plan.status == SurveillanceStatusChoices.PENDING


@pytest.mark.django_db
class TestUpdatePlanDetails:
    def test_behaviour_free_fields_updated(self, make_plan, hepatic_medication):
        plan = make_plan()

        updated = services.update_plan_details(
            plan.id,
            {'priority': 'high', 'lab': 'Biolab Lyon', 'medication': hepatic_medication},
            expected_row_version=1,
        )

        assert updated.priority == 'high'
        assert updated.lab == 'Biolab Lyon'
        assert updated.medication_id == hepatic_medication.id
        assert updated.row_version == 2
        assert updated.next_due_date == plan.next_due_date

    @pytest.mark.parametrize('field,value', [
        ('frequency_months', 1),
        ('kind', 'renal'),
        ('start_date', date(2024, 1, 1)),
        ('next_due_date', date(2024, 12, 1)),
        ('status', 'completed'),
    ])
    def test_scheduling_fields_are_read_only(self, make_plan, field, value):
        plan = make_plan()

        with pytest.raises(ValidationError) as exc_info:
            services.update_plan_details(plan.id, {field: value})

        assert field in exc_info.value.message_dict

    def test_terminal_plan_cannot_be_edited(self, make_plan):
        plan = make_plan()
        services.cancel_plan(plan.id)

        with pytest.raises(InvalidStateError):
            services.update_plan_details(plan.id, {'notes': 'too late'})

    def test_stale_version_raises_conflict(self, make_plan):
        plan = make_plan()
        services.update_plan_details(plan.id, {'notes': 'first'}, expected_row_version=1)

        with pytest.raises(ConflictError):
            services.update_plan_details(plan.id, {'notes': 'second'}, expected_row_version=1)

    def test_invalid_priority_rejected(self, make_plan):
        plan = make_plan()
        with pytest.raises(ValidationError):
            services.update_plan_details(plan.id, {'priority': 'critical'})
