"""
Surveillance serializers.

Read serializers expose the computed urgency of a plan; write serializers
only shape and type-check input, the lifecycle rules live in services.py.
"""
from django.conf import settings
from django.utils import timezone
from rest_framework import serializers

from apps.clinical.models import Patient, Medication

from .models import (
    SurveillancePlan,
    SurveillanceKindChoices,
    SurveillancePriorityChoices,
    SurveillanceStatusChoices,
)


def _as_of(serializer):
    return serializer.context.get('as_of') or timezone.localdate()


class SurveillancePlanListSerializer(serializers.ModelSerializer):
    """Serializer for plan lists and the urgent view (limited fields)"""
    patient_id = serializers.UUIDField(read_only=True)
    patient_name = serializers.SerializerMethodField()
    medication_id = serializers.UUIDField(read_only=True, allow_null=True)
    medication_name = serializers.SerializerMethodField()
    urgency = serializers.SerializerMethodField()
    days_until_due = serializers.SerializerMethodField()

    class Meta:
        model = SurveillancePlan
        fields = [
            'id',
            'patient_id',
            'patient_name',
            'medication_id',
            'medication_name',
            'kind',
            'parameters',
            'frequency_months',
            'next_due_date',
            'last_analysis_date',
            'status',
            'priority',
            'urgency',
            'days_until_due',
            'row_version',
        ]
        read_only_fields = fields

    def get_patient_name(self, obj):
        return str(obj.patient)

    def get_medication_name(self, obj):
        return obj.medication.brand_name if obj.medication_id else None

    def get_urgency(self, obj):
        # Suspended and closed plans never alert
        if obj.status != SurveillanceStatusChoices.ACTIVE:
            return None
        return obj.urgency(_as_of(self)).value

    def get_days_until_due(self, obj):
        return obj.days_until_due(_as_of(self))


class SurveillancePlanDetailSerializer(SurveillancePlanListSerializer):
    """Full plan representation"""
    created_by_user_id = serializers.UUIDField(read_only=True, allow_null=True)

    class Meta(SurveillancePlanListSerializer.Meta):
        fields = SurveillancePlanListSerializer.Meta.fields + [
            'start_date',
            'last_results',
            'cancellation_reason',
            'notes',
            'lab',
            'lab_contact',
            'created_by_user_id',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class SurveillancePlanCreateSerializer(serializers.Serializer):
    """
    Input of POST /plans/.

    kind, parameters and frequency_months may be omitted when a medication
    is given; they are then derived from its monitoring flags.
    """
    patient_id = serializers.PrimaryKeyRelatedField(
        source='patient',
        queryset=Patient.objects.filter(is_deleted=False)
    )
    medication_id = serializers.PrimaryKeyRelatedField(
        source='medication',
        queryset=Medication.objects.all(),
        required=False,
        allow_null=True
    )
    kind = serializers.ChoiceField(choices=SurveillanceKindChoices.choices, required=False)
    parameters = serializers.ListField(
        child=serializers.CharField(max_length=100),
        required=False
    )
    frequency_months = serializers.IntegerField(min_value=1, required=False)
    start_date = serializers.DateField()
    first_due_date = serializers.DateField(required=False)
    priority = serializers.ChoiceField(
        choices=SurveillancePriorityChoices.choices,
        required=False
    )
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    lab = serializers.CharField(max_length=150, required=False, allow_blank=True, allow_null=True)
    lab_contact = serializers.CharField(max_length=200, required=False, allow_blank=True, allow_null=True)

    def validate_frequency_months(self, value):
        max_months = settings.SURVEILLANCE_MAX_FREQUENCY_MONTHS
        if value > max_months:
            raise serializers.ValidationError(
                f'Frequency cannot exceed {max_months} months'
            )
        return value

    def validate(self, attrs):
        if not attrs.get('kind') and not attrs.get('medication'):
            raise serializers.ValidationError({
                'kind': ['Required when no medication is given']
            })
        first_due_date = attrs.get('first_due_date')
        if first_due_date and first_due_date < attrs['start_date']:
            raise serializers.ValidationError({
                'first_due_date': ['First due date cannot be before the start date']
            })
        return attrs


class SurveillancePlanUpdateSerializer(serializers.Serializer):
    """Input of PATCH /plans/{id}/ (behaviour-free fields only)"""
    row_version = serializers.IntegerField()
    priority = serializers.ChoiceField(
        choices=SurveillancePriorityChoices.choices,
        required=False
    )
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    lab = serializers.CharField(max_length=150, required=False, allow_blank=True, allow_null=True)
    lab_contact = serializers.CharField(max_length=200, required=False, allow_blank=True, allow_null=True)
    medication_id = serializers.PrimaryKeyRelatedField(
        source='medication',
        queryset=Medication.objects.all(),
        required=False,
        allow_null=True
    )

    def validate(self, attrs):
        read_only = sorted(
            set(self.initial_data) - set(self.fields)
        )
        if read_only:
            raise serializers.ValidationError({
                field: ['This field cannot be changed'] for field in read_only
            })
        return attrs


class RecordResultSerializer(serializers.Serializer):
    """Input of POST /plans/{id}/record-result/"""
    analysis_date = serializers.DateField()
    results = serializers.DictField(required=False, allow_null=True)
    row_version = serializers.IntegerField(required=False)
    complete = serializers.BooleanField(required=False, default=False)
    awaiting_confirmation = serializers.BooleanField(required=False, default=False)

    def validate(self, attrs):
        if attrs['complete'] and attrs['awaiting_confirmation']:
            raise serializers.ValidationError(
                'complete and awaiting_confirmation are mutually exclusive'
            )
        return attrs


class PlanTransitionSerializer(serializers.Serializer):
    """Input of the suspend / resume / cancel / complete actions"""
    row_version = serializers.IntegerField(required=False)
    reason = serializers.CharField(required=False, allow_blank=True, max_length=500)


class UrgentQuerySerializer(serializers.Serializer):
    """Query parameters of GET /plans/urgent/ and /plans/alerts-summary/"""
    patient = serializers.UUIDField(required=False)
    kind = serializers.ChoiceField(choices=SurveillanceKindChoices.choices, required=False)
    # Validated by list_urgent
    min_tier = serializers.CharField(required=False, allow_blank=True)
    as_of = serializers.DateField(required=False)
