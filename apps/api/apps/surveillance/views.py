"""
Surveillance viewsets.

Endpoints (prefix /api/v1/surveillance/):
- GET/POST          plans/
- GET/PATCH/DELETE  plans/{id}/
- POST              plans/{id}/record-result/
- POST              plans/{id}/suspend|resume|cancel|complete/
- GET               plans/urgent/
- GET               plans/alerts-summary/
- GET               patients/{patient_id}/plans/
- GET               medications/{medication_id}/plans/
"""
import uuid

from django.core.exceptions import ValidationError
from django.db.models import Q
from rest_framework import viewsets, generics, status
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError as DRFValidationError
from rest_framework.response import Response

from apps.core.observability import metrics, get_sanitized_logger

from . import services
from .alerts import list_urgent, summarize_alerts
from .exceptions import SurveillanceError, NotFoundError, ConflictError
from .models import SurveillancePlan
from .permissions import SurveillancePermission
from .serializers import (
    SurveillancePlanListSerializer,
    SurveillancePlanDetailSerializer,
    SurveillancePlanCreateSerializer,
    SurveillancePlanUpdateSerializer,
    RecordResultSerializer,
    PlanTransitionSerializer,
    UrgentQuerySerializer,
)

logger = get_sanitized_logger(__name__)


_ERROR_STATUS = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
}


def error_response(exc, location):
    """
    Build the {"error": {"code", "message", "details"}} envelope.

    SurveillanceError subclasses carry their own code; Django
    ValidationError maps to VALIDATION_ERROR (400).
    """
    metrics.exceptions_total.labels(
        exception_type=exc.__class__.__name__,
        location=location,
    ).inc()

    if isinstance(exc, ValidationError):
        details = exc.message_dict if hasattr(exc, 'error_dict') else {'non_field_errors': exc.messages}
        code = 'VALIDATION_ERROR'
        message = 'Invalid surveillance plan data'
        http_status = status.HTTP_400_BAD_REQUEST
    else:
        details = dict(exc.details)
        if exc.plan_id:
            details['plan_id'] = exc.plan_id
        code = exc.code
        message = exc.message
        http_status = _ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)

    logger.warning(
        'Surveillance request rejected',
        extra={
            'event': 'surveillance_request_rejected',
            'code': code,
            'location': location,
            'plan_id': details.get('plan_id'),
        }
    )

    return Response(
        {'error': {'code': code, 'message': message, 'details': details}},
        status=http_status
    )


def _filter_plans(queryset, params):
    """Exact filters + ?q= search shared by every plan list."""
    for param, field in (
        ('kind', 'kind'),
        ('status', 'status'),
        ('priority', 'priority'),
    ):
        value = params.get(param)
        if value:
            queryset = queryset.filter(**{field: value})

    for param, field in (
        ('patient', 'patient_id'),
        ('medication', 'medication_id'),
    ):
        value = params.get(param)
        if value:
            try:
                queryset = queryset.filter(**{field: uuid.UUID(value)})
            except ValueError:
                raise DRFValidationError({param: ['Must be a valid UUID']})

    q = params.get('q')
    if q:
        queryset = queryset.filter(
            Q(patient__first_name__icontains=q) |
            Q(patient__last_name__icontains=q) |
            Q(medication__brand_name__icontains=q) |
            Q(medication__inn__icontains=q) |
            Q(lab__icontains=q)
        )
    return queryset


class SurveillancePlanViewSet(viewsets.ModelViewSet):
    """
    ViewSet for surveillance plans.

    Writes never go through the serializer's save(): they call the
    lifecycle services, which own locking, versioning and logging.
    """
    permission_classes = [SurveillancePermission]
    http_method_names = ['get', 'post', 'patch', 'delete', 'head', 'options']

    def get_queryset(self):
        queryset = SurveillancePlan.objects.select_related('patient', 'medication')
        queryset = _filter_plans(queryset, self.request.query_params)
        return queryset.order_by('next_due_date', 'created_at')

    def get_serializer_class(self):
        if self.action == 'list':
            return SurveillancePlanListSerializer
        return SurveillancePlanDetailSerializer

    def _detail(self, plan, status_code=status.HTTP_200_OK):
        serializer = SurveillancePlanDetailSerializer(plan, context=self.get_serializer_context())
        return Response(serializer.data, status=status_code)

    def create(self, request, *args, **kwargs):
        """Create plan (POST /plans/)"""
        serializer = SurveillancePlanCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = dict(serializer.validated_data)
        first_due_date = data.pop('first_due_date', None)

        try:
            plan = services.create_plan(
                data,
                created_by=request.user,
                first_due_date=first_due_date,
            )
        except (ValidationError, SurveillanceError) as e:
            return error_response(e, 'surveillance.create')

        return self._detail(plan, status.HTTP_201_CREATED)

    def partial_update(self, request, *args, **kwargs):
        """Update behaviour-free fields (PATCH /plans/{id}/)"""
        serializer = SurveillancePlanUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = dict(serializer.validated_data)
        row_version = data.pop('row_version')

        try:
            plan = services.update_plan_details(
                kwargs['pk'],
                data,
                expected_row_version=row_version,
            )
        except (ValidationError, SurveillanceError) as e:
            return error_response(e, 'surveillance.update')

        return self._detail(plan)

    def perform_destroy(self, instance):
        logger.warning(
            'Surveillance plan deleted',
            extra={
                'event': 'surveillance_plan_deleted',
                'plan_id': str(instance.id),
                'status': instance.status,
            }
        )
        instance.delete()

    @action(detail=True, methods=['post'], url_path='record-result')
    def record_result(self, request, pk=None):
        """
        POST /plans/{id}/record-result/

        {
            "analysis_date": "2024-01-12",
            "results": {"ALAT": 32, "ASAT": 28},
            "row_version": 1,              // optional, 409 when stale
            "awaiting_confirmation": false, // park in pending
            "complete": false               // close the plan
        }
        """
        serializer = RecordResultSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            plan = services.record_result(
                pk,
                data['analysis_date'],
                data.get('results'),
                expected_row_version=data.get('row_version'),
                complete=data['complete'],
                awaiting_confirmation=data['awaiting_confirmation'],
            )
        except (ValidationError, SurveillanceError) as e:
            return error_response(e, 'surveillance.record_result')

        return self._detail(plan)

    def _transition(self, request, pk, operation):
        serializer = PlanTransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        row_version = serializer.validated_data.get('row_version')

        try:
            if operation == 'cancel':
                plan = services.cancel_plan(
                    pk,
                    reason=serializer.validated_data.get('reason'),
                    expected_row_version=row_version,
                )
            else:
                service = {
                    'suspend': services.suspend_plan,
                    'resume': services.resume_plan,
                    'complete': services.complete_plan,
                }[operation]
                plan = service(pk, expected_row_version=row_version)
        except (ValidationError, SurveillanceError) as e:
            return error_response(e, f'surveillance.{operation}')

        return self._detail(plan)

    @action(detail=True, methods=['post'])
    def suspend(self, request, pk=None):
        """POST /plans/{id}/suspend/ - active -> pending"""
        return self._transition(request, pk, 'suspend')

    @action(detail=True, methods=['post'])
    def resume(self, request, pk=None):
        """POST /plans/{id}/resume/ - pending -> active"""
        return self._transition(request, pk, 'resume')

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        """POST /plans/{id}/cancel/ - terminal"""
        return self._transition(request, pk, 'cancel')

    @action(detail=True, methods=['post'])
    def complete(self, request, pk=None):
        """POST /plans/{id}/complete/ - terminal"""
        return self._transition(request, pk, 'complete')

    @action(detail=False, methods=['get'])
    def urgent(self, request):
        """
        GET /plans/urgent/?patient=&kind=&min_tier=&as_of=

        Active plans, most pressing first. Not paginated: the list is the
        pharmacist's work queue.
        """
        query = UrgentQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data
        as_of = params.get('as_of')

        try:
            entries = list_urgent(
                patient_id=params.get('patient'),
                kind=params.get('kind'),
                min_tier=params.get('min_tier'),
                today=as_of,
            )
        except ValidationError as e:
            return error_response(e, 'surveillance.urgent')

        context = self.get_serializer_context()
        context['as_of'] = as_of
        serializer = SurveillancePlanListSerializer(
            [plan for plan, _tier in entries],
            many=True,
            context=context
        )
        return Response(serializer.data)

    @action(detail=False, methods=['get'], url_path='alerts-summary')
    def alerts_summary(self, request):
        """GET /plans/alerts-summary/ - active plan count per urgency tier"""
        query = UrgentQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data

        counts = summarize_alerts(
            patient_id=params.get('patient'),
            kind=params.get('kind'),
            today=params.get('as_of'),
        )
        return Response({'counts': counts, 'total': sum(counts.values())})


class PatientPlanListView(generics.ListAPIView):
    """GET /patients/{patient_id}/plans/ - every plan of one patient"""
    permission_classes = [SurveillancePermission]
    serializer_class = SurveillancePlanListSerializer

    def get_queryset(self):
        queryset = SurveillancePlan.objects.select_related('patient', 'medication').filter(
            patient_id=self.kwargs['patient_id']
        )
        queryset = _filter_plans(queryset, self.request.query_params)
        return queryset.order_by('next_due_date', 'created_at')


class MedicationPlanListView(generics.ListAPIView):
    """GET /medications/{medication_id}/plans/ - plans tied to one medication"""
    permission_classes = [SurveillancePermission]
    serializer_class = SurveillancePlanListSerializer

    def get_queryset(self):
        queryset = SurveillancePlan.objects.select_related('patient', 'medication').filter(
            medication_id=self.kwargs['medication_id']
        )
        queryset = _filter_plans(queryset, self.request.query_params)
        return queryset.order_by('next_due_date', 'created_at')
