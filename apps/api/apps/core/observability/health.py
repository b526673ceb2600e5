"""
Health check endpoints.

Provides /healthz and /readyz endpoints for monitoring.
"""
import logging
from django.http import JsonResponse
from django.views import View
from django.db import connection, DatabaseError
from django.conf import settings

logger = logging.getLogger(__name__)


class HealthzView(View):
    """
    Liveness probe.

    Returns 200 OK if the process is serving requests. Does not check dependencies.
    """

    def get(self, request):
        health_data = {
            'status': 'ok',
            'version': getattr(settings, 'VERSION', 'unknown'),
        }

        commit_hash = getattr(settings, 'COMMIT_HASH', None)
        if commit_hash:
            health_data['commit'] = commit_hash

        return JsonResponse(health_data, status=200)


class ReadyzView(View):
    """
    Readiness probe.

    Checks the database connection and that the surveillance table is queryable.
    """

    def get(self, request):
        checks = {
            'database': self._check_database(),
        }
        checks['surveillance_store'] = checks['database'] and self._check_surveillance_store()

        all_healthy = all(checks.values())

        response_data = {
            'status': 'ready' if all_healthy else 'not_ready',
            'checks': checks,
        }

        return JsonResponse(response_data, status=200 if all_healthy else 503)

    def _check_database(self):
        try:
            with connection.cursor() as cursor:
                cursor.execute('SELECT 1')
                return True
        except DatabaseError as e:
            logger.error(
                'Database health check failed',
                extra={
                    'event': 'health_check_failed',
                    'check': 'database',
                    'error': str(e)
                }
            )
            return False

    def _check_surveillance_store(self):
        from apps.surveillance.models import SurveillancePlan

        try:
            SurveillancePlan.objects.only('id').first()
            return True
        except DatabaseError as e:
            logger.error(
                'Surveillance store health check failed',
                extra={
                    'event': 'health_check_failed',
                    'check': 'surveillance_store',
                    'error': str(e)
                }
            )
            return False
