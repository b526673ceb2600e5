"""
Celery tasks for surveillance alerts.
"""
import time
from datetime import date

from celery import shared_task
from django.utils import timezone

from apps.core.observability import metrics
from apps.core.observability.events import log_alert_scan


@shared_task(name='apps.surveillance.tasks.scan_surveillance_alerts')
@metrics.track_duration(metrics.surveillance_alert_scan_duration_seconds)
def scan_surveillance_alerts(as_of=None):
    """
    Re-evaluate urgency of every active plan.

    Publishes the per-tier counts on the surveillance_alerts_open gauge and
    logs a scan event (warning level when something is overdue).

    Args:
        as_of: ISO date string; defaults to today

    Returns:
        Dict of counts per urgency tier
    """
    from .alerts import summarize_alerts

    start_time = time.time()
    today = date.fromisoformat(as_of) if as_of else timezone.localdate()

    counts = summarize_alerts(today=today)

    for tier, count in counts.items():
        metrics.surveillance_alerts_open.labels(tier=tier).set(count)

    duration_ms = int((time.time() - start_time) * 1000)
    log_alert_scan(today, counts, duration_ms=duration_ms)

    return counts
