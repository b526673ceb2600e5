"""
Tests for the settings the suite runs under.
"""
import pytest
from django.conf import settings
from django.db import connection


@pytest.mark.django_db
def test_suite_uses_in_memory_sqlite():
    assert connection.vendor == 'sqlite'
    assert settings.DATABASES['default']['ENGINE'] == 'django.db.backends.sqlite3'


def test_celery_tasks_run_eagerly():
    assert settings.CELERY_TASK_ALWAYS_EAGER is True
