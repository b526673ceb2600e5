"""
Pytest configuration for the entire test suite.

This file configures test database to use SQLite for faster tests.
"""
import os

# Read by config.settings when Django starts, so it must be set at import time
os.environ.setdefault('DATABASE_ENGINE', 'django.db.backends.sqlite3')
os.environ.setdefault('DATABASE_NAME', ':memory:')

from django.conf import settings  # noqa: E402


def pytest_configure():
    """Configure Django settings for tests."""
    # Celery tasks run inline when called with .delay() in tests
    settings.CELERY_TASK_ALWAYS_EAGER = True
