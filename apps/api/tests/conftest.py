"""
Global test fixtures for pytest.

Provides reusable fixtures for API testing:
- Authenticated API clients by role
- Model instances (Patient, Medication, SurveillancePlan)
"""
from datetime import date

import pytest
from rest_framework.test import APIClient

from apps.authz.models import User, Role, UserRole, RoleChoices
from apps.clinical.models import Patient, Medication
from apps.surveillance import services


# Reference "today" shared by the surveillance tests
TODAY = date(2024, 3, 15)


def _user_with_role(email, role_name, **extra):
    user = User.objects.create_user(
        email=email,
        password='testpass123',
        is_active=True,
        **extra
    )
    role, _ = Role.objects.get_or_create(name=role_name)
    UserRole.objects.create(user=user, role=role)
    return user


# ============================================================================
# API Clients
# ============================================================================

@pytest.fixture
def api_client():
    """Unauthenticated DRF API client."""
    return APIClient()


@pytest.fixture
def admin_user(db):
    return _user_with_role('admin@test.com', RoleChoices.ADMIN, is_staff=True, is_superuser=True)


@pytest.fixture
def pharmacist_user(db):
    return _user_with_role('pharmacist@test.com', RoleChoices.PHARMACIST)


@pytest.fixture
def assistant_user(db):
    return _user_with_role('assistant@test.com', RoleChoices.ASSISTANT)


@pytest.fixture
def admin_client(admin_user):
    """
    Authenticated API client with Admin role.
    Admin has full access, including deletions.
    """
    client = APIClient()
    client.force_authenticate(user=admin_user)
    return client


@pytest.fixture
def pharmacist_client(pharmacist_user):
    """
    Authenticated API client with Pharmacist role.
    Pharmacist manages plans and records results (no delete).
    """
    client = APIClient()
    client.force_authenticate(user=pharmacist_user)
    return client


@pytest.fixture
def assistant_client(assistant_user):
    """
    Authenticated API client with Assistant role.
    Assistant has read-only access.
    """
    client = APIClient()
    client.force_authenticate(user=assistant_user)
    return client


@pytest.fixture
def no_role_client(db):
    """Authenticated API client without any role (should receive 403)."""
    user = User.objects.create_user(email='norole@test.com', password='testpass123')
    client = APIClient()
    client.force_authenticate(user=user)
    return client


# ============================================================================
# Model Fixtures
# ============================================================================

@pytest.fixture
def patient(db):
    return Patient.objects.create(
        first_name='Jeanne',
        last_name='Martin',
        birth_date=date(1958, 6, 2),
        sex='female',
    )


@pytest.fixture
def other_patient(db):
    return Patient.objects.create(first_name='Paul', last_name='Durand')


@pytest.fixture
def hepatic_medication(db):
    """Medication requiring hepatic monitoring every 3 months."""
    return Medication.objects.create(
        brand_name='Methotrexate Teva',
        inn='methotrexate',
        hepatic_monitoring=True,
    )


@pytest.fixture
def mixed_medication(db):
    """Medication requiring both hepatic and renal monitoring."""
    return Medication.objects.create(
        brand_name='Ciclosporine Sandoz',
        inn='ciclosporine',
        hepatic_monitoring=True,
        renal_monitoring=True,
        monitoring_frequency_months=1,
        monitoring_parameters=['Kaliémie', 'ALAT'],
    )


@pytest.fixture
def make_plan(patient):
    """Factory creating an active plan through the lifecycle service."""
    def _make_plan(today=TODAY, **overrides):
        data = {
            'patient': patient,
            'kind': 'hepatic',
            'parameters': ['ALAT', 'ASAT'],
            'frequency_months': 3,
            'start_date': today,
        }
        first_due_date = overrides.pop('first_due_date', None)
        data.update(overrides)
        return services.create_plan(data, first_due_date=first_due_date, today=today)
    return _make_plan
