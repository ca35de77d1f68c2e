"""
Pytest configuration for Django app tests.
"""

from django.contrib.auth import get_user_model

import pytest

from apps.web.erp.client import ERPClient, RetryPolicy
from apps.web.erp.conf import load_config
from apps.web.erp.mock import MockERP


@pytest.fixture
def mock_erp(monkeypatch: pytest.MonkeyPatch) -> MockERP:
    """Empty in-memory ERP, also used by views through the client factory."""
    backend = MockERP()
    monkeypatch.setattr("apps.web.erp.conf.get_mock_backend", lambda: backend)
    return backend


@pytest.fixture
def erp(mock_erp: MockERP, settings) -> ERPClient:
    """ERP client wired to `mock_erp`, retrying without delay."""
    settings.ERP_MODE = "mock"
    return ERPClient(
        load_config(),
        retry=RetryPolicy(max_attempts=3, base_delay=0),
        transport=mock_erp.transport(),
    )


@pytest.fixture
def staff_user(db):
    """A staff user for the staff-only endpoints."""
    User = get_user_model()
    return User.objects.create_user(
        username="staff",
        email="staff@example.com",
        password="testpass123",
        is_staff=True,
    )
