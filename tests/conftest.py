"""
Pytest configuration for identity-service and client library tests
"""

import uuid
from contextlib import ExitStack
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from identity_service.utils.database import IdentityDatabase

# Configure pytest-asyncio mode for version 1.x
pytest_plugins = ('pytest_asyncio',)


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "asyncio: mark test as an asyncio test."
    )


# Modules holding their own reference to IdentityDatabase
DATABASE_CONSUMERS = (
    "identity_service.utils.database",
    "identity_service.utils.dependencies",
    "identity_service.services.client_registry_service",
    "identity_service.services.authorization_service",
    "identity_service.services.resolution_service",
    "identity_service.services.assignment_service",
    "identity_service.services.connected_apps_service",
    "identity_service.services.auth_service",
)


@pytest.fixture
def mock_db():
    """IdentityDatabase replaced everywhere by an autospec-style mock with async methods"""
    db = MagicMock(spec=IdentityDatabase)
    with ExitStack() as stack:
        for module in DATABASE_CONSUMERS:
            stack.enter_context(patch(f"{module}.IdentityDatabase", db))
        yield db


@pytest.fixture
def mock_db_pool():
    """Mock asyncpg pool"""
    pool = AsyncMock()
    conn = AsyncMock()
    pool.acquire.return_value.__aenter__.return_value = conn
    pool.acquire.return_value.__aexit__.return_value = None
    return pool


@pytest.fixture
def user_id():
    return str(uuid.uuid4())


@pytest.fixture
def sample_profile(user_id):
    return {
        'id': uuid.UUID(user_id),
        'email': 'ada@example.com',
        'password_hash': '$2b$12$hash',
        'email_verified': True,
        'is_active': True,
        'created_at': datetime(2025, 1, 1, tzinfo=timezone.utc),
        'updated_at': datetime(2025, 1, 2, tzinfo=timezone.utc),
    }


@pytest.fixture
def sample_client():
    return {
        'client_id': 'tnp_0123456789abcdef',
        'display_name': 'Demo Hr',
        'app_name': 'demo-hr',
        'publisher_domain': 'localhost',
        'created_at': datetime(2025, 1, 1, tzinfo=timezone.utc),
        'last_used_at': datetime(2025, 1, 3, tzinfo=timezone.utc),
    }


@pytest.fixture
def sample_context(user_id):
    return {
        'id': uuid.uuid4(),
        'user_id': uuid.UUID(user_id),
        'context_name': 'Work',
        'description': 'Professional identity',
        'is_permanent': False,
    }


@pytest.fixture
def permanent_context(user_id):
    return {
        'id': uuid.uuid4(),
        'user_id': uuid.UUID(user_id),
        'context_name': 'Public',
        'description': 'Default identity shared with every application',
        'is_permanent': True,
    }


@pytest.fixture
def sample_session(user_id, sample_client):
    return {
        'id': uuid.uuid4(),
        'profile_id': uuid.UUID(user_id),
        'client_id': sample_client['client_id'],
        'session_token': 'tnp_' + 'a' * 32,
        'return_url': 'https://hr.example.com/callback',
        'state': 'state-1',
        'expires_at': datetime.now(timezone.utc) + timedelta(hours=2),
        'used_at': None,
        'created_at': datetime.now(timezone.utc),
    }
