"""
Pytest configuration and shared fixtures.

This module provides fixtures and configuration used across all tests.
"""

import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from schoolnlq.connectors.base import QueryResult
from schoolnlq.models.query import TenantContext

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests (requires API keys and a live database)",
    )


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (may require external services)"
    )
    config.addinivalue_line("markers", "slow: mark test as slow (takes more than 1 second)")
    config.addinivalue_line("markers", "unit: mark test as unit test (default)")


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless explicitly enabled."""
    if config.getoption("--run-integration"):
        return
    skip_integration = pytest.mark.skip(
        reason="Integration tests disabled (use --run-integration to enable)."
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(autouse=True)
def configure_test_logging(caplog):
    """Capture engine logs at DEBUG for every test."""
    caplog.set_level(logging.DEBUG)
    yield


# ============================================================================
# Environment and Configuration
# ============================================================================


@pytest.fixture(autouse=True)
def mock_openai_api_key(monkeypatch):
    """
    Mock OpenAI API key for tests that require it.

    This prevents tests from attempting real API calls and keeps a developer's
    .env out of the test run. Runs automatically for all tests.
    """
    from schoolnlq.config import clear_settings_cache

    clear_settings_cache()
    monkeypatch.setenv("SCHOOLNLQ_ENV_SOURCE", "environment")
    monkeypatch.delenv("DATABASE_URL", raising=False)

    test_key = "sk-test-key-1234567890-abcdefghijklmnop"  # 20+ chars
    monkeypatch.setenv("LLM_OPENAI_API_KEY", test_key)
    yield test_key

    clear_settings_cache()


# ============================================================================
# Common Test Data
# ============================================================================

TENANT_ID = "3a1f2d3e-4b5c-6d7e-8f90-1234567890ab"


@pytest.fixture
def tenant() -> TenantContext:
    """Tenant context with a UUID school id."""
    return TenantContext(tenant_id=TENANT_ID)


@pytest.fixture
def student_rows() -> list[dict]:
    """Three students, two in Science and one in Arts."""
    return [
        {"id": "s1", "first_name": "Asha", "stream": "Science", "marks_obtained": 72},
        {"id": "s2", "first_name": "Ravi", "stream": "Science", "marks_obtained": 48},
        {"id": "s3", "first_name": "Meera", "stream": "Arts", "marks_obtained": 60},
    ]


# ============================================================================
# Mock Collaborators
# ============================================================================


@pytest.fixture
def mock_connector():
    """
    Mock store connector.

    Usage:
        def test_query(mock_connector):
            mock_connector.execute.return_value = QueryResult(...)
    """
    connector = MagicMock()
    connector.connect = AsyncMock()
    connector.close = AsyncMock()
    connector.execute = AsyncMock(
        return_value=QueryResult(rows=[], row_count=0, columns=[], execution_time_ms=1.0)
    )
    connector.is_connected = True
    return connector

