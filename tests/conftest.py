"""Shared pytest fixtures."""

from unittest.mock import MagicMock, patch

import pytest
from msgraph.generated.models.o_data_errors.o_data_error import ODataError

from groupadmin.core.config import ExchangeCredentials


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Set mock environment variables for testing."""
    monkeypatch.setenv("MS_GRAPH_TENANT_ID", "test-tenant-id")
    monkeypatch.setenv("MS_GRAPH_CLIENT_ID", "test-client-id")
    monkeypatch.setenv("MS_GRAPH_CLIENT_SECRET", "test-client-secret")


@pytest.fixture
def mock_graph_client():
    """Mock MS Graph client for testing."""
    client = MagicMock()
    return client


@pytest.fixture
def members_csv(tmp_path):
    """Write a member CSV file and return its path."""

    def _write(content: str, name: str = "members.csv"):
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def graph_error():
    """Build a Graph ODataError with the given HTTP status."""

    def _error(status: int) -> ODataError:
        error = ODataError()
        error.response_status_code = status
        return error

    return _error


@pytest.fixture
def exchange_credentials():
    """Certificate credentials for a real ExchangeOnlineClient; PowerShell is never run."""
    credentials = ExchangeCredentials(
        tenant_id="test-tenant-id",
        client_id="test-client-id",
        organization="contoso.com",
        certificate_thumbprint="ABC123",
    )
    with patch("groupadmin.exchange.client.get_exchange_credentials", return_value=credentials):
        yield credentials
