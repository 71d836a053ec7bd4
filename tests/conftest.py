"""
Pytest configuration and shared fixtures.
"""
import pytest
import pytest_asyncio

from epo_ops.core.config import reset_settings
from fakes import FakeOPS, make_client


@pytest.fixture(scope="function")
def clean_env(monkeypatch):
    """
    Clean environment for testing.

    Removes all EPO_OPS_* env vars to ensure clean state.
    """
    env_vars = [
        "EPO_OPS_CONSUMER_KEY",
        "EPO_OPS_CONSUMER_SECRET",
        "EPO_OPS_BASE_URL",
        "EPO_OPS_AUTH_URL",
        "EPO_OPS_DEVELOPERS_URL",
        "EPO_OPS_MAX_RETRIES",
        "EPO_OPS_RETRY_DELAY",
        "EPO_OPS_BACKOFF_FACTOR",
        "EPO_OPS_TIMEOUT",
        "EPO_OPS_LOG_LEVEL",
    ]
    for var in env_vars:
        monkeypatch.delenv(var, raising=False)

    # Reset settings singleton
    reset_settings()

    yield

    # Reset again after test
    reset_settings()


@pytest.fixture(scope="function")
def fake_ops():
    """Fresh fake OPS upstream per test."""
    return FakeOPS()


@pytest_asyncio.fixture
async def ops_client(fake_ops):
    """OPSClient talking to fake_ops; closed after the test."""
    client = make_client(fake_ops)
    yield client
    await client.close()
