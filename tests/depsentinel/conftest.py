"""Shared fixtures for depsentinel tests.

Everything runs offline: HTTP goes through ``httpx.MockTransport`` and
package-manager calls are patched.
"""

from __future__ import annotations

import pytest

from depsentinel.engines.advisory.credentials import CredentialCache, default_credentials
from depsentinel.engines.advisory.retry import RetryPolicy


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _reset_default_credentials():
    default_credentials.reset()
    yield
    default_credentials.reset()


@pytest.fixture
def fast_policy():
    """Three attempts, no real waiting (sleep is patched where it matters)."""
    return RetryPolicy(attempts=3, min_delay=0.0, max_delay=0.0, timeout=5.0)


@pytest.fixture
def token_credentials():
    return CredentialCache(env={"GITHUB_TOKEN": "test-token"}, helper_cmd=("false",))

