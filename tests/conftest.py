"""Shared test fixtures for the retrydispatch test suite."""

from __future__ import annotations

import pytest

from retrydispatch.config import DispatchConfig
from retrydispatch.http.policy import RetryPolicy


@pytest.fixture
def fast_policy() -> RetryPolicy:
    """Three attempts, 1 ms waits, jitter fixed at exactly 1.0."""
    return RetryPolicy(
        base_backoff_ms=1,
        max_attempts=3,
        backoff_cap_ms=1,
        jitter_min=1.0,
        jitter_max=1.0,
    )


@pytest.fixture
def config(fast_policy: RetryPolicy) -> DispatchConfig:
    """Default test configuration using :func:`fast_policy`."""
    return DispatchConfig(retry_policy=fast_policy)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Keep the developer's environment and .env file out of every test."""
    for key in (
        "BASE_BACKOFF_MS",
        "MAX_ATTEMPTS",
        "RETRY_STATUS_SET",
        "BACKOFF_CAP_MS",
        "JITTER_MIN",
        "JITTER_MAX",
        "DISPATCH_BASE_URL",
        "DISPATCH_TIMEOUT_SECONDS",
        "DISPATCH_CONNECT_TIMEOUT_SECONDS",
        "DISPATCH_HTTP_PROXY",
        "DISPATCH_FOLLOW_REDIRECTS",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
