"""Transport configuration for retrydispatch.

:class:`DispatchConfig` captures every knob of the HTTP layer: connection
settings for the underlying :mod:`httpx` clients, which exceptions count as
retryable transport failures, the initial :class:`RetryPolicy`, and the
metrics backend.  One instance can be shared by a
:class:`RetryingTransport` and an :class:`AsyncRetryingTransport`.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any

import httpx

from retrydispatch.env import EnvSource
from retrydispatch.errors import DispatchConfigError
from retrydispatch.http.policy import RetryPolicy
from retrydispatch.utils.redact import redact_headers

DEFAULT_TIMEOUT_SECONDS = 5.0
DEFAULT_CONNECT_TIMEOUT_SECONDS = 10.0

ENV_BASE_URL = "DISPATCH_BASE_URL"
ENV_TIMEOUT_SECONDS = "DISPATCH_TIMEOUT_SECONDS"
ENV_CONNECT_TIMEOUT_SECONDS = "DISPATCH_CONNECT_TIMEOUT_SECONDS"
ENV_HTTP_PROXY = "DISPATCH_HTTP_PROXY"
ENV_FOLLOW_REDIRECTS = "DISPATCH_FOLLOW_REDIRECTS"


@dataclass
class DispatchConfig:
    """Complete configuration for the retrying transports.

    Parameters
    ----------
    base_url:
        Prefix for relative request URLs.  Empty means requests must use
        absolute URLs.
    timeout_seconds:
        Per-request read/write/pool timeout.  There is no overall deadline
        across a retry sequence; wrap the call yourself if you need one.
    connect_timeout_seconds:
        Timeout for establishing a new connection.
    follow_redirects:
        Follow ``3xx`` redirects.
    http_proxy:
        Optional HTTP/HTTPS proxy URL.
    headers:
        Headers sent with every request (credentials included).  Masked in
        ``repr`` and logs.
    retry_on:
        Exception types treated as transient failures.  The default,
        :class:`httpx.RequestError`, covers every failure that leaves no
        response (connect and read errors, timeouts, protocol and decoding
        errors, too many redirects).  Anything else propagates immediately,
        without a retry.
    retry_policy:
        Initial retry policy.  ``None`` loads it with
        :meth:`RetryPolicy.from_env`.
    metrics:
        Optional :class:`~retrydispatch.observability.MetricsHook`.
    """

    base_url: str = ""

    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    connect_timeout_seconds: float = DEFAULT_CONNECT_TIMEOUT_SECONDS

    follow_redirects: bool = True

    http_proxy: str | None = None

    headers: dict[str, str] = field(default_factory=dict)

    retry_on: tuple[type[BaseException], ...] = (httpx.RequestError,)

    retry_policy: RetryPolicy | None = None

    metrics: Any | None = None

    def __post_init__(self) -> None:
        """Validate configuration and resolve the retry policy."""
        if self.timeout_seconds <= 0:
            raise DispatchConfigError(
                message=f"timeout_seconds must be > 0, got {self.timeout_seconds}",
                context={"key": "timeout_seconds", "value": self.timeout_seconds},
            )
        if self.connect_timeout_seconds <= 0:
            raise DispatchConfigError(
                message=(
                    "connect_timeout_seconds must be > 0, "
                    f"got {self.connect_timeout_seconds}"
                ),
                context={"key": "connect_timeout_seconds", "value": self.connect_timeout_seconds},
            )
        if not self.retry_on:
            raise DispatchConfigError(
                message="retry_on must name at least one exception type",
                context={"key": "retry_on"},
            )
        if self.retry_policy is None:
            self.retry_policy = RetryPolicy.from_env()

    @property
    def timeout(self) -> httpx.Timeout:
        return httpx.Timeout(self.timeout_seconds, connect=self.connect_timeout_seconds)

    @classmethod
    def from_env(cls, source: EnvSource | None = None, **overrides: Any) -> DispatchConfig:
        """Build a config from *source*, letting keyword *overrides* win.

        Reads ``DISPATCH_BASE_URL``, ``DISPATCH_TIMEOUT_SECONDS``,
        ``DISPATCH_CONNECT_TIMEOUT_SECONDS``, ``DISPATCH_FOLLOW_REDIRECTS``,
        ``DISPATCH_HTTP_PROXY`` and the retry-policy keys documented on
        :meth:`RetryPolicy.from_env`.
        """
        if source is None:
            source = EnvSource()
        values: dict[str, Any] = {
            "base_url": source.get_str(ENV_BASE_URL, ""),
            "timeout_seconds": source.get_float(ENV_TIMEOUT_SECONDS, DEFAULT_TIMEOUT_SECONDS),
            "connect_timeout_seconds": source.get_float(
                ENV_CONNECT_TIMEOUT_SECONDS, DEFAULT_CONNECT_TIMEOUT_SECONDS,
            ),
            "follow_redirects": source.get_bool(ENV_FOLLOW_REDIRECTS, True),
            "http_proxy": source.get_str(ENV_HTTP_PROXY),
            "retry_policy": RetryPolicy.from_env(source),
        }
        values.update(overrides)
        return cls(**values)

    def __repr__(self) -> str:
        """Mask credential headers to prevent accidental leakage."""
        parts: list[str] = []
        for f in dataclasses.fields(self):
            val = getattr(self, f.name)
            if f.name == "headers":
                val = redact_headers(val)
            parts.append(f"{f.name}={val!r}")
        return f"DispatchConfig({', '.join(parts)})"
