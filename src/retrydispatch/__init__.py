"""retrydispatch -- retrying request dispatch for remote JSON APIs.

Public re-exports
-----------------

* **Transports:** :class:`RetryingTransport`, :class:`AsyncRetryingTransport`
* **REST helpers:** :class:`RestClient`, :class:`AsyncRestClient`, :class:`HttpMethod`
* **Configuration:** :class:`DispatchConfig`, :class:`RetryPolicy`,
  :class:`PolicyHandle`, :class:`EnvSource`
* **Errors:** :class:`DispatchError` and its subclasses, :class:`ErrorCode`

Usage::

    from retrydispatch import DispatchConfig, RetryingTransport, RetryPolicy

    config = DispatchConfig(
        base_url="https://paper-api.alpaca.markets/v2",
        retry_policy=RetryPolicy(max_attempts=3),
    )
    with RetryingTransport(config) as transport:
        request = transport.build_request("GET", "/clock")
        response = transport.send_with_retry(request)
"""

from __future__ import annotations

# ── Configuration ───────────────────────────────────────────────────────
from retrydispatch.config import DispatchConfig
from retrydispatch.env import EnvSource

# ── Errors ──────────────────────────────────────────────────────────────
from retrydispatch.errors import (
    DispatchConfigError,
    DispatchError,
    ErrorCode,
    RetryInterruptedError,
)

# ── Transports & policy ─────────────────────────────────────────────────
from retrydispatch.http import (
    AsyncRestClient,
    AsyncRetryingTransport,
    HttpMethod,
    PolicyHandle,
    RestClient,
    RetryingTransport,
    RetryPolicy,
    compute_delay,
    parse_retry_hint,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Transports
    "RetryingTransport",
    "AsyncRetryingTransport",
    # REST helpers
    "RestClient",
    "AsyncRestClient",
    "HttpMethod",
    # Configuration
    "DispatchConfig",
    "EnvSource",
    "RetryPolicy",
    "PolicyHandle",
    # Retry primitives
    "compute_delay",
    "parse_retry_hint",
    # Errors
    "DispatchError",
    "DispatchConfigError",
    "RetryInterruptedError",
    "ErrorCode",
]
