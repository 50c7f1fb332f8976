"""retrydispatch.http -- retrying HTTP transports.

This sub-package provides:

* :mod:`.policy` -- Immutable retry policy and its live handle.
* :mod:`.retries` -- Backoff, ``Retry-After`` parsing and the retry state machine.
* :mod:`.transport` -- Sync and async transports with ``send_with_retry``.
* :mod:`.rest` -- Method-aware REST helpers on top of the transports.
"""

from __future__ import annotations

from .policy import DEFAULT_RETRYABLE_STATUSES, PolicyHandle, RetryPolicy
from .rest import AsyncRestClient, HttpMethod, RestClient
from .retries import (
    Attempt,
    Step,
    StepKind,
    compute_delay,
    parse_retry_hint,
    plan_next_step,
)
from .transport import AsyncRetryingTransport, RetryingTransport

__all__ = [
    "DEFAULT_RETRYABLE_STATUSES",
    "AsyncRestClient",
    "AsyncRetryingTransport",
    "Attempt",
    "HttpMethod",
    "PolicyHandle",
    "RestClient",
    "RetryPolicy",
    "RetryingTransport",
    "Step",
    "StepKind",
    "compute_delay",
    "parse_retry_hint",
    "plan_next_step",
]
