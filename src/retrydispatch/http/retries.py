"""Retry decision logic, backoff computation and ``Retry-After`` parsing.

Everything here is pure (given a fixed random source and a fixed clock) and
shared by the synchronous and asynchronous transports:

* :func:`compute_delay` -- jittered, capped exponential backoff.
* :func:`parse_retry_hint` -- read the server's ``Retry-After`` header.
* :func:`plan_next_step` -- turn the outcome of one attempt into the next
  step of the retry state machine.
"""

from __future__ import annotations

import enum
import math
import random
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Protocol

from .policy import RetryPolicy

RETRY_AFTER_HEADER = "Retry-After"

_DIGITS_RE = re.compile(r"[0-9]+")


class _RandomSource(Protocol):
    def random(self) -> float: ...


# ---------------------------------------------------------------------------
# Delay calculator
# ---------------------------------------------------------------------------

def compute_delay(
    attempt: int,
    hint_ms: int | None,
    policy: RetryPolicy,
    rng: _RandomSource | None = None,
) -> int:
    """Compute how long to wait after *attempt* before the next one.

    ``base_backoff_ms * 2**(attempt-1)`` is capped at ``backoff_cap_ms``.  A
    positive *hint_ms* raises the delay to at least the hint, still within
    the cap.  The result is then multiplied by a jitter drawn uniformly from
    ``[jitter_min, jitter_max)``.

    Parameters
    ----------
    attempt:
        1-based number of the attempt that just failed.  Values below 1 are
        treated as 1.
    hint_ms:
        Server-requested wait in milliseconds, or ``None``.
    policy:
        The policy snapshot to apply.
    rng:
        Random source; defaults to the :mod:`random` module.  Pass a seeded
        :class:`random.Random` for reproducible delays.

    Returns
    -------
    int
        Delay in milliseconds, always ``>= 1``.
    """
    exponent = max(0, attempt - 1)
    try:
        raw = float(policy.base_backoff_ms) * (2.0 ** exponent)
    except OverflowError:
        raw = math.inf
    capped = min(raw, float(policy.backoff_cap_ms))

    if hint_ms is not None and hint_ms > 0:
        capped = float(min(max(capped, hint_ms), policy.backoff_cap_ms))

    source = rng if rng is not None else random
    jitter = policy.jitter_min + (policy.jitter_max - policy.jitter_min) * source.random()

    return max(1, math.floor(capped * jitter))


# ---------------------------------------------------------------------------
# Retry-hint parser
# ---------------------------------------------------------------------------

def parse_retry_hint(response: Any, now: datetime | None = None) -> int | None:
    """Extract the ``Retry-After`` wait from *response*, in milliseconds.

    Accepts both forms allowed by RFC 9110: delta-seconds (``"120"``) and an
    HTTP-date (``"Wed, 21 Oct 2015 07:28:00 GMT"``).  A date in the past
    yields ``0``.

    Parameters
    ----------
    response:
        Any object with a ``headers.get(name)`` lookup (e.g.
        :class:`httpx.Response`).
    now:
        Reference instant for HTTP-dates; defaults to the current UTC time.

    Returns
    -------
    int or None
        The wait in milliseconds, or ``None`` when the header is missing or
        cannot be parsed.  Never raises.
    """
    raw = response.headers.get(RETRY_AFTER_HEADER)
    if raw is None:
        return None
    value = raw.strip()

    if _DIGITS_RE.fullmatch(value):
        return max(0, int(value) * 1000)

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError, OverflowError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)

    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    delta_ms = math.floor((when - now).total_seconds() * 1000)
    return max(0, delta_ms)


# ---------------------------------------------------------------------------
# Attempt state machine
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Attempt:
    """Outcome of one send: exactly one of *response* / *error* is set."""

    number: int
    response: Any | None = None
    error: BaseException | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


class StepKind(str, enum.Enum):
    """What the retry loop must do after an attempt."""

    TERMINAL_RESPONSE = "terminal_response"
    TERMINAL_FAILURE = "terminal_failure"
    RETRY = "retry"


@dataclass(frozen=True)
class Step:
    """The next step of the retry state machine.

    ``delay_ms`` is only meaningful for :attr:`StepKind.RETRY`; ``hint_ms``
    records the parsed ``Retry-After`` value (if any) for logging.
    """

    kind: StepKind
    delay_ms: int = 0
    hint_ms: int | None = None

    @property
    def is_terminal(self) -> bool:
        return self.kind is not StepKind.RETRY


_TERMINAL_RESPONSE = Step(StepKind.TERMINAL_RESPONSE)
_TERMINAL_FAILURE = Step(StepKind.TERMINAL_FAILURE)


def plan_next_step(
    attempt: Attempt,
    policy: RetryPolicy,
    *,
    now: datetime | None = None,
    rng: _RandomSource | None = None,
) -> Step:
    """Decide what follows *attempt* under *policy*.

    * failure with attempts left -> retry, delay computed without a hint;
    * failure on the last attempt -> terminal failure (caller re-raises);
    * retryable status with attempts left -> retry, honouring ``Retry-After``;
    * anything else -> terminal response.  On the last attempt a retryable
      response is still returned rather than discarded.
    """
    has_attempts_left = attempt.number < policy.max_attempts

    if attempt.failed:
        if has_attempts_left:
            return Step(StepKind.RETRY, compute_delay(attempt.number, None, policy, rng))
        return _TERMINAL_FAILURE

    if policy.is_retryable(attempt.response.status_code) and has_attempts_left:
        hint_ms = parse_retry_hint(attempt.response, now)
        return Step(
            StepKind.RETRY,
            compute_delay(attempt.number, hint_ms, policy, rng),
            hint_ms,
        )
    return _TERMINAL_RESPONSE
