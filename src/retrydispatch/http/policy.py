"""Retry policy value and its live, swappable handle.

:class:`RetryPolicy` is an immutable snapshot of every retry knob.  A
transport never mutates it in place; runtime changes go through a
:class:`PolicyHandle`, which swaps the whole snapshot in one reference
assignment.  Every attempt decision reads exactly one snapshot, so an
update racing with in-flight calls can never be observed half-applied,
while still taking effect on the *next* attempt of those calls.
"""

from __future__ import annotations

import dataclasses
import math
import threading
from dataclasses import dataclass, field
from typing import Any

from retrydispatch.env import EnvSource

DEFAULT_RETRYABLE_STATUSES: frozenset[int] = frozenset({429, 500, 502, 503, 504})
DEFAULT_BASE_BACKOFF_MS = 200
DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BACKOFF_CAP_MS = 5_000
DEFAULT_JITTER_MIN = 0.5
DEFAULT_JITTER_MAX = 1.5

# Fallbacks used by normalized() when a loaded value breaks an invariant.
_MIN_BASE_BACKOFF_MS = 100
_MIN_BACKOFF_CAP_MS = 1_000

ENV_BASE_BACKOFF_MS = "BASE_BACKOFF_MS"
ENV_MAX_ATTEMPTS = "MAX_ATTEMPTS"
ENV_RETRY_STATUS_SET = "RETRY_STATUS_SET"
ENV_BACKOFF_CAP_MS = "BACKOFF_CAP_MS"
ENV_JITTER_MIN = "JITTER_MIN"
ENV_JITTER_MAX = "JITTER_MAX"


@dataclass(frozen=True)
class RetryPolicy:
    """Immutable retry configuration.

    Parameters
    ----------
    base_backoff_ms:
        Base of the exponential backoff, in milliseconds.  The n-th retry
        waits roughly ``base_backoff_ms * 2**(n-1)``.
    max_attempts:
        Total number of attempts, the first send included.
    retryable_statuses:
        Response status codes that trigger another attempt.
    backoff_cap_ms:
        Upper bound on the backoff (before jitter), also applied to
        server-supplied ``Retry-After`` hints.
    jitter_min, jitter_max:
        Bounds of the random multiplier applied to every delay.
    """

    base_backoff_ms: int = DEFAULT_BASE_BACKOFF_MS
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    retryable_statuses: frozenset[int] = field(
        default_factory=lambda: DEFAULT_RETRYABLE_STATUSES,
    )
    backoff_cap_ms: int = DEFAULT_BACKOFF_CAP_MS
    jitter_min: float = DEFAULT_JITTER_MIN
    jitter_max: float = DEFAULT_JITTER_MAX

    def __post_init__(self) -> None:
        # Accept any iterable of ints but always store a frozenset.
        if not isinstance(self.retryable_statuses, frozenset):
            object.__setattr__(
                self, "retryable_statuses", frozenset(self.retryable_statuses),
            )

    def is_retryable(self, status_code: int) -> bool:
        """Whether a response with *status_code* should be retried."""
        return status_code in self.retryable_statuses

    def normalized(self) -> RetryPolicy:
        """Return a copy with every invariant restored.

        Out-of-range values are replaced with safe defaults instead of being
        rejected:

        * empty status set -> :data:`DEFAULT_RETRYABLE_STATUSES`;
        * non-finite jitter, ``jitter_min <= 0`` or ``jitter_max < jitter_min``
          -> ``(0.5, 1.5)``;
        * ``base_backoff_ms < 1`` -> ``100``;
        * ``backoff_cap_ms < base_backoff_ms`` -> ``max(1000, base_backoff_ms)``;
        * ``max_attempts < 1`` -> ``1``.
        """
        statuses = self.retryable_statuses or DEFAULT_RETRYABLE_STATUSES

        jitter_min, jitter_max = self.jitter_min, self.jitter_max
        if (
            not (math.isfinite(jitter_min) and math.isfinite(jitter_max))
            or jitter_min <= 0
            or jitter_max < jitter_min
        ):
            jitter_min, jitter_max = DEFAULT_JITTER_MIN, DEFAULT_JITTER_MAX

        base = self.base_backoff_ms if self.base_backoff_ms >= 1 else _MIN_BASE_BACKOFF_MS
        cap = self.backoff_cap_ms
        if cap < base:
            cap = max(_MIN_BACKOFF_CAP_MS, base)

        return RetryPolicy(
            base_backoff_ms=base,
            max_attempts=max(1, self.max_attempts),
            retryable_statuses=statuses,
            backoff_cap_ms=cap,
            jitter_min=jitter_min,
            jitter_max=jitter_max,
        )

    @classmethod
    def from_env(cls, source: EnvSource | None = None) -> RetryPolicy:
        """Load a policy from *source* (default: environment + ``.env``).

        Recognised keys: ``BASE_BACKOFF_MS``, ``MAX_ATTEMPTS``,
        ``RETRY_STATUS_SET``, ``BACKOFF_CAP_MS``, ``JITTER_MIN``,
        ``JITTER_MAX``.  Missing or malformed values fall back to the
        module defaults, and the result is always :meth:`normalized`.
        """
        if source is None:
            source = EnvSource()
        loaded = cls(
            base_backoff_ms=source.get_int(ENV_BASE_BACKOFF_MS, DEFAULT_BASE_BACKOFF_MS),
            max_attempts=source.get_int(ENV_MAX_ATTEMPTS, DEFAULT_MAX_ATTEMPTS),
            retryable_statuses=source.get_int_set(
                ENV_RETRY_STATUS_SET, DEFAULT_RETRYABLE_STATUSES,
            ),
            backoff_cap_ms=source.get_int(ENV_BACKOFF_CAP_MS, DEFAULT_BACKOFF_CAP_MS),
            jitter_min=source.get_float(ENV_JITTER_MIN, DEFAULT_JITTER_MIN),
            jitter_max=source.get_float(ENV_JITTER_MAX, DEFAULT_JITTER_MAX),
        )
        return loaded.normalized()


class PolicyHandle:
    """Holder of the current :class:`RetryPolicy` snapshot.

    Reads are lock-free.  :meth:`update` serialises read-modify-write
    cycles so two concurrent partial updates never drop each other's
    fields.  Values set here are trusted as-is (no normalisation).
    """

    __slots__ = ("_lock", "_policy")

    def __init__(self, policy: RetryPolicy) -> None:
        self._policy = policy
        self._lock = threading.Lock()

    def get(self) -> RetryPolicy:
        return self._policy

    def set(self, policy: RetryPolicy) -> None:
        with self._lock:
            self._policy = policy

    def update(self, **changes: Any) -> RetryPolicy:
        """Replace some fields and return the new snapshot.

        Raises
        ------
        TypeError
            If a keyword does not name a :class:`RetryPolicy` field.
        """
        with self._lock:
            self._policy = dataclasses.replace(self._policy, **changes)
            return self._policy

    def __repr__(self) -> str:
        return f"PolicyHandle({self._policy!r})"
