"""Metrics hook protocol and no-op default implementation.

The transports report every attempt, retry and exhaustion through a
:class:`MetricsHook`.  The default :class:`NoopMetricsHook` drops everything;
pass your own object (Datadog, Prometheus, StatsD adapter, ...) as
``DispatchConfig.metrics`` to collect them.

Emitted metric names:

* ``retrydispatch.requests_total``          -- counter, tag ``status``
* ``retrydispatch.request_duration_ms``     -- timing
* ``retrydispatch.retries_total``           -- counter, tag ``reason``
* ``retrydispatch.retry_delay_ms``          -- timing
* ``retrydispatch.retries_exhausted_total`` -- counter
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class MetricsHook(Protocol):
    """Protocol that any metrics backend must satisfy.

    *tags* is an optional ``str -> str`` mapping that implementations may
    translate into labels, tags or name suffixes.
    """

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Increment the counter *name* by *value*."""
        ...

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Record a duration of *ms* milliseconds under *name*."""
        ...


class NoopMetricsHook:
    """Metrics backend that discards every data point."""

    __slots__ = ()

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass
