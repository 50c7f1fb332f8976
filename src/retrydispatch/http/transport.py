"""Sync and async HTTP transports with transparent retries.

Both transports expose two ways of sending an already built
:class:`httpx.Request`:

* ``send`` -- one exchange, no retry;
* ``send_with_retry`` -- the retry loop:

  1. Send the request.
  2. Status **not** in the retryable set -- return the response.
  3. Retryable status with attempts left -- honour ``Retry-After`` (within
     the backoff cap), wait, try again.
  4. Transport failure with attempts left -- back off, try again.
  5. Last attempt -- return the response even if its status is retryable,
     or re-raise the transport failure unchanged.

The synchronous loop blocks the calling thread while it waits; the
asynchronous one suspends only its own coroutine.  Both read the live
:class:`PolicyHandle` before every decision, so a policy change made while
a call is in flight applies to that call's remaining attempts.
"""

from __future__ import annotations

import asyncio
import random
import threading
import time
from typing import TYPE_CHECKING, Any

import httpx

from retrydispatch.errors import RetryInterruptedError
from retrydispatch.observability import NoopMetricsHook, get_logger

from .policy import PolicyHandle, RetryPolicy
from .retries import Attempt, Step, StepKind, plan_next_step

if TYPE_CHECKING:
    from retrydispatch.config import DispatchConfig

log = get_logger("retrydispatch.transport")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _url_for_log(url: httpx.URL) -> str:
    """Drop the query string, which may carry credentials."""
    return str(url).split("?", 1)[0]


def _client_options(config: DispatchConfig) -> dict[str, Any]:
    """Keyword arguments shared by :class:`httpx.Client` and :class:`httpx.AsyncClient`."""
    return {
        "base_url": config.base_url,
        "headers": config.headers,
        "timeout": config.timeout,
        "follow_redirects": config.follow_redirects,
        "proxy": config.http_proxy,
    }


def _policy_field(name: str, doc: str) -> property:
    """Build a read/write property bound to one :class:`RetryPolicy` field."""

    def getter(self: _RetryingBase) -> Any:
        return getattr(self._policy_handle.get(), name)

    def setter(self: _RetryingBase, value: Any) -> None:
        self._policy_handle.update(**{name: value})

    return property(getter, setter, doc=doc)


# ---------------------------------------------------------------------------
# Shared retry bookkeeping (used by both sync and async transports)
# ---------------------------------------------------------------------------

class _RetryingBase:
    """Policy accessors, logging and metrics shared by both transports."""

    def __init__(
        self,
        config: DispatchConfig | None,
        policy: PolicyHandle | None,
        rng: random.Random | None,
    ) -> None:
        if config is None:
            from retrydispatch.config import DispatchConfig

            config = DispatchConfig()
        self._config = config
        self._retry_on = config.retry_on
        self._policy_handle = (
            policy if policy is not None else PolicyHandle(config.retry_policy)
        )
        self._rng = rng
        self._metrics = config.metrics if config.metrics is not None else NoopMetricsHook()

    # -- policy accessors --------------------------------------------------

    @property
    def policy(self) -> RetryPolicy:
        """Current retry policy snapshot."""
        return self._policy_handle.get()

    @policy.setter
    def policy(self, value: RetryPolicy) -> None:
        self._policy_handle.set(value)

    @property
    def policy_handle(self) -> PolicyHandle:
        """The handle itself, to share one live policy between transports."""
        return self._policy_handle

    def update_policy(self, **changes: Any) -> RetryPolicy:
        """Replace some policy fields; values are trusted as given."""
        return self._policy_handle.update(**changes)

    base_backoff_ms = _policy_field("base_backoff_ms", "Base backoff in milliseconds.")
    max_attempts = _policy_field("max_attempts", "Total attempts, first send included.")
    retryable_statuses = _policy_field("retryable_statuses", "Status codes that trigger a retry.")
    backoff_cap_ms = _policy_field("backoff_cap_ms", "Upper bound on the backoff in milliseconds.")
    jitter_min = _policy_field("jitter_min", "Lower bound of the jitter multiplier.")
    jitter_max = _policy_field("jitter_max", "Upper bound of the jitter multiplier.")

    # -- bookkeeping -------------------------------------------------------

    def _record_response(self, method: str, response: httpx.Response, t0: float) -> None:
        elapsed_ms = (time.monotonic() - t0) * 1000
        tags = {"method": method, "status": str(response.status_code)}
        self._metrics.increment("retrydispatch.requests_total", tags=tags)
        self._metrics.timing("retrydispatch.request_duration_ms", elapsed_ms, tags=tags)

    def _record_failure(self, method: str) -> None:
        self._metrics.increment(
            "retrydispatch.requests_total",
            tags={"method": method, "status": "error"},
        )

    def _next_step(self, attempt: Attempt, request: httpx.Request) -> Step:
        """Plan what follows *attempt*, logging and counting the decision."""
        policy = self._policy_handle.get()
        step = plan_next_step(attempt, policy, rng=self._rng)

        fields: dict[str, Any] = {
            "op": "send_with_retry",
            "method": request.method,
            "url": _url_for_log(request.url),
            "attempt": attempt.number,
            "max_attempts": policy.max_attempts,
        }
        if attempt.failed:
            fields["error"] = repr(attempt.error)
            reason = "transport_error"
        else:
            fields["status_code"] = attempt.response.status_code
            reason = "retryable_status"

        if step.kind is StepKind.RETRY:
            fields["delay_ms"] = step.delay_ms
            if attempt.failed:
                log.warning("Request transport error", extra={"extra_fields": fields})
            else:
                fields["retry_after_ms"] = step.hint_ms
                log.warning("Retryable response", extra={"extra_fields": fields})
            tags = {"method": request.method, "reason": reason}
            self._metrics.increment("retrydispatch.retries_total", tags=tags)
            self._metrics.timing("retrydispatch.retry_delay_ms", step.delay_ms, tags=tags)
        elif attempt.failed or policy.is_retryable(attempt.response.status_code):
            log.warning("Retry attempts exhausted", extra={"extra_fields": fields})
            self._metrics.increment(
                "retrydispatch.retries_exhausted_total",
                tags={"method": request.method, "reason": reason},
            )
        return step

    def _log_send(self, message: str, request: httpx.Request) -> None:
        log.debug(
            message,
            extra={"extra_fields": {"method": request.method, "url": _url_for_log(request.url)}},
        )


# ---------------------------------------------------------------------------
# Sync transport
# ---------------------------------------------------------------------------

class RetryingTransport(_RetryingBase):
    """Synchronous HTTP transport with retry on transient failures.

    Parameters
    ----------
    config:
        A :class:`DispatchConfig`.  Defaults to ``DispatchConfig()``, whose
        retry policy is loaded from the environment.
    policy:
        Optional :class:`PolicyHandle` to share one live policy with other
        transports.  Defaults to a private handle seeded from
        ``config.retry_policy``.
    rng:
        Random source for jitter; pass a seeded :class:`random.Random` for
        reproducible delays.
    transport:
        Optional :class:`httpx.BaseTransport` (e.g. :class:`httpx.MockTransport`).
    client:
        A fully configured :class:`httpx.Client` to use instead of building
        one from *config*.  It is closed by :meth:`close`.
    """

    def __init__(
        self,
        config: DispatchConfig | None = None,
        *,
        policy: PolicyHandle | None = None,
        rng: random.Random | None = None,
        transport: httpx.BaseTransport | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        super().__init__(config, policy, rng)
        if client is None:
            client = httpx.Client(transport=transport, **_client_options(self._config))
        self._client = client

    # -- public API --------------------------------------------------------

    def build_request(self, method: str, url: str, **kwargs: Any) -> httpx.Request:
        """Build a request with the configured base URL and default headers.

        ``kwargs`` are forwarded to :meth:`httpx.Client.build_request`
        (``params=``, ``headers=``, ``json=``, ``content=``, ...).
        """
        return self._client.build_request(method, url, **kwargs)

    def send(self, request: httpx.Request) -> httpx.Response:
        """Send *request* once.  Transport failures propagate as raised."""
        self._log_send("Sending request", request)
        return self._send_once(request)

    def send_with_retry(
        self,
        request: httpx.Request,
        *,
        cancel: threading.Event | None = None,
    ) -> httpx.Response:
        """Send *request*, retrying retryable statuses and transport failures.

        Parameters
        ----------
        request:
            The request to send.  It is re-sent as-is on every attempt, so
            its body must be replayable (bytes/str/JSON content).
        cancel:
            Optional event that interrupts the wait between attempts.

        Returns
        -------
        httpx.Response
            The first response whose status is not retryable, or the last
            response once attempts are exhausted.

        Raises
        ------
        httpx.RequestError
            (or any type listed in ``DispatchConfig.retry_on``) when the
            final attempt fails without a response.
        RetryInterruptedError
            When *cancel* is set before or during a wait.
        """
        self._log_send("Sending request with retries", request)
        number = 1
        while True:
            try:
                response = self._send_once(request)
            except self._retry_on as exc:
                attempt = Attempt(number, error=exc)
            else:
                attempt = Attempt(number, response=response)

            step = self._next_step(attempt, request)
            if step.kind is StepKind.TERMINAL_RESPONSE:
                return attempt.response
            if step.kind is StepKind.TERMINAL_FAILURE:
                raise attempt.error

            self._wait(step, attempt, request, cancel)
            number += 1

    def close(self) -> None:
        """Close the underlying HTTP client and release resources."""
        self._client.close()

    def __enter__(self) -> RetryingTransport:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # -- internals ---------------------------------------------------------

    def _send_once(self, request: httpx.Request) -> httpx.Response:
        t0 = time.monotonic()
        try:
            response = self._client.send(request)
        except Exception:
            self._record_failure(request.method)
            raise
        self._record_response(request.method, response, t0)
        return response

    def _wait(
        self,
        step: Step,
        attempt: Attempt,
        request: httpx.Request,
        cancel: threading.Event | None,
    ) -> None:
        seconds = step.delay_ms / 1000
        if cancel is None:
            time.sleep(seconds)
            return
        if cancel.is_set() or cancel.wait(seconds):
            log.info(
                "Retry wait interrupted",
                extra={"extra_fields": {
                    "method": request.method,
                    "url": _url_for_log(request.url),
                    "attempt": attempt.number,
                }},
            )
            raise RetryInterruptedError(
                message=(
                    f"Retry wait interrupted after attempt {attempt.number} "
                    f"for {request.method} {_url_for_log(request.url)}"
                ),
                context={
                    "attempt": attempt.number,
                    "delay_ms": step.delay_ms,
                    "method": request.method,
                    "url": _url_for_log(request.url),
                },
                cause=attempt.error,
            )


# ---------------------------------------------------------------------------
# Async transport
# ---------------------------------------------------------------------------

class AsyncRetryingTransport(_RetryingBase):
    """Asynchronous HTTP transport with retry on transient failures.

    Mirrors :class:`RetryingTransport` but uses :class:`httpx.AsyncClient`
    and waits with :func:`asyncio.sleep`, so no thread is held between
    attempts.  Parameters are the same, with *client* being an
    :class:`httpx.AsyncClient` and *transport* an
    :class:`httpx.AsyncBaseTransport`.
    """

    def __init__(
        self,
        config: DispatchConfig | None = None,
        *,
        policy: PolicyHandle | None = None,
        rng: random.Random | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(config, policy, rng)
        if client is None:
            client = httpx.AsyncClient(transport=transport, **_client_options(self._config))
        self._client = client

    # -- public API --------------------------------------------------------

    def build_request(self, method: str, url: str, **kwargs: Any) -> httpx.Request:
        """See :meth:`RetryingTransport.build_request`."""
        return self._client.build_request(method, url, **kwargs)

    async def send(self, request: httpx.Request) -> httpx.Response:
        """Send *request* once.  Transport failures propagate as raised."""
        self._log_send("Sending request", request)
        return await self._send_once(request)

    async def send_with_retry(self, request: httpx.Request) -> httpx.Response:
        """Send *request*, retrying retryable statuses and transport failures.

        Same outcomes as :meth:`RetryingTransport.send_with_retry`.  Attempts
        run one after another, never concurrently, and each wait only
        suspends this coroutine.

        Cancelling the task that awaits this coroutine cancels whichever
        stage is pending (the in-flight send or the backoff sleep); no
        further attempt is scheduled afterwards.
        """
        self._log_send("Sending request with retries", request)
        number = 1
        while True:
            try:
                response = await self._send_once(request)
            except self._retry_on as exc:
                attempt = Attempt(number, error=exc)
            else:
                attempt = Attempt(number, response=response)

            step = self._next_step(attempt, request)
            if step.kind is StepKind.TERMINAL_RESPONSE:
                return attempt.response
            if step.kind is StepKind.TERMINAL_FAILURE:
                raise attempt.error

            try:
                await asyncio.sleep(step.delay_ms / 1000)
            except asyncio.CancelledError:
                log.info(
                    "Retry chain cancelled",
                    extra={"extra_fields": {
                        "method": request.method,
                        "url": _url_for_log(request.url),
                        "attempt": attempt.number,
                    }},
                )
                raise
            number += 1

    async def close(self) -> None:
        """Close the underlying async HTTP client and release resources."""
        await self._client.aclose()

    async def __aenter__(self) -> AsyncRetryingTransport:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # -- internals ---------------------------------------------------------

    async def _send_once(self, request: httpx.Request) -> httpx.Response:
        t0 = time.monotonic()
        try:
            response = await self._client.send(request)
        except Exception:
            self._record_failure(request.method)
            raise
        self._record_response(request.method, response, t0)
        return response
