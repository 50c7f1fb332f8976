"""Unit tests for retries.py: compute_delay, parse_retry_hint, plan_next_step."""

from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime

import httpx
import pytest

from retrydispatch.http.policy import RetryPolicy
from retrydispatch.http.retries import (
    Attempt,
    Step,
    StepKind,
    compute_delay,
    parse_retry_hint,
    plan_next_step,
)


class _FixedRandom:
    """Random source that always returns the same value."""

    def __init__(self, value: float) -> None:
        self._value = value

    def random(self) -> float:
        return self._value


def _policy(**overrides) -> RetryPolicy:
    values = dict(
        base_backoff_ms=100,
        max_attempts=3,
        backoff_cap_ms=5_000,
        jitter_min=1.0,
        jitter_max=1.0,
    )
    values.update(overrides)
    return RetryPolicy(**values)


def _response(status_code: int = 200, headers: dict | None = None) -> httpx.Response:
    return httpx.Response(status_code, headers=headers or {})


NOW = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# compute_delay
# ---------------------------------------------------------------------------


class TestComputeDelay:
    def test_first_attempt_uses_base(self):
        assert compute_delay(1, None, _policy()) == 100

    def test_doubles_per_attempt(self):
        assert compute_delay(2, None, _policy()) == 200
        assert compute_delay(3, None, _policy()) == 400
        assert compute_delay(4, None, _policy()) == 800

    def test_capped(self):
        assert compute_delay(20, None, _policy()) == 5_000

    def test_huge_attempt_does_not_overflow(self):
        assert compute_delay(100_000, None, _policy()) == 5_000

    @pytest.mark.parametrize("attempt", [0, -1, -50])
    def test_non_positive_attempt_treated_as_first(self, attempt):
        assert compute_delay(attempt, None, _policy()) == 100

    def test_hint_raises_delay(self):
        assert compute_delay(1, 3_000, _policy()) == 3_000

    def test_hint_never_exceeds_cap(self):
        assert compute_delay(1, 60_000, _policy()) == 5_000

    def test_smaller_hint_does_not_lower_backoff(self):
        assert compute_delay(4, 10, _policy()) == 800

    def test_zero_hint_is_ignored(self):
        assert compute_delay(1, 0, _policy()) == 100

    def test_jitter_lower_bound(self):
        policy = _policy(jitter_min=0.5, jitter_max=1.5)
        assert compute_delay(1, None, policy, rng=_FixedRandom(0.0)) == 50

    def test_jitter_midpoint(self):
        policy = _policy(jitter_min=0.5, jitter_max=1.5)
        assert compute_delay(1, None, policy, rng=_FixedRandom(0.5)) == 100

    def test_jitter_upper_bound_is_exclusive(self):
        policy = _policy(jitter_min=0.5, jitter_max=1.5)
        assert compute_delay(1, None, policy, rng=_FixedRandom(0.999999)) < 150

    def test_result_is_at_least_one(self):
        policy = _policy(base_backoff_ms=1, backoff_cap_ms=1, jitter_min=0.1, jitter_max=0.1)
        assert compute_delay(1, None, policy) == 1

    def test_returns_int(self):
        policy = _policy(jitter_min=0.5, jitter_max=1.5)
        assert isinstance(compute_delay(2, None, policy), int)

    def test_seeded_rng_is_deterministic(self):
        policy = _policy(jitter_min=0.5, jitter_max=1.5)
        first = compute_delay(3, 250, policy, rng=random.Random(42))
        second = compute_delay(3, 250, policy, rng=random.Random(42))
        assert first == second


# ---------------------------------------------------------------------------
# parse_retry_hint
# ---------------------------------------------------------------------------


class TestParseRetryHint:
    def test_seconds(self):
        assert parse_retry_hint(_response(headers={"Retry-After": "120"})) == 120_000

    def test_seconds_with_whitespace(self):
        assert parse_retry_hint(_response(headers={"Retry-After": " 7 "})) == 7_000

    def test_zero_seconds(self):
        assert parse_retry_hint(_response(headers={"Retry-After": "0"})) == 0

    def test_header_lookup_is_case_insensitive(self):
        assert parse_retry_hint(_response(headers={"retry-after": "3"})) == 3_000

    def test_missing_header(self):
        assert parse_retry_hint(_response()) is None

    @pytest.mark.parametrize("value", [
        "not-a-number",
        "",
        "-1",
        "2.5",
        "Someday, soon",
        "Mon, 01 Jan 99999999999999999999 00:00:00 GMT",
    ])
    def test_malformed_values(self, value):
        assert parse_retry_hint(_response(headers={"Retry-After": value})) is None

    def test_http_date_in_the_future(self):
        header = format_datetime(NOW + timedelta(seconds=10), usegmt=True)
        resp = _response(headers={"Retry-After": header})
        assert parse_retry_hint(resp, NOW) == 10_000

    def test_http_date_in_the_past_clamps_to_zero(self):
        header = format_datetime(NOW - timedelta(minutes=5), usegmt=True)
        resp = _response(headers={"Retry-After": header})
        assert parse_retry_hint(resp, NOW) == 0

    def test_naive_now_is_treated_as_utc(self):
        header = format_datetime(NOW + timedelta(seconds=30), usegmt=True)
        resp = _response(headers={"Retry-After": header})
        assert parse_retry_hint(resp, NOW.replace(tzinfo=None)) == 30_000

    def test_http_date_against_wall_clock(self):
        target = (datetime.now(timezone.utc) + timedelta(seconds=10)).replace(microsecond=0)
        resp = _response(headers={"Retry-After": format_datetime(target, usegmt=True)})
        hint = parse_retry_hint(resp)
        assert hint is not None
        assert 8_500 <= hint <= 10_000

    def test_accepts_any_object_with_headers(self):
        class _Resp:
            headers = {"Retry-After": "2"}

        assert parse_retry_hint(_Resp()) == 2_000


# ---------------------------------------------------------------------------
# plan_next_step
# ---------------------------------------------------------------------------


class TestPlanNextStep:
    def test_success_is_terminal(self):
        step = plan_next_step(Attempt(1, response=_response(200)), _policy())
        assert step.kind is StepKind.TERMINAL_RESPONSE
        assert step.is_terminal

    def test_non_retryable_error_status_is_terminal(self):
        step = plan_next_step(Attempt(1, response=_response(404)), _policy())
        assert step.kind is StepKind.TERMINAL_RESPONSE

    def test_retryable_status_with_attempts_left(self):
        step = plan_next_step(Attempt(1, response=_response(503)), _policy())
        assert step.kind is StepKind.RETRY
        assert step.delay_ms == 100
        assert step.hint_ms is None
        assert not step.is_terminal

    def test_retryable_status_uses_retry_after(self):
        resp = _response(429, headers={"Retry-After": "2"})
        step = plan_next_step(Attempt(2, response=resp), _policy())
        assert step == Step(StepKind.RETRY, 2_000, 2_000)

    def test_out_of_range_retry_after_date_falls_back_to_backoff(self):
        resp = _response(503, headers={
            "Retry-After": "Mon, 01 Jan 99999999999999999999 00:00:00 GMT",
        })
        step = plan_next_step(Attempt(1, response=resp), _policy())
        assert step == Step(StepKind.RETRY, 100, None)

    def test_retryable_status_on_last_attempt_returns_response(self):
        step = plan_next_step(Attempt(3, response=_response(503)), _policy())
        assert step.kind is StepKind.TERMINAL_RESPONSE

    def test_failure_with_attempts_left(self):
        step = plan_next_step(Attempt(2, error=httpx.ConnectError("refused")), _policy())
        assert step.kind is StepKind.RETRY
        assert step.delay_ms == 200
        assert step.hint_ms is None

    def test_failure_on_last_attempt(self):
        step = plan_next_step(Attempt(3, error=httpx.ConnectError("refused")), _policy())
        assert step.kind is StepKind.TERMINAL_FAILURE

    def test_single_attempt_policy_never_retries(self):
        policy = _policy(max_attempts=1)
        assert plan_next_step(Attempt(1, response=_response(503)), policy).is_terminal
        assert plan_next_step(Attempt(1, error=httpx.ReadTimeout("slow")), policy).is_terminal

    def test_custom_status_set(self):
        policy = _policy(retryable_statuses={409})
        assert plan_next_step(Attempt(1, response=_response(409)), policy).kind is StepKind.RETRY
        assert plan_next_step(Attempt(1, response=_response(503)), policy).is_terminal

    def test_attempt_failed_property(self):
        assert Attempt(1, error=RuntimeError("x")).failed
        assert not Attempt(1, response=_response()).failed
