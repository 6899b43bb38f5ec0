"""
test_backoff.py — Tests for app/utils/backoff.py

Covers: capped exponential delay, jitter bounds, Retry-After parsing,
and the give-up point of RetryPolicy.

Called by: pytest
Depends on: app/utils/backoff.py
"""

import pytest

from app.utils.backoff import BackoffPolicy, RetryPolicy, parse_retry_after


def _no_jitter():
    return BackoffPolicy(rand=lambda: 0.0)


def test_base_delay_doubles():
    policy = _no_jitter()
    assert [policy.delay(a) for a in range(4)] == [1.0, 2.0, 4.0, 8.0]


def test_base_delay_capped_at_30():
    policy = _no_jitter()
    assert policy.delay(5) == 30.0
    assert policy.delay(10) == 30.0
    assert policy.base_delay(1000) == 30.0


def test_delay_within_jitter_bounds():
    policy = BackoffPolicy()
    for attempt in range(8):
        d = policy.delay(attempt)
        base = min(2**attempt, 30)
        assert base <= d <= base + 1.0


def test_full_jitter_adds_one_second():
    policy = BackoffPolicy(rand=lambda: 1.0)
    assert policy.delay(2) == 5.0


def test_negative_attempt_rejected():
    with pytest.raises(ValueError):
        BackoffPolicy().delay(-1)


@pytest.mark.parametrize(
    "raw, expected",
    [("3", 3.0), (" 1.5 ", 1.5), ("0", 0.0), (None, None), ("", None), ("soon", None), ("-2", None)],
)
def test_parse_retry_after(raw, expected):
    assert parse_retry_after(raw) == expected


def test_http_date_retry_after_ignored():
    assert parse_retry_after("Wed, 21 Oct 2026 07:28:00 GMT") is None


class TestRetryPolicy:
    def test_gives_up_on_fifth_attempt(self):
        policy = RetryPolicy(backoff=_no_jitter())
        delays = [policy.next_delay(a) for a in range(5)]
        assert delays == [1.0, 2.0, 4.0, 8.0, None]

    def test_retry_after_overrides_backoff(self):
        policy = RetryPolicy(backoff=_no_jitter())
        assert policy.next_delay(0, retry_after=7.0) == 7.0

    def test_retry_after_clamped_to_ceiling(self):
        policy = RetryPolicy(backoff=_no_jitter())
        assert policy.next_delay(0, retry_after=3600.0) == 60.0
        assert RetryPolicy(max_retry_after=5.0).next_delay(0, retry_after=7.0) == 5.0

    def test_retry_after_ignored_on_last_attempt(self):
        policy = RetryPolicy(max_attempts=2, backoff=_no_jitter())
        assert policy.next_delay(1, retry_after=3.0) is None

    def test_single_attempt_never_retries(self):
        assert RetryPolicy(max_attempts=1).next_delay(0) is None
