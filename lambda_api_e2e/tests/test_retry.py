from __future__ import annotations

import pytest

from lambda_api_e2e.retry import RetryExhausted, retry_until


def test_retry_until_returns_first_success_without_sleeping() -> None:
    sleeps: list[float] = []
    assert retry_until(lambda: 42, max_retries=3, interval=1.0, sleep=sleeps.append) == 42
    assert sleeps == []


def test_retry_until_retries_listed_exceptions() -> None:
    calls: list[int] = []
    sleeps: list[float] = []

    def action() -> str:
        calls.append(1)
        if len(calls) < 3:
            raise ConnectionError("refused")
        return "up"

    result = retry_until(
        action, max_retries=10, interval=1.0, retry_on=(ConnectionError,), sleep=sleeps.append
    )

    assert result == "up"
    assert len(calls) == 3
    assert sleeps == [1.0, 1.0]


def test_retry_until_exhaustion_chains_last_error() -> None:
    sleeps: list[float] = []

    def action() -> None:
        raise ConnectionError("refused")

    with pytest.raises(RetryExhausted) as excinfo:
        retry_until(
            action, max_retries=2, interval=0.5, retry_on=(ConnectionError,), sleep=sleeps.append
        )

    assert excinfo.value.attempts == 3
    assert isinstance(excinfo.value.__cause__, ConnectionError)
    assert sleeps == [0.5, 0.5]


def test_retry_until_predicate_keeps_last_result() -> None:
    values = iter([503, 503, 503])

    with pytest.raises(RetryExhausted) as excinfo:
        retry_until(
            lambda: next(values),
            max_retries=2,
            interval=0,
            should_retry=lambda status: status != 200,
            sleep=lambda _s: None,
        )

    assert excinfo.value.last_result == 503


def test_retry_until_unlisted_exception_propagates_immediately() -> None:
    calls: list[int] = []

    def action() -> None:
        calls.append(1)
        raise KeyError("boom")

    with pytest.raises(KeyError):
        retry_until(action, max_retries=5, interval=0, retry_on=(ConnectionError,))

    assert calls == [1]


def test_retry_until_reports_attempts() -> None:
    lines: list[str] = []
    values = iter([False, True])

    retry_until(
        lambda: next(values),
        max_retries=1,
        interval=0,
        should_retry=lambda ready: not ready,
        description="wait for api",
        printer=lines.append,
        sleep=lambda _s: None,
    )

    assert lines == ["wait for api: attempt 1/2 not ready: False"]


def test_retry_until_rejects_negative_budget() -> None:
    with pytest.raises(ValueError):
        retry_until(lambda: None, max_retries=-1, interval=0)
