"""Fixed-interval retry with an attempt ceiling."""

from __future__ import annotations

import time
from typing import Callable, TypeVar

T = TypeVar("T")


class RetryExhausted(RuntimeError):
    """Raised when every attempt of `retry_until` was retried."""

    def __init__(self, description: str, attempts: int, last_result: object = None) -> None:
        super().__init__(f"{description}: gave up after {attempts} attempts")
        self.description = description
        self.attempts = attempts
        self.last_result = last_result


def retry_until(
    action: Callable[[], T],
    *,
    max_retries: int,
    interval: float,
    retry_on: tuple[type[BaseException], ...] = (),
    should_retry: Callable[[T], bool] | None = None,
    description: str = "operation",
    printer: Callable[[str], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run `action` once, then up to `max_retries` more times.

    Exceptions listed in `retry_on` and results for which `should_retry`
    returns True trigger another attempt after `interval` seconds. Any other
    exception propagates immediately.
    """
    if max_retries < 0:
        raise ValueError("max_retries must be >= 0")

    attempts = max_retries + 1
    last_error: BaseException | None = None
    last_result: object = None
    for attempt in range(1, attempts + 1):
        try:
            result = action()
        except retry_on as exc:
            last_error = exc
            last_result = None
            if printer:
                printer(f"{description}: attempt {attempt}/{attempts} failed: {exc}")
        else:
            if should_retry is None or not should_retry(result):
                return result
            last_error = None
            last_result = result
            if printer:
                printer(f"{description}: attempt {attempt}/{attempts} not ready: {result}")

        if attempt < attempts:
            sleep(interval)

    raise RetryExhausted(description, attempts, last_result) from last_error
