# Where: lambda_api_e2e/probe.py
# What: HTTP readiness and content probes for local containers and deployed APIs.
# Why: Endpoints become reachable some time after apply; probes poll with a ceiling.
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import requests

from lambda_api_e2e import constants
from lambda_api_e2e.retry import RetryExhausted, retry_until


class ProbeError(RuntimeError):
    """Raised when an endpoint never produced an acceptable response."""


@dataclass(frozen=True)
class ProbeResponse:
    url: str
    status_code: int
    body: str

    def __str__(self) -> str:
        snippet = self.body if len(self.body) <= 80 else self.body[:77] + "..."
        return f"{self.status_code} {snippet!r}"


def http_get(
    url: str,
    *,
    timeout: float = constants.DEFAULT_REQUEST_TIMEOUT,
    session: requests.Session | None = None,
) -> ProbeResponse:
    getter = session.get if session is not None else requests.get
    response = getter(url, timeout=timeout)
    try:
        return ProbeResponse(url=url, status_code=response.status_code, body=response.text)
    finally:
        response.close()


def get_with_retry(
    url: str,
    *,
    max_retries: int,
    interval: float,
    retry_on_status: tuple[int, ...] = (),
    timeout: float = constants.DEFAULT_REQUEST_TIMEOUT,
    session: requests.Session | None = None,
    printer: Callable[[str], None] | None = None,
    sleep: Callable[[float], None] | None = None,
) -> ProbeResponse:
    """GET `url`, retrying on connection errors and on `retry_on_status`.

    When only the status budget is exhausted the last response is returned so
    the caller can assert on it; when no connection was ever made ProbeError
    is raised.
    """
    kwargs = {"sleep": sleep} if sleep is not None else {}
    try:
        return retry_until(
            lambda: http_get(url, timeout=timeout, session=session),
            max_retries=max_retries,
            interval=interval,
            retry_on=(requests.exceptions.ConnectionError, requests.exceptions.Timeout),
            should_retry=lambda response: response.status_code in retry_on_status,
            description=f"GET {url}",
            printer=printer,
            **kwargs,
        )
    except RetryExhausted as exc:
        if isinstance(exc.last_result, ProbeResponse):
            return exc.last_result
        raise ProbeError(f"{url} unreachable after {exc.attempts} attempts: {exc.__cause__}") from exc


def get_with_expected_response(
    url: str,
    *,
    expected_status: int,
    expected_body: str,
    max_retries: int,
    interval: float,
    timeout: float = constants.DEFAULT_REQUEST_TIMEOUT,
    session: requests.Session | None = None,
    printer: Callable[[str], None] | None = None,
    sleep: Callable[[float], None] | None = None,
) -> ProbeResponse:
    """GET `url` until it answers with `expected_status` and `expected_body`.

    Surrounding whitespace in the body is ignored; the raw body is kept on
    the returned response.
    """

    def _mismatch(response: ProbeResponse) -> bool:
        return (
            response.status_code != expected_status
            or response.body.strip() != expected_body
        )

    kwargs = {"sleep": sleep} if sleep is not None else {}
    try:
        return retry_until(
            lambda: http_get(url, timeout=timeout, session=session),
            max_retries=max_retries,
            interval=interval,
            retry_on=(requests.exceptions.RequestException,),
            should_retry=_mismatch,
            description=f"GET {url}",
            printer=printer,
            **kwargs,
        )
    except RetryExhausted as exc:
        last = exc.last_result if exc.last_result is not None else exc.__cause__
        raise ProbeError(
            f"{url} did not return {expected_status} {expected_body!r} "
            f"after {exc.attempts} attempts (last: {last})"
        ) from exc
