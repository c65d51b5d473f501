"""Retry logic for rate-limited requests.

This module provides:
- RateLimitState: Process-wide record of the last rate-limit backoff
- compute_retry_delay: Delay derived from the server's rate-limit headers
- retry_on_rate_limit: Re-issues a request while the server answers 429
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from http import HTTPStatus

import httpx

logger = logging.getLogger(__name__)

# Default retry configuration
DEFAULT_MAX_RETRIES = 100
DEFAULT_RESET_WINDOW = 120.0  # seconds, when the server sends no reset time
RESET_SAFETY_MARGIN = 2.0  # seconds added to the time-to-reset

RETRY_AFTER_HEADER = "x-retry-after"
RATE_LIMIT_RESET_HEADER = "x-ratelimit-reset"


@dataclass
class RateLimitState:
    """Last backoff delay requested by the remote service.

    Shared by every caller of one sync context. A non-zero ``backoff``
    also widens the credential reuse window so the whole process
    re-authenticates less eagerly while the server is throttling.
    """

    backoff: float | None = None
    retries: int = 0


def compute_retry_delay(
    response: httpx.Response,
    attempt: int,
    now: float | None = None,
) -> float:
    """Compute how long to wait before retrying a 429 response.

    Args:
        response: The rate-limited response.
        attempt: Retry attempt number, starting at 1.
        now: Current wall-clock time in seconds (defaults to time.time()).

    Returns:
        Delay in seconds. With ``x-retry-after`` it grows linearly with the
        attempt number; otherwise it is the time until ``x-ratelimit-reset``
        (epoch seconds) plus a safety margin.
    """
    retry_after = response.headers.get(RETRY_AFTER_HEADER)
    if retry_after:
        try:
            return attempt * float(retry_after)
        except ValueError:
            logger.warning(f"Ignoring malformed {RETRY_AFTER_HEADER}: {retry_after!r}")

    current = time.time() if now is None else now
    reset = response.headers.get(RATE_LIMIT_RESET_HEADER)
    try:
        reset_at = float(reset) if reset else current + DEFAULT_RESET_WINDOW
    except ValueError:
        reset_at = current + DEFAULT_RESET_WINDOW
    return abs(reset_at - current) + RESET_SAFETY_MARGIN


def retry_on_rate_limit(
    func: Callable[[], httpx.Response],
    state: RateLimitState,
    max_retries: int = DEFAULT_MAX_RETRIES,
    sleep: Callable[[float], None] = time.sleep,
    wall_clock: Callable[[], float] = time.time,
) -> httpx.Response:
    """Execute a request, retrying transparently on HTTP 429.

    Args:
        func: Issues the request and returns the response.
        state: Shared rate-limit state updated with each computed delay.
        max_retries: Maximum retry attempts.
        sleep: Sleep function (injectable for tests).
        wall_clock: Epoch clock used against ``x-ratelimit-reset``.

    Returns:
        The first non-429 response, or the last 429 response once all
        retries are used up.
    """
    response = func()
    attempt = 0
    while response.status_code == HTTPStatus.TOO_MANY_REQUESTS and attempt < max_retries:
        attempt += 1
        delay = compute_retry_delay(response, attempt, now=wall_clock())
        state.backoff = delay
        state.retries += 1
        logger.info(
            f"Retrying request {attempt}/{max_retries} because of 429 "
            f"{response.request.method} {response.request.url.path}, "
            f"waiting {delay:.1f}s"
        )
        sleep(delay)
        response = func()

    if response.status_code == HTTPStatus.TOO_MANY_REQUESTS:
        logger.error(f"All {max_retries} rate-limit retries failed")
    return response
