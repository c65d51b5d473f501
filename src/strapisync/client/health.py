"""Health monitoring for the remote content service.

This module provides:
- HealthMonitor: Cached liveness probe and a blocking wait-for-health
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from strapisync.core.types import HealthState

logger = logging.getLogger(__name__)


class HealthMonitor:
    """Tracks liveness of the remote service.

    A healthy probe result is reused for ``interval`` seconds; stale reads
    between refreshes are accepted. The state object may be shared by
    several monitors of one process.
    """

    def __init__(
        self,
        probe: Callable[[], bool],
        state: HealthState | None = None,
        interval: float = 120.0,
        poll_interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the monitor.

        Args:
            probe: Performs one liveness check, True when healthy.
            state: Shared health state (a new one if omitted).
            interval: Seconds a healthy result is reused.
            poll_interval: Seconds between probes in wait_for_health().
            clock: Monotonic clock.
            sleep: Sleep function.
        """
        self._probe = probe
        self.state = state if state is not None else HealthState()
        self._interval = interval
        self._poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep

    def _is_fresh(self) -> bool:
        last = self.state.last_checked_at
        return (
            self.state.is_healthy
            and last is not None
            and self._clock() - last <= self._interval
        )

    def check_health(self) -> bool:
        """Return the cached health, probing if the cache has expired.

        Returns:
            True if the remote service is considered healthy.
        """
        if self._is_fresh():
            return True

        logger.info("Checking strapi health")
        healthy = self._probe()
        self.state.is_healthy = healthy
        self.state.last_checked_at = self._clock()
        if healthy:
            logger.info("Strapi is healthy")
        else:
            logger.info("Strapi is unhealthy")
        return healthy

    def mark_unhealthy(self) -> None:
        """Force the next check to probe the service."""
        self.state.is_healthy = False

    def wait_for_health(self, timeout: float | None = None) -> None:
        """Block until the remote service is healthy.

        Polls every ``poll_interval`` seconds. Without a timeout this waits
        indefinitely.

        Args:
            timeout: Optional deadline in seconds supplied by the caller.

        Raises:
            TimeoutError: If the deadline passes before the service is healthy.
        """
        started = self._clock()
        attempts = 0
        while not self.check_health():
            attempts += 1
            if timeout is not None and self._clock() - started >= timeout:
                raise TimeoutError(f"Strapi not healthy after {timeout:.0f}s")
            if attempts % 60 == 0:
                logger.info(f"Still awaiting strapi health ({attempts} checks)")
            else:
                logger.debug("Awaiting strapi health")
            self._sleep(self._poll_interval)
