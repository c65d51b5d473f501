"""Per-process sync context.

All shared state of the sync core (health, credentials, rate-limit backoff,
echo markers) lives on one SyncContext instead of module globals, so tests
and embedders can build isolated instances.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from strapisync.client.api import StrapiClient
from strapisync.client.credentials import AuthClient, CredentialCache
from strapisync.client.retry import RateLimitState
from strapisync.client.sync.ignore import EchoGuard, EchoStore, MemoryEchoStore, RedisEchoStore
from strapisync.core.config import SyncConfig
from strapisync.core.types import HealthState


@dataclass
class SyncContext:
    """Shared collaborators of the sync core."""

    config: SyncConfig
    client: StrapiClient
    auth: AuthClient
    echo: EchoGuard
    rate_limit: RateLimitState

    @classmethod
    def create(
        cls,
        config: SyncConfig,
        echo_store: EchoStore | None = None,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        wall_clock: Callable[[], float] = time.time,
    ) -> SyncContext:
        """Build a context from configuration.

        Args:
            config: Sync configuration.
            echo_store: Store for echo markers. Defaults to Redis when
                ``config.redis_url`` is set, otherwise in-memory.
            transport: Optional httpx transport (used by tests).
            clock: Monotonic clock shared by caches and TTLs.
            sleep: Sleep function for polling and backoff.
            wall_clock: Epoch clock for rate-limit reset headers.

        Returns:
            A ready context.
        """
        rate_limit = RateLimitState()
        client = StrapiClient(
            config.base_url,
            timeout=config.request_timeout,
            sync_timeout=config.sync_timeout,
            health_state=HealthState(),
            health_check_interval=config.health_check_interval,
            health_poll_interval=config.health_poll_interval,
            rate_limit=rate_limit,
            transport=transport,
            clock=clock,
            sleep=sleep,
            wall_clock=wall_clock,
        )
        cache = CredentialCache(
            reuse_window=config.credential_reuse_window,
            rate_limit=rate_limit,
            clock=clock,
        )
        store = echo_store
        if store is None:
            if config.redis_url:
                store = RedisEchoStore.from_url(config.redis_url)
            else:
                store = MemoryEchoStore(clock=clock)
        return cls(
            config=config,
            client=client,
            auth=AuthClient(client, cache, config.admin),
            echo=EchoGuard(store, ttl=config.ignore_threshold),
            rate_limit=rate_limit,
        )

    def close(self) -> None:
        """Release the HTTP connection pool."""
        self.client.close()
