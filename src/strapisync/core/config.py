"""Configuration for connecting to the remote content service.

This module defines the options recognised by strapisync. Options can be
given directly or parsed from a plugin-style dictionary (``strapi_host``,
``strapi_admin``, ...).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

from strapisync.core.types import EntityKind, Identity

HEALTH_CHECK_INTERVAL_ENV = "STRAPI_HEALTH_CHECK_INTERVAL"

DEFAULT_HEALTH_CHECK_INTERVAL = 120.0  # seconds
DEFAULT_HEALTH_POLL_INTERVAL = 1.0  # seconds
DEFAULT_CREDENTIAL_REUSE_WINDOW = 180.0  # seconds
DEFAULT_IGNORE_THRESHOLD = 3  # seconds
DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_SYNC_TIMEOUT = 3600.0


def _health_interval_from_env() -> float:
    # Milliseconds, as used by the plugin deployment scripts
    raw = os.environ.get(HEALTH_CHECK_INTERVAL_ENV)
    if raw:
        return int(raw) / 1000.0
    return DEFAULT_HEALTH_CHECK_INTERVAL


@dataclass
class SyncConfig:
    """Configuration for the sync core.

    Attributes:
        admin: Privileged administrative identity.
        default_user: Default per-tenant service-account identity.
        protocol: URL scheme of the remote service.
        host: Host of the remote service.
        port: Port of the remote service.
        encryption_algorithm: Accepted for compatibility, unused.
        ignore_threshold: Echo marker TTL in seconds.
        custom_fields: Per entity kind field renames applied on top of the
            built-in mapping (``{"products": {"title": "name"}}``).
        health_check_interval: Seconds a healthy probe result is reused.
        health_poll_interval: Seconds between probes while waiting for health.
        credential_reuse_window: Seconds a cached token is reused before a
            fresh login.
        request_timeout: Timeout for regular requests in seconds.
        sync_timeout: Timeout for the bulk synchronisation call in seconds.
        mark_echo: Write an echo marker for the domain side after each
            successful remote write.
        redis_url: Redis server holding echo markers (in-memory if unset).
    """

    admin: Identity
    default_user: Identity
    protocol: str = "https"
    host: str = "localhost"
    port: int = 1337
    encryption_algorithm: str = "aes-256-cbc"
    ignore_threshold: int = DEFAULT_IGNORE_THRESHOLD
    custom_fields: dict[str, dict[str, str]] = field(default_factory=dict)
    health_check_interval: float = field(default_factory=_health_interval_from_env)
    health_poll_interval: float = DEFAULT_HEALTH_POLL_INTERVAL
    credential_reuse_window: float = DEFAULT_CREDENTIAL_REUSE_WINDOW
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    sync_timeout: float = DEFAULT_SYNC_TIMEOUT
    mark_echo: bool = False
    redis_url: str | None = None

    @property
    def base_url(self) -> str:
        """Base URL of the remote service (``protocol://host:port``)."""
        return f"{self.protocol}://{self.host}:{self.port}"

    def field_overrides(self, kind: EntityKind) -> dict[str, str] | None:
        """Get the custom field renames for an entity kind, if any."""
        return self.custom_fields.get(kind.resource_type)

    @classmethod
    def from_options(cls, options: dict[str, Any]) -> SyncConfig:
        """Create from plugin-style options.

        Args:
            options: Dictionary with ``strapi_*`` keys, as found in the
                commerce backend's plugin configuration.

        Returns:
            Parsed configuration.

        Raises:
            ValueError: If the admin or default user credentials are missing.
        """
        if not options.get("strapi_admin"):
            raise ValueError("strapi_admin credentials are required")
        if not options.get("strapi_default_user"):
            raise ValueError("strapi_default_user credentials are required")

        custom_fields: dict[str, dict[str, str]] = {}
        for kind in EntityKind:
            overrides = options.get(f"custom_{kind.option_name}_fields")
            if overrides:
                custom_fields[kind.resource_type] = dict(overrides)

        config = cls(
            admin=Identity.from_dict(options["strapi_admin"]),
            default_user=Identity.from_dict(options["strapi_default_user"]),
            protocol=options.get("strapi_protocol") or "https",
            host=options.get("strapi_host") or "localhost",
            port=int(options.get("strapi_port") or 1337),
            encryption_algorithm=options.get("encryption_algorithm") or "aes-256-cbc",
            custom_fields=custom_fields,
        )
        threshold = options.get("strapi_ignore_threshold")
        if threshold is not None:
            config.ignore_threshold = int(threshold)
        if "mark_echo" in options:
            config.mark_echo = bool(options["mark_echo"])
        if options.get("redis_url"):
            config.redis_url = options["redis_url"]
        return config
