"""Shared types for strapisync.

This module provides:
- EntityKind: Entity kinds mirrored into the remote service
- Identity: Login identity (admin or per-tenant service account)
- Credential: Cached bearer token with acquisition time
- HealthState: Last known remote health
- ChangeEvent: Inbound change notification from the domain system
- SyncResult, AdminResult: Uniform operation results
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from http import HTTPStatus
from typing import Any


class EntityKind(str, Enum):
    """Entity kinds and their remote resource type names."""

    PRODUCT = "products"
    PRODUCT_VARIANT = "product-variants"
    REGION = "regions"
    PRODUCT_TYPE = "product-types"
    PRODUCT_METAFIELD = "product-metafields"

    @property
    def resource_type(self) -> str:
        """Remote resource type (collection name in the REST API)."""
        return self.value

    @property
    def option_name(self) -> str:
        """Name used in plugin options, e.g. ``custom_product_fields``."""
        return self.name.lower()


@dataclass
class Identity:
    """Credentials for an account on the remote service.

    Attributes:
        email: Login email (also the credential cache key).
        password: Login password.
        profile: Extra registration fields (username, firstname, ...).
    """

    email: str
    password: str
    profile: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Identity:
        """Create from a plugin-style options dictionary."""
        extra = {k: v for k, v in data.items() if k not in ("email", "password")}
        return cls(email=data["email"], password=data["password"], profile=extra)

    def registration_payload(self) -> dict[str, Any]:
        """Body sent when registering this identity."""
        return {**self.profile, "email": self.email, "password": self.password}


@dataclass
class Credential:
    """A bearer token obtained by a successful login."""

    token: str
    acquired_at: float
    user: dict[str, Any] | None = None

    def age(self, now: float) -> float:
        """Seconds since the token was acquired."""
        return now - self.acquired_at


@dataclass
class HealthState:
    """Last known health of the remote service."""

    is_healthy: bool = False
    last_checked_at: float | None = None


@dataclass
class ChangeEvent:
    """Change notification for a domain entity.

    ``fields`` is set for granular field-level events and absent for coarse
    "whole entity changed" events. ``data`` holds any other payload keys.
    """

    id: str
    fields: list[str] | None = None
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> ChangeEvent:
        """Create from a raw event payload like ``{"id": ..., "fields": [...]}``."""
        data = {k: v for k, v in payload.items() if k not in ("id", "fields")}
        fields = payload.get("fields")
        return cls(
            id=payload["id"],
            fields=list(fields) if fields is not None else None,
            data=data,
        )

    def touches(self, allowed: frozenset[str]) -> bool:
        """Check whether this event changes any of the allowed fields.

        Coarse events (no ``fields``) always pass.
        """
        if self.fields is None:
            return True
        return any(f in allowed for f in self.fields)


@dataclass
class SyncResult:
    """Result of an entry operation against the remote service."""

    status: int
    id: int | str | None = None
    medusa_id: str | None = None
    data: Any = None

    @property
    def ok(self) -> bool:
        """True for 2xx results."""
        return 200 <= self.status < 300

    @classmethod
    def failed(cls) -> SyncResult:
        """Uniform failure result."""
        return cls(status=HTTPStatus.BAD_REQUEST)

    @classmethod
    def from_body(cls, status: int, body: Any) -> SyncResult:
        """Build from a response body.

        The plugin answers with the entry at the top level; plain REST
        responses wrap it in ``data``.
        """
        entry = body
        if isinstance(body, dict) and "id" not in body and isinstance(body.get("data"), dict):
            entry = body["data"]
        if not isinstance(entry, dict):
            return cls(status=status, data=body)
        attributes = entry.get("attributes") or {}
        return cls(
            status=status,
            id=entry.get("id"),
            medusa_id=entry.get("medusa_id", attributes.get("medusa_id")),
            data=body,
        )


@dataclass
class AdminResult:
    """Result of an admin API operation."""

    status: int
    data: Any = None

    @property
    def ok(self) -> bool:
        """True for 2xx results."""
        return 200 <= self.status < 300
