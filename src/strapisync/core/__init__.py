"""Core module - Shared configuration, types and query building."""

from strapisync.core.config import SyncConfig
from strapisync.core.query import build_query
from strapisync.core.types import (
    AdminResult,
    ChangeEvent,
    Credential,
    EntityKind,
    HealthState,
    Identity,
    SyncResult,
)

__all__ = [
    # Config
    "SyncConfig",
    # Query
    "build_query",
    # Types
    "AdminResult",
    "ChangeEvent",
    "Credential",
    "EntityKind",
    "HealthState",
    "Identity",
    "SyncResult",
]
