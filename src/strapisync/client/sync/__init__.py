"""Sync operations mirroring commerce entities into the remote service.

Architecture:
    ChangeEvent -> EntitySyncEngine -> StrapiClient

Components:
- **SyncContext**: Shared health, credential, rate-limit and echo state
- **SyncCoordinator**: Bootstrap sequence and owner of the engine
- **EntitySyncEngine**: Create/update/delete per entity kind
- **AdminUsers**: Admin panel user management
- **EchoGuard**: Suppresses notifications caused by our own writes
- **collect_seed**: Bulk export of the commerce backend
"""

from strapisync.client.sync.admin import AdminUsers, generate_password
from strapisync.client.sync.context import SyncContext
from strapisync.client.sync.coordinator import SyncCoordinator
from strapisync.client.sync.domain import DomainService, DomainServices, ProviderService
from strapisync.client.sync.engine import EntitySyncEngine
from strapisync.client.sync.ignore import (
    DEFAULT_IGNORE_TTL,
    SIDE_MEDUSA,
    SIDE_STRAPI,
    EchoGuard,
    EchoStore,
    MemoryEchoStore,
    RedisEchoStore,
)
from strapisync.client.sync.mapping import MAPPINGS, EntityMapping, translate
from strapisync.client.sync.seed import collect_seed
from strapisync.client.sync.types import (
    BootstrapError,
    DomainFetchError,
    SyncError,
    TypeNotConfiguredError,
)

__all__ = [
    # Context and orchestration
    "SyncContext",
    "SyncCoordinator",
    "EntitySyncEngine",
    "AdminUsers",
    "generate_password",
    # Domain services
    "DomainService",
    "DomainServices",
    "ProviderService",
    "collect_seed",
    # Echo suppression
    "DEFAULT_IGNORE_TTL",
    "SIDE_MEDUSA",
    "SIDE_STRAPI",
    "EchoGuard",
    "EchoStore",
    "MemoryEchoStore",
    "RedisEchoStore",
    # Mapping
    "MAPPINGS",
    "EntityMapping",
    "translate",
    # Errors
    "BootstrapError",
    "DomainFetchError",
    "SyncError",
    "TypeNotConfiguredError",
]
