"""Shared exception types for sync operations.

This module provides:
- SyncError: Base exception for sync errors
- TypeNotConfiguredError: Remote resource type is missing
- DomainFetchError: The canonical entity could not be loaded
- BootstrapError: Startup sequence could not complete
"""

from __future__ import annotations


class SyncError(Exception):
    """Base exception for sync errors."""


class TypeNotConfiguredError(SyncError):
    """The remote service has no collection for this resource type.

    Not a failure of the sync itself: callers skip the entity.
    """

    def __init__(self, resource_type: str) -> None:
        self.resource_type = resource_type
        super().__init__(f'Type "{resource_type}" doesnt exist in Strapi')


class DomainFetchError(SyncError):
    """Failed to load an entity from the domain service.

    Attributes:
        entity_id: Domain id that was requested.
        resource_type: Remote resource type being synchronised.
    """

    def __init__(self, entity_id: str, resource_type: str, reason: str) -> None:
        self.entity_id = entity_id
        self.resource_type = resource_type
        super().__init__(f"Unable to fetch {resource_type} {entity_id}: {reason}")


class BootstrapError(SyncError):
    """Startup of the sync core failed; dependent steps were skipped."""
