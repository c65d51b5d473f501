"""Interfaces of the commerce backend services.

The domain services own the canonical data. They are black boxes that can
retrieve one entity by id or list entities page by page.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, is_dataclass
from typing import Any, Protocol


class DomainService(Protocol):
    """A commerce backend service for one entity kind."""

    def retrieve(self, entity_id: str, config: dict[str, Any] | None = None) -> Any:
        """Get one entity.

        Args:
            entity_id: Domain id.
            config: Optional ``{"select": [...], "relations": [...]}``.
        """
        ...

    def list(
        self,
        selector: dict[str, Any] | None = None,
        config: dict[str, Any] | None = None,
    ) -> list[Any]:
        """List entities.

        Args:
            selector: Filter.
            config: ``{"skip", "take", "select", "relations"}``.
        """
        ...


class ProviderService(Protocol):
    """A service listing configured payment or fulfillment providers."""

    def list(self) -> list[Any]:
        ...


@dataclass
class DomainServices:
    """Domain services used by the sync engine and the seed export."""

    product: DomainService | None = None
    product_variant: DomainService | None = None
    region: DomainService | None = None
    product_type: DomainService | None = None
    shipping_option: DomainService | None = None
    shipping_profile: DomainService | None = None
    payment_provider: ProviderService | None = None
    fulfillment_provider: ProviderService | None = None


def as_mapping(entity: Any) -> dict[str, Any]:
    """Convert a domain entity into a plain dictionary.

    Accepts mappings, dataclasses and objects exposing ``to_dict()``.
    """
    if isinstance(entity, Mapping):
        return dict(entity)
    if is_dataclass(entity) and not isinstance(entity, type):
        return asdict(entity)
    to_dict = getattr(entity, "to_dict", None)
    if callable(to_dict):
        return dict(to_dict())
    raise TypeError(f"Unsupported domain entity type: {type(entity).__name__}")
