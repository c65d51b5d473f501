"""Translation of domain entities into remote entries.

Domain ids are stored under ``medusa_id`` at every level so they never
collide with the remote service's own ``id``. Relations are renamed per
entity kind (``type`` becomes ``product-type`` and so on). The rename
rules are plain data; ``translate`` is the generic walker applying them.

This module provides:
- Rename: A relation rename with optional nested rules
- EntityMapping: Fetch selection and rename rules for one entity kind
- MAPPINGS: Built-in mappings by entity kind
- translate: Apply a mapping to a domain entity
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from strapisync.core.types import EntityKind

DOMAIN_ID_KEY = "id"
REMOTE_ID_KEY = "medusa_id"


@dataclass(frozen=True)
class Rename:
    """Rename a relation key, applying ``rules`` to its contents."""

    target: str
    rules: Mapping[str, Rename] = field(default_factory=dict)
    keep_source: bool = False


@dataclass(frozen=True)
class EntityMapping:
    """How one entity kind is fetched and translated.

    Attributes:
        kind: Entity kind.
        select: Fields requested from the domain service.
        relations: Relations requested from the domain service.
        rules: Relation renames applied to the top-level entity.
        update_fields: Fields whose change requires a remote update.
    """

    kind: EntityKind
    select: tuple[str, ...] = ()
    relations: tuple[str, ...] = ()
    rules: Mapping[str, Rename] = field(default_factory=dict)
    update_fields: frozenset[str] = frozenset()

    def retrieve_config(self) -> dict[str, list[str]]:
        """Selection passed to the domain service's ``retrieve``."""
        config: dict[str, list[str]] = {}
        if self.select:
            config["select"] = list(self.select)
        if self.relations:
            config["relations"] = list(self.relations)
        return config


VARIANT_RULES: Mapping[str, Rename] = {
    "prices": Rename("money-amount"),
    "options": Rename("product-option", keep_source=True),
}

PRODUCT_RULES: Mapping[str, Rename] = {
    "type": Rename("product-type"),
    "tags": Rename("product-tag"),
    "options": Rename("product-option"),
    "variants": Rename("product-variant", rules=VARIANT_RULES),
}

PRODUCT_SELECT = (
    "id",
    "title",
    "subtitle",
    "description",
    "handle",
    "is_giftcard",
    "discountable",
    "thumbnail",
    "weight",
    "length",
    "height",
    "width",
    "hs_code",
    "origin_country",
    "mid_code",
    "material",
    "metadata",
)

PRODUCT_RELATIONS = (
    "options",
    "variants",
    "variants.prices",
    "variants.options",
    "type",
    "collection",
    "tags",
    "images",
)

REGION_SELECT = ("id", "name", "tax_rate", "tax_code", "metadata")

REGION_RELATIONS = (
    "countries",
    "payment_providers",
    "fulfillment_providers",
    "currency",
)

MAPPINGS: dict[EntityKind, EntityMapping] = {
    EntityKind.PRODUCT: EntityMapping(
        kind=EntityKind.PRODUCT,
        select=PRODUCT_SELECT,
        relations=PRODUCT_RELATIONS,
        rules=PRODUCT_RULES,
        update_fields=frozenset(
            {
                "variants",
                "options",
                "tags",
                "title",
                "subtitle",
                "type",
                "type_id",
                "collection",
                "collection_id",
                "thumbnail",
            }
        ),
    ),
    EntityKind.PRODUCT_VARIANT: EntityMapping(
        kind=EntityKind.PRODUCT_VARIANT,
        relations=("prices", "options", "product"),
        rules=VARIANT_RULES,
        update_fields=frozenset(
            {
                "title",
                "prices",
                "sku",
                "material",
                "weight",
                "length",
                "height",
                "origin_country",
                "options",
            }
        ),
    ),
    EntityKind.REGION: EntityMapping(
        kind=EntityKind.REGION,
        select=REGION_SELECT,
        relations=REGION_RELATIONS,
        update_fields=frozenset(
            {
                "name",
                "currency_code",
                "countries",
                "payment_providers",
                "fulfillment_providers",
            }
        ),
    ),
    EntityKind.PRODUCT_TYPE: EntityMapping(
        kind=EntityKind.PRODUCT_TYPE,
        select=("id", "value"),
        update_fields=frozenset({"value"}),
    ),
    EntityKind.PRODUCT_METAFIELD: EntityMapping(
        kind=EntityKind.PRODUCT_METAFIELD,
        update_fields=frozenset({"data"}),
    ),
}


def _to_json_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    return value


def _walk(node: Any, rules: Mapping[str, Rename]) -> Any:
    if isinstance(node, Mapping):
        out: dict[str, Any] = {}
        for key, value in node.items():
            rename = rules.get(key)
            if rename is not None:
                out[rename.target] = _walk(value, rename.rules)
                if rename.keep_source:
                    out[key] = _walk(value, {})
            elif key == DOMAIN_ID_KEY:
                out[REMOTE_ID_KEY] = _to_json_value(value)
            else:
                out[key] = _walk(value, {})
        return out
    if isinstance(node, (list, tuple)):
        return [_walk(item, rules) for item in node]
    return _to_json_value(node)


def translate(
    entity: Mapping[str, Any],
    mapping: EntityMapping | None = None,
    custom_fields: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Translate a domain entity into the body of a remote entry.

    The input is not modified.

    Args:
        entity: Domain entity as a mapping.
        mapping: Rename rules for the entity kind (ids only if omitted).
        custom_fields: Extra top-level field renames.

    Returns:
        JSON-ready dictionary with ``medusa_id`` in place of every ``id``.
    """
    rules = mapping.rules if mapping else {}
    translated = _walk(entity, rules)
    if custom_fields:
        translated = {custom_fields.get(k, k): v for k, v in translated.items()}
    return translated
