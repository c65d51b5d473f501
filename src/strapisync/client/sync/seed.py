"""Bulk export of the commerce backend for the initial reconciliation.

The remote service pulls this export when it synchronises its tables, so
every list is fetched with the relations the content models need.
"""

from __future__ import annotations

import logging
from typing import Any

from strapisync.client.sync.domain import DomainService, DomainServices, ProviderService, as_mapping

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100

PRODUCT_FIELDS = [
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
]
PRODUCT_RELATIONS = [
    "variants",
    "variants.prices",
    "variants.options",
    "images",
    "options",
    "tags",
    "type",
    "collection",
    "profile",
]

REGION_FIELDS = ["id", "name", "tax_rate", "tax_code", "metadata"]
REGION_RELATIONS = ["countries", "payment_providers", "fulfillment_providers", "currency"]

SHIPPING_PROFILE_FIELDS = ["id", "name", "type", "metadata"]
SHIPPING_PROFILE_RELATIONS = [
    "products",
    "shipping_options",
    "shipping_options.profile",
    "shipping_options.requirements",
    "shipping_options.provider",
    "shipping_options.region",
    "shipping_options.region.countries",
    "shipping_options.region.payment_providers",
    "shipping_options.region.fulfillment_providers",
    "shipping_options.region.currency",
]

SHIPPING_OPTION_FIELDS = [
    "id",
    "name",
    "price_type",
    "amount",
    "is_return",
    "admin_only",
    "data",
    "metadata",
]
SHIPPING_OPTION_RELATIONS = [
    "region",
    "region.countries",
    "region.payment_providers",
    "region.fulfillment_providers",
    "region.currency",
    "profile",
    "profile.products",
    "profile.shipping_options",
    "requirements",
    "provider",
]


def list_all(
    service: DomainService | None,
    select: list[str],
    relations: list[str],
    page_size: int = DEFAULT_PAGE_SIZE,
) -> list[dict[str, Any]]:
    """List every entity of a service, one page at a time.

    Args:
        service: Domain service, or None when not configured.
        select: Columns to load.
        relations: Relations to load.
        page_size: Entities per page.

    Returns:
        All entities as plain dictionaries.
    """
    if service is None:
        return []
    if page_size <= 0:
        raise ValueError("page_size must be positive")

    entities: list[dict[str, Any]] = []
    skip = 0
    while True:
        page = service.list(
            {},
            {"skip": skip, "take": page_size, "select": select, "relations": relations},
        )
        entities.extend(as_mapping(entity) for entity in page)
        if len(page) < page_size:
            return entities
        skip += page_size


def _list_providers(service: ProviderService | None) -> list[dict[str, Any]]:
    if service is None:
        return []
    return [as_mapping(provider) for provider in service.list()]


def collect_seed(services: DomainServices, page_size: int = DEFAULT_PAGE_SIZE) -> dict[str, Any]:
    """Collect the bulk export served to the remote service.

    Args:
        services: Commerce backend services.
        page_size: Entities per page when listing.

    Returns:
        Dict keyed ``products``, ``regions``, ``paymentProviders``,
        ``fulfillmentProviders``, ``shippingOptions`` and ``shippingProfiles``.
    """
    seed = {
        "products": list_all(services.product, PRODUCT_FIELDS, PRODUCT_RELATIONS, page_size),
        "regions": list_all(services.region, REGION_FIELDS, REGION_RELATIONS, page_size),
        "paymentProviders": _list_providers(services.payment_provider),
        "fulfillmentProviders": _list_providers(services.fulfillment_provider),
        "shippingOptions": list_all(
            services.shipping_option, SHIPPING_OPTION_FIELDS, SHIPPING_OPTION_RELATIONS, page_size
        ),
        "shippingProfiles": list_all(
            services.shipping_profile, SHIPPING_PROFILE_FIELDS, SHIPPING_PROFILE_RELATIONS, page_size
        ),
    }
    logger.info(
        f"Collected seed: {len(seed['products'])} products, {len(seed['regions'])} regions, "
        f"{len(seed['shippingOptions'])} shipping options, "
        f"{len(seed['shippingProfiles'])} shipping profiles"
    )
    return seed
