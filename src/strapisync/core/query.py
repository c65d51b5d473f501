"""Query string building for the remote REST and admin APIs.

The remote service expects nested parameters in bracket notation, e.g.
``sort[0]=title%3Aasc&filters[title][$eq]=hello&pagination[pageSize]=10``.
Only values are percent-encoded; keys keep their brackets.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

# Serialisation order of the top-level query keys
QUERY_KEYS = (
    "sort",
    "filters",
    "populate",
    "fields",
    "pagination",
    "publicationState",
    "locale",
)


def _encode_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return quote(str(value), safe="")


def _flatten(prefix: str, value: Any) -> list[tuple[str, str]]:
    if value is None:
        return []
    if isinstance(value, Mapping):
        pairs: list[tuple[str, str]] = []
        for key, item in value.items():
            pairs.extend(_flatten(f"{prefix}[{key}]", item))
        return pairs
    if isinstance(value, (list, tuple)):
        pairs = []
        for index, item in enumerate(value):
            pairs.extend(_flatten(f"{prefix}[{index}]", item))
        return pairs
    return [(prefix, _encode_value(value))]


def build_query(query: Mapping[str, Any]) -> str:
    """Serialise a structured query descriptor.

    Args:
        query: Mapping with any of ``sort``, ``filters``, ``populate``,
            ``fields``, ``pagination``, ``publicationState`` and ``locale``.
            Unknown keys are appended after the known ones.

    Returns:
        Query string without the leading ``?``.
    """
    keys = [k for k in QUERY_KEYS if k in query]
    keys.extend(k for k in query if k not in QUERY_KEYS)

    pairs: list[tuple[str, str]] = []
    for key in keys:
        pairs.extend(_flatten(key, query[key]))
    return "&".join(f"{k}={v}" for k, v in pairs)
