"""Catalog filtering, match annotation and sorting.

All functions are pure: they return annotated copies and never touch the
items they are given, so cached catalog data stays free of per-query
annotations.

Matching rules:
- Filter dimensions (type, search, tags) combine with AND.
- Tags match when any filter tag is present on the item.
- A package also matches when any of its sub-items matches every active
  filter on its own metadata.
- Every sub-item of a surviving package is annotated. Sub-items are never
  removed from a package.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from hubcatalog.models import (
    TYPE_PACKAGE,
    CatalogItem,
    MatchInfo,
    MatchReason,
    SubItem,
    normalize_type,
)

logger = logging.getLogger(__name__)

SORT_FIELDS: tuple[str, ...] = ("name", "author", "lastUpdated")
_SORT_ALIASES = {"last_updated": "lastUpdated", "lastupdated": "lastUpdated"}


def normalize_text(text: str | None) -> str:
    """Collapse whitespace runs, trim and lowercase."""
    if not text:
        return ""
    return " ".join(text.split()).lower()


@dataclass
class SearchFilters:
    """Query applied by ``filter_items``.

    Attributes:
        type: Exact component type (``"mode"``, ``"package"``, ...)
        search: Free text matched against name and description
        tags: Match items carrying ANY of these tags
    """

    type: str | None = None
    search: str | None = None
    tags: list[str] | None = None

    @property
    def normalized_type(self) -> str | None:
        return normalize_type(self.type)

    @property
    def normalized_search(self) -> str:
        return normalize_text(self.search)

    @property
    def normalized_tags(self) -> set[str]:
        return {t.strip().casefold() for t in self.tags or [] if t and t.strip()}

    @property
    def is_active(self) -> bool:
        return bool(self.normalized_type or self.normalized_search or self.normalized_tags)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SearchFilters:
        tags = data.get("tags")
        return cls(
            type=data.get("type"),
            search=data.get("search"),
            tags=list(tags) if tags else None,
        )


def _evaluate(
    name: str | None,
    description: str | None,
    item_type: str | None,
    tags: Iterable[str] | None,
    filters: SearchFilters,
) -> tuple[bool, MatchReason]:
    """Check one item or sub-item against every active filter dimension."""
    reason = MatchReason()
    matched = True

    wanted_type = filters.normalized_type
    if wanted_type:
        reason.type_match = normalize_type(item_type) == wanted_type
        matched = matched and reason.type_match

    term = filters.normalized_search
    if term:
        reason.name_match = term in normalize_text(name)
        reason.description_match = term in normalize_text(description)
        matched = matched and (reason.name_match or reason.description_match)

    wanted_tags = filters.normalized_tags
    if wanted_tags:
        own = {t.strip().casefold() for t in tags or [] if t}
        reason.tag_match = bool(own & wanted_tags)
        matched = matched and reason.tag_match

    return matched, reason


def _evaluate_sub_item(sub: SubItem, filters: SearchFilters) -> tuple[bool, MatchReason]:
    meta = sub.metadata
    if meta is None:
        return _evaluate(None, None, sub.type, None, filters)
    return _evaluate(meta.name, meta.description, sub.type or meta.type, meta.tags, filters)


def filter_items(items: Iterable[CatalogItem], filters: SearchFilters | None = None) -> list[CatalogItem]:
    """
    Filter items and annotate why each one matched.

    Args:
        items: Catalog items (left untouched)
        filters: Query; None or an empty query matches everything

    Returns:
        Annotated copies of the matching items, in input order
    """
    filters = filters or SearchFilters()

    if not filters.is_active:
        result = []
        for item in items:
            annotated = item.copy()
            annotated.match_info = MatchInfo(matched=True)
            for sub in annotated.items:
                sub.match_info = MatchInfo(matched=True)
            result.append(annotated)
        return result

    result = []
    for item in items:
        own_match, reason = _evaluate(item.name, item.description, item.type, item.tags, filters)
        sub_results = [_evaluate_sub_item(sub, filters) for sub in item.items]
        sub_match = item.type == TYPE_PACKAGE and any(ok for ok, _ in sub_results)

        if not (own_match or sub_match):
            continue

        annotated = item.copy()
        if sub_match:
            reason.has_matching_subcomponents = True
        annotated.match_info = MatchInfo(matched=True, match_reason=reason)
        for sub, (ok, sub_reason) in zip(annotated.items, sub_results):
            sub.match_info = MatchInfo(matched=True, match_reason=sub_reason) if ok else MatchInfo(matched=False)
        result.append(annotated)

    logger.debug(f"Filter {filters} kept {len(result)} items")
    return result


def _normalize_sort_field(sort_by: str) -> str:
    field = _SORT_ALIASES.get(sort_by.lower(), sort_by) if sort_by else "name"
    if field not in SORT_FIELDS:
        raise ValueError(f"Unknown sort field: {sort_by!r} (expected one of {', '.join(SORT_FIELDS)})")
    return field


def _collation_key(value: str | None) -> tuple[str, str]:
    # Case-insensitive first, original text as the tie-breaker
    text = value or ""
    return (text.casefold(), text)


def _item_sort_value(item: CatalogItem, field: str) -> str | None:
    if field == "name":
        return item.name
    if field == "author":
        return item.author
    return item.last_updated


def _sub_item_sort_value(sub: SubItem, field: str) -> str | None:
    if field == "name":
        return sub.metadata.name if sub.metadata else None
    if field == "lastUpdated":
        return sub.last_updated
    return None


def sort_items(
    items: Iterable[CatalogItem],
    sort_by: str = "name",
    order: str = "asc",
    sort_subcomponents: bool = False,
) -> list[CatalogItem]:
    """
    Stable sort of catalog items.

    Missing values sort as the empty string, i.e. first when ascending.

    Args:
        items: Items to sort (left untouched)
        sort_by: ``name``, ``author`` or ``lastUpdated``
        order: ``asc`` or ``desc``
        sort_subcomponents: Also sort each package's sub-items by the same key

    Returns:
        New list; items are copied only when their sub-items are reordered

    Raises:
        ValueError: If ``sort_by`` or ``order`` is unknown
    """
    field = _normalize_sort_field(sort_by)
    if order not in ("asc", "desc"):
        raise ValueError(f"Unknown sort order: {order!r} (expected asc or desc)")
    descending = order == "desc"

    ordered = sorted(
        items,
        key=lambda item: _collation_key(_item_sort_value(item, field)),
        reverse=descending,
    )
    if not sort_subcomponents:
        return ordered

    result = []
    for item in ordered:
        if item.items:
            item = item.copy()
            item.items = sorted(
                item.items,
                key=lambda sub: _collation_key(_sub_item_sort_value(sub, field)),
                reverse=descending,
            )
        result.append(item)
    return result


def get_displayed_items(
    items: Iterable[CatalogItem],
    filters: SearchFilters | None = None,
    sort_by: str = "name",
    order: str = "asc",
    sort_subcomponents: bool = False,
) -> list[CatalogItem]:
    """Filter, annotate and sort in one call."""
    return sort_items(filter_items(items, filters), sort_by, order, sort_subcomponents)
