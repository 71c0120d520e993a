"""Faceted filtering, sorting and counters over an in-memory collection.

Purpose
-------
This module is the generic browsing engine shared by the gallery, notice,
results, news and e-library pages. Each page supplies only a
:class:`~campus_browse.browse_config.BrowseConfig`; the functions here
implement everything else:

- ``sort_by_recency`` -- stable newest-first ordering,
- ``compute_facets`` -- distinct values of one categorical attribute,
- ``filter_items`` -- free-text AND categorical-equality filtering,
- ``compute_stats`` -- full-recount summary counters.

``CollectionBrowser`` wraps those pure functions in a small view model that
owns the current item list and :class:`FilterState` and notifies observers
whenever the derived view changes.

Architecture
------------
The pure functions never raise on item content. Items that are not mappings
are tolerated: they only survive an empty filter and contribute nothing to
facets or counters. Counters are recomputed from scratch on every change;
nothing is maintained incrementally.

Examples
--------
>>> from campus_browse.collection_browser import FilterState, filter_items
>>> items = [{"title": "Sports Day"}, {"title": "Science Fair"}]
>>> filter_items(items, FilterState(query="sci"))
[{'title': 'Science Fair'}]
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Optional

from .browse_config import DEFAULT_TIMESTAMP_FIELDS, BrowseConfig
from .collection_normalization import (
    best_timestamp,
    normalize,
    parse_timestamp,
    with_derived_defaults,
)
from .StateEvent import StateCallback, StateEvent, dispatch_event

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

DEFAULT_TEXT_FIELDS: tuple[str, ...] = ("title", "content", "body")


# -----------------------------
# Filter state
# -----------------------------
@dataclass(frozen=True)
class FilterState:
    """Free-text query plus categorical equality constraints.

    Parameters
    ----------
    query : str
        Case-insensitive substring searched in the text fields. Empty means
        "match everything".
    constraints : Mapping[str, Any]
        Attribute name to required value. ``None`` and ``""`` are wildcards.
    """

    query: str = ""
    constraints: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "constraints", MappingProxyType(dict(self.constraints)))

    def with_query(self, query: Optional[str]) -> FilterState:
        return replace(self, query=query or "")

    def with_constraint(self, attribute: str, value: Any) -> FilterState:
        updated = dict(self.constraints)
        updated[attribute] = value
        return replace(self, constraints=updated)

    def active_constraints(self, wildcard: Optional[str] = None) -> dict[str, Any]:
        """Return only the constraints that can exclude an item."""
        return {
            name: value
            for name, value in self.constraints.items()
            if not _is_unset(value, wildcard)
        }

    def is_empty(self, wildcard: Optional[str] = None) -> bool:
        return not self.query and not self.active_constraints(wildcard)


def _is_unset(value: Any, wildcard: Optional[str]) -> bool:
    if value is None or value == "":
        return True
    return wildcard is not None and value == wildcard


# -----------------------------
# Pure operations
# -----------------------------
def sort_by_recency(
    items: Iterable[Any], *, fields: Sequence[str] = DEFAULT_TIMESTAMP_FIELDS
) -> list[Any]:
    """Return ``items`` sorted newest first.

    The timestamp of an item is the first parsable value among ``fields``
    (``date`` before ``createdAt`` by default). The sort is stable: equal
    timestamps keep their input order, and items without any timestamp go
    last in input order.
    """

    def _key(item: Any) -> tuple[bool, float]:
        moment = best_timestamp(item, fields)
        if moment is None:
            return (True, 0.0)
        return (False, -moment.timestamp())

    return sorted(items, key=_key)


def _facet_sort_key(value: Any) -> tuple[int, Any]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, value)
    return (1, str(value))


def compute_facets(items: Iterable[Any], attribute: str, *, sort: bool = False) -> list[Any]:
    """Return the distinct values of ``attribute`` across ``items``.

    Values keep the order of their first appearance unless ``sort`` is set.
    Falsy and absent values are excluded, as are unhashable ones.
    """
    seen: dict[Any, None] = {}
    for item in items:
        if not isinstance(item, Mapping):
            continue
        value = item.get(attribute)
        if not value:
            continue
        try:
            seen.setdefault(value, None)
        except TypeError:
            continue
    values = list(seen)
    if sort:
        values.sort(key=_facet_sort_key)
    return values


def _text_matches(item: Mapping[str, Any], needle: str, text_fields: Sequence[str]) -> bool:
    for name in text_fields:
        value = item.get(name)
        if value is None or isinstance(value, (Mapping, list, tuple)):
            continue
        if needle in str(value).lower():
            return True
    return False


def _constraint_matches(value: Any, required: Any) -> bool:
    if value is None:
        return False
    return value == required or str(value) == str(required)


def filter_items(
    items: Sequence[Any],
    state: FilterState,
    config: Optional[BrowseConfig] = None,
) -> list[Any]:
    """Return the items that satisfy every part of ``state``.

    Parameters
    ----------
    items : sequence
        Normalized collection.
    state : FilterState
        Query and constraints to apply.
    config : BrowseConfig, optional
        Supplies the searched text fields and the page wildcard token. When
        omitted, ``title``, ``content`` and ``body`` are searched.

    Returns
    -------
    list
        A new list preserving input order. An empty result is valid.
    """
    text_fields = config.text_fields if config is not None else DEFAULT_TEXT_FIELDS
    wildcard = config.wildcard if config is not None else None

    active = state.active_constraints(wildcard)
    needle = state.query.lower()
    if not needle and not active:
        return list(items)

    matched = []
    for item in items:
        if not isinstance(item, Mapping):
            continue
        if needle and not _text_matches(item, needle, text_fields):
            continue
        if all(_constraint_matches(item.get(name), value) for name, value in active.items()):
            matched.append(item)
    return matched


@dataclass(frozen=True)
class CollectionStats:
    """Summary counters of a collection.

    Parameters
    ----------
    total : int
        Number of items.
    counts : Mapping[str, int]
        Named predicate counts (``urgent``, ``high``, ``images`` ...).
    facets : Mapping[str, int]
        Number of distinct values per facet field.
    """

    total: int
    counts: Mapping[str, int] = field(default_factory=dict, hash=False)
    facets: Mapping[str, int] = field(default_factory=dict, hash=False)

    def __getitem__(self, name: str) -> int:
        if name == "total":
            return self.total
        return self.counts[name]


def compute_stats(items: Sequence[Any], config: Optional[BrowseConfig] = None) -> CollectionStats:
    """Recount every counter of ``config`` over ``items``."""
    if config is None:
        return CollectionStats(total=len(items))
    counts = {
        predicate.name: sum(1 for item in items if predicate.matches(item))
        for predicate in config.stat_predicates
    }
    facets = {
        name: len(compute_facets(items, name)) for name in config.facet_fields
    }
    return CollectionStats(
        total=len(items),
        counts=MappingProxyType(counts),
        facets=MappingProxyType(facets),
    )


def normalize_collection(
    raw: Any,
    config: BrowseConfig,
    *,
    now: Optional[datetime] = None,
) -> list[Any]:
    """Normalize, default and (optionally) recency-sort a page payload.

    This is the single ingest path used by every listing page: ``normalize``
    with the page's wrapper keys, then ``with_derived_defaults`` in arrival
    order, then ``sort_by_recency`` when ``config.sort_newest_first`` is set.
    """
    items = [
        with_derived_defaults(
            item,
            position,
            defaults=config.defaults,
            synthesize_timestamp=config.synthesize_timestamps,
            now=now,
        )
        for position, item in enumerate(normalize(raw, keys=config.payload_keys))
    ]
    if config.sort_newest_first:
        items = sort_by_recency(items, fields=config.timestamp_fields)
    logger.debug("normalize_collection[%s]: %d items", config.name, len(items))
    return items


def featured_item(items: Sequence[Any]) -> Any:
    """Return the first item of a recency-sorted collection, or ``None``."""
    return items[0] if items else None


def active_items(
    items: Iterable[Any],
    *,
    deadline_field: str = "deadline",
    now: Optional[datetime] = None,
) -> list[Any]:
    """Drop items whose ``deadline_field`` value is not in the future.

    Items with a missing or unparsable deadline are dropped as well.
    """
    reference = now if now is not None else datetime.now(timezone.utc)
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=timezone.utc)
    kept = []
    for item in items:
        if not isinstance(item, Mapping):
            continue
        deadline = parse_timestamp(item.get(deadline_field))
        if deadline is not None and deadline > reference:
            kept.append(item)
    return kept


# -----------------------------
# Stateful view model
# -----------------------------
@dataclass(frozen=True)
class BrowseView:
    """Immutable snapshot of a browser: filter, visible items and counters."""

    state: FilterState
    items: tuple[Any, ...]
    stats: CollectionStats


class CollectionBrowser:
    """Own one page collection and its filter state.

    Parameters
    ----------
    config : BrowseConfig
        Field layout of the page.
    items : iterable, optional
        Already-normalized items. Use :meth:`load` for raw payloads.
    """

    def __init__(self, config: BrowseConfig, items: Optional[Iterable[Any]] = None) -> None:
        self._config = config
        self._items: list[Any] = list(items or [])
        self._state = FilterState()
        self._observers: list[StateCallback] = []
        self._view = self._compute_view()

    @property
    def config(self) -> BrowseConfig:
        return self._config

    @property
    def items(self) -> list[Any]:
        """Return a copy of the full, unfiltered collection."""
        return list(self._items)

    @property
    def state(self) -> FilterState:
        return self._state

    @property
    def view(self) -> BrowseView:
        return self._view

    @property
    def visible(self) -> list[Any]:
        """Return the filtered items in display order."""
        return list(self._view.items)

    @property
    def stats(self) -> CollectionStats:
        """Counters over the full collection (not the filtered view)."""
        return self._view.stats

    def facets(self, attribute: str) -> list[Any]:
        """Return facet values for ``attribute`` over the full collection."""
        return compute_facets(self._items, attribute, sort=self._config.sorted_facets)

    def observe(self, callback: StateCallback, *, fire: bool = False) -> None:
        """Register ``callback`` for view changes; ``fire`` emits the current view once."""
        self._observers.append(callback)
        if fire:
            callback(StateEvent(source=self, reason="observe", old=self._view, new=self._view))

    def load(self, raw: Any, *, now: Optional[datetime] = None) -> None:
        """Replace the collection from a raw payload."""
        self._items = normalize_collection(raw, self._config, now=now)
        self._refresh("load")

    def set_items(self, items: Iterable[Any]) -> None:
        """Replace the collection with already-normalized items."""
        self._items = list(items)
        self._refresh("items")

    def set_query(self, query: Optional[str]) -> None:
        self._state = self._state.with_query(query)
        self._refresh("query")

    def set_constraint(self, attribute: str, value: Any) -> None:
        """Constrain ``attribute`` to ``value`` (``None`` clears it)."""
        if attribute not in self._config.facet_fields:
            raise KeyError(f"Unknown facet for {self._config.name}: {attribute}")
        self._state = self._state.with_constraint(attribute, value)
        self._refresh("constraint")

    def clear_filters(self) -> None:
        self._state = FilterState()
        self._refresh("clear")

    def _compute_view(self) -> BrowseView:
        return BrowseView(
            state=self._state,
            items=tuple(filter_items(self._items, self._state, self._config)),
            stats=compute_stats(self._items, self._config),
        )

    def _refresh(self, reason: str) -> None:
        old = self._view
        self._view = self._compute_view()
        logger.debug(
            "browser[%s] %s: %d/%d visible",
            self._config.name,
            reason,
            len(self._view.items),
            self._view.stats.total,
        )
        dispatch_event(
            self._observers, StateEvent(source=self, reason=reason, old=old, new=self._view)
        )
