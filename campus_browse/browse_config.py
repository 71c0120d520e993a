"""Per-page browsing configuration and timing presets.

Purpose
-------
Every listing page of the site browses its collection the same way and only
differs in *which* fields are searched, faceted, defaulted and counted. This
module captures those differences as frozen configuration objects so that
:mod:`campus_browse.collection_browser` stays a single generic engine.

Examples
--------
>>> from campus_browse.browse_config import RESULTS
>>> RESULTS.facet_fields
('className', 'fileType')
>>> RESULTS.sorted_facets
True
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Optional

PRIORITY_LEVELS: tuple[str, ...] = ("high", "medium", "low")

# Probe order used when a payload wraps its list in an object.
DEFAULT_PAYLOAD_KEYS: tuple[str, ...] = (
    "items",
    "events",
    "gallery",
    "results",
    "testimonials",
)

DEFAULT_TIMESTAMP_FIELDS: tuple[str, ...] = ("date", "createdAt", "updatedAt")


def _frozen(mapping: Optional[Mapping[str, Any]] = None) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class StatPredicate:
    """Named counter evaluated over a collection.

    Parameters
    ----------
    name : str
        Counter key in :class:`~campus_browse.collection_browser.CollectionStats`.
    field : str
        Item attribute inspected by the predicate.
    value : Any, optional
        Required attribute value. ``None`` means "attribute is truthy".
    """

    name: str
    field: str
    value: Any = None

    def matches(self, item: Any) -> bool:
        if not isinstance(item, Mapping):
            return False
        current = item.get(self.field)
        if self.value is None:
            return bool(current)
        return current is not None and str(current) == str(self.value)


@dataclass(frozen=True)
class BrowseConfig:
    """Field layout of one browsable collection.

    Parameters
    ----------
    name : str
        Short page identifier used in logs.
    text_fields : tuple[str, ...]
        Fields matched by the free-text query.
    facet_fields : tuple[str, ...]
        Categorical fields that can be constrained and offered as facets.
    sorted_facets : bool
        Whether facet values are sorted instead of kept in first-seen order.
    payload_keys : tuple[str, ...]
        Wrapper keys checked by :func:`~campus_browse.collection_normalization.normalize`.
    defaults : Mapping[str, Any]
        Fallback values for missing fields.
    synthesize_timestamps : bool
        Fill a missing ``createdAt`` from the item position.
    timestamp_fields : tuple[str, ...]
        Timestamp fields in order of preference for recency sorting.
    sort_newest_first : bool
        Sort the normalized collection by recency on ingest.
    wildcard : str or None
        Constraint value that means "no constraint" (e.g. ``"All"``).
    stat_predicates : tuple[StatPredicate, ...]
        Extra named counters reported by ``compute_stats``.
    """

    name: str
    text_fields: tuple[str, ...] = ("title",)
    facet_fields: tuple[str, ...] = ()
    sorted_facets: bool = False
    payload_keys: tuple[str, ...] = DEFAULT_PAYLOAD_KEYS
    defaults: Mapping[str, Any] = field(default_factory=_frozen, hash=False)
    synthesize_timestamps: bool = False
    timestamp_fields: tuple[str, ...] = DEFAULT_TIMESTAMP_FIELDS
    sort_newest_first: bool = True
    wildcard: Optional[str] = None
    stat_predicates: tuple[StatPredicate, ...] = ()

    def __post_init__(self) -> None:
        # Caller-supplied defaults are copied into a read-only view.
        object.__setattr__(self, "defaults", _frozen(self.defaults))


@dataclass(frozen=True)
class CarouselTiming:
    """Dwell and transition durations of a timed carousel, in milliseconds."""

    dwell_ms: int = 4000
    transition_ms: int = 400

    def __post_init__(self) -> None:
        if self.dwell_ms <= 0:
            raise ValueError("dwell_ms must be > 0")
        if self.transition_ms < 0:
            raise ValueError("transition_ms must be >= 0")
        if self.transition_ms >= self.dwell_ms:
            raise ValueError("transition_ms must be shorter than dwell_ms")


HERO_TIMING = CarouselTiming(dwell_ms=4000, transition_ms=400)
PREVIEW_TIMING = CarouselTiming(dwell_ms=2000, transition_ms=300)


# -----------------------------
# Page presets
# -----------------------------
GALLERY = BrowseConfig(
    name="gallery",
    text_fields=("event",),
    facet_fields=("event",),
    payload_keys=("events", "gallery", "items"),
    timestamp_fields=("createdAt", "updatedAt"),
)

NOTICES = BrowseConfig(
    name="notices",
    text_fields=("title", "content"),
    facet_fields=("category", "priority"),
    payload_keys=("notices", *DEFAULT_PAYLOAD_KEYS),
    defaults={"priority": "medium", "category": "General", "isUrgent": False},
    synthesize_timestamps=True,
    timestamp_fields=("createdAt",),
    stat_predicates=(
        StatPredicate("urgent", "isUrgent"),
        *(StatPredicate(level, "priority", level) for level in PRIORITY_LEVELS),
    ),
)

RESULTS = BrowseConfig(
    name="results",
    text_fields=("className", "title", "subject"),
    facet_fields=("className", "fileType"),
    sorted_facets=True,
    payload_keys=("results", *DEFAULT_PAYLOAD_KEYS),
    timestamp_fields=("date",),
    stat_predicates=(
        StatPredicate("images", "fileType", "image"),
        StatPredicate("pdfs", "fileType", "pdf"),
    ),
)

NEWS = BrowseConfig(
    name="news",
    text_fields=("title", "excerpt", "content"),
    facet_fields=("category",),
    payload_keys=("news", *DEFAULT_PAYLOAD_KEYS),
    wildcard="All",
)

ASSIGNMENTS = BrowseConfig(
    name="assignments",
    text_fields=("title", "description"),
    facet_fields=("className", "subject"),
    sorted_facets=True,
    payload_keys=("assignments", *DEFAULT_PAYLOAD_KEYS),
    timestamp_fields=("createdAt", "deadline"),
)

NOTES = BrowseConfig(
    name="notes",
    text_fields=("title", "description"),
    facet_fields=("className", "subject"),
    sorted_facets=True,
    payload_keys=("notes", *DEFAULT_PAYLOAD_KEYS),
)

DOCUMENTS = BrowseConfig(
    name="documents",
    text_fields=("title", "description"),
    facet_fields=("category",),
    sorted_facets=True,
    payload_keys=("documents", *DEFAULT_PAYLOAD_KEYS),
)

QUESTION_BANK = BrowseConfig(
    name="questions",
    text_fields=("title", "description"),
    facet_fields=("className", "subject", "examType", "year"),
    sorted_facets=True,
    payload_keys=("questions", *DEFAULT_PAYLOAD_KEYS),
    stat_predicates=(
        StatPredicate("pdfs", "fileType", "pdf"),
        StatPredicate("images", "fileType", "image"),
    ),
)

TESTIMONIALS = BrowseConfig(
    name="testimonials",
    text_fields=("name", "role", "message"),
    payload_keys=("testimonials", *DEFAULT_PAYLOAD_KEYS),
)

PRESETS: Mapping[str, BrowseConfig] = MappingProxyType(
    {
        cfg.name: cfg
        for cfg in (
            GALLERY,
            NOTICES,
            RESULTS,
            NEWS,
            ASSIGNMENTS,
            NOTES,
            DOCUMENTS,
            QUESTION_BANK,
            TESTIMONIALS,
        )
    }
)
