"""Top-level public API for the ``campus_browse`` package.

This module re-exports the browsing engine so pages can import from a single
namespace, for example:

>>> from campus_browse import CollectionBrowser, NOTICES, Lightbox  # doctest: +SKIP

The widget layer lives in :mod:`campus_browse.widgets` and is imported
explicitly, so the pure engine can be used without a notebook frontend.
"""

from .browse_config import (
    ASSIGNMENTS,
    DOCUMENTS,
    GALLERY,
    HERO_TIMING,
    NEWS,
    NOTES,
    NOTICES,
    PRESETS,
    PREVIEW_TIMING,
    PRIORITY_LEVELS,
    QUESTION_BANK,
    RESULTS,
    TESTIMONIALS,
    BrowseConfig,
    CarouselTiming,
    StatPredicate,
)
from .carousel import CarouselState, SlideIndicator, TimedCarousel, parse_subtitles
from .collection_browser import (
    BrowseView,
    CollectionBrowser,
    CollectionStats,
    FilterState,
    active_items,
    compute_facets,
    compute_stats,
    featured_item,
    filter_items,
    normalize_collection,
    sort_by_recency,
)
from .collection_normalization import normalize, parse_timestamp, with_derived_defaults
from .debouncing import QueuedDebouncer, call_later
from .lightbox import (
    Lightbox,
    LightboxState,
    download_name,
    gallery_images,
    resolve_media_url,
)
from .popup_selection import select_popup_notice
from .scroll_lock import ScrollLock, ScrollLockError, document_scroll_lock
from .StateEvent import StateEvent
