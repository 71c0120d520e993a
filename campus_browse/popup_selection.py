"""Choose the notice promoted as the site-wide popup."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional

from .collection_normalization import normalize


def select_popup_notice(notices: Any) -> Optional[Any]:
    """Return the notice to show in the popup.

    The first notice whose ``showPopup`` flag is truthy wins. Without one, the
    *last* notice in arrival order is used. This fallback depends on the order
    the API returned the notices in, not on their dates, unlike the
    newest-first listing order.

    ``notices`` may be a raw payload; it is normalized first. Returns ``None``
    for an empty collection.
    """
    items = normalize(notices, keys=("notices", "items"))
    for notice in items:
        if isinstance(notice, Mapping) and notice.get("showPopup"):
            return notice
    return items[-1] if items else None
