"""Payload normalization helpers for browsable collections.

Purpose
-------
Listing endpoints of the site are inconsistent: some return a bare JSON list,
others wrap it as ``{"events": [...]}``, ``{"gallery": [...]}`` or
``{"results": [...]}``, and individual records routinely miss optional
fields. This module turns any such payload into a plain ``list`` of item
dicts with deterministic fallbacks filled in.

Architecture
------------
Every function here is stateless and side-effect free. None of them raise on
payload content: unexpected shapes degrade to ``[]`` or to default values and
are reported at DEBUG level on the module logger. This keeps the browsing
views usable whatever the server sends back.

Examples
--------
>>> from campus_browse.collection_normalization import normalize
>>> normalize({"gallery": [{"event": "Sports Day"}]})
[{'event': 'Sports Day'}]
>>> normalize({"unexpected": 1})
[]
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from .browse_config import DEFAULT_PAYLOAD_KEYS, DEFAULT_TIMESTAMP_FIELDS

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

ID_FIELDS: tuple[str, ...] = ("_id", "id")
SYNTHETIC_AGE_STEP = timedelta(days=1)


def normalize(raw: Any, *, keys: Sequence[str] = DEFAULT_PAYLOAD_KEYS) -> list[Any]:
    """Return the item list carried by ``raw``.

    Parameters
    ----------
    raw : Any
        Decoded JSON payload: a list, a mapping wrapping a list, or anything
        else.
    keys : sequence of str
        Wrapper keys checked in order when ``raw`` is a mapping. The first key
        holding a list wins.

    Returns
    -------
    list
        A new list. Unknown shapes, ``None`` and non-list wrapper values all
        produce ``[]``.
    """
    if isinstance(raw, list):
        return list(raw)
    if isinstance(raw, tuple):
        return list(raw)
    if isinstance(raw, Mapping):
        for key in keys:
            value = raw.get(key)
            if isinstance(value, list):
                return list(value)
        logger.debug("normalize: no list under keys %s (got %s)", keys, sorted(map(str, raw)))
        return []
    logger.debug("normalize: unsupported payload type %s", type(raw).__name__)
    return []


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a JSON timestamp into an aware UTC ``datetime``.

    Accepts ISO-8601 strings (including a trailing ``Z``), ``datetime``
    objects and epoch milliseconds. Returns ``None`` when nothing usable is
    found.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def best_timestamp(
    item: Any, fields: Iterable[str] = DEFAULT_TIMESTAMP_FIELDS
) -> Optional[datetime]:
    """Return the first parsable timestamp among ``fields`` of ``item``."""
    if not isinstance(item, Mapping):
        return None
    for name in fields:
        parsed = parse_timestamp(item.get(name))
        if parsed is not None:
            return parsed
    return None


def _isoformat(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def with_derived_defaults(
    item: Any,
    position: int = 0,
    *,
    defaults: Optional[Mapping[str, Any]] = None,
    synthesize_timestamp: bool = True,
    now: Optional[datetime] = None,
) -> Any:
    """Return a copy of ``item`` with missing fields filled in.

    Parameters
    ----------
    item : Any
        One element of a normalized collection. Non-mapping elements are
        returned unchanged.
    position : int
        Position of ``item`` in arrival order.
    defaults : Mapping[str, Any], optional
        Field fallbacks. Falsy or missing values are replaced.
    synthesize_timestamp : bool
        If ``True`` and ``createdAt`` is missing, derive it as
        ``now - position days``. Later positions therefore look older, which
        keeps "arrival order = recency order" when the server sends no dates.
    now : datetime, optional
        Reference time for synthesized timestamps (defaults to the current
        UTC time).

    Returns
    -------
    dict
        A new dict; ``item`` is never mutated.
    """
    if not isinstance(item, Mapping):
        return item

    enriched = dict(item)
    for name, fallback in (defaults or {}).items():
        if not enriched.get(name):
            enriched[name] = fallback

    if item_id(enriched) is None:
        enriched["_id"] = f"item-{position}"

    if synthesize_timestamp and not enriched.get("createdAt"):
        reference = now if now is not None else datetime.now(timezone.utc)
        if reference.tzinfo is None:
            reference = reference.replace(tzinfo=timezone.utc)
        enriched["createdAt"] = _isoformat(reference - position * SYNTHETIC_AGE_STEP)
    return enriched


def item_id(item: Any) -> Optional[str]:
    """Return the identifier of ``item`` (``_id`` preferred over ``id``)."""
    if not isinstance(item, Mapping):
        return None
    for name in ID_FIELDS:
        value = item.get(name)
        if value not in (None, ""):
            return str(value)
    return None

