"""Circular lightbox navigation state machine.

Purpose
-------
``Lightbox`` is the modal image viewer used by the gallery. It has two
states, Closed and Open(items, index), and moves between images circularly:
``index' = (index +/- 1 + n) % n``. Opening with no items is silently
absorbed, and navigation on a one-image list returns the same index.

Resource contract
-----------------
Entering Open acquires a :class:`~campus_browse.scroll_lock.ScrollLock`; every
exit path (``close()``, the Escape key, ``teardown()``, leaving a ``with``
block) releases it exactly once. A lightbox therefore never leaves the host
document unscrollable.

Examples
--------
>>> from campus_browse.lightbox import Lightbox
>>> from campus_browse.scroll_lock import ScrollLock
>>> box = Lightbox(scroll_lock=ScrollLock())
>>> box.open(["a.jpg", "b.jpg", "c.jpg"], 2)
>>> box.next()
0
>>> box.handle_key("Escape")
True
>>> box.is_open
False
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Optional

from .scroll_lock import ScrollLock, document_scroll_lock
from .StateEvent import StateCallback, StateEvent, dispatch_event

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

KEY_PREV = "ArrowLeft"
KEY_NEXT = "ArrowRight"
KEY_CLOSE = "Escape"


@dataclass(frozen=True)
class LightboxState:
    """Immutable lightbox state.

    Parameters
    ----------
    is_open : bool
        Whether the viewer is shown.
    items : tuple
        Navigable items; empty while closed.
    index : int
        Current position in ``items``; ``0`` while closed.
    """

    is_open: bool = False
    items: tuple[Any, ...] = ()
    index: int = 0

    @property
    def current(self) -> Any:
        return self.items[self.index] if self.is_open else None


CLOSED = LightboxState()


class Lightbox:
    """Modal viewer over an explicit item list.

    Parameters
    ----------
    scroll_lock : ScrollLock, optional
        Lock acquired while open. Defaults to the shared document lock.
    """

    def __init__(self, *, scroll_lock: Optional[ScrollLock] = None) -> None:
        self._scroll_lock = scroll_lock if scroll_lock is not None else document_scroll_lock()
        self._state = CLOSED
        self._observers: list[StateCallback] = []

    # -- read-only state ---------------------------------------------------

    @property
    def state(self) -> LightboxState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state.is_open

    @property
    def index(self) -> int:
        return self._state.index

    @property
    def current(self) -> Any:
        """Return the item on display, or ``None`` when closed."""
        return self._state.current

    @property
    def scroll_lock(self) -> ScrollLock:
        return self._scroll_lock

    def observe(self, callback: StateCallback, *, fire: bool = False) -> None:
        """Register ``callback`` for state changes."""
        self._observers.append(callback)
        if fire:
            callback(StateEvent(source=self, reason="observe", old=self._state, new=self._state))

    # -- transitions -------------------------------------------------------

    def open(self, items: Sequence[Any], start_index: int = 0) -> None:
        """Show ``items`` starting at ``start_index``.

        An empty ``items`` leaves the lightbox closed. ``start_index`` is
        reduced modulo ``len(items)``. Re-opening while open swaps the list
        without taking the scroll lock a second time.
        """
        snapshot = tuple(items or ())
        if not snapshot:
            logger.debug("lightbox open ignored: no items")
            return
        was_open = self._state.is_open
        if not was_open:
            self._scroll_lock.acquire()
        self._set(
            LightboxState(is_open=True, items=snapshot, index=int(start_index) % len(snapshot)),
            "open",
        )

    def next(self) -> Optional[int]:
        """Advance one item; returns the new index or ``None`` when closed."""
        return self._step(1, "next")

    def prev(self) -> Optional[int]:
        """Go back one item; returns the new index or ``None`` when closed."""
        return self._step(-1, "prev")

    def close(self) -> None:
        """Hide the viewer, drop the items and release the scroll lock."""
        if not self._state.is_open:
            return
        self._scroll_lock.release()
        self._set(CLOSED, "close")

    def teardown(self) -> None:
        """Owning view is going away; equivalent to :meth:`close`."""
        self.close()
        self._observers.clear()

    def handle_key(self, key: str) -> bool:
        """Apply a keyboard key; returns ``True`` if it was consumed.

        Only ``ArrowLeft``, ``ArrowRight`` and ``Escape`` are bound, and only
        while the lightbox is open.
        """
        if not self._state.is_open:
            return False
        if key == KEY_PREV:
            self.prev()
        elif key == KEY_NEXT:
            self.next()
        elif key == KEY_CLOSE:
            self.close()
        else:
            return False
        return True

    def __enter__(self) -> Lightbox:
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.teardown()

    # -- internals ---------------------------------------------------------

    def _step(self, delta: int, reason: str) -> Optional[int]:
        state = self._state
        if not state.is_open:
            return None
        count = len(state.items)
        index = (state.index + delta + count) % count
        self._set(LightboxState(is_open=True, items=state.items, index=index), reason)
        return index

    def _set(self, new: LightboxState, reason: str) -> None:
        old = self._state
        self._state = new
        logger.debug("lightbox %s: index=%d open=%s", reason, new.index, new.is_open)
        dispatch_event(self._observers, StateEvent(source=self, reason=reason, old=old, new=new))


# -----------------------------
# Gallery helpers
# -----------------------------
def resolve_media_url(src: str, api_base: Optional[str] = None) -> str:
    """Return an absolute URL for an uploaded media path.

    Absolute ``http``/``https`` URLs are returned unchanged. Relative upload
    paths are served from the API origin, i.e. ``api_base`` without its
    trailing ``/api``.
    """
    if not src or src.startswith(("http://", "https://")) or not api_base:
        return src
    origin = api_base.rstrip("/")
    if origin.endswith("/api"):
        origin = origin[: -len("/api")]
    if not src.startswith("/"):
        src = "/" + src
    return origin + src


def gallery_images(event: Any, api_base: Optional[str] = None) -> list[str]:
    """Return the resolved image URLs of one gallery event."""
    if not isinstance(event, Mapping):
        return []
    images = event.get("images")
    if not isinstance(images, list):
        return []
    return [resolve_media_url(str(src), api_base) for src in images if src]


def download_name(label: str, index: int) -> str:
    """Return the suggested file name for image ``index`` of ``label``."""
    return f"{label}-{index + 1}.jpg"
