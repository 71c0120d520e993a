"""Reference-counted document scroll lock.

A modal viewer suspends background scrolling of the host document while it is
open. ``ScrollLock`` models that as an explicit resource: every ``acquire``
must be paired with exactly one ``release``, and the host mutation
(``document.body.style.overflow`` in a browser) is delegated to subscribed
callbacks that fire only on the unlocked/locked edges. Several views may share
one lock; each subscribes its own callback and unsubscribes when it goes away.

The current pages open at most one lightbox at a time; the counter keeps the
lock correct if viewers ever nest.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Optional

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


class ScrollLockError(RuntimeError):
    """Raised when the lock is released more often than it was acquired."""


class ScrollLock:
    """Counted lock whose first acquire and last release toggle the host.

    Parameters
    ----------
    on_change : callable, optional
        Initial subscriber. Subscribers are called with ``True`` when the
        document must stop scrolling and with ``False`` when scrolling must be
        restored.
    """

    def __init__(self, on_change: Optional[Callable[[bool], None]] = None) -> None:
        self._subscribers: list[Callable[[bool], None]] = []
        if on_change is not None:
            self._subscribers.append(on_change)
        self._depth = 0
        self._lock = threading.Lock()

    @property
    def depth(self) -> int:
        """Return the number of outstanding acquisitions."""
        return self._depth

    @property
    def locked(self) -> bool:
        return self._depth > 0

    def subscribe(self, callback: Callable[[bool], None], *, fire: bool = True) -> None:
        """Add ``callback`` and, with ``fire``, push the current state to it."""
        with self._lock:
            self._subscribers.append(callback)
            locked = self._depth > 0
        if fire:
            callback(locked)

    def unsubscribe(self, callback: Callable[[bool], None]) -> None:
        """Remove ``callback``; unknown callbacks are ignored."""
        with self._lock:
            try:
                self._subscribers.remove(callback)
            except ValueError:
                pass

    def acquire(self) -> None:
        with self._lock:
            self._depth += 1
            edge = self._depth == 1
        if edge:
            logger.debug("scroll lock engaged")
            self._notify(True)

    def release(self) -> None:
        with self._lock:
            if self._depth == 0:
                raise ScrollLockError("ScrollLock.release() called without a matching acquire()")
            self._depth -= 1
            edge = self._depth == 0
        if edge:
            logger.debug("scroll lock released")
            self._notify(False)

    @contextmanager
    def held(self) -> Iterator[ScrollLock]:
        """Context manager that holds the lock for the duration of the block."""
        self.acquire()
        try:
            yield self
        finally:
            self.release()

    def _notify(self, locked: bool) -> None:
        with self._lock:
            subscribers = tuple(self._subscribers)
        for callback in subscribers:
            callback(locked)


_DOCUMENT_LOCK = ScrollLock()


def document_scroll_lock() -> ScrollLock:
    """Return the process-wide lock shared by viewers on the same page."""
    return _DOCUMENT_LOCK
