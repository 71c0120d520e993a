"""Standardized state-change event payloads.

This module defines ``StateEvent``, the immutable structure emitted by
``CollectionBrowser.observe``, ``Lightbox.observe`` and
``TimedCarousel.observe``, and the shared fan-out helper used to deliver it.
"""

from __future__ import annotations

import warnings
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

StateCallback = Callable[["StateEvent"], None]


@dataclass(frozen=True)
class StateEvent:
    """Normalized state change event emitted by the browsing state machines.

    Parameters
    ----------
    source : Any
        The object whose state changed (browser, lightbox or carousel).
    reason : str
        Short transition name, e.g. ``"open"``, ``"next"``, ``"tick"``,
        ``"filter"``.
    old : Any
        Immutable state snapshot before the transition.
    new : Any
        Immutable state snapshot after the transition.

    Notes
    -----
    ``old`` and ``new`` are frozen dataclasses, so observers can keep them
    without copying.

    Examples
    --------
    >>> StateEvent(source=None, reason="close", old=None, new=None)  # doctest: +SKIP
    """

    source: Any
    reason: str
    old: Any
    new: Any


def dispatch_event(callbacks: Iterable[StateCallback], event: StateEvent) -> None:
    """Deliver ``event`` to every callback; a failing callback never blocks the rest."""
    for callback in tuple(callbacks):
        try:
            callback(event)
        except Exception as e:
            warnings.warn(f"State observer failed on {event.reason!r}: {e}")
