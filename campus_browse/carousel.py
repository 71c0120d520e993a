"""Timed rotating carousel state machine.

Purpose
-------
``TimedCarousel`` drives the rotating hero subtitles and the CMS subtitle
preview. It cycles through a static list of slides:

- Idle: one slide or none; the timer never starts.
- Displaying(i): after ``dwell_ms`` the carousel begins a transition.
- Transitioning(i, j): after ``transition_ms`` slide ``j = (i + 1) % n`` is
  displayed and the dwell timer is armed again.

The dwell timer is only ever armed from Displaying, so at most one deferred
call is pending per instance and transitions never overlap. ``stop()`` (and
``teardown()``) cancel the pending call.

Presentation helpers (:meth:`TimedCarousel.progress` and
:meth:`TimedCarousel.indicators`) are pure projections of the state and the
elapsed time since the last phase change; they hold no state of their own.

Examples
--------
>>> from campus_browse.carousel import parse_subtitles
>>> parse_subtitles("Inspiring Leaders; Future Innovators | Excellence")
['Inspiring Leaders', 'Future Innovators', 'Excellence']
"""

from __future__ import annotations

import functools
import logging
import re
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from typing import Any, Optional

from .browse_config import HERO_TIMING, CarouselTiming
from .debouncing import Scheduler, TimerHandle, call_later
from .StateEvent import StateCallback, StateEvent, dispatch_event

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

_SUBTITLE_SEPARATORS = re.compile(r"[;|\n\r]+")

PHASE_IDLE = "idle"
PHASE_DISPLAYING = "displaying"
PHASE_TRANSITIONING = "transitioning"


def parse_subtitles(text: Any) -> list[str]:
    """Split a CMS subtitle string on ``;``, ``|`` and line breaks."""
    if not isinstance(text, str):
        return []
    return [part.strip() for part in _SUBTITLE_SEPARATORS.split(text) if part.strip()]


@dataclass(frozen=True)
class CarouselState:
    """Immutable carousel state.

    Parameters
    ----------
    slides : tuple[str, ...]
        Slide texts.
    index : int
        Slide currently displayed (or leaving, while transitioning).
    transitioning : bool
        Whether a transition towards ``target`` is in progress.
    target : int or None
        Slide entering during a transition.
    phase_started : float
        Clock reading when the current phase began.
    """

    slides: tuple[str, ...] = ()
    index: int = 0
    transitioning: bool = False
    target: Optional[int] = None
    phase_started: float = 0.0

    @property
    def phase(self) -> str:
        if len(self.slides) <= 1:
            return PHASE_IDLE
        return PHASE_TRANSITIONING if self.transitioning else PHASE_DISPLAYING

    @property
    def current(self) -> Optional[str]:
        return self.slides[self.index] if self.slides else None

    def indicators(self) -> tuple[SlideIndicator, ...]:
        """Return one indicator per slide, derived from this state."""
        return tuple(
            SlideIndicator(
                position=i,
                active=i == self.index,
                entering=self.transitioning and i == self.target,
                leaving=self.transitioning and i == self.index,
            )
            for i in range(len(self.slides))
        )


@dataclass(frozen=True)
class SlideIndicator:
    """Projection of one slide for dot/progress indicators."""

    position: int
    active: bool
    entering: bool
    leaving: bool


class TimedCarousel:
    """Rotate through ``slides`` on a fixed timer.

    Parameters
    ----------
    slides : sequence of str
        Slides to rotate through.
    timing : CarouselTiming
        Dwell and transition durations.
    scheduler : callable, optional
        ``scheduler(delay_s, callback) -> handle`` with ``handle.cancel()``.
        Defaults to :func:`~campus_browse.debouncing.call_later`.
    clock : callable, optional
        Monotonic clock in seconds, used for progress reporting.
    """

    def __init__(
        self,
        slides: Sequence[str] = (),
        *,
        timing: CarouselTiming = HERO_TIMING,
        scheduler: Optional[Scheduler] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._timing = timing
        self._scheduler = scheduler if scheduler is not None else call_later
        self._clock = clock if clock is not None else time.monotonic
        self._lock = threading.RLock()
        self._handle: Optional[TimerHandle] = None
        self._generation = 0
        self._running = False
        self._observers: list[StateCallback] = []
        self._state = CarouselState(slides=tuple(slides), phase_started=self._clock())

    # -- read-only state ---------------------------------------------------

    @property
    def state(self) -> CarouselState:
        return self._state

    @property
    def timing(self) -> CarouselTiming:
        return self._timing

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pending(self) -> bool:
        """Whether a deferred transition is scheduled."""
        return self._handle is not None

    def observe(self, callback: StateCallback, *, fire: bool = False) -> None:
        """Register ``callback`` for state changes."""
        self._observers.append(callback)
        if fire:
            callback(StateEvent(source=self, reason="observe", old=self._state, new=self._state))

    def progress(self, now: Optional[float] = None) -> float:
        """Return the completed fraction of the current phase, in ``[0, 1]``."""
        state = self._state
        if state.phase == PHASE_IDLE:
            return 0.0
        duration_ms = (
            self._timing.transition_ms if state.transitioning else self._timing.dwell_ms
        )
        if duration_ms <= 0:
            return 1.0
        reading = self._clock() if now is None else now
        elapsed_ms = (reading - state.phase_started) * 1000.0
        return min(1.0, max(0.0, elapsed_ms / duration_ms))

    def indicators(self) -> tuple[SlideIndicator, ...]:
        """Return one indicator per slide, derived from the current state."""
        return self._state.indicators()

    # -- lifecycle ---------------------------------------------------------

    def start(self) -> None:
        """Begin rotating. A no-op when idle or already running."""
        with self._lock:
            if self._running or self._state.phase == PHASE_IDLE:
                return
            self._running = True
            self._arm_locked()
        logger.debug("carousel started with %d slides", len(self._state.slides))

    def stop(self) -> None:
        """Cancel the pending timer; the state is kept as is."""
        with self._lock:
            self._running = False
            self._generation += 1
            handle, self._handle = self._handle, None
        if handle is not None:
            handle.cancel()

    def teardown(self) -> None:
        """Owning view is going away: stop and forget observers."""
        self.stop()
        self._observers.clear()

    def set_slides(self, slides: Sequence[str]) -> None:
        """Replace the slides and restart from the first one."""
        with self._lock:
            was_running = self._running
        self.stop()
        self._transition(
            CarouselState(slides=tuple(slides), phase_started=self._clock()), "slides"
        )
        if was_running:
            self.start()

    def advance(self) -> None:
        """Perform the next phase change immediately.

        Any pending timer is replaced by one for the new phase, so manual and
        timed driving never overlap.
        """
        with self._lock:
            if self._state.phase == PHASE_IDLE:
                return
            self._generation += 1
            handle, self._handle = self._handle, None
            change = self._step_locked()
        if handle is not None:
            handle.cancel()
        self._publish(change)

    def __enter__(self) -> TimedCarousel:
        self.start()
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.teardown()

    # -- internals ---------------------------------------------------------

    def _arm_locked(self) -> None:
        if self._state.transitioning:
            delay_ms = self._timing.transition_ms
        else:
            delay_ms = self._timing.dwell_ms
        self._generation += 1
        self._handle = self._scheduler(
            delay_ms / 1000.0, functools.partial(self._on_timer, self._generation)
        )

    def _on_timer(self, generation: int) -> None:
        # A timer thread that fired before cancel() may still get here; only
        # the most recently armed timer may step the carousel.
        with self._lock:
            if generation != self._generation or not self._running:
                return
            self._handle = None
            try:
                change = self._step_locked()
            except Exception as exc:
                logger.error("TimedCarousel tick failed: %s", exc)
                return
        self._publish(change)

    def _step_locked(self) -> Optional[tuple[CarouselState, CarouselState, str]]:
        state = self._state
        if state.phase == PHASE_IDLE:
            return None
        now = self._clock()
        if state.transitioning:
            target = state.target if state.target is not None else state.index
            new = replace(state, index=target, transitioning=False, target=None, phase_started=now)
            reason = "display"
        else:
            new = replace(
                state,
                transitioning=True,
                target=(state.index + 1) % len(state.slides),
                phase_started=now,
            )
            reason = "transition"
        self._state = new
        if self._running and self._handle is None:
            self._arm_locked()
        return state, new, reason

    def _publish(self, change: Optional[tuple[CarouselState, CarouselState, str]]) -> None:
        if change is None:
            return
        old, new, reason = change
        logger.debug("carousel %s: index=%d target=%s", reason, new.index, new.target)
        dispatch_event(self._observers, StateEvent(source=self, reason=reason, old=old, new=new))

    def _transition(self, new: CarouselState, reason: str) -> None:
        with self._lock:
            old = self._state
            self._state = new
        dispatch_event(self._observers, StateEvent(source=self, reason=reason, old=old, new=new))
