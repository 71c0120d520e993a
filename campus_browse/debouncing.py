"""Deferred-call scheduling and queued debouncing helpers."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Optional, Protocol, Tuple
import asyncio
import logging
import threading

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


Scheduler = Callable[[float, Callable[[], None]], TimerHandle]


def call_later(delay_s: float, callback: Callable[[], None]) -> TimerHandle:
    """Run ``callback`` after ``delay_s`` seconds and return a cancellable handle.

    Inside a running asyncio loop (e.g. a Jupyter kernel) the call is scheduled
    on that loop; otherwise a daemon ``threading.Timer`` is used.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        timer = threading.Timer(delay_s, callback)
        timer.daemon = True
        timer.start()
        return timer
    return loop.call_later(delay_s, callback)


@dataclass
class _QueuedCall:
    args: Tuple[Any, ...]
    kwargs: dict[str, Any]


class QueuedDebouncer:
    """Queue callback invocations and execute at a fixed cadence.

    Parameters
    ----------
    callback:
        Callable to execute from queued events.
    execute_every_ms:
        Execution cadence in milliseconds.
    drop_overflow:
        If ``True``, each tick keeps only the last queued event before executing.
    scheduler:
        Deferred-call factory; defaults to :func:`call_later`.
    """

    def __init__(
        self,
        callback: Callable[..., Any],
        *,
        execute_every_ms: int,
        drop_overflow: bool = True,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        if execute_every_ms <= 0:
            raise ValueError("execute_every_ms must be > 0")
        self._callback = callback
        self._execute_every_s = execute_every_ms / 1000.0
        self._drop_overflow = bool(drop_overflow)
        self._scheduler = scheduler if scheduler is not None else call_later

        self._queue: Deque[_QueuedCall] = deque()
        self._lock = threading.Lock()
        self._timer: Optional[TimerHandle] = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        with self._lock:
            self._queue.append(_QueuedCall(args=args, kwargs=dict(kwargs)))
            if self._timer is None:
                self._timer = self._scheduler(self._execute_every_s, self._on_tick)

    def cancel(self) -> None:
        """Drop queued calls and cancel the pending tick."""
        with self._lock:
            self._queue.clear()
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

    def _on_tick(self) -> None:
        call: Optional[_QueuedCall] = None

        with self._lock:
            self._timer = None
            if not self._queue:
                return

            if self._drop_overflow and len(self._queue) > 1:
                last = self._queue[-1]
                self._queue.clear()
                self._queue.append(last)

            call = self._queue.popleft()
            if self._queue:
                self._timer = self._scheduler(self._execute_every_s, self._on_tick)

        try:
            self._callback(*call.args, **call.kwargs)
        except Exception as exc:
            logger.error("QueuedDebouncer callback failed: %s", exc)
