from __future__ import annotations

import logging
from unittest.mock import patch

from campus_browse.browse_config import RESULTS
from campus_browse.collection_browser import CollectionBrowser
from campus_browse.debouncing import QueuedDebouncer, call_later


class _FakeThreadTimer:
    created: list["_FakeThreadTimer"] = []

    def __init__(self, delay: float, callback):
        self.delay = delay
        self.callback = callback
        self.daemon = False
        self.started = False
        self.cancelled = False
        _FakeThreadTimer.created.append(self)

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True


class _FakeLoopHandle:
    def __init__(self, callback):
        self._callback = callback
        self.cancelled = False

    def fire(self) -> None:
        self._callback()

    def cancel(self) -> None:
        self.cancelled = True


class _FakeAsyncLoop:
    def __init__(self) -> None:
        self.handles: list[_FakeLoopHandle] = []

    def call_later(self, _delay: float, callback):
        handle = _FakeLoopHandle(callback)
        self.handles.append(handle)
        return handle


def test_call_later_uses_daemon_thread_timer_without_running_loop() -> None:
    _FakeThreadTimer.created.clear()

    with patch("campus_browse.debouncing.threading.Timer", _FakeThreadTimer):
        handle = call_later(0.25, lambda: None)

    assert handle is _FakeThreadTimer.created[0]
    assert handle.daemon is True
    assert handle.started is True
    assert handle.delay == 0.25


def test_call_later_prefers_running_asyncio_loop() -> None:
    fake_loop = _FakeAsyncLoop()

    with patch("campus_browse.debouncing.asyncio.get_running_loop", return_value=fake_loop):
        handle = call_later(0.1, lambda: None)

    assert fake_loop.handles == [handle]


def _results_browser() -> CollectionBrowser:
    browser = CollectionBrowser(RESULTS)
    browser.load(
        {
            "results": [
                {"_id": "r1", "className": "10A", "title": "Term 1"},
                {"_id": "r2", "className": "9A", "title": "Term 1"},
            ]
        }
    )
    return browser


def test_unknown_facet_from_thread_timer_is_logged_and_next_edit_applies(caplog) -> None:
    browser = _results_browser()
    _FakeThreadTimer.created.clear()

    with patch("campus_browse.debouncing.threading.Timer", _FakeThreadTimer):
        apply_facet = QueuedDebouncer(
            browser.set_constraint, execute_every_ms=1, drop_overflow=False
        )
        with caplog.at_level(logging.ERROR, logger="campus_browse.debouncing"):
            apply_facet("term", "autumn")
            apply_facet("className", "9A")
            _FakeThreadTimer.created[0].callback()
            assert apply_facet.pending is True
            _FakeThreadTimer.created[-1].callback()

    assert "Unknown facet" in caplog.text
    assert [item["_id"] for item in browser.visible] == ["r2"]
    assert apply_facet.pending is False


def test_search_edits_on_event_loop_survive_a_failing_listener(caplog) -> None:
    browser = _results_browser()
    fake_loop = _FakeAsyncLoop()
    applied: list[str] = []

    def _apply(query: str) -> None:
        if not query.strip():
            raise ValueError("blank search")
        browser.set_query(query)
        applied.append(query)

    with patch("campus_browse.debouncing.asyncio.get_running_loop", return_value=fake_loop):
        debounced = QueuedDebouncer(_apply, execute_every_ms=150, drop_overflow=False)
        with caplog.at_level(logging.ERROR, logger="campus_browse.debouncing"):
            debounced("   ")
            debounced("term")
            fake_loop.handles[0].fire()
            assert len(fake_loop.handles) == 2
            fake_loop.handles[1].fire()

    assert "QueuedDebouncer callback failed: blank search" in caplog.text
    assert applied == ["term"]
    assert browser.state.query == "term"
    assert len(browser.visible) == 2


def test_debouncer_drop_overflow_keeps_only_latest_query() -> None:
    seen = []
    fake_loop = _FakeAsyncLoop()

    with patch("campus_browse.debouncing.asyncio.get_running_loop", return_value=fake_loop):
        debouncer = QueuedDebouncer(seen.append, execute_every_ms=50)
        debouncer("s")
        debouncer("sc")
        debouncer("sci")
        fake_loop.handles[0].fire()

    assert seen == ["sci"]
    assert len(fake_loop.handles) == 1


def test_debouncer_cancel_drops_queue_and_pending_timer() -> None:
    seen = []
    fake_loop = _FakeAsyncLoop()

    with patch("campus_browse.debouncing.asyncio.get_running_loop", return_value=fake_loop):
        debouncer = QueuedDebouncer(seen.append, execute_every_ms=50)
        debouncer("x")
        assert debouncer.pending is True
        debouncer.cancel()

    assert fake_loop.handles[0].cancelled is True
    assert debouncer.pending is False
    fake_loop.handles[0].fire()
    assert seen == []
