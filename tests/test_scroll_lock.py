from __future__ import annotations

import pytest

from campus_browse.scroll_lock import ScrollLock, ScrollLockError, document_scroll_lock


def test_lock_toggles_host_only_on_edges() -> None:
    changes: list[bool] = []
    lock = ScrollLock(on_change=changes.append)

    lock.acquire()
    lock.acquire()
    assert lock.depth == 2
    lock.release()
    assert lock.locked
    lock.release()

    assert not lock.locked
    assert changes == [True, False]


def test_unbalanced_release_raises() -> None:
    lock = ScrollLock()
    with pytest.raises(ScrollLockError):
        lock.release()


def test_held_releases_on_exception() -> None:
    lock = ScrollLock()
    with pytest.raises(ValueError):
        with lock.held():
            assert lock.locked
            raise ValueError("x")
    assert lock.depth == 0


def test_subscribe_pushes_current_state() -> None:
    lock = ScrollLock()
    lock.acquire()
    seen: list[bool] = []
    lock.subscribe(seen.append)
    assert seen == [True]
    lock.release()
    assert seen == [True, False]


def test_document_lock_is_shared() -> None:
    assert document_scroll_lock() is document_scroll_lock()


def test_every_subscriber_sees_edges_until_unsubscribed() -> None:
    first: list[bool] = []
    second: list[bool] = []
    lock = ScrollLock(on_change=first.append)
    lock.subscribe(second.append, fire=False)

    lock.acquire()
    lock.unsubscribe(first.append)
    lock.release()

    assert first == [True]
    assert second == [True, False]


def test_unsubscribe_unknown_callback_is_ignored() -> None:
    lock = ScrollLock()
    lock.unsubscribe(print)
    lock.acquire()
    assert lock.locked
