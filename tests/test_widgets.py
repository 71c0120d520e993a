from __future__ import annotations

from dataclasses import replace

import campus_browse.widgets as widgets_module
from campus_browse.browse_config import PREVIEW_TIMING, RESULTS
from campus_browse.carousel import TimedCarousel
from campus_browse.collection_browser import CollectionBrowser
from campus_browse.lightbox import Lightbox
from campus_browse.scroll_lock import ScrollLock
from campus_browse.StateEvent import StateEvent
from campus_browse.widgets import (
    BrowserPanel,
    CarouselPanel,
    KeyboardBridge,
    LightboxPanel,
    item_label,
)


class _ImmediateDebouncer:
    def __init__(self, callback, *, execute_every_ms: int, drop_overflow: bool = True):
        self._callback = callback
        self.cancelled = False

    def __call__(self, *args, **kwargs):
        self._callback(*args, **kwargs)

    def cancel(self) -> None:
        self.cancelled = True


RESULT_PAYLOAD = {
    "results": [
        {"_id": "r1", "className": "10A", "fileType": "image", "title": "Term 1"},
        {"_id": "r2", "className": "9A", "fileType": "pdf", "title": "Term 1"},
        {"_id": "r3", "className": "10A", "fileType": "pdf", "title": "Finals"},
    ]
}


def _panel(monkeypatch, **kwargs):
    monkeypatch.setattr(widgets_module, "QueuedDebouncer", _ImmediateDebouncer)
    browser = CollectionBrowser(RESULTS)
    panel = BrowserPanel(browser, **kwargs)
    browser.load(RESULT_PAYLOAD)
    return browser, panel


def test_item_label_prefers_title_then_identifier() -> None:
    assert item_label({"title": "Sports Day", "event": "x"}) == "Sports Day"
    assert item_label({"event": "Annual Day"}) == "Annual Day"
    assert item_label({"_id": "abc"}) == "abc"
    assert item_label({}) == "(untitled)"
    assert item_label("plain") == "plain"


def test_browser_panel_populates_facet_dropdowns(monkeypatch) -> None:
    _, panel = _panel(monkeypatch)

    class_options = [value for _, value in panel.dropdowns["className"].options]
    assert class_options == ["", "10A", "9A"]
    type_options = [value for _, value in panel.dropdowns["fileType"].options]
    assert type_options == ["", "image", "pdf"]
    assert len(panel.results.children) == 3
    assert "3 items found" in panel.summary.value


def test_browser_panel_dropdown_and_search_drive_the_browser(monkeypatch) -> None:
    browser, panel = _panel(monkeypatch)

    panel.dropdowns["className"].value = "10A"
    assert browser.state.constraints["className"] == "10A"
    assert [item["_id"] for item in browser.visible] == ["r1", "r3"]

    panel.search.value = "final"
    assert [item["_id"] for item in browser.visible] == ["r3"]
    assert "1 item found" in panel.summary.value

    panel.search.value = "nothing matches"
    assert panel.results.children == ()
    assert "No results found" in panel.summary.value


def test_browser_panel_clear_resets_dropdowns(monkeypatch) -> None:
    browser, panel = _panel(monkeypatch)
    panel.dropdowns["fileType"].value = "pdf"
    browser.clear_filters()
    assert panel.dropdowns["fileType"].value == ""
    assert len(panel.results.children) == 3


def test_browser_panel_row_click_selects_item(monkeypatch) -> None:
    chosen = []
    _, panel = _panel(monkeypatch, on_select=chosen.append)
    panel.results.children[1].click()
    assert chosen and chosen[0]["_id"] == "r2"


def test_browser_panel_close_cancels_pending_search(monkeypatch) -> None:
    _, panel = _panel(monkeypatch)
    panel.close()
    assert panel._apply_query.cancelled


def test_keyboard_bridge_only_forwards_navigation_keys_while_active() -> None:
    bridge = KeyboardBridge()
    seen = []
    bridge.on_key(seen.append)

    bridge.press("ArrowRight")
    bridge.active = True
    bridge.press("Enter")
    bridge._handle_custom_msg(bridge, {"type": "key", "key": "ArrowLeft"}, [])
    bridge._handle_custom_msg(bridge, {"type": "other"}, [])

    assert seen == ["ArrowLeft"]


def test_lightbox_panel_mirrors_state_and_scroll_lock() -> None:
    lock = ScrollLock()
    panel = LightboxPanel(Lightbox(scroll_lock=lock))
    assert panel.root_widget.layout.display == "none"
    assert panel.bridge.scroll_locked is False

    panel.lightbox.open(["a.jpg", "b.jpg", "c.jpg"], 1)
    assert panel.root_widget.layout.display == "flex"
    assert panel.bridge.active is True
    assert panel.bridge.scroll_locked is True
    assert panel.caption.value == "2 / 3"
    assert 'src="b.jpg"' in panel.image.value

    panel.bridge.press("ArrowRight")
    assert panel.caption.value == "3 / 3"
    panel.next_button.click()
    assert panel.caption.value == "1 / 3"

    panel.bridge.press("Escape")
    assert panel.root_widget.layout.display == "none"
    assert panel.bridge.scroll_locked is False
    assert panel.bridge.active is False
    assert lock.depth == 0


def test_lightbox_panel_disables_navigation_for_single_image() -> None:
    panel = LightboxPanel(Lightbox(scroll_lock=ScrollLock()))
    panel.lightbox.open(["only.jpg"])
    assert panel.prev_button.disabled
    assert panel.next_button.disabled
    assert panel.caption.value == "1 / 1"


def test_lightbox_panel_close_releases_lock() -> None:
    lock = ScrollLock()
    panel = LightboxPanel(Lightbox(scroll_lock=lock))
    panel.lightbox.open(["a.jpg", "b.jpg"])
    panel.close()
    assert lock.depth == 0
    assert not panel.lightbox.is_open


class _FakeScheduler:
    def __init__(self) -> None:
        self.handles = []

    def __call__(self, delay, callback):
        handle = _FakeHandle(callback)
        self.handles.append(handle)
        return handle

    def fire(self) -> None:
        handle = next(h for h in self.handles if not h.cancelled and not h.fired)
        handle.fired = True
        handle.callback()


class _FakeHandle:
    def __init__(self, callback) -> None:
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


def test_carousel_panel_renders_slide_and_dots() -> None:
    scheduler = _FakeScheduler()
    carousel = TimedCarousel(
        ["Leaders", "Innovators"], timing=PREVIEW_TIMING, scheduler=scheduler, clock=lambda: 0.0
    )
    panel = CarouselPanel(carousel)
    assert "Leaders" in panel.slide.value
    assert "opacity:1" in panel.slide.value
    assert panel.dots.value == "&#9679;&#9675;"

    carousel.start()
    scheduler.fire()
    assert "opacity:0" in panel.slide.value
    scheduler.fire()
    assert "Innovators" in panel.slide.value
    assert panel.dots.value == "&#9675;&#9679;"

    panel.close()
    assert not carousel.running
    assert all(h.cancelled or h.fired for h in scheduler.handles)


def test_carousel_panel_hides_dots_for_single_slide() -> None:
    panel = CarouselPanel(TimedCarousel(["Only"], scheduler=_FakeScheduler()))
    assert panel.dots.value == ""
    assert "Only" in panel.slide.value


def test_panels_sharing_a_lock_each_track_release() -> None:
    lock = ScrollLock()
    first = LightboxPanel(Lightbox(scroll_lock=lock))
    first.lightbox.open(["a.jpg", "b.jpg"])

    second = LightboxPanel(Lightbox(scroll_lock=lock))
    assert second.bridge.scroll_locked is True

    first.lightbox.close()
    assert not lock.locked
    assert first.bridge.scroll_locked is False
    assert second.bridge.scroll_locked is False


def test_closing_one_panel_keeps_the_other_connected() -> None:
    lock = ScrollLock()
    first = LightboxPanel(Lightbox(scroll_lock=lock))
    second = LightboxPanel(Lightbox(scroll_lock=lock))

    first.close()
    second.lightbox.open(["a.jpg"])
    assert second.bridge.scroll_locked is True
    assert first.bridge.scroll_locked is False

    second.lightbox.close()
    assert second.bridge.scroll_locked is False


def test_carousel_dots_follow_the_delivered_state() -> None:
    scheduler = _FakeScheduler()
    carousel = TimedCarousel(["a", "b", "c"], scheduler=scheduler, clock=lambda: 0.0)
    panel = CarouselPanel(carousel)

    # The live carousel has moved on while an older event is being rendered.
    delivered = replace(carousel.state, index=2)
    panel._on_carousel_change(
        StateEvent(source=carousel, reason="display", old=carousel.state, new=delivered)
    )

    assert ">c</h3>" in panel.slide.value
    assert panel.dots.value == "&#9675;&#9675;&#9679;"
