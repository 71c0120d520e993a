"""Notebook widget rendering for the browsing engine.

Purpose
-------
This module renders :class:`~campus_browse.collection_browser.CollectionBrowser`,
:class:`~campus_browse.lightbox.Lightbox` and
:class:`~campus_browse.carousel.TimedCarousel` with ipywidgets, and bridges
the two browser-side concerns the engine cannot reach from Python:

- keyboard events (``ArrowLeft``/``ArrowRight``/``Escape``) for the lightbox,
- the ``document.body.style.overflow`` scroll lock.

Both go through :class:`KeyboardBridge`, a hidden ``anywidget`` driver in the
same spirit as a resize driver: it has no visible output and only mirrors
synced traits and forwards messages.

Architecture
------------
Panels never hold state of their own. They subscribe to the engine objects via
``observe`` and redraw from the event payload, so the widgets can never
disagree with the state machines.

Examples
--------
>>> from campus_browse import CollectionBrowser, RESULTS
>>> from campus_browse.widgets import BrowserPanel
>>> browser = CollectionBrowser(RESULTS)  # doctest: +SKIP
>>> panel = BrowserPanel(browser)  # doctest: +SKIP
>>> browser.load({"results": [{"className": "10A", "fileType": "pdf"}]})  # doctest: +SKIP
>>> panel  # doctest: +SKIP
"""

from __future__ import annotations

import html
import logging
from collections.abc import Callable, Mapping
from typing import Any, Optional

import anywidget
import ipywidgets as widgets
import traitlets
from IPython.display import display

from .carousel import TimedCarousel
from .collection_browser import CollectionBrowser
from .collection_normalization import item_id
from .debouncing import QueuedDebouncer
from .lightbox import KEY_CLOSE, KEY_NEXT, KEY_PREV, Lightbox
from .StateEvent import StateEvent

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

__all__ = ["KeyboardBridge", "BrowserPanel", "LightboxPanel", "CarouselPanel"]

_LABEL_FIELDS: tuple[str, ...] = ("title", "event", "name", "className")


def item_label(item: Any) -> str:
    """Return a short human label for ``item``."""
    if isinstance(item, Mapping):
        for name in _LABEL_FIELDS:
            value = item.get(name)
            if value:
                return str(value)
        return item_id(item) or "(untitled)"
    return str(item)


class KeyboardBridge(anywidget.AnyWidget):
    """
    Hidden frontend driver for keyboard navigation and the scroll lock.

    Traitlets (synced to frontend)
    ------------------------------

    active:
        While ``True``, navigation keys pressed anywhere in the document are
        forwarded to Python as ``{"type": "key", "key": ...}`` messages.

    scroll_locked:
        Mirrors a :class:`~campus_browse.scroll_lock.ScrollLock`. ``True`` sets
        ``document.body.style.overflow = "hidden"``; ``False`` gives up this
        bridge's hold, and the original value returns once no bridge on the
        page holds the document.

    debug_js:
        If True, enables console logging from the frontend driver.
    """

    active = traitlets.Bool(False).tag(sync=True)
    scroll_locked = traitlets.Bool(False).tag(sync=True)
    debug_js = traitlets.Bool(False).tag(sync=True)

    _esm = r"""
    const NAV_KEYS = new Set(["ArrowLeft", "ArrowRight", "Escape"]);

    export default {
      render({ model, el }) {
        el.style.display = "none";
        let held = false;

        function log(...args) {
          if (model.get("debug_js")) {
            console.log("[KeyboardBridge]", ...args);
          }
        }

        // Bridges on one page share a hold count on <body>; the first hold
        // saves the original overflow and the last release restores it.
        function engage() {
          const body = document.body;
          if (held || !body) return;
          held = true;
          const count = Number(body.dataset.campusScrollHolds || "0");
          if (count === 0) body.dataset.campusSavedOverflow = body.style.overflow || "";
          body.dataset.campusScrollHolds = String(count + 1);
          body.style.overflow = "hidden";
        }

        function disengage() {
          const body = document.body;
          if (!held || !body) return;
          held = false;
          const count = Math.max(0, Number(body.dataset.campusScrollHolds || "1") - 1);
          body.dataset.campusScrollHolds = String(count);
          if (count === 0) {
            body.style.overflow = body.dataset.campusSavedOverflow || "";
            delete body.dataset.campusSavedOverflow;
          }
        }

        function applyLock() {
          if (model.get("scroll_locked")) engage();
          else disengage();
          log("scroll_locked", model.get("scroll_locked"));
        }

        function onKeyDown(e) {
          if (!model.get("active") || !NAV_KEYS.has(e.key)) return;
          e.preventDefault();
          model.send({ type: "key", key: e.key });
          log("key", e.key);
        }

        document.addEventListener("keydown", onKeyDown);
        model.on("change:scroll_locked", applyLock);
        applyLock();

        return () => {
          try { document.removeEventListener("keydown", onKeyDown); } catch (e) {}
          try { model.off("change:scroll_locked", applyLock); } catch (e) {}
          try { disengage(); } catch (e) {}
        };
      }
    };
    """

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._key_handlers: list[Callable[[str], Any]] = []
        self.on_msg(self._handle_custom_msg)

    def on_key(self, handler: Callable[[str], Any]) -> None:
        """Register ``handler(key)`` for forwarded key presses."""
        self._key_handlers.append(handler)

    def set_scroll_locked(self, locked: bool) -> None:
        self.scroll_locked = bool(locked)

    def press(self, key: str) -> None:
        """Deliver ``key`` as if it had been pressed in the browser."""
        if not self.active or key not in (KEY_PREV, KEY_NEXT, KEY_CLOSE):
            return
        for handler in tuple(self._key_handlers):
            handler(key)

    def _handle_custom_msg(self, _widget: Any, content: Any, _buffers: Any) -> None:
        if isinstance(content, Mapping) and content.get("type") == "key":
            self.press(str(content.get("key", "")))


class BrowserPanel:
    """
    Search box, facet dropdowns, result list and counters for one collection.

    Parameters
    ----------
    browser:
        The collection view model to render.
    on_select:
        Called with the item whose button is clicked (e.g. to open a lightbox).
    debounce_ms:
        Cadence for applying search-box edits to the browser.
    """

    def __init__(
        self,
        browser: CollectionBrowser,
        *,
        on_select: Optional[Callable[[Any], None]] = None,
        debounce_ms: int = 150,
    ) -> None:
        self._browser = browser
        self._on_select = on_select
        self._apply_query = QueuedDebouncer(browser.set_query, execute_every_ms=debounce_ms)
        self._syncing = False

        self.search = widgets.Text(
            value=browser.state.query,
            placeholder=f"Search {browser.config.name}...",
            continuous_update=True,
            layout=widgets.Layout(width="100%"),
        )
        self.dropdowns: dict[str, widgets.Dropdown] = {
            name: widgets.Dropdown(description=name, options=[("All", "")], value="")
            for name in browser.config.facet_fields
        }
        self.summary = widgets.HTML()
        self.results = widgets.VBox(layout=widgets.Layout(width="100%"))
        self.root_widget = widgets.VBox(
            [
                widgets.HBox(
                    [self.search, *self.dropdowns.values()],
                    layout=widgets.Layout(width="100%", flex_flow="row wrap"),
                ),
                self.summary,
                self.results,
            ],
            layout=widgets.Layout(width="100%"),
        )

        self.search.observe(self._on_search_change, names="value")
        for name, dropdown in self.dropdowns.items():
            dropdown.observe(self._make_facet_handler(name), names="value")
        browser.observe(self._on_browser_change, fire=True)

    @property
    def widget(self) -> widgets.Widget:
        return self.root_widget

    def close(self) -> None:
        """Cancel a pending search update."""
        self._apply_query.cancel()

    def _on_search_change(self, change: Any) -> None:
        self._apply_query(change["new"])

    def _make_facet_handler(self, name: str) -> Callable[[Any], None]:
        def _handler(change: Any) -> None:
            if self._syncing:
                return
            self._browser.set_constraint(name, change["new"])

        return _handler

    def _on_browser_change(self, event: StateEvent) -> None:
        if event.reason in ("observe", "load", "items", "clear"):
            self._sync_dropdowns()
        view = self._browser.view
        stats = view.stats
        counters = "".join(
            f" &middot; {html.escape(name)}: {count}" for name, count in stats.counts.items()
        )
        shown = len(view.items)
        noun = "item" if shown == 1 else "items"
        self.summary.value = (
            f"<b>{shown} {noun} found</b> of {stats.total}{counters}"
            if shown
            else f"<b>No {html.escape(self._browser.config.name)} found</b>"
        )
        self.results.children = tuple(self._row(item) for item in view.items)

    def _sync_dropdowns(self) -> None:
        constraints = self._browser.state.constraints
        self._syncing = True
        try:
            for name, dropdown in self.dropdowns.items():
                options = [("All", "")] + [
                    (str(value), value) for value in self._browser.facets(name)
                ]
                selected = constraints.get(name)
                dropdown.options = options
                dropdown.value = selected if any(v == selected for _, v in options[1:]) else ""
        finally:
            self._syncing = False

    def _row(self, item: Any) -> widgets.Widget:
        button = widgets.Button(
            description=item_label(item)[:80],
            layout=widgets.Layout(width="100%", justify_content="flex-start"),
        )
        if self._on_select is not None:
            button.on_click(lambda _b, item=item: self._on_select(item))
        return button

    def _ipython_display_(self, **kwargs: Any) -> None:
        display(self.root_widget)


class LightboxPanel:
    """
    Modal-style viewer bound to a :class:`~campus_browse.lightbox.Lightbox`.

    The panel hides itself while the lightbox is closed, forwards keyboard
    navigation from its :class:`KeyboardBridge` and mirrors the lightbox scroll
    lock to the bridge.
    """

    def __init__(
        self,
        lightbox: Optional[Lightbox] = None,
        *,
        bridge: Optional[KeyboardBridge] = None,
    ) -> None:
        self.lightbox = lightbox if lightbox is not None else Lightbox()
        self.bridge = bridge if bridge is not None else KeyboardBridge()

        self.image = widgets.HTML(layout=widgets.Layout(width="100%"))
        self.caption = widgets.Label()
        self.prev_button = widgets.Button(description="Previous", icon="chevron-left")
        self.next_button = widgets.Button(description="Next", icon="chevron-right")
        self.close_button = widgets.Button(description="Close", icon="times")
        self.root_widget = widgets.VBox(
            [
                self.image,
                widgets.HBox(
                    [self.prev_button, self.caption, self.next_button, self.close_button]
                ),
                self.bridge,
            ],
            layout=widgets.Layout(width="100%", display="none"),
        )

        self.prev_button.on_click(lambda _b: self.lightbox.prev())
        self.next_button.on_click(lambda _b: self.lightbox.next())
        self.close_button.on_click(lambda _b: self.lightbox.close())
        self.bridge.on_key(self.lightbox.handle_key)
        self.lightbox.scroll_lock.subscribe(self.bridge.set_scroll_locked)
        self.lightbox.observe(self._on_lightbox_change, fire=True)

    @property
    def widget(self) -> widgets.Widget:
        return self.root_widget

    def close(self) -> None:
        """Tear the viewer down, releasing the scroll lock if it is open.

        The bridge stops mirroring the shared lock and gives up its own hold
        on the document, even if another viewer still keeps the lock engaged.
        """
        self.lightbox.teardown()
        self.lightbox.scroll_lock.unsubscribe(self.bridge.set_scroll_locked)
        self.bridge.set_scroll_locked(False)

    def _on_lightbox_change(self, event: StateEvent) -> None:
        state = event.new
        self.bridge.active = state.is_open
        if not state.is_open:
            self.root_widget.layout.display = "none"
            self.image.value = ""
            self.caption.value = ""
            return
        src = html.escape(str(state.current), quote=True)
        self.image.value = f'<img src="{src}" style="max-width:100%;max-height:80vh;">'
        self.caption.value = f"{state.index + 1} / {len(state.items)}"
        single = len(state.items) <= 1
        self.prev_button.disabled = single
        self.next_button.disabled = single
        self.root_widget.layout.display = "flex"

    def _ipython_display_(self, **kwargs: Any) -> None:
        display(self.root_widget)


class CarouselPanel:
    """Current slide plus indicator dots for a :class:`TimedCarousel`."""

    def __init__(self, carousel: TimedCarousel) -> None:
        self.carousel = carousel
        self.slide = widgets.HTML()
        self.dots = widgets.HTML()
        self.root_widget = widgets.VBox(
            [self.slide, self.dots], layout=widgets.Layout(align_items="center")
        )
        carousel.observe(self._on_carousel_change, fire=True)

    @property
    def widget(self) -> widgets.Widget:
        return self.root_widget

    def close(self) -> None:
        self.carousel.teardown()

    def _on_carousel_change(self, event: StateEvent) -> None:
        state = event.new
        opacity = "0" if state.transitioning else "1"
        text = html.escape(state.current or "")
        self.slide.value = (
            f'<h3 style="opacity:{opacity};transition:opacity '
            f'{self.carousel.timing.transition_ms}ms">{text}</h3>'
        )
        if len(state.slides) <= 1:
            self.dots.value = ""
            return
        self.dots.value = "".join(
            "&#9679;" if dot.active else "&#9675;" for dot in state.indicators()
        )

    def _ipython_display_(self, **kwargs: Any) -> None:
        self.carousel.start()
        display(self.root_widget)
