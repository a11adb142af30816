"""A BeautifulSoup tree that reports its own mutations.

Every structural change made through :class:`LiveDocument` is recorded as a
:class:`MutationRecord` and delivered to observers in batches, much like a
browser ``MutationObserver``: records produced while an event loop is running
are queued and flushed together on the next loop iteration; outside an event
loop they are delivered immediately. Page scripts and the annotation
controller use the same API, so observers see both.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping

from bs4 import BeautifulSoup, NavigableString, PageElement, Tag

from fx_lens.utils.logger import get_logger

LOGGER = get_logger(__name__)

INHERITED_FONT_PROPERTIES = ("font-size", "font-family", "font-weight")
_EDITABLE_VALUES = {"", "true", "plaintext-only"}


class MutationConflict(RuntimeError):
    """Raised when a node targeted by a mutation is no longer in the tree."""


@dataclass(frozen=True, slots=True)
class MutationRecord:
    """Child-list change under ``target``."""

    target: PageElement
    added_nodes: tuple[PageElement, ...] = ()
    removed_nodes: tuple[PageElement, ...] = ()


@dataclass(frozen=True, slots=True)
class SelectionEvent:
    """Text selected by the user together with its viewport position."""

    text: str
    x: float = 0.0
    y: float = 0.0


MutationCallback = Callable[[list[MutationRecord]], None]
SelectionCallback = Callable[[SelectionEvent], None]


def has_class(element: PageElement | None, class_name: str) -> bool:
    if not isinstance(element, Tag):
        return False
    classes = element.get("class") or []
    if isinstance(classes, str):
        classes = classes.split()
    return class_name in classes


def parse_style(declarations: str | None) -> dict[str, str]:
    """Parse an inline ``style`` attribute into a property mapping."""

    styles: dict[str, str] = {}
    for declaration in (declarations or "").split(";"):
        name, sep, value = declaration.partition(":")
        if sep and name.strip() and value.strip():
            styles[name.strip().lower()] = value.strip()
    return styles


def format_style(styles: Mapping[str, str]) -> str:
    return "; ".join(f"{name}: {value}" for name, value in styles.items())


class LiveDocument:
    """Wrap a parsed HTML document with mutation and selection notifications."""

    def __init__(self, soup: BeautifulSoup) -> None:
        self.soup = soup
        self._observers: list[MutationCallback] = []
        self._selection_listeners: list[SelectionCallback] = []
        self._pending: list[MutationRecord] = []
        self._flush_scheduled = False

    @classmethod
    def from_html(cls, html: str, *, parser: str = "html.parser") -> "LiveDocument":
        return cls(BeautifulSoup(html, parser))

    @property
    def body(self) -> Tag:
        return self.soup.body or self.soup

    def render(self) -> str:
        return str(self.soup)

    # -- node factories -------------------------------------------------

    def new_tag(
        self,
        name: str,
        *,
        classes: Iterable[str] = (),
        style: Mapping[str, str] | None = None,
        text: str | None = None,
        attrs: Mapping[str, Any] | None = None,
    ) -> Tag:
        tag_attrs: dict[str, Any] = dict(attrs or {})
        class_list = list(classes)
        if class_list:
            tag_attrs["class"] = class_list
        if style:
            tag_attrs["style"] = format_style(style)
        tag = self.soup.new_tag(name, attrs=tag_attrs)
        if text is not None:
            tag.string = text
        return tag

    # -- queries --------------------------------------------------------

    def is_attached(self, node: PageElement | None) -> bool:
        """Return True when ``node`` is still reachable from the document root."""

        if node is None:
            return False
        if node is self.soup:
            return True
        return any(parent is self.soup for parent in node.parents)

    def computed_style(self, element: Tag) -> dict[str, str]:
        """Approximate the computed font properties of ``element``.

        Only inline ``style`` declarations are known, so inherited properties
        are resolved by walking up the ancestor chain.
        """

        resolved: dict[str, str] = {}
        current: PageElement | None = element
        while isinstance(current, Tag) and len(resolved) < len(INHERITED_FONT_PROPERTIES):
            declared = parse_style(current.get("style"))
            for name in INHERITED_FONT_PROPERTIES:
                if name not in resolved and name in declared:
                    resolved[name] = declared[name]
            current = current.parent
        return resolved

    def is_content_editable(self, element: Tag) -> bool:
        current: PageElement | None = element
        while isinstance(current, Tag):
            value = current.get("contenteditable")
            if value is not None:
                return str(value).strip().lower() in _EDITABLE_VALUES
            current = current.parent
        return False

    # -- mutations ------------------------------------------------------

    def append_child(self, parent: Tag, node: PageElement) -> PageElement:
        if not self.is_attached(parent):
            raise MutationConflict("cannot append to a detached element")
        parent.append(node)
        self._record(MutationRecord(target=parent, added_nodes=(node,)))
        return node

    def insert_before(self, reference: PageElement, *nodes: PageElement) -> None:
        parent = reference.parent
        if parent is None or not self.is_attached(reference):
            raise MutationConflict("reference node is no longer in the document")
        reference.insert_before(*nodes)
        self._record(MutationRecord(target=parent, added_nodes=tuple(nodes)))

    def remove(self, node: PageElement) -> None:
        parent = node.parent
        if parent is None:
            raise MutationConflict("node is already detached")
        node.extract()
        self._record(MutationRecord(target=parent, removed_nodes=(node,)))

    def split_text(self, node: NavigableString, offset: int, inserted: PageElement) -> None:
        """Split ``node`` at ``offset`` and place ``inserted`` between the halves.

        The replacement is reported as a single record so observers can tell
        that ``inserted`` arrived together with the two text halves.
        """

        parent = node.parent
        if parent is None or not self.is_attached(node):
            raise MutationConflict("text node was removed before it could be split")
        text = str(node)
        before = NavigableString(text[:offset])
        added: list[PageElement] = [before, inserted]
        after_text = text[offset:]
        if after_text:
            added.append(NavigableString(after_text))
        node.replace_with(*added)
        self._record(MutationRecord(target=parent, added_nodes=tuple(added), removed_nodes=(node,)))

    def merge_text(self, element: Tag) -> None:
        """Join adjacent text nodes under ``element``."""

        if not self.is_attached(element):
            return
        element.smooth()
        merged = tuple(child for child in element.children if isinstance(child, NavigableString))
        self._record(MutationRecord(target=element, added_nodes=merged))

    # -- observers ------------------------------------------------------

    def observe(self, callback: MutationCallback) -> Callable[[], None]:
        self._observers.append(callback)

        def _disconnect() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return _disconnect

    def take_records(self) -> list[MutationRecord]:
        """Return and discard records that have not been delivered yet."""

        records, self._pending = self._pending, []
        return records

    def _record(self, record: MutationRecord) -> None:
        if not self._observers:
            return
        self._pending.append(record)
        if self._flush_scheduled:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._flush()
            return
        self._flush_scheduled = True
        loop.call_soon(self._flush)

    def _flush(self) -> None:
        self._flush_scheduled = False
        records = self.take_records()
        if not records:
            return
        for observer in list(self._observers):
            observer(records)

    # -- selection ------------------------------------------------------

    def on_selection(self, callback: SelectionCallback) -> Callable[[], None]:
        self._selection_listeners.append(callback)

        def _remove() -> None:
            if callback in self._selection_listeners:
                self._selection_listeners.remove(callback)

        return _remove

    def select(self, text: str, *, x: float = 0.0, y: float = 0.0) -> SelectionEvent:
        """Dispatch a text-selection event to every listener."""

        event = SelectionEvent(text=text, x=x, y=y)
        for listener in list(self._selection_listeners):
            listener(event)
        return event


__all__ = [
    "LiveDocument",
    "MutationConflict",
    "MutationRecord",
    "SelectionEvent",
    "has_class",
    "parse_style",
]
