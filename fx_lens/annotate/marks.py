"""Weak "already annotated" membership for document elements."""

from __future__ import annotations

import weakref
from typing import Callable

from bs4 import PageElement


class AnnotationMarks:
    """Identity-keyed side table of annotated elements.

    Elements are held through weak references, so a mark never keeps an
    element alive. BeautifulSoup tags compare by content, which is why the
    table is keyed by ``id`` and every lookup checks identity. A mark only
    counts while ``is_attached`` says the element is still in the document;
    marks of detached elements are dropped on lookup and by :meth:`prune`.
    """

    def __init__(self, is_attached: Callable[[PageElement], bool] | None = None) -> None:
        self._refs: dict[int, weakref.ref[PageElement]] = {}
        self._is_attached = is_attached

    def add(self, element: PageElement) -> None:
        key = id(element)

        def _forget(ref: weakref.ref[PageElement], key: int = key) -> None:
            if self._refs.get(key) is ref:
                del self._refs[key]

        self._refs[key] = weakref.ref(element, _forget)

    def discard(self, element: PageElement) -> None:
        ref = self._refs.get(id(element))
        if ref is not None and ref() is element:
            del self._refs[id(element)]

    def __contains__(self, element: object) -> bool:
        if element is None:
            return False
        ref = self._refs.get(id(element))
        if ref is None or ref() is not element:
            return False
        if self._is_attached is not None and not self._is_attached(element):  # type: ignore[arg-type]
            del self._refs[id(element)]
            return False
        return True

    def prune(self) -> int:
        """Forget dead or detached elements and return how many were dropped."""

        dropped = 0
        for key, ref in list(self._refs.items()):
            element = ref()
            if element is None or (self._is_attached is not None and not self._is_attached(element)):
                self._refs.pop(key, None)
                dropped += 1
        return dropped

    def __len__(self) -> int:
        return len(self._refs)


__all__ = ["AnnotationMarks"]
