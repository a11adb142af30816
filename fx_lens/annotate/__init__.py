"""Document annotation and selection tooltips for :mod:`fx_lens`."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

__all__ = [
    "AnnotationController",
    "DocumentSession",
    "SelectionHandler",
    "TooltipOverlay",
]

if TYPE_CHECKING:  # pragma: no cover - import only for static analyzers
    from fx_lens.annotate.controller import AnnotationController as AnnotationController
    from fx_lens.annotate.session import DocumentSession as DocumentSession


def __getattr__(name: str) -> Any:
    """Resolve the public classes on first access."""

    if name == "AnnotationController":
        from fx_lens.annotate.controller import AnnotationController as _controller

        return _controller
    if name == "DocumentSession":
        from fx_lens.annotate.session import DocumentSession as _session

        return _session
    if name in {"SelectionHandler", "TooltipOverlay"}:
        from fx_lens.annotate.selection import SelectionHandler as _handler
        from fx_lens.annotate.selection import TooltipOverlay as _overlay

        return {"SelectionHandler": _handler, "TooltipOverlay": _overlay}[name]
    raise AttributeError(f"module 'fx_lens.annotate' has no attribute {name}")
