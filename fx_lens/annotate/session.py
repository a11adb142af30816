"""Bind a document to a settings store and switch presentation modes."""

from __future__ import annotations

from typing import Callable

from fx_lens.annotate.controller import AnnotationController, DEBOUNCE_SECONDS, INITIAL_SCAN_DELAY
from fx_lens.annotate.selection import SelectionHandler, TooltipOverlay
from fx_lens.config import ExtensionSettings, Mode, SettingsStore
from fx_lens.conversion import ConversionResolver
from fx_lens.document.live import LiveDocument
from fx_lens.extraction.extractor import MentionExtractor
from fx_lens.utils.logger import get_logger

LOGGER = get_logger(__name__)


class DocumentSession:
    """Drive annotation and selection for one document.

    ``auto`` observes the document and annotates mentions, ``selection``
    removes annotations and answers selections with tooltips, ``manual``
    removes annotations and does nothing else. Disabling the extension stops
    all automatic work but leaves existing annotations in place.
    """

    def __init__(
        self,
        document: LiveDocument,
        settings_store: SettingsStore,
        resolver: ConversionResolver,
        extractor: MentionExtractor | None = None,
        *,
        overlay: TooltipOverlay | None = None,
        debounce_seconds: float = DEBOUNCE_SECONDS,
        initial_delay: float = INITIAL_SCAN_DELAY,
    ) -> None:
        self.document = document
        self.settings_store = settings_store
        self.resolver = resolver
        extractor = extractor or MentionExtractor()
        settings = settings_store.get()
        self.controller = AnnotationController(
            document,
            extractor,
            resolver,
            settings,
            debounce_seconds=debounce_seconds,
            initial_delay=initial_delay,
        )
        self.selection = SelectionHandler(extractor, resolver, settings, overlay)
        self._unsubscribe: Callable[[], None] | None = None
        self._detach_selection: Callable[[], None] | None = None

    @property
    def settings(self) -> ExtensionSettings:
        return self.settings_store.get()

    def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.settings_store.on_change(self.apply)
        self.apply(self.settings_store.get())

    def apply(self, settings: ExtensionSettings) -> None:
        self.controller.apply_settings(settings)
        self.selection.apply_settings(settings)
        self.resolver.cache.apply_settings(settings)
        self._stop_selection()

        if not settings.extension_enabled:
            self.controller.stop()
            LOGGER.debug("Extension disabled; automatic conversion paused")
            return
        if settings.mode is Mode.AUTO:
            self.controller.start()
            return

        self.controller.stop()
        self.controller.strip_annotations()
        if settings.mode is Mode.SELECTION:
            self._detach_selection = self.selection.attach(self.document)

    def _stop_selection(self) -> None:
        if self._detach_selection is not None:
            self._detach_selection()
            self._detach_selection = None
        self.selection.overlay.dismiss()

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._stop_selection()
        self.controller.stop()

    async def drain(self) -> None:
        await self.controller.drain()
        await self.selection.drain()

    def __enter__(self) -> "DocumentSession":
        self.start()
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()


__all__ = ["DocumentSession"]
