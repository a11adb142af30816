"""Tooltip conversions for user-selected text."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from fx_lens.config import ExtensionSettings, Mode
from fx_lens.conversion import ConversionResolver, ConversionResult, format_amount
from fx_lens.document.live import LiveDocument, SelectionEvent
from fx_lens.extraction.extractor import MentionExtractor
from fx_lens.extraction.patterns import currency_symbol
from fx_lens.utils.logger import get_logger

LOGGER = get_logger(__name__)

TOOLTIP_DISMISS_SECONDS = 4.0
TOOLTIP_OFFSET_Y = 20.0


@dataclass(frozen=True, slots=True)
class Tooltip:
    result: ConversionResult
    source_label: str
    target_label: str
    x: float
    y: float

    @property
    def lines(self) -> tuple[str, str, str]:
        return (self.source_label, "↓", self.target_label)


def _label(amount: float, code: str, decimal_places: int) -> str:
    return f"{currency_symbol(code)}{format_amount(amount, decimal_places)} {code}"


class TooltipOverlay:
    """Holds at most one visible tooltip and dismisses it after a delay."""

    def __init__(self, dismiss_after: float = TOOLTIP_DISMISS_SECONDS) -> None:
        self.dismiss_after = dismiss_after
        self.current: Tooltip | None = None
        self._timer: asyncio.TimerHandle | None = None

    def show(self, tooltip: Tooltip) -> None:
        self.dismiss()
        self.current = tooltip
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._timer = loop.call_later(self.dismiss_after, self.dismiss)

    def dismiss(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self.current = None


class SelectionHandler:
    """Convert the first mention found in a selection and show it as a tooltip.

    The document is never modified in this mode. Selections without a
    currency indicator fall back to ``settings.base_currency``, and plain
    integers are accepted as amounts.
    """

    def __init__(
        self,
        extractor: MentionExtractor,
        resolver: ConversionResolver,
        settings: ExtensionSettings,
        overlay: TooltipOverlay | None = None,
        *,
        run_blocking: Callable[..., Awaitable[Any]] = asyncio.to_thread,
    ) -> None:
        self.extractor = extractor
        self.resolver = resolver
        self.settings = settings
        self.overlay = overlay or TooltipOverlay()
        self._run_blocking = run_blocking
        self._tasks: set[asyncio.Future[Tooltip | None]] = set()

    def apply_settings(self, settings: ExtensionSettings) -> None:
        self.settings = settings

    async def handle(self, event: SelectionEvent) -> Tooltip | None:
        settings = self.settings
        if settings.mode is not Mode.SELECTION or not settings.extension_enabled:
            return None
        text = event.text.strip()
        if not text:
            return None
        mention = self.extractor.first_mention(text, settings.base_currency, lenient=True)
        if mention is None or mention.currency_code == settings.target_currency:
            return None
        result = await self._run_blocking(
            self.resolver.convert,
            mention.amount,
            mention.currency_code,
            settings.target_currency,
            settings.rate_offset_percent,
        )
        if result is None:
            LOGGER.debug("No rate for selected %s amount", mention.currency_code)
            return None
        tooltip = Tooltip(
            result=result,
            source_label=_label(result.source_amount, result.source_currency, settings.decimal_places),
            target_label=_label(result.target_amount, result.target_currency, settings.decimal_places),
            x=event.x,
            y=event.y + TOOLTIP_OFFSET_Y,
        )
        self.overlay.show(tooltip)
        return tooltip

    def _dispatch(self, event: SelectionEvent) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            LOGGER.debug("No running event loop; selection ignored")
            return
        task = asyncio.ensure_future(self.handle(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def attach(self, document: LiveDocument) -> Callable[[], None]:
        """Listen for selections on ``document``; returns the detach callable."""

        return document.on_selection(self._dispatch)

    async def drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks))


__all__ = ["SelectionHandler", "Tooltip", "TooltipOverlay"]
