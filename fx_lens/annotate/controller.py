"""Annotate currency mentions in a live document with converted values.

The controller moves through ``IDLE -> SCANNING -> MUTATING -> SCANNING ...
-> IDLE``. A scan requested while another one is running is dropped rather
than queued: the mutations that triggered it will schedule another scan, and
that scan picks up whatever is still unconverted.

Three guards keep the controller from feeding on its own output:

* text inside an annotation element is never accepted by the traversal,
* the parent of every annotated text node is marked and skipped afterwards,
* mutation batches whose additions include an annotation element are treated
  as self-caused and do not schedule a new scan.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Final

from bs4 import NavigableString, PageElement, Tag
from bs4.element import PreformattedString

from fx_lens.annotate.marks import AnnotationMarks
from fx_lens.config import ExtensionSettings, Mode
from fx_lens.conversion import ConversionResolver, ConversionResult, describe
from fx_lens.document.live import LiveDocument, MutationConflict, MutationRecord, has_class
from fx_lens.extraction.extractor import MentionExtractor
from fx_lens.extraction.price_blocks import (
    PRICE_CONTAINER_SELECTOR,
    find_price_containers,
    parse_price_block,
)
from fx_lens.utils.logger import get_logger

LOGGER = get_logger(__name__)

ANNOTATION_CLASS: Final = "currency-conversion-inline"
ANNOTATION_COLOR: Final = "#10b981"
SKIPPED_TAGS: Final = frozenset({"script", "style", "noscript"})
EDITABLE_TAGS: Final = frozenset({"input", "textarea"})
DEBOUNCE_SECONDS: Final = 1.5
INITIAL_SCAN_DELAY: Final = 0.5

BlockingRunner = Callable[..., Awaitable[Any]]


class ScanPhase(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    MUTATING = "mutating"


@dataclass(slots=True)
class ScanReport:
    """Counters describing one scan."""

    annotated: int = 0
    skipped: int = 0
    unavailable: int = 0
    conflicts: int = 0
    errors: int = 0
    dropped: bool = False


def is_annotation(node: PageElement | None) -> bool:
    return has_class(node, ANNOTATION_CLASS)


def is_self_caused(record: MutationRecord) -> bool:
    return any(is_annotation(node) for node in record.added_nodes)


def is_relevant(records: list[MutationRecord]) -> bool:
    """A batch matters when it adds nodes that did not come from this package."""

    return any(record.added_nodes and not is_self_caused(record) for record in records)


class AnnotationController:
    """Scan a :class:`LiveDocument` and insert converted amounts next to prices."""

    def __init__(
        self,
        document: LiveDocument,
        extractor: MentionExtractor,
        resolver: ConversionResolver,
        settings: ExtensionSettings,
        *,
        debounce_seconds: float = DEBOUNCE_SECONDS,
        initial_delay: float = INITIAL_SCAN_DELAY,
        run_blocking: BlockingRunner = asyncio.to_thread,
    ) -> None:
        self.document = document
        self.extractor = extractor
        self.resolver = resolver
        self.settings = settings
        self.debounce_seconds = debounce_seconds
        self.initial_delay = initial_delay
        self.marks = AnnotationMarks(document.is_attached)
        self.phase = ScanPhase.IDLE
        self._run_blocking = run_blocking
        self._disconnect: Callable[[], None] | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Future[ScanReport]] = set()

    def apply_settings(self, settings: ExtensionSettings) -> None:
        self.settings = settings

    # -- traversal ------------------------------------------------------

    def _prunes(self, element: Tag) -> bool:
        name = (element.name or "").lower()
        if name in SKIPPED_TAGS or name in EDITABLE_TAGS:
            return True
        if is_annotation(element):
            return True
        editable = element.get("contenteditable")
        return editable is not None and str(editable).strip().lower() != "false"

    def accepts_text(self, node: NavigableString) -> bool:
        if isinstance(node, PreformattedString):
            return False
        parent = node.parent
        if parent is None or is_annotation(parent) or parent in self.marks:
            return False
        return bool(node.strip())

    def text_fragments(self) -> list[NavigableString]:
        """Return candidate text nodes in document order."""

        body = self.document.body
        fragments: list[NavigableString] = []
        stack: list[PageElement] = [body]
        while stack:
            node = stack.pop()
            if isinstance(node, Tag):
                if node is not body and self._prunes(node):
                    continue
                stack.extend(reversed(list(node.children)))
            elif isinstance(node, NavigableString) and self.accepts_text(node):
                fragments.append(node)
        return fragments

    # -- scanning -------------------------------------------------------

    async def scan(self) -> ScanReport:
        """Run one guarded scan over the document."""

        settings = self.settings
        if settings.mode is not Mode.AUTO or not settings.extension_enabled:
            return ScanReport()
        if self.phase is not ScanPhase.IDLE:
            LOGGER.debug("Scan already in progress; dropping trigger")
            return ScanReport(dropped=True)

        self.phase = ScanPhase.SCANNING
        report = ScanReport()
        try:
            for node in self.text_fragments():
                await self._annotate_text(node, settings, report)
            await self._annotate_price_blocks(settings, report)
        finally:
            self.phase = ScanPhase.IDLE
        if report.annotated:
            LOGGER.info("Annotated %s currency mentions", report.annotated)
        return report

    async def _convert(
        self, amount: float, currency: str, settings: ExtensionSettings
    ) -> ConversionResult | None:
        return await self._run_blocking(
            self.resolver.convert,
            amount,
            currency,
            settings.target_currency,
            settings.rate_offset_percent,
        )

    async def _safe_convert(
        self, amount: float, currency: str, settings: ExtensionSettings, report: ScanReport
    ) -> ConversionResult | None:
        """Convert one mention; a failure only costs that mention."""

        try:
            result = await self._convert(amount, currency, settings)
        except Exception:  # any resolver or store failure
            LOGGER.exception("Conversion of %s %s failed", amount, currency)
            report.errors += 1
            return None
        if result is None:
            report.unavailable += 1
        return result

    def build_annotation(self, label: str, styles: dict[str, str]) -> Tag:
        style = {
            "color": ANNOTATION_COLOR,
            "font-weight": "600",
            "font-size": styles.get("font-size", "inherit"),
            "font-family": styles.get("font-family", "inherit"),
            "margin-left": "4px",
            "display": "inline",
        }
        return self.document.new_tag(
            "span", classes=[ANNOTATION_CLASS], style=style, text=f" ({label})"
        )

    async def _annotate_text(
        self, node: NavigableString, settings: ExtensionSettings, report: ScanReport
    ) -> None:
        parent = node.parent
        if parent is None or parent in self.marks:
            return
        # Only the first mention of a fragment is annotated.
        mention = self.extractor.first_mention(str(node))
        if mention is None:
            return
        if mention.currency_code == settings.target_currency:
            report.skipped += 1
            return
        result = await self._safe_convert(mention.amount, mention.currency_code, settings, report)
        if result is None:
            return

        self.phase = ScanPhase.MUTATING
        try:
            if node.parent is not parent or parent in self.marks:
                raise MutationConflict("text node moved while its rate was resolved")
            label = describe(result, settings.decimal_places)
            span = self.build_annotation(label, self.document.computed_style(parent))
            self.document.split_text(node, mention.end_offset, span)
            self.marks.add(parent)
            report.annotated += 1
        except MutationConflict as exc:
            LOGGER.debug("Skipping fragment: %s", exc)
            report.conflicts += 1
        except (AttributeError, TypeError, ValueError) as exc:
            LOGGER.error("Error converting currency in node: %s", exc)
            report.errors += 1
        finally:
            self.phase = ScanPhase.SCANNING

    def _price_container_done(self, container: Tag) -> bool:
        if container in self.marks or is_annotation(container):
            return True
        if container.select_one(f".{ANNOTATION_CLASS}") is not None:
            return True
        # Only an annotated enclosing price container covers this one; text
        # annotations further up the tree do not.
        return any(
            parent in self.marks and parent.css.match(PRICE_CONTAINER_SELECTOR)
            for parent in container.parents
        )

    async def _annotate_price_blocks(
        self, settings: ExtensionSettings, report: ScanReport
    ) -> None:
        """Handle prices split over symbol/whole/fraction elements."""

        for container in find_price_containers(self.document.body):
            if self._price_container_done(container):
                continue
            block = parse_price_block(container, skip_class=ANNOTATION_CLASS)
            if block is None or block.currency_code == settings.target_currency:
                continue
            result = await self._safe_convert(block.amount, block.currency_code, settings, report)
            if result is None:
                continue

            self.phase = ScanPhase.MUTATING
            try:
                if self._price_container_done(container):
                    raise MutationConflict("price container changed while its rate was resolved")
                label = describe(result, settings.decimal_places)
                span = self.build_annotation(label, self.document.computed_style(container))
                self.document.append_child(container, span)
                self.marks.add(container)
                report.annotated += 1
            except MutationConflict as exc:
                LOGGER.debug("Skipping price container: %s", exc)
                report.conflicts += 1
            finally:
                self.phase = ScanPhase.SCANNING

    # -- manual mode ----------------------------------------------------

    def strip_annotations(self) -> int:
        """Remove every inserted annotation and restore the original text nodes.

        Watching stops first; otherwise the merged text would look like a page
        change and the next scan would put the annotations back.
        """

        self.stop()
        removed = 0
        parents: dict[int, Tag] = {}
        for span in self.document.body.select(f".{ANNOTATION_CLASS}"):
            parent = span.parent
            if parent is None:
                continue
            self.document.remove(span)
            self.marks.discard(parent)
            parents[id(parent)] = parent
            removed += 1
        for parent in parents.values():
            self.document.merge_text(parent)
        self.marks.prune()
        if removed:
            LOGGER.info("Removed %s currency annotations", removed)
        return removed

    # -- mutation watching ----------------------------------------------

    @property
    def watching(self) -> bool:
        return self._disconnect is not None

    def start(self) -> None:
        """Observe the document and schedule an initial scan."""

        if self._disconnect is None:
            self._disconnect = self.document.observe(self.handle_mutations)
        self._schedule(self.initial_delay)

    def stop(self) -> None:
        if self._disconnect is not None:
            self._disconnect()
            self._disconnect = None
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def handle_mutations(self, records: list[MutationRecord]) -> None:
        if is_relevant(records):
            self._schedule(self.debounce_seconds)

    def _schedule(self, delay: float) -> None:
        """(Re)start the trailing debounce timer."""

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            LOGGER.debug("No running event loop; scan not scheduled")
            return
        if self._timer is not None:
            self._timer.cancel()
        self._timer = loop.call_later(delay, self._launch_scan)

    def _launch_scan(self) -> None:
        self._timer = None
        task = asyncio.ensure_future(self.scan())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @property
    def pending(self) -> bool:
        return self._timer is not None or bool(self._tasks)

    async def drain(self) -> None:
        """Wait for scheduled and running scans to finish."""

        while self.pending:
            if self._tasks:
                await asyncio.gather(*list(self._tasks))
            else:
                await asyncio.sleep(self.debounce_seconds / 10 or 0.01)


__all__ = [
    "ANNOTATION_CLASS",
    "AnnotationController",
    "ScanPhase",
    "ScanReport",
    "is_relevant",
]
