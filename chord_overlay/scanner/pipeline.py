"""
Chord Scan Pipeline - Orchestrates chord detection for pages.

Workflow per page:
1. Scan the page bitmap for text strips
2. Send the strips to the text recognizer (external service)
3. Map recognized fragments from strip space back onto the page
4. Classify the fragments into chord tokens

The recognizer is the only asynchronous boundary; timeouts and
cancellation belong to its adapter, not to this pipeline.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence
import logging

from chord_overlay.config import get_config
from chord_overlay.core.classifier import TokenClassifier
from chord_overlay.core.errors import InvalidInput, RecognitionServiceUnavailable
from chord_overlay.core.key_estimator import estimate_key
from chord_overlay.core.models import ChordStrip, ChordToken, PageBitmap, RecognizedFragment
from chord_overlay.scanner.strip_scanner import StripScanner

logger = logging.getLogger(__name__)


class TextRecognizer(ABC):
    """
    Adapter for an external text recognition service.

    Implementations receive all strips of a page in one request and
    answer with the fragments found in each strip, keyed by strip id.
    Fragment coordinates are in the strip's cropped image.
    """

    @abstractmethod
    def recognize(
        self, strips: Sequence[ChordStrip]
    ) -> Mapping[str, Sequence[RecognizedFragment]]:
        """
        Recognize the text in a batch of strips.

        Raises:
            RecognitionServiceUnavailable: If the service cannot be reached
        """
        pass


class ScanStatus(Enum):
    """Outcome of scanning one page."""
    OK = "ok"
    NO_CHORDS_FOUND = "no_chords_found"
    RECOGNITION_UNAVAILABLE = "recognition_unavailable"
    FAILED = "failed"


@dataclass
class PageScanResult:
    """Result from scanning one page."""

    page_index: int
    status: ScanStatus
    tokens: List[ChordToken] = field(default_factory=list)
    key_votes: Dict[str, int] = field(default_factory=dict)
    roots: List[str] = field(default_factory=list)
    strip_count: int = 0
    error_message: Optional[str] = None
    processing_time: float = 0.0

    @property
    def success(self) -> bool:
        return self.status in (ScanStatus.OK, ScanStatus.NO_CHORDS_FOUND)


@dataclass
class DocumentScanResult:
    """Result from scanning several pages."""

    pages: List[PageScanResult] = field(default_factory=list)
    estimated_key: Optional[str] = None

    @property
    def tokens(self) -> List[ChordToken]:
        return [t for page in self.pages for t in page.tokens]

    @property
    def roots(self) -> List[str]:
        return [r for page in self.pages for r in page.roots]

    @property
    def failed_pages(self) -> List[int]:
        return [p.page_index for p in self.pages if not p.success]


def map_fragments_to_page(
    strips: Sequence[ChordStrip],
    response: Mapping[str, Sequence[Any]],
) -> List[RecognizedFragment]:
    """
    Translate recognizer output from strip images into page coordinates.

    Response entries may be RecognizedFragments or their dict form. Entries
    for unknown strip ids are ignored.
    """
    by_id = {strip.id: strip for strip in strips}
    fragments: List[RecognizedFragment] = []

    for strip_id, items in response.items():
        strip = by_id.get(strip_id)
        if strip is None:
            logger.warning(f"Recognizer returned text for unknown strip {strip_id}")
            continue
        for item in items or ():
            fragment = item if isinstance(item, RecognizedFragment) else RecognizedFragment.from_dict(item)
            fragments.append(fragment.on_page(strip))

    return fragments


class ChordScanPipeline:
    """
    Detects chord tokens on rendered pages.

    Pages are independent; ``scan_document`` can scan them in parallel
    threads when the pipeline config allows more than one worker.
    """

    def __init__(
        self,
        recognizer: TextRecognizer,
        scanner: Optional[StripScanner] = None,
        classifier: Optional[TokenClassifier] = None,
        progress_callback: Optional[Callable[[str, int], None]] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            recognizer: Text recognition adapter
            scanner: Strip scanner, or None for one with configured settings
            classifier: Token classifier, or None for one with configured settings
            progress_callback: Optional callback for progress updates
                               Signature: (message: str, percent: int) -> None
        """
        self.recognizer = recognizer
        self.scanner = scanner or StripScanner()
        self.classifier = classifier or TokenClassifier()
        self.progress_callback = progress_callback
        self.config = get_config().pipeline

    def _report_progress(self, message: str, percent: int) -> None:
        """Report progress to callback if available."""
        if self.progress_callback:
            self.progress_callback(message, percent)
        logger.info(f"Scan Progress: {percent}% - {message}")

    def scan_page(self, bitmap: PageBitmap, page_index: int = 0) -> PageScanResult:
        """
        Detect the chords on one page.

        Args:
            bitmap: Rendered page
            page_index: Index of the page in the document

        Returns:
            PageScanResult with tokens or the reason there are none
        """
        start_time = time.time()
        strips: List[ChordStrip] = []

        try:
            strips = self.scanner.scan(bitmap)
            if not strips:
                return PageScanResult(
                    page_index=page_index,
                    status=ScanStatus.NO_CHORDS_FOUND,
                    processing_time=time.time() - start_time,
                )

            try:
                response = self.recognizer.recognize(strips)
            except RecognitionServiceUnavailable as e:
                logger.warning(f"Recognizer unavailable for page {page_index}: {e}")
                return PageScanResult(
                    page_index=page_index,
                    status=ScanStatus.RECOGNITION_UNAVAILABLE,
                    strip_count=len(strips),
                    error_message=str(e),
                    processing_time=time.time() - start_time,
                )

            fragments = map_fragments_to_page(strips, response or {})
            classified = self.classifier.classify(
                fragments, bitmap.width, bitmap.height, page_index
            )

        except InvalidInput as e:
            logger.error(f"Scan failed for page {page_index}: {e}")
            return PageScanResult(
                page_index=page_index,
                status=ScanStatus.FAILED,
                strip_count=len(strips),
                error_message=str(e),
                processing_time=time.time() - start_time,
            )

        status = ScanStatus.NO_CHORDS_FOUND if classified.is_empty else ScanStatus.OK
        return PageScanResult(
            page_index=page_index,
            status=status,
            tokens=classified.accepted_tokens,
            key_votes=classified.key_votes,
            roots=classified.roots,
            strip_count=len(strips),
            processing_time=time.time() - start_time,
        )

    def scan_document(self, pages: Sequence[PageBitmap]) -> DocumentScanResult:
        """
        Detect chords on every page and estimate the document key.

        Args:
            pages: Rendered pages in document order

        Returns:
            DocumentScanResult with per-page results in page order
        """
        total = len(pages)
        self._report_progress(f"Scanning {total} page(s)...", 0)

        if self.config.max_workers > 1 and total > 1:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
                results = list(pool.map(self.scan_page, pages, range(total)))
        else:
            results = []
            for i, bitmap in enumerate(pages):
                self._report_progress(f"Scanning page {i + 1} of {total}...", int(i / total * 100))
                results.append(self.scan_page(bitmap, i))

        document = DocumentScanResult(pages=results)
        document.estimated_key = estimate_key(document.roots)

        self._report_progress(
            f"Found {len(document.tokens)} chord(s), key {document.estimated_key or 'unknown'}",
            100,
        )
        return document
