"""
Text Layer Scanner - Read chord symbols from a PDF's own text layer.

Typeset PDFs carry their text, so no strip cropping or text recognition is
needed: PyMuPDF lists the words with their boxes and they go through the
same token classifier as recognized fragments.

Kerning can split one symbol into several words ("F" + "#m7"). Words are
stitched when the gap is smaller than the font height, so the threshold
follows the type size instead of a fixed pixel count. Coordinates, and
therefore ``px_height``, are in PDF points.
"""

from __future__ import annotations

import time
from pathlib import Path
from statistics import median
from typing import List, Optional, Sequence, Union
import logging

from chord_overlay.config import ClassifierConfig, TextLayerConfig, get_config
from chord_overlay.core.chord_grammar import normalize_accidentals
from chord_overlay.core.classifier import CONTINUATION_PATTERN, TokenClassifier
from chord_overlay.core.errors import InvalidInput
from chord_overlay.core.key_estimator import estimate_key
from chord_overlay.core.models import Point, RecognizedFragment
from chord_overlay.scanner.pipeline import DocumentScanResult, PageScanResult, ScanStatus

logger = logging.getLogger(__name__)


def words_to_fragments(words: Sequence[Sequence]) -> List[RecognizedFragment]:
    """
    Convert PyMuPDF ``page.get_text("words")`` entries into fragments.

    Each entry starts with ``(x0, y0, x1, y1, text)``; blank words are skipped.
    """
    fragments = []
    for word in words:
        x0, y0, x1, y1, text = word[:5]
        text = normalize_accidentals(str(text)).strip()
        if not text:
            continue
        fragments.append(RecognizedFragment(
            text=text,
            quad=(Point(x0, y0), Point(x1, y0), Point(x1, y1), Point(x0, y1)),
        ))
    return fragments


def _font_height(fragment: RecognizedFragment) -> float:
    return fragment.bottom - fragment.top


class TextLayerScanner:
    """
    Detects chord tokens on PDF pages that have a text layer.

    Scanned PDFs have no words to read; their pages come back as
    ``NO_CHORDS_FOUND`` and need the strip scanner pipeline instead.
    """

    def __init__(self, config: Optional[TextLayerConfig] = None):
        """
        Initialize the scanner.

        Args:
            config: Merge and line ratios, or None for the configured ones
        """
        self.config = config or get_config().text_layer

    def group_lines(self, fragments: Sequence[RecognizedFragment]) -> List[List[RecognizedFragment]]:
        """Group words into lines; the tolerance scales with the first word's height."""
        lines: List[List[RecognizedFragment]] = []

        for fragment in sorted(fragments, key=lambda f: f.top):
            for line in lines:
                anchor = line[0]
                if abs(anchor.top - fragment.top) < _font_height(anchor) * self.config.line_tolerance_ratio:
                    line.append(fragment)
                    break
            else:
                lines.append([fragment])

        return [sorted(line, key=lambda f: f.left) for line in lines]

    def merge_words(self, fragments: Sequence[RecognizedFragment]) -> List[RecognizedFragment]:
        """
        Stitch words split inside a chord symbol.

        A word joins its left neighbour when the gap is below the font height
        and it starts with a modifier character. Separate lyric words never
        start that way, so "Amazing grace" stays two words.
        """
        merged: List[RecognizedFragment] = []

        for line in self.group_lines(fragments):
            current = line[0]
            for following in line[1:]:
                gap = following.left - current.right
                limit = max(_font_height(current), _font_height(following)) * self.config.merge_gap_ratio
                if gap < limit and CONTINUATION_PATTERN.match(following.text):
                    logger.debug(f"Merging {current.text!r} + {following.text!r}")
                    current = RecognizedFragment(
                        text=current.text + following.text,
                        quad=(
                            current.quad[0],
                            Point(following.right, current.top),
                            Point(following.right, max(current.bottom, following.bottom)),
                            Point(current.left, max(current.bottom, following.bottom)),
                        ),
                    )
                else:
                    merged.append(current)
                    current = following
            merged.append(current)

        return merged

    def classifier_for(self, fragments: Sequence[RecognizedFragment]) -> TokenClassifier:
        """Build a classifier whose line tolerance matches the page's type size."""
        height = median(_font_height(f) for f in fragments)
        return TokenClassifier(ClassifierConfig(
            line_tolerance=max(height * self.config.line_tolerance_ratio, 1.0),
            merge_gap=0.0,  # words are already stitched
        ))

    def scan_page(self, page, page_index: int = 0) -> PageScanResult:
        """
        Detect the chords on one PDF page.

        Args:
            page: PyMuPDF page
            page_index: Index of the page in the document

        Returns:
            PageScanResult with tokens or the reason there are none
        """
        start_time = time.time()

        try:
            fragments = self.merge_words(words_to_fragments(page.get_text("words")))
            if not fragments:
                logger.info(f"Page {page_index} has no text layer")
                return PageScanResult(
                    page_index=page_index,
                    status=ScanStatus.NO_CHORDS_FOUND,
                    processing_time=time.time() - start_time,
                )

            classified = self.classifier_for(fragments).classify(
                fragments, page.rect.width, page.rect.height, page_index
            )

        except InvalidInput as e:
            logger.error(f"Text layer scan failed for page {page_index}: {e}")
            return PageScanResult(
                page_index=page_index,
                status=ScanStatus.FAILED,
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
            processing_time=time.time() - start_time,
        )

    def scan_document(
        self,
        pdf_path: Union[str, Path],
        pages: Optional[List[int]] = None,
    ) -> DocumentScanResult:
        """
        Detect chords on the pages of a PDF file and estimate its key.

        Args:
            pdf_path: Path to PDF file
            pages: Page numbers to scan (0-indexed), or None for all pages

        Returns:
            DocumentScanResult with per-page results in the order requested
        """
        try:
            import fitz  # PyMuPDF
        except ImportError:
            raise RuntimeError(
                "PDF text extraction requires PyMuPDF. "
                "Install with: pip install PyMuPDF"
            )

        document = DocumentScanResult()
        doc = fitz.open(str(pdf_path))
        try:
            page_indices = pages if pages is not None else range(len(doc))
            for page_num in page_indices:
                if page_num >= len(doc):
                    logger.warning(f"Skipping page {page_num + 1}: document has {len(doc)} pages")
                    continue
                document.pages.append(self.scan_page(doc[page_num], page_num))
        finally:
            doc.close()

        document.estimated_key = estimate_key(document.roots)
        logger.info(
            f"Text layer: {len(document.tokens)} chord(s) in {Path(pdf_path).name}, "
            f"key {document.estimated_key or 'unknown'}"
        )
        return document
