"""
Scanner module for Chord Overlay.

Finds text strips on page images and runs them through recognition and
classification.
"""

from chord_overlay.scanner.strip_scanner import StripScanner, TextBlock, scan_page
from chord_overlay.scanner.pipeline import (
    ChordScanPipeline,
    DocumentScanResult,
    PageScanResult,
    ScanStatus,
    TextRecognizer,
)
from chord_overlay.scanner.text_layer import TextLayerScanner, words_to_fragments

__all__ = [
    "StripScanner",
    "TextBlock",
    "scan_page",
    "ChordScanPipeline",
    "DocumentScanResult",
    "PageScanResult",
    "ScanStatus",
    "TextRecognizer",
    "TextLayerScanner",
    "words_to_fragments",
]
