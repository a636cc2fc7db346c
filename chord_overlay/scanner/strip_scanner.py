"""
Strip Scanner - Find horizontal bands of text on a page.

Algorithm:
1. Count dark ("ink") pixels in every row (horizontal projection profile)
2. Walk the profile top to bottom; consecutive inked rows form a block
3. Drop blocks too short to be a line of text
4. Crop each block with some padding across the full page width and
   shrink it for the recognizer

Density alone cannot tell chords from lyrics, so every text block becomes
a strip; the token classifier decides later.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import List, Optional
import logging

import numpy as np

from chord_overlay.config import ScannerConfig, get_config
from chord_overlay.core.errors import InvalidInput
from chord_overlay.core.models import ChordStrip, PageBitmap
from chord_overlay.utils.image_processing import downscale_to_height, encode_jpeg

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TextBlock:
    """A run of inked rows."""
    top_y: int
    height: int
    ink: int  # total ink pixels in the block

    @property
    def bottom_y(self) -> int:
        return self.top_y + self.height


def row_density(bitmap: PageBitmap, ink_threshold: int = 200) -> np.ndarray:
    """
    Count ink pixels per row.

    A pixel is ink when the average of its R, G and B values is below
    ``ink_threshold``.

    Returns:
        1-D int array with one entry per row
    """
    rgb = bitmap.pixels[:, :, :3].astype(np.int32)
    ink = rgb.sum(axis=2) < 3 * ink_threshold
    return ink.sum(axis=1).astype(np.int64)


def find_blocks(
    density: np.ndarray,
    noise_threshold: int = 5,
    min_block_height: int = 10,
) -> List[TextBlock]:
    """
    Split a density profile into text blocks.

    Rows with density above ``noise_threshold`` extend the open block; any
    other row closes it. Blocks not taller than ``min_block_height`` are
    discarded as specks.
    """
    blocks: List[TextBlock] = []
    start: Optional[int] = None
    ink = 0

    for y, value in enumerate(density.tolist()):
        if value > noise_threshold:
            if start is None:
                start = y
                ink = 0
            ink += value
        elif start is not None:
            if y - start > min_block_height:
                blocks.append(TextBlock(top_y=start, height=y - start, ink=ink))
            start = None

    # A block running into the bottom edge
    if start is not None and len(density) - start > min_block_height:
        blocks.append(TextBlock(top_y=start, height=len(density) - start, ink=ink))

    return blocks


class StripScanner:
    """
    Crops candidate chord lines out of a rendered page.

    Scanning is stateless: every call produces fresh strips and nothing is
    cached between scans.
    """

    def __init__(self, config: Optional[ScannerConfig] = None):
        """
        Initialize the scanner.

        Args:
            config: Scanner thresholds, or None for the configured ones
        """
        self.config = config or get_config().scanner

    def find_blocks(self, bitmap: PageBitmap) -> List[TextBlock]:
        """Find the text blocks of a page."""
        density = row_density(bitmap, self.config.ink_threshold)
        return find_blocks(density, self.config.noise_threshold, self.config.min_block_height)

    def scan(self, bitmap: PageBitmap) -> List[ChordStrip]:
        """
        Scan a page for text strips.

        Args:
            bitmap: Rendered page

        Returns:
            Strips in top-to-bottom order; empty for a blank page

        Raises:
            InvalidInput: If the bitmap is not a usable page image
        """
        if not isinstance(bitmap, PageBitmap):
            raise InvalidInput(f"Expected a PageBitmap, got {type(bitmap).__name__}")

        strips = [self.crop_strip(bitmap, block) for block in self.find_blocks(bitmap)]
        logger.info(f"Found {len(strips)} text strip(s) on {bitmap.width}x{bitmap.height} page")
        return strips

    def crop_strip(self, bitmap: PageBitmap, block: TextBlock) -> ChordStrip:
        """
        Cut a padded block out of the page and encode it for recognition.

        The strip keeps its page coordinates (before any downscaling) so
        recognized positions can be mapped back onto the page.
        """
        pad = self.config.padding
        top = max(0, block.top_y - pad)
        bottom = min(bitmap.height, block.bottom_y + pad)

        crop = bitmap.pixels[top:bottom, :, :]
        image, scale = downscale_to_height(crop, self.config.max_strip_height)

        return ChordStrip(
            id=uuid.uuid4().hex,
            top_y=top,
            height=bottom - top,
            cropped_image=encode_jpeg(image, self.config.jpeg_quality),
            scale=scale,
        )


def scan_page(bitmap: PageBitmap) -> List[ChordStrip]:
    """Scan a page with the configured scanner settings."""
    return StripScanner().scan(bitmap)
