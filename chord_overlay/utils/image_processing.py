"""
Image Processing Utilities for chord scanning.

Loads pages into PageBitmaps and prepares cropped strips for the
text recognizer.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple, Union
import logging

import numpy as np

from chord_overlay.core.errors import InvalidInput
from chord_overlay.core.models import PageBitmap

logger = logging.getLogger(__name__)


def load_page_bitmap(image_path: Union[str, Path]) -> PageBitmap:
    """
    Load an image file as a page bitmap.

    Args:
        image_path: Path to a PNG, JPEG, TIFF or BMP file

    Returns:
        PageBitmap of the image

    Raises:
        InvalidInput: If the file cannot be read as an image
    """
    from PIL import Image, UnidentifiedImageError

    image_path = Path(image_path)
    try:
        with Image.open(image_path) as img:
            bitmap = PageBitmap.from_image(img)
    except (OSError, UnidentifiedImageError) as e:
        raise InvalidInput(f"Could not load image: {image_path}") from e

    logger.info(f"Loaded page {image_path.name} ({bitmap.width}x{bitmap.height})")
    return bitmap


def render_pdf_pages(
    pdf_path: Union[str, Path],
    pages: Optional[List[int]] = None,
    dpi: int = 150,
) -> List[PageBitmap]:
    """
    Render pages of a PDF as bitmaps.

    Args:
        pdf_path: Path to PDF file
        pages: List of page numbers to render (0-indexed).
               If None, renders all pages.
        dpi: Resolution for rendering

    Returns:
        List of page bitmaps, in the order requested
    """
    try:
        import fitz  # PyMuPDF
    except ImportError:
        raise RuntimeError(
            "PDF rendering requires PyMuPDF. "
            "Install with: pip install PyMuPDF"
        )

    pdf_path = Path(pdf_path)
    bitmaps = []

    doc = fitz.open(str(pdf_path))
    try:
        page_indices = pages if pages is not None else range(len(doc))

        # Calculate zoom factor for desired DPI
        zoom = dpi / 72  # PDF default is 72 DPI
        matrix = fitz.Matrix(zoom, zoom)

        for page_num in page_indices:
            if page_num >= len(doc):
                logger.warning(f"Skipping page {page_num + 1}: document has {len(doc)} pages")
                continue

            pix = doc[page_num].get_pixmap(matrix=matrix, alpha=False)
            pixels = np.frombuffer(pix.samples, dtype=np.uint8).reshape(
                pix.height, pix.width, pix.n
            )
            bitmaps.append(PageBitmap.from_array(pixels[:, :, :3]))
            logger.info(f"Rendered page {page_num + 1}")
    finally:
        doc.close()

    return bitmaps


def downscale_to_height(image: np.ndarray, max_height: int) -> Tuple[np.ndarray, float]:
    """
    Shrink an image so it is at most ``max_height`` rows tall.

    Args:
        image: Pixel array of shape (h, w, channels)
        max_height: Height limit in pixels

    Returns:
        Tuple of (image, scale) where scale is new size / old size
    """
    import cv2

    height, width = image.shape[:2]
    if height <= max_height:
        return image, 1.0

    scale = max_height / height
    new_width = max(1, int(round(width * scale)))
    resized = cv2.resize(image, (new_width, max_height), interpolation=cv2.INTER_AREA)
    return resized, scale


def encode_jpeg(image: np.ndarray, quality: int = 80) -> bytes:
    """
    Encode an RGBA pixel array as JPEG bytes.

    JPEG has no alpha channel, so the image is flattened to BGR first.
    """
    import cv2

    bgr = cv2.cvtColor(np.ascontiguousarray(image), cv2.COLOR_RGBA2BGR)
    ok, buffer = cv2.imencode(".jpg", bgr, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise InvalidInput("Could not encode strip image")
    return buffer.tobytes()


def decode_image(data: bytes) -> np.ndarray:
    """Decode encoded image bytes into an RGB pixel array."""
    import cv2

    buffer = np.frombuffer(data, dtype=np.uint8)
    bgr = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    if bgr is None:
        raise InvalidInput("Could not decode image data")
    return cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)
