"""
Utility modules for Chord Overlay.
"""

from chord_overlay.utils.image_processing import (
    load_page_bitmap,
    render_pdf_pages,
    downscale_to_height,
    encode_jpeg,
    decode_image,
)

__all__ = [
    "load_page_bitmap",
    "render_pdf_pages",
    "downscale_to_height",
    "encode_jpeg",
    "decode_image",
]
