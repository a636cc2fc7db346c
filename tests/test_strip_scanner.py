"""
Tests for the strip scanner.
"""

import numpy as np
import pytest

from chord_overlay.config import ScannerConfig
from chord_overlay.core.errors import InvalidInput
from chord_overlay.core.models import PageBitmap
from chord_overlay.scanner.strip_scanner import StripScanner, find_blocks, row_density, scan_page
from chord_overlay.utils.image_processing import decode_image


def blank_page(width=300, height=300):
    return np.full((height, width, 3), 255, dtype=np.uint8)


def page_with_bands(*bands, width=300, height=300):
    """Build a white page with black bands given as (top, height)."""
    pixels = blank_page(width, height)
    for top, band_height in bands:
        pixels[top:top + band_height, 50:250] = 0
    return PageBitmap.from_array(pixels)


class TestPageBitmap:
    """Tests for PageBitmap construction."""

    def test_from_rgb(self):
        bitmap = PageBitmap.from_array(blank_page(40, 20))
        assert bitmap.width == 40
        assert bitmap.height == 20
        assert bitmap.pixels.shape == (20, 40, 4)

    def test_from_grayscale(self):
        bitmap = PageBitmap.from_array(np.zeros((10, 12), dtype=np.uint8))
        assert bitmap.pixels.shape == (10, 12, 4)

    def test_read_only(self):
        bitmap = PageBitmap.from_array(blank_page(10, 10))
        with pytest.raises(ValueError):
            bitmap.pixels[0, 0, 0] = 0

    def test_zero_size(self):
        with pytest.raises(InvalidInput):
            PageBitmap.from_array(np.zeros((0, 10, 4), dtype=np.uint8))

    def test_bad_shape(self):
        with pytest.raises(InvalidInput):
            PageBitmap.from_array(np.zeros((10, 10, 2), dtype=np.uint8))
        with pytest.raises(InvalidInput):
            PageBitmap(np.zeros((10, 10, 3), dtype=np.uint8))


class TestDensityProfile:
    """Tests for the row density profile."""

    def test_counts_ink_per_row(self):
        density = row_density(page_with_bands((100, 20)))
        assert density[99] == 0
        assert density[100] == 200
        assert density[119] == 200
        assert density[120] == 0

    def test_light_gray_is_not_ink(self):
        pixels = np.full((10, 10, 3), 210, dtype=np.uint8)
        assert row_density(PageBitmap.from_array(pixels)).sum() == 0

    def test_find_blocks(self):
        """Test block boundaries and the minimum height."""
        density = np.array([0] * 5 + [20] * 12 + [3] * 2 + [20] * 4 + [0] * 5 + [9] * 11)
        blocks = find_blocks(density, noise_threshold=5, min_block_height=10)
        assert [(b.top_y, b.height) for b in blocks] == [(5, 12), (28, 11)]
        assert blocks[0].ink == 240


class TestStripScanner:
    """Tests for StripScanner."""

    def test_blank_page(self):
        """Test that an all-white page has no strips."""
        scanner = StripScanner()
        assert scanner.scan(PageBitmap.from_array(blank_page())) == []

    def test_single_band(self):
        """Test that a 20px band gives one strip with padding."""
        strips = StripScanner().scan(page_with_bands((100, 20)))
        assert len(strips) == 1
        strip = strips[0]
        assert strip.top_y == 90
        assert strip.height == 40
        assert strip.scale == 1.0
        assert strip.cropped_image[:2] == b"\xff\xd8"

    def test_strip_image_size(self):
        strip = StripScanner().scan(page_with_bands((100, 20)))[0]
        assert decode_image(strip.cropped_image).shape[:2] == (40, 300)

    def test_several_bands_in_order(self):
        strips = StripScanner().scan(page_with_bands((40, 15), (100, 20), (200, 12)))
        assert [s.top_y for s in strips] == [30, 90, 190]

    def test_specks_are_ignored(self):
        """Test that blocks of 10 rows or fewer are dropped."""
        assert StripScanner().scan(page_with_bands((100, 5), (150, 10))) == []

    def test_sparse_rows_are_noise(self):
        pixels = blank_page()
        pixels[100:130, 10:14] = 0  # 4 ink pixels per row
        assert StripScanner().scan(PageBitmap.from_array(pixels)) == []

    def test_padding_clamped_to_page(self):
        strips = StripScanner().scan(page_with_bands((2, 20), (280, 20)))
        assert [(s.top_y, s.height) for s in strips] == [(0, 32), (270, 30)]

    def test_tall_strip_is_downscaled(self):
        """Test that strips taller than the limit are shrunk with aspect ratio."""
        scanner = StripScanner(ScannerConfig(max_strip_height=48))
        strip = scanner.scan(page_with_bands((100, 80)))[0]
        assert strip.height == 100
        assert strip.scale == pytest.approx(0.48)
        assert decode_image(strip.cropped_image).shape[:2] == (48, 144)

    def test_page_coordinates_from_strip(self):
        scanner = StripScanner(ScannerConfig(max_strip_height=50))
        strip = scanner.scan(page_with_bands((100, 80)))[0]
        point = strip.to_page_point(25, 25)
        assert point.x == pytest.approx(50)
        assert point.y == pytest.approx(140)

    def test_rescan_is_idempotent(self):
        """Test that rescanning gives the same strips with fresh ids."""
        bitmap = page_with_bands((100, 20))
        scanner = StripScanner()
        first = scanner.scan(bitmap)
        second = scanner.scan(bitmap)
        assert [(s.top_y, s.height) for s in first] == [(s.top_y, s.height) for s in second]
        assert first[0].id != second[0].id

    def test_rejects_non_bitmap(self):
        with pytest.raises(InvalidInput):
            StripScanner().scan(np.zeros((10, 10, 4), dtype=np.uint8))

    def test_scan_page_helper(self):
        assert len(scan_page(page_with_bands((100, 20)))) == 1
