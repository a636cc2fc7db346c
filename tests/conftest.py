"""
Shared fixtures for Chord Overlay tests.
"""

import pytest

from chord_overlay.config import Config, set_config
from chord_overlay.core.models import Point, RecognizedFragment


@pytest.fixture(autouse=True)
def isolated_config(tmp_path):
    """Use default settings stored in a temp directory for every test."""
    config = Config(_config_dir=tmp_path / "config")
    set_config(config)
    yield config
    set_config(None)


def make_fragment(text, x, y, width=None, height=20):
    """Build a fragment with an axis-aligned quad."""
    width = 10 * len(text) if width is None else width
    return RecognizedFragment(
        text=text,
        quad=(
            Point(x, y),
            Point(x + width, y),
            Point(x + width, y + height),
            Point(x, y + height),
        ),
    )


@pytest.fixture
def fragment():
    return make_fragment
