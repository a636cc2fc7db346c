"""
Chord Overlay - Chord detection and transposition for sheet music

Finds chord symbols on rendered sheet music pages and redraws them in any
key or capo position, merged with the user's corrections.
"""

__version__ = "1.0.0"

from chord_overlay.config import Config
from chord_overlay.core.models import ChordToken, Correction, TranspositionState
from chord_overlay.core.transposer import calculate_capo, transpose_chord
from chord_overlay.core.key_estimator import estimate_key

__all__ = [
    "Config",
    "ChordToken",
    "Correction",
    "TranspositionState",
    "calculate_capo",
    "transpose_chord",
    "estimate_key",
    "__version__",
]
