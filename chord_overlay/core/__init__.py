"""
Core module for Chord Overlay.

Contains the data model, chord grammar, transposition, key estimation,
token classification and correction merging.
"""

from chord_overlay.core.errors import (
    ChordOverlayError,
    InvalidInput,
    RecognitionServiceUnavailable,
    UnknownCorrection,
)
from chord_overlay.core.models import (
    PageBitmap,
    ChordStrip,
    Point,
    RecognizedFragment,
    ChordToken,
    TokenOrigin,
    Correction,
    CorrectionKind,
    TranspositionState,
)
from chord_overlay.core.chord_grammar import (
    extract_root,
    is_chord,
    normalize_semitones,
)
from chord_overlay.core.transposer import (
    CapoResult,
    calculate_capo,
    transpose_chord,
    transpose_token,
)
from chord_overlay.core.key_estimator import estimate_key
from chord_overlay.core.classifier import (
    ClassificationResult,
    TokenClassifier,
    classify_fragments,
)
from chord_overlay.core.corrections import CorrectionStore, merge_tokens

__all__ = [
    "ChordOverlayError",
    "InvalidInput",
    "RecognitionServiceUnavailable",
    "UnknownCorrection",
    "PageBitmap",
    "ChordStrip",
    "Point",
    "RecognizedFragment",
    "ChordToken",
    "TokenOrigin",
    "Correction",
    "CorrectionKind",
    "TranspositionState",
    "extract_root",
    "is_chord",
    "normalize_semitones",
    "CapoResult",
    "calculate_capo",
    "transpose_chord",
    "transpose_token",
    "estimate_key",
    "ClassificationResult",
    "TokenClassifier",
    "classify_fragments",
    "CorrectionStore",
    "merge_tokens",
]
