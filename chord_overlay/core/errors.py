"""
Exceptions raised by the chord overlay engine.

Empty results are not errors: a page without chords is reported through
``ScanStatus.NO_CHORDS_FOUND`` and ``ClassificationResult.is_empty``.
"""


class ChordOverlayError(Exception):
    """Base class for engine errors."""


class InvalidInput(ChordOverlayError, ValueError):
    """Malformed bitmap, fragment or page geometry."""


class RecognitionServiceUnavailable(ChordOverlayError):
    """The external text recognizer could not be reached."""


class UnknownCorrection(ChordOverlayError, KeyError):
    """A correction id that is not present in the store."""

    def __init__(self, correction_id: str):
        super().__init__(correction_id)
        self.correction_id = correction_id

    def __str__(self) -> str:
        return f"Unknown correction: {self.correction_id}"
