"""
Correction Overlay Store - Merge user edits with detected chords.

Corrections never modify detected tokens. A "remove" correction hides any
detected token close to its position, and an "add" correction contributes a
token of its own. The merge is recomputed on every render, so a re-scan is
suppressed again by the same corrections.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence
import logging

from chord_overlay.config import OverlayConfig, get_config
from chord_overlay.core.errors import UnknownCorrection
from chord_overlay.core.models import (
    ChordToken,
    Correction,
    CorrectionKind,
    TokenOrigin,
    TranspositionState,
)
from chord_overlay.core.transposer import transpose_chord, transpose_token

logger = logging.getLogger(__name__)


def is_suppressed(
    token: ChordToken,
    corrections: Iterable[Correction],
    tolerance: float,
) -> bool:
    """Check whether a remove correction on the token's page lies within tolerance."""
    return any(
        c.kind is CorrectionKind.REMOVE
        and c.page_index == token.page_index
        and abs(c.x_pct - token.x_pct) < tolerance
        and abs(c.y_pct - token.y_pct) < tolerance
        for c in corrections
    )


def typical_px_height(tokens: Sequence[ChordToken]) -> Optional[int]:
    """Median pixel height of the detected chords, used to size added ones."""
    heights = sorted(t.px_height for t in tokens if t.px_height)
    if not heights:
        return None
    return heights[len(heights) // 2]


def merge_tokens(
    detected: Sequence[ChordToken],
    corrections: Sequence[Correction],
    page_index: int,
    state: Optional[TranspositionState] = None,
    config: Optional[OverlayConfig] = None,
) -> List[ChordToken]:
    """
    Build the chord tokens to render on a page.

    Args:
        detected: Tokens found by the classifier (any page)
        corrections: User corrections (any page)
        page_index: Page being rendered
        state: Transposition to apply, or None for the original key
        config: Overlay tolerances, or None for the configured ones

    Returns:
        Unsuppressed detected tokens followed by added tokens, all
        transposed by ``state``
    """
    config = config or get_config().overlay
    state = state or TranspositionState()
    page_corrections = [c for c in corrections if c.page_index == page_index]

    page_detected = [t for t in detected if t.page_index == page_index]
    added_px_height = typical_px_height(page_detected)

    rendered: List[ChordToken] = []

    for token in page_detected:
        if is_suppressed(token, page_corrections, config.suppression_tolerance):
            continue
        rendered.append(transpose_token(token, state))

    for correction in page_corrections:
        if correction.kind is not CorrectionKind.ADD:
            continue
        rendered.append(ChordToken(
            text=transpose_chord(correction.text, state.semitone_offset, state.prefer_flats),
            original_text=correction.text,
            x_pct=correction.x_pct,
            y_pct=correction.y_pct,
            width_pct=config.added_width_pct,
            height_pct=config.added_height_pct,
            px_height=added_px_height,
            origin=TokenOrigin.ADDED,
            page_index=page_index,
            correction_id=correction.id,
        ))

    return rendered


class CorrectionStore:
    """
    Per-page detected tokens and the document's corrections.

    Corrections are kept in lists keyed by page index; lookups are linear
    scans, which is plenty at the chord density of a page.
    """

    def __init__(self, config: Optional[OverlayConfig] = None):
        self.config = config or get_config().overlay
        self._corrections: Dict[int, List[Correction]] = {}
        self._detected: Dict[int, List[ChordToken]] = {}

    @classmethod
    def from_corrections(
        cls,
        corrections: Iterable[Correction],
        config: Optional[OverlayConfig] = None,
    ) -> "CorrectionStore":
        """Create a store from a previously saved correction list."""
        store = cls(config)
        for correction in corrections:
            store._corrections.setdefault(correction.page_index, []).append(correction)
        return store

    @property
    def corrections(self) -> List[Correction]:
        """All corrections, page by page in insertion order."""
        return [c for page in sorted(self._corrections) for c in self._corrections[page]]

    def corrections_for_page(self, page_index: int) -> List[Correction]:
        return list(self._corrections.get(page_index, []))

    def detected_tokens(self, page_index: int) -> List[ChordToken]:
        return list(self._detected.get(page_index, []))

    def set_detected_tokens(self, page_index: int, tokens: Sequence[ChordToken]) -> None:
        """Replace the detected tokens of a page after a (re-)scan."""
        self._detected[page_index] = [t for t in tokens if t.origin is TokenOrigin.DETECTED]

    def render(
        self,
        page_index: int,
        state: Optional[TranspositionState] = None,
    ) -> List[ChordToken]:
        """Get the merged, transposed tokens of a page."""
        return merge_tokens(
            self._detected.get(page_index, []),
            self._corrections.get(page_index, []),
            page_index,
            state,
            self.config,
        )

    def apply_correction(
        self,
        correction: Correction,
        state: Optional[TranspositionState] = None,
    ) -> List[ChordToken]:
        """
        Add a correction to the store.

        Returns:
            Merged tokens of the correction's page
        """
        self._corrections.setdefault(correction.page_index, []).append(correction)
        logger.info(
            f"Applied {correction.kind.value} correction {correction.text!r} "
            f"on page {correction.page_index}"
        )
        return self.render(correction.page_index, state)

    def remove_correction(
        self,
        correction_id: str,
        state: Optional[TranspositionState] = None,
    ) -> List[ChordToken]:
        """
        Delete a correction by id.

        Returns:
            Merged tokens of the page the correction belonged to

        Raises:
            UnknownCorrection: If no correction has this id
        """
        for page_index, page_corrections in self._corrections.items():
            for i, correction in enumerate(page_corrections):
                if correction.id == correction_id:
                    del page_corrections[i]
                    logger.info(f"Removed correction {correction_id} on page {page_index}")
                    return self.render(page_index, state)

        raise UnknownCorrection(correction_id)

    def clear_page(self, page_index: int) -> None:
        """Drop every correction of a page."""
        self._corrections.pop(page_index, None)
