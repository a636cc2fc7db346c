"""
Key estimation from a sequence of chords.

A positional vote: every chord counts once, and the opening, second and
closing chords get extra weight because songs tend to start and end on
the tonic.
"""

from __future__ import annotations

from typing import Dict, Iterable, Optional
import logging

from chord_overlay.config import KeyEstimatorConfig, get_config
from chord_overlay.core.chord_grammar import extract_root

logger = logging.getLogger(__name__)


def score_roots(roots: list, weights: KeyEstimatorConfig) -> Dict[str, int]:
    """
    Score each root by occurrence and position.

    The returned dict keeps roots in order of first appearance.
    """
    scores: Dict[str, int] = {}
    last = len(roots) - 1

    for i, root in enumerate(roots):
        score = scores.get(root, 0) + weights.occurrence_weight
        if i == 0:
            score += weights.first_weight
        if i == 1:
            score += weights.second_weight
        if i == last:
            score += weights.last_weight
        scores[root] = score

    return scores


def estimate_key(
    chords: Iterable[str],
    weights: Optional[KeyEstimatorConfig] = None,
) -> Optional[str]:
    """
    Estimate the tonal center of a chord sequence.

    Args:
        chords: Chord symbols or roots in reading order. Entries without a
                recognizable root are skipped.
        weights: Positional weights, or None for the configured ones

    Returns:
        Root name like "G" or "Bb", or None for an empty sequence
    """
    weights = weights or get_config().key_estimator

    roots = [r for r in (extract_root(c) for c in chords if c) if r]
    if not roots:
        return None

    scores = score_roots(roots, weights)

    best_key = None
    best_score = None
    for root, score in scores.items():
        if best_score is None or score > best_score:
            best_key = root
            best_score = score

    logger.debug(f"Key scores: {scores} -> {best_key}")
    return best_key
