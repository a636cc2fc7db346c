"""
Chord transposition and capo calculation.

Every function here is pure. Chord text that cannot be parsed passes
through unchanged so one bad token never blocks a page from rendering.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional
import logging

from chord_overlay.core.chord_grammar import (
    NOTE_PATTERN,
    is_flat_spelling,
    parse_key,
    pitch_class,
    spell,
    split_root,
)
from chord_overlay.core.models import ChordToken, TranspositionState

logger = logging.getLogger(__name__)


# Major key -> relative minor
RELATIVE_MINORS = {
    "C": "Am",
    "G": "Em",
    "D": "Bm",
    "A": "F#m",
    "E": "C#m",
    "B": "G#m",
    "F#": "D#m",
    "Db": "Bbm",
    "Ab": "Fm",
    "Eb": "Cm",
    "Bb": "Gm",
    "F": "Dm",
}

_RELATIVE_PAIRS = {
    (pitch_class(major), pitch_class(minor[:-1]))
    for major, minor in RELATIVE_MINORS.items()
}


@dataclass(frozen=True)
class CapoResult:
    """Capo position and the transposition that keeps chords sounding right."""

    fret: int
    transposition: int


def _transpose_note(note_name: str, semitones: int, prefer_flats: Optional[bool]) -> Optional[str]:
    index = pitch_class(note_name)
    if index < 0:
        return None
    use_flats = is_flat_spelling(note_name) if prefer_flats is None else prefer_flats
    return spell((index + semitones) % 12, use_flats)


def transpose_chord(
    chord: str,
    semitones: int,
    prefer_flats: Optional[bool] = None,
) -> str:
    """
    Transpose a chord symbol by a number of semitones.

    Args:
        chord: Chord symbol such as "Am7", "Bb" or "G/B"
        semitones: Semitones to move (any integer, wraps at the octave)
        prefer_flats: Spell the result with flats (True) or sharps (False).
                      None keeps the accidental style of each note.

    Returns:
        The transposed chord, or ``chord`` unchanged if it has no
        recognizable root.
    """
    if not chord:
        return chord

    parts = split_root(chord)
    if parts is None:
        return chord
    root, suffix = parts

    new_root = _transpose_note(root, semitones, prefer_flats)
    if new_root is None:
        return chord

    if "/" in suffix:
        quality, bass = suffix.rsplit("/", 1)
        if NOTE_PATTERN.match(bass):
            new_bass = _transpose_note(bass, semitones, prefer_flats)
            if new_bass is not None:
                return f"{new_root}{quality}/{new_bass}"

    return new_root + suffix


def transpose_chords(
    chords: Iterable[str],
    semitones: int,
    prefer_flats: Optional[bool] = None,
) -> List[str]:
    """Transpose a sequence of chord symbols."""
    return [transpose_chord(c, semitones, prefer_flats) for c in chords]


def transpose_token(token: ChordToken, state: TranspositionState) -> ChordToken:
    """
    Re-render a chord token under a transposition state.

    The token's text is always derived from its original text, never from
    a previous rendering.
    """
    return token.with_text(
        transpose_chord(token.original_text, state.semitone_offset, state.prefer_flats)
    )


def transpose_tokens(tokens: Iterable[ChordToken], state: TranspositionState) -> List[ChordToken]:
    return [transpose_token(t, state) for t in tokens]


def is_relative_key(first: str, second: str) -> bool:
    """
    Check whether two keys are a major/minor relative pair.

    Spelling does not matter: "Db" and "A#m" count as relatives.
    """
    a = parse_key(first)
    b = parse_key(second)
    if a is None or b is None:
        return False

    (root_a, minor_a), (root_b, minor_b) = a, b
    if minor_a == minor_b:
        return False
    if minor_a:
        root_a, root_b = root_b, root_a
    return (pitch_class(root_a), pitch_class(root_b)) in _RELATIVE_PAIRS


def calculate_capo(original_key: str, target_shape: str) -> Optional[CapoResult]:
    """
    Work out where to put a capo to play a song with different chord shapes.

    Example: a song in E played with D shapes needs capo 2, and the
    displayed chords move down 2 semitones.

    Args:
        original_key: Key the song sounds in, e.g. "E" or "C#m"
        target_shape: Key whose shapes the player wants to use

    Returns:
        CapoResult, or None if either key cannot be parsed
    """
    if not original_key or not target_shape:
        return None

    original = parse_key(original_key)
    target = parse_key(target_shape)
    if original is None or target is None:
        logger.debug(f"Cannot compute capo for {original_key!r} -> {target_shape!r}")
        return None

    if is_relative_key(original_key, target_shape):
        return CapoResult(fret=0, transposition=0)

    fret = (pitch_class(original[0]) - pitch_class(target[0])) % 12
    return CapoResult(fret=fret, transposition=-fret)
