"""
Chord grammar and pitch arithmetic.

Holds the chromatic spelling tables, the strict chord-symbol grammar used to
tell chords from lyrics, and the helpers that pull a root note out of a chord
or key name.
"""

from __future__ import annotations

import re
from typing import Optional

# Chromatic scale, index 0 = C
SHARP_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]
FLAT_NAMES = ["C", "Db", "D", "Eb", "E", "F", "Gb", "G", "Ab", "A", "Bb", "B"]

# Spellings that appear in neither table
ENHARMONIC_EQUIVALENTS = {
    "Cb": "B",
    "Fb": "E",
    "E#": "F",
    "B#": "C",
}

UNICODE_ACCIDENTALS = {
    "\u266f": "#",
    "\u266d": "b",
}

ROOT_PATTERN = re.compile(r"^([A-G][#b]?)(.*)$", re.DOTALL)
NOTE_PATTERN = re.compile(r"^[A-G][#b]?$")

_NOTE = r"[A-G][#b]?"
_QUALITY = r"(?:maj|min|dim|aug|sus[24]?|add|m|M|\+|11|13|2|4|5|6|7|9)"

CHORD_PATTERN = re.compile(rf"^{_NOTE}{_QUALITY}*(?:/{_NOTE})?$")

# Looser than CHORD_PATTERN: anything a chord suffix may contain, so that
# "m7b5" or "6/9" transpose but words like "Chorus" do not
_SUFFIX_TOKEN = r"(?:/[A-G][#b]?|maj|min|dim|aug|sus|add|alt|no|omit|m|M|[0-9]|[#b+\-()/,\u00b0\u00f8])"
SUFFIX_PATTERN = re.compile(rf"^{_SUFFIX_TOKEN}*$")

# A key name: root plus an optional mode word
KEY_PATTERN = re.compile(r"^([A-G][#b]?)\s*(m|min|minor|maj|major|M)?$")

TRAILING_PUNCTUATION = ",.;:!?"


def normalize_accidentals(text: str) -> str:
    """Replace unicode sharp/flat signs with their ASCII spellings."""
    for symbol, ascii_symbol in UNICODE_ACCIDENTALS.items():
        text = text.replace(symbol, ascii_symbol)
    return text


def clean_token(text: str) -> str:
    """Trim whitespace and trailing punctuation from recognized text."""
    return normalize_accidentals(text).strip().rstrip(TRAILING_PUNCTUATION).strip()


def is_chord(text: str) -> bool:
    """Check whether text matches the strict chord grammar."""
    return bool(CHORD_PATTERN.match(text))


def split_root(text: str) -> Optional[tuple[str, str]]:
    """
    Split a chord symbol into its root and suffix.

    Returns:
        ``(root, suffix)`` e.g. ``("F#", "m7/E")``, or None when the text
        does not start with a note letter or the rest is not a chord suffix.
    """
    match = ROOT_PATTERN.match(text)
    if not match or not SUFFIX_PATTERN.match(match.group(2)):
        return None
    return match.group(1), match.group(2)


def extract_root(text: str) -> Optional[str]:
    """Get the root (letter plus accidental) of a chord symbol."""
    parts = split_root(text)
    return parts[0] if parts else None


def pitch_class(note_name: str) -> int:
    """
    Get the chromatic index (0-11) of a note name.

    Looks up the sharp table, then the flat table, then the enharmonic
    table. Returns -1 for anything else.
    """
    if note_name in SHARP_NAMES:
        return SHARP_NAMES.index(note_name)
    if note_name in FLAT_NAMES:
        return FLAT_NAMES.index(note_name)
    equivalent = ENHARMONIC_EQUIVALENTS.get(note_name)
    if equivalent is not None:
        return SHARP_NAMES.index(equivalent)
    return -1


def is_flat_spelling(note_name: str) -> bool:
    return len(note_name) == 2 and note_name[1] == "b"


def spell(index: int, use_flats: bool) -> str:
    """Name a chromatic index using the sharp or flat table."""
    names = FLAT_NAMES if use_flats else SHARP_NAMES
    return names[index % 12]


def normalize_semitones(semitones: int) -> int:
    """
    Collapse a semitone offset to its smallest equivalent.

    The result lies in -5..6, so +11 becomes -1 and -12 becomes 0.
    """
    offset = int(semitones) % 12
    if offset > 6:
        offset -= 12
    return offset


def parse_key(name: str) -> Optional[tuple[str, bool]]:
    """
    Parse a key name such as ``"E"``, ``"C#m"`` or ``"Bb minor"``.

    Returns:
        ``(root, is_minor)`` or None when the name is not a key.
    """
    match = KEY_PATTERN.match(normalize_accidentals(name).strip())
    if not match:
        return None
    root, mode = match.group(1), match.group(2)
    if pitch_class(root) < 0:
        return None
    return root, mode in ("m", "min", "minor")
