"""
Tests for chord transposition and capo calculation.
"""

import pytest

from chord_overlay.core.chord_grammar import normalize_semitones
from chord_overlay.core.models import ChordToken, TokenOrigin, TranspositionState
from chord_overlay.core.transposer import (
    CapoResult,
    calculate_capo,
    is_relative_key,
    transpose_chord,
    transpose_chords,
    transpose_token,
)


SHARP_CHORDS = ["C", "C#m7", "D", "Esus4", "F#m7/C#", "G/B", "A7", "Bdim", "G#aug"]
FLAT_CHORDS = ["Bb", "Ebmaj7", "Abm", "Db/F", "Gb7", "Bbsus2/Ab"]


class TestTransposeChord:
    """Tests for transpose_chord."""

    def test_transpose_up(self):
        """Test transposing a plain chord up."""
        assert transpose_chord("C", 2) == "D"
        assert transpose_chord("Am7", 3) == "Cm7"

    def test_transpose_down_wraps(self):
        """Test transposing below C wraps to the top of the scale."""
        assert transpose_chord("C", -1) == "B"
        assert transpose_chord("D", -3) == "B"

    def test_zero_is_identity(self):
        """Test that 0 semitones leaves chords untouched."""
        for chord in SHARP_CHORDS + FLAT_CHORDS:
            assert transpose_chord(chord, 0) == chord

    def test_octave_is_identity(self):
        """Test that a full octave in either direction is an identity."""
        for chord in SHARP_CHORDS + FLAT_CHORDS:
            assert transpose_chord(chord, 12) == chord
            assert transpose_chord(chord, -12) == chord

    @pytest.mark.parametrize("semitones", [-25, -13, -7, -1, 5, 11, 14, 30])
    def test_modulo_invariance(self, semitones):
        """Test that offsets are taken modulo 12."""
        for chord in SHARP_CHORDS + FLAT_CHORDS:
            assert transpose_chord(chord, semitones) == transpose_chord(chord, semitones % 12)

    @pytest.mark.parametrize("semitones", range(-11, 12))
    def test_round_trip(self, semitones):
        """
        Test that transposing back restores the chord.

        Flat chords need prefer_flats=True: with the default spelling "Bb" +1
        and "A#" +1 both give "B", so "B" -1 cannot return to both.
        """
        for chord in SHARP_CHORDS:
            assert transpose_chord(transpose_chord(chord, semitones), -semitones) == chord
        for chord in FLAT_CHORDS:
            up = transpose_chord(chord, semitones, prefer_flats=True)
            assert transpose_chord(up, -semitones, prefer_flats=True) == chord

    def test_flat_spelling_is_kept(self):
        """Test that flat chords stay flat by default."""
        assert transpose_chord("Bb", 1) == "B"
        assert transpose_chord("Bb", 3) == "Db"
        assert transpose_chord("Eb7", -2) == "Db7"

    def test_sharp_spelling_is_default(self):
        """Test that natural and sharp chords come out with sharps."""
        assert transpose_chord("C", 1) == "C#"
        assert transpose_chord("F#m", 1) == "Gm"

    def test_prefer_flats_overrides(self):
        """Test explicit accidental preference."""
        assert transpose_chord("C", 1, prefer_flats=True) == "Db"
        assert transpose_chord("Bb", 0, prefer_flats=False) == "A#"

    def test_enharmonic_only_spelling(self):
        """Test spellings missing from both tables resolve to a pitch."""
        assert transpose_chord("Fb", 0) == "E"
        assert transpose_chord("Cb", 0) == "B"
        assert transpose_chord("E#m", 0) == "Fm"
        assert transpose_chord("B#7", 1) == "C#7"

    def test_slash_chord(self):
        """Test that the bass note is transposed too."""
        assert transpose_chord("G/B", 2) == "A/C#"
        assert transpose_chord("Bb/D", 2) == "C/E"
        assert transpose_chord("Am7/G", -2) == "Gm7/F"

    def test_slash_without_note_is_suffix(self):
        """Test that a slash followed by a number is left alone."""
        assert transpose_chord("C6/9", 2) == "D6/9"
        assert transpose_chord("Bm7b5", 1) == "Cm7b5"

    def test_non_chord_passes_through(self):
        """Test that text without a root is returned unchanged."""
        assert transpose_chord("Chorus", 3) == "Chorus"
        assert transpose_chord("Bridge", 2) == "Bridge"
        assert transpose_chord("verse", 3) == "verse"
        assert transpose_chord("N.C.", 5) == "N.C."
        assert transpose_chord("", 4) == ""

    def test_transpose_chords(self):
        """Test transposing a list."""
        assert transpose_chords(["G", "D", "Em", "C"], 2) == ["A", "E", "F#m", "D"]


class TestNormalizeSemitones:
    """Tests for semitone normalization."""

    def test_collapses_large_offsets(self):
        assert normalize_semitones(11) == -1
        assert normalize_semitones(7) == -5
        assert normalize_semitones(6) == 6
        assert normalize_semitones(-12) == 0
        assert normalize_semitones(-13) == -1
        assert normalize_semitones(0) == 0


class TestTranspositionState:
    """Tests for TranspositionState."""

    def test_offset_is_normalized(self):
        assert TranspositionState(11).semitone_offset == -1
        assert TranspositionState(-12).semitone_offset == 0

    def test_shifted(self):
        state = TranspositionState(5, prefer_flats=True)
        shifted = state.shifted(2)
        assert shifted.semitone_offset == -5
        assert shifted.prefer_flats is True
        assert state.semitone_offset == 5

    def test_from_capo(self):
        state = TranspositionState.from_capo(CapoResult(fret=2, transposition=-2))
        assert state.semitone_offset == -2

    def test_transpose_token_uses_original_text(self):
        """Test that re-transposing never compounds offsets."""
        token = ChordToken("G", "G", 10.0, 10.0, 1.0, 20, TokenOrigin.DETECTED)
        once = transpose_token(token, TranspositionState(2))
        twice = transpose_token(once, TranspositionState(2))
        assert once.text == "A"
        assert twice.text == "A"
        assert twice.original_text == "G"
        assert token.text == "G"


class TestCalculateCapo:
    """Tests for calculate_capo."""

    def test_general_case(self):
        """Test a song in E played with D shapes."""
        assert calculate_capo("E", "D") == CapoResult(fret=2, transposition=-2)

    def test_wraps_around(self):
        """Test a shape above the key wraps to a high fret."""
        assert calculate_capo("G", "C") == CapoResult(fret=7, transposition=-7)
        assert calculate_capo("C", "D") == CapoResult(fret=10, transposition=-10)

    def test_relative_key(self):
        """Test relative major/minor needs no capo."""
        assert calculate_capo("C", "Am") == CapoResult(fret=0, transposition=0)
        assert calculate_capo("Am", "C") == CapoResult(fret=0, transposition=0)
        assert calculate_capo("Em", "G") == CapoResult(fret=0, transposition=0)

    def test_relative_key_any_spelling(self):
        """Test enharmonic relatives are recognized."""
        assert is_relative_key("Db", "Bbm")
        assert is_relative_key("C#", "A#m")
        assert is_relative_key("Gb major", "Eb minor")
        assert not is_relative_key("C", "Em")
        assert not is_relative_key("C", "G")

    def test_minor_keys(self):
        """Test minor keys use their root for the fret."""
        assert calculate_capo("F#m", "Em") == CapoResult(fret=2, transposition=-2)

    def test_same_key(self):
        assert calculate_capo("Bb", "A#") == CapoResult(fret=0, transposition=0)

    def test_unparseable(self):
        """Test unreadable keys return None."""
        assert calculate_capo("H", "D") is None
        assert calculate_capo("E", "") is None
        assert calculate_capo("Chorus", "C") is None


class TestIdentityState:
    """Tests for the untransposed state."""

    def test_default_is_identity(self):
        assert TranspositionState().is_identity
        assert TranspositionState(12).is_identity

    def test_spelling_preference_is_not_identity(self):
        assert not TranspositionState(0, prefer_flats=True).is_identity
        assert not TranspositionState(1).is_identity
