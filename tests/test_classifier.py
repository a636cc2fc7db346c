"""
Tests for the token classifier.
"""

import pytest

from chord_overlay.config import ClassifierConfig
from chord_overlay.core.classifier import (
    AMBIGUOUS_CHORD,
    TokenClassifier,
    classify_fragments,
)
from chord_overlay.core.errors import InvalidInput
from chord_overlay.core.models import RecognizedFragment, TokenOrigin
from tests.conftest import make_fragment

PAGE_WIDTH = 1000
PAGE_HEIGHT = 2000


def classify(fragments):
    return TokenClassifier().classify(fragments, PAGE_WIDTH, PAGE_HEIGHT)


def texts(result):
    return [t.text for t in result.accepted_tokens]


class TestLineAmbiguity:
    """Tests for line-level acceptance of chords."""

    def test_article_line_is_rejected(self):
        """Test that "A boy" yields no chord."""
        result = classify([
            make_fragment("A", 100, 100, width=12),
            make_fragment("boy", 140, 102),
        ])
        assert result.is_empty
        assert result.key_votes == {}

    def test_strong_chord_line_is_accepted(self):
        """Test that "Am boy" yields exactly the Am chord."""
        result = classify([
            make_fragment("Am", 100, 100, width=24),
            make_fragment("boy", 160, 100),
        ])
        assert texts(result) == ["Am"]

    def test_chord_only_a_line(self):
        """Test that a line holding just "A" is a chord line."""
        result = classify([make_fragment(AMBIGUOUS_CHORD, 100, 100)])
        assert texts(result) == ["A"]

    def test_a_next_to_strong_chord(self):
        """Test that "A" is kept on a line with other chords."""
        result = classify([
            make_fragment("A", 100, 100),
            make_fragment("E", 300, 100),
            make_fragment("D", 500, 100),
        ])
        assert texts(result) == ["A", "E", "D"]

    def test_other_single_letters_count_as_strong(self):
        """Test that only "A" is treated as ambiguous."""
        result = classify([
            make_fragment("E", 100, 100),
            make_fragment("lyrics", 200, 100),
        ])
        assert texts(result) == ["E"]

    def test_lyric_line(self):
        """Test that words starting with note letters are not chords."""
        result = classify([
            make_fragment("Amazing", 100, 300, width=90),
            make_fragment("grace", 220, 300),
            make_fragment("how", 300, 300),
            make_fragment("sweet", 360, 300),
        ])
        assert result.is_empty


class TestLineGrouping:
    """Tests for grouping fragments into lines."""

    def test_chord_row_separate_from_lyric_row(self):
        """Test that a chord line is not merged with the lyric line below."""
        classifier = TokenClassifier()
        lines = classifier.group_lines([
            make_fragment("grace", 200, 130),
            make_fragment("A", 100, 100),
            make_fragment("Amazing", 100, 130),
            make_fragment("D", 300, 104),
        ])
        assert [[f.text for f in line.fragments] for line in lines] == [
            ["A", "D"],
            ["grace", "Amazing"],
        ]

    def test_a_above_lyrics_survives(self):
        """Test an "A" on its own chord row above a lyric line."""
        result = classify([
            make_fragment("A", 100, 100),
            make_fragment("A", 100, 130),
            make_fragment("boy", 140, 130),
        ])
        assert texts(result) == ["A"]
        assert result.accepted_tokens[0].y_pct == pytest.approx(5.0)

    def test_tolerance_is_configurable(self):
        classifier = TokenClassifier(ClassifierConfig(line_tolerance=2.0))
        lines = classifier.group_lines([
            make_fragment("G", 100, 100),
            make_fragment("C", 300, 105),
        ])
        assert len(lines) == 2


class TestFragmentMerge:
    """Tests for stitching split chord symbols."""

    def test_split_sharp_minor_seventh(self):
        """Test that "F" + "#m7" becomes "F#m7"."""
        result = classify([
            make_fragment("F", 100, 100, width=10),
            make_fragment("#m7", 112, 100, width=30),
        ])
        assert texts(result) == ["F#m7"]
        token = result.accepted_tokens[0]
        assert token.x_pct == pytest.approx(10.0)
        assert token.width_pct == pytest.approx(4.2)

    def test_split_slash_chord(self):
        result = classify([
            make_fragment("G", 100, 100, width=10),
            make_fragment("/B", 111, 100, width=20),
        ])
        assert texts(result) == ["G/B"]

    def test_distant_fragments_not_merged(self):
        """Test that a wide gap keeps chords apart."""
        result = classify([
            make_fragment("E", 100, 100, width=10),
            make_fragment("m", 200, 100, width=10),
        ])
        assert result.is_empty or texts(result) == ["E"]
        assert "Em" not in texts(result)

    def test_word_start_not_merged(self):
        """Test that a close fragment not starting with a modifier stays separate."""
        classifier = TokenClassifier()
        merged = classifier.merge_fragments([
            make_fragment("C", 100, 100, width=10),
            make_fragment("G", 112, 100, width=10),
        ])
        assert [f.text for f in merged] == ["C", "G"]


class TestTokenOutput:
    """Tests for accepted token contents."""

    def test_coordinates(self):
        """Test page-relative percentages and pixel height."""
        result = classify([make_fragment("G", 100, 200, width=15, height=20)])
        token = result.accepted_tokens[0]
        assert token.x_pct == pytest.approx(10.0)
        assert token.y_pct == pytest.approx(10.0)
        assert token.width_pct == pytest.approx(1.5)
        assert token.height_pct == pytest.approx(1.0)
        assert token.px_height == 20
        assert token.origin is TokenOrigin.DETECTED
        assert token.original_text == "G"

    def test_page_index(self):
        result = TokenClassifier().classify(
            [make_fragment("G", 100, 100)], PAGE_WIDTH, PAGE_HEIGHT, page_index=3
        )
        assert result.accepted_tokens[0].page_index == 3

    def test_key_votes(self):
        """Test votes per root in reading order."""
        result = classify([
            make_fragment("G", 100, 100),
            make_fragment("D/F#", 300, 100),
            make_fragment("Gmaj7", 500, 100),
            make_fragment("Em", 100, 300),
        ])
        assert result.key_votes == {"G": 2, "D": 1, "E": 1}
        assert result.roots == ["G", "D", "G", "E"]

    def test_trailing_punctuation(self):
        result = classify([make_fragment("G,", 100, 100), make_fragment("C.", 300, 100)])
        assert texts(result) == ["G", "C"]

    def test_unicode_accidentals(self):
        result = classify([make_fragment("F♯m", 100, 100), make_fragment("B♭", 300, 100)])
        assert texts(result) == ["F#m", "Bb"]

    def test_rejects_failed_grammar(self):
        result = classify([
            make_fragment("Chorus:", 100, 100, width=80),
            make_fragment("H7", 300, 100),
        ])
        assert result.is_empty

    def test_qualities(self):
        chords = ["Csus4", "Dadd9", "E+", "Fdim", "Gaug", "AM7", "B5", "C13", "Dmin", "Cmaj7"]
        fragments = [make_fragment(c, 100 + i * 80, 100, width=40) for i, c in enumerate(chords)]
        assert texts(classify(fragments)) == chords


class TestClassifierInput:
    """Tests for input validation."""

    def test_empty_fragments(self):
        """Test that no fragments is an empty result, not an error."""
        result = classify([])
        assert result.is_empty
        assert result.key_votes == {}

    def test_invalid_page_size(self):
        with pytest.raises(InvalidInput):
            TokenClassifier().classify([make_fragment("G", 0, 0)], 0, 100)

    def test_malformed_quad(self):
        with pytest.raises(InvalidInput):
            RecognizedFragment("G", ((0, 0), (10, 0)))

    def test_fragment_from_dict(self):
        fragment = RecognizedFragment.from_dict({
            "text": "Am",
            "quad": [{"x": 1, "y": 2}, {"x": 11, "y": 2}, {"x": 11, "y": 12}, {"x": 1, "y": 12}],
        })
        assert fragment.left == 1
        assert fragment.bottom == 12

    def test_classify_fragments_helper(self):
        result = classify_fragments([make_fragment("C", 10, 10)], 100, 100)
        assert texts(result) == ["C"]
