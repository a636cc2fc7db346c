"""
Token Classifier - Turn recognized text fragments into chord tokens.

Pipeline for one page:
    1. Group fragments into printed lines by their top edge
    2. Stitch fragments the recognizer split mid-symbol ("F" + "#m7")
    3. Check each fragment against the strict chord grammar
    4. Accept or reject whole lines, so "A boy" does not become an A chord
    5. Count a key vote for the root of every accepted chord

Rejections are silent filtering decisions, not errors. The rules favour
precision: a lyric line never contributes chords unless it carries an
unambiguous one.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple
import logging

from chord_overlay.config import ClassifierConfig, get_config
from chord_overlay.core.chord_grammar import clean_token, extract_root, is_chord, normalize_accidentals
from chord_overlay.core.errors import InvalidInput
from chord_overlay.core.models import ChordToken, RecognizedFragment, TokenOrigin

logger = logging.getLogger(__name__)


# The only chord that is also a common English word
AMBIGUOUS_CHORD = "A"
WEAK_CHORDS = frozenset({AMBIGUOUS_CHORD})

# First characters of a fragment that continues the previous chord symbol
CONTINUATION_PATTERN = re.compile(r"^[#bmsMd/0-9]")


@dataclass
class PrintedLine:
    """Fragments sharing one printed line."""
    anchor_y: float
    fragments: List[RecognizedFragment] = field(default_factory=list)


@dataclass
class LineEvaluation:
    """Grammar results for the tokens of one line."""
    tokens: List[Tuple[RecognizedFragment, str]]
    chords: List[Tuple[RecognizedFragment, str]]

    @property
    def has_strong_chord(self) -> bool:
        return any(text not in WEAK_CHORDS for _, text in self.chords)

    @property
    def is_chord_only(self) -> bool:
        return bool(self.tokens) and len(self.chords) == len(self.tokens)


# A line is kept if any rule accepts it
LINE_ACCEPTANCE_RULES: Tuple[Tuple[str, Callable[[LineEvaluation], bool]], ...] = (
    ("strong chord", lambda line: line.has_strong_chord),
    ("chord-only line", lambda line: line.is_chord_only),
)


@dataclass
class ClassificationResult:
    """
    Chords accepted on one page.

    ``roots`` lists the root of every accepted token in reading order;
    ``key_votes`` counts them per root.
    """

    accepted_tokens: List[ChordToken] = field(default_factory=list)
    key_votes: Dict[str, int] = field(default_factory=dict)
    roots: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.accepted_tokens


class TokenClassifier:
    """
    Labels recognized fragments of a page as chord tokens.

    Works in source pixel space; tokens are emitted with page-relative
    percentages so they can be drawn at any zoom level.
    """

    def __init__(self, config: Optional[ClassifierConfig] = None):
        """
        Initialize the classifier.

        Args:
            config: Line and merge tolerances, or None for the configured ones
        """
        self.config = config or get_config().classifier

    def group_lines(self, fragments: Sequence[RecognizedFragment]) -> List[PrintedLine]:
        """
        Group fragments into lines, top to bottom.

        A fragment joins the first line whose anchor is within the line
        tolerance of its top edge; otherwise it opens a new line.
        """
        lines: List[PrintedLine] = []

        for fragment in sorted(fragments, key=lambda f: f.top):
            for line in lines:
                if abs(line.anchor_y - fragment.top) < self.config.line_tolerance:
                    line.fragments.append(fragment)
                    break
            else:
                lines.append(PrintedLine(anchor_y=fragment.top, fragments=[fragment]))

        return lines

    def merge_fragments(self, fragments: Sequence[RecognizedFragment]) -> List[RecognizedFragment]:
        """
        Stitch split chord symbols on one line back together.

        A fragment is appended to its left neighbour when the gap between
        them is small and it starts with a modifier character.
        """
        ordered = sorted(fragments, key=lambda f: f.left)
        if not ordered:
            return []

        merged: List[RecognizedFragment] = []
        current = ordered[0]

        for following in ordered[1:]:
            gap = following.left - current.right
            if gap < self.config.merge_gap and CONTINUATION_PATTERN.match(following.text):
                logger.debug(f"Merging {current.text!r} + {following.text!r}")
                current = RecognizedFragment(
                    text=current.text + following.text,
                    quad=(current.quad[0], following.quad[1], following.quad[2], current.quad[3]),
                )
            else:
                merged.append(current)
                current = following

        merged.append(current)
        return merged

    def evaluate_line(self, fragments: Sequence[RecognizedFragment]) -> LineEvaluation:
        """Clean each fragment's text and check it against the chord grammar."""
        tokens = []
        for fragment in fragments:
            text = clean_token(fragment.text)
            if text:
                tokens.append((fragment, text))
        chords = [(fragment, text) for fragment, text in tokens if is_chord(text)]
        return LineEvaluation(tokens=tokens, chords=chords)

    @staticmethod
    def accepting_rule(line: LineEvaluation) -> Optional[str]:
        """Name of the first rule that accepts a line, or None."""
        for name, rule in LINE_ACCEPTANCE_RULES:
            if rule(line):
                return name
        return None

    def classify(
        self,
        fragments: Sequence[RecognizedFragment],
        page_width: float,
        page_height: float,
        page_index: int = 0,
    ) -> ClassificationResult:
        """
        Classify the recognized fragments of one page.

        Args:
            fragments: Recognizer output, in page pixel coordinates
            page_width: Page width in pixels
            page_height: Page height in pixels
            page_index: Index of the page within the document

        Returns:
            ClassificationResult; empty when nothing on the page is a chord

        Raises:
            InvalidInput: If the page size is not positive
        """
        if page_width <= 0 or page_height <= 0:
            raise InvalidInput(f"Invalid page size: {page_width}x{page_height}")

        result = ClassificationResult()

        for line in self.group_lines(fragments):
            normalized = [
                RecognizedFragment(normalize_accidentals(f.text).strip(), f.quad)
                for f in line.fragments
            ]
            evaluation = self.evaluate_line(self.merge_fragments(normalized))

            rule = self.accepting_rule(evaluation)
            if rule is None:
                if evaluation.chords:
                    logger.debug(
                        f"Rejected line at y={line.anchor_y:.0f}: "
                        f"{[text for _, text in evaluation.tokens]}"
                    )
                continue

            logger.debug(f"Accepted line at y={line.anchor_y:.0f} ({rule})")
            for fragment, text in evaluation.chords:
                result.accepted_tokens.append(
                    self._make_token(fragment, text, page_width, page_height, page_index)
                )
                root = extract_root(text)
                result.roots.append(root)
                result.key_votes[root] = result.key_votes.get(root, 0) + 1

        logger.info(
            f"Page {page_index}: {len(result.accepted_tokens)} chord(s) "
            f"from {len(fragments)} fragment(s)"
        )
        return result

    @staticmethod
    def _make_token(
        fragment: RecognizedFragment,
        text: str,
        page_width: float,
        page_height: float,
        page_index: int,
    ) -> ChordToken:
        top_left, _, bottom_right, _ = fragment.quad
        px_height = bottom_right.y - top_left.y
        return ChordToken(
            text=text,
            original_text=text,
            x_pct=top_left.x / page_width * 100,
            y_pct=top_left.y / page_height * 100,
            width_pct=(bottom_right.x - top_left.x) / page_width * 100,
            height_pct=px_height / page_height * 100,
            px_height=int(round(px_height)),
            origin=TokenOrigin.DETECTED,
            page_index=page_index,
        )


def classify_fragments(
    fragments: Sequence[RecognizedFragment],
    page_width: float,
    page_height: float,
    page_index: int = 0,
) -> ClassificationResult:
    """Classify fragments with the configured classifier settings."""
    return TokenClassifier().classify(fragments, page_width, page_height, page_index)
